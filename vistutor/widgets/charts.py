#!/usr/bin/env python3
"""
Interactive chart widgets backed by plotly.
"""

from typing import Optional

import plotly.graph_objects as go
import plotly.io as pio

from .base import WidgetHandle


class PlotlyWidget(WidgetHandle):
    """Wraps a plotly figure"""

    kind = 'chart'

    def __init__(self, figure: go.Figure, include_plotlyjs='cdn'):
        self.figure = figure
        self.include_plotlyjs = include_plotlyjs

    def render(self) -> str:
        return pio.to_html(
            self.figure,
            full_html=False,
            include_plotlyjs=self.include_plotlyjs,
            config={'responsive': True},
        )

    def render_page(self) -> str:
        return pio.to_html(self.figure, full_html=True, include_plotlyjs=self.include_plotlyjs)


def interactive(figure, width: Optional[int] = None, height: Optional[int] = None) -> PlotlyWidget:
    """
    Turn a chart into an interactive widget with hover, zoom and pan.

    Args:
        figure: A plotly figure (e.g. from plotly.express) or its dict form
        width: Optional widget width in pixels
        height: Optional widget height in pixels
    """
    if isinstance(figure, PlotlyWidget):
        figure = figure.figure
    if isinstance(figure, dict):
        figure = go.Figure(figure)
    if not isinstance(figure, go.Figure):
        raise TypeError(
            f"interactive() expects a plotly figure, got {type(figure).__name__}. "
            "Build the chart with plotly.express (px) first."
        )
    layout = {}
    if width:
        layout['width'] = width
    if height:
        layout['height'] = height
    if layout:
        figure.update_layout(**layout)
    return PlotlyWidget(figure)
