#!/usr/bin/env python3
"""
Interactive map widgets backed by folium (Leaflet).

Exercise code builds maps with a small chain:

    leaflet(quakes).add_markers(lng='long', lat='lat', popup='mag').add_tiles()

Tiles, markers, popups and controls are handed to folium as-is.
"""

from typing import List, Optional, Tuple

import folium
import pandas as pd
from branca.element import MacroElement, Template

from .base import WidgetHandle

CONTROL_POSITIONS = ('topleft', 'topright', 'bottomleft', 'bottomright')
DEFAULT_TILES = 'OpenStreetMap'


class TextControl(MacroElement):
    """A fixed HTML box in one corner of the map"""

    _template = Template("""
        {% macro script(this, kwargs) %}
        var {{ this.get_name() }} = L.control({position: {{ this.position|tojson }}});
        {{ this.get_name() }}.onAdd = function (map) {
            var div = L.DomUtil.create('div', 'leaflet-control-text');
            div.innerHTML = {{ this.html|tojson }};
            return div;
        };
        {{ this.get_name() }}.addTo({{ this._parent.get_name() }});
        {% endmacro %}
    """)

    def __init__(self, html: str, position: str = 'topright'):
        super().__init__()
        self._name = 'TextControl'
        self.html = html
        self.position = position


class MapWidget(WidgetHandle):
    """Wraps a folium map"""

    kind = 'map'

    def __init__(self, fmap: folium.Map):
        self.map = fmap

    def render(self) -> str:
        return self.map._repr_html_()

    def render_page(self) -> str:
        return self.map.get_root().render()


class MapBuilder:
    """Chainable map specification: data, markers, tiles, controls"""

    def __init__(self, data: pd.DataFrame):
        if not isinstance(data, pd.DataFrame):
            raise TypeError(f"leaflet() expects a DataFrame, got {type(data).__name__}")
        self.data = data
        self.markers: Optional[Tuple[str, str, Optional[str]]] = None
        self.tiles: List[str] = []
        self.controls: List[Tuple[str, str]] = []

    def _require_column(self, column: str):
        if column not in self.data.columns:
            raise KeyError(
                f"Column '{column}' not found in data. Available: {', '.join(map(str, self.data.columns))}"
            )

    def add_markers(self, lng: str = 'long', lat: str = 'lat', popup: Optional[str] = None) -> 'MapBuilder':
        """One marker per row, optionally with a popup column"""
        for column in (lng, lat) + ((popup,) if popup else ()):
            self._require_column(column)
        self.markers = (lng, lat, popup)
        return self

    def add_tiles(self, provider: Optional[str] = None) -> 'MapBuilder':
        """Add a basemap; default OpenStreetMap or a named provider"""
        self.tiles.append(provider or DEFAULT_TILES)
        return self

    def add_control(self, html: str, position: str = 'topright') -> 'MapBuilder':
        """Add a positioned text box"""
        if position not in CONTROL_POSITIONS:
            raise ValueError(f"position must be one of {', '.join(CONTROL_POSITIONS)}")
        self.controls.append((html, position))
        return self

    def _marker_points(self) -> List[Tuple[float, float, Optional[str]]]:
        lng, lat, popup = self.markers
        points = []
        for _, row in self.data.iterrows():
            y, x = row[lat], row[lng]
            if pd.isna(y) or pd.isna(x):
                continue
            label = None if popup is None else str(row[popup])
            points.append((float(y), float(x), label))
        return points

    def build(self) -> folium.Map:
        """Assemble the folium map"""
        points = self._marker_points() if self.markers else []
        if points:
            center = [
                sum(p[0] for p in points) / len(points),
                sum(p[1] for p in points) / len(points),
            ]
        else:
            center = [0.0, 0.0]

        fmap = folium.Map(location=center, zoom_start=2, tiles=None)
        for provider in self.tiles:
            folium.TileLayer(provider).add_to(fmap)

        for y, x, label in points:
            folium.Marker(
                location=[y, x],
                popup=folium.Popup(label, parse_html=True) if label is not None else None,
            ).add_to(fmap)

        for html, position in self.controls:
            fmap.add_child(TextControl(html, position))

        if len(points) > 1:
            south = min(p[0] for p in points)
            north = max(p[0] for p in points)
            west = min(p[1] for p in points)
            east = max(p[1] for p in points)
            fmap.fit_bounds([[south, west], [north, east]])
        return fmap

    def widget(self) -> MapWidget:
        return MapWidget(self.build())


def leaflet(data: pd.DataFrame) -> MapBuilder:
    """Start a map from a table of coordinates"""
    return MapBuilder(data)
