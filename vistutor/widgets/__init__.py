"""Interactive widget handles for charts and maps."""

from .base import WidgetHandle
from .charts import PlotlyWidget, interactive
from .maps import MapBuilder, MapWidget, TextControl, leaflet

__all__ = [
    "WidgetHandle",
    "PlotlyWidget",
    "interactive",
    "MapBuilder",
    "MapWidget",
    "TextControl",
    "leaflet",
]
