#!/usr/bin/env python3
"""
Tests for the plotly and folium widget wrappers.
"""

import folium
import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import pytest

from vistutor.widgets import MapBuilder, MapWidget, PlotlyWidget, TextControl, WidgetHandle, interactive, leaflet


@pytest.fixture
def quakes():
    return pd.DataFrame({
        'lat': [-20.42, -26.00, -17.97],
        'long': [181.62, 184.10, 181.66],
        'mag': [4.8, 5.4, 4.1],
    })


def markers(fmap):
    return [child for child in fmap._children.values() if isinstance(child, folium.Marker)]


class TestWidgetHandle:
    """Tests for the widget base class"""

    def test_abstract(self):
        """Test that render must be implemented"""
        with pytest.raises(TypeError):
            WidgetHandle()

    def test_save_and_page(self, tmp_path):
        """Test the default page wrapper and saving"""

        class Fixed(WidgetHandle):
            kind = 'fixed'

            def render(self):
                return '<p>hi</p>'

        widget = Fixed()
        path = widget.save(tmp_path / 'nested' / 'w.html')
        text = path.read_text()
        assert text.startswith('<!DOCTYPE html>')
        assert '<p>hi</p>' in text
        assert repr(widget) == '<Fixed kind=fixed>'


class TestInteractive:
    """Tests for interactive() and PlotlyWidget"""

    def test_wraps_figure(self, pulse):
        """Test that a plotly express figure becomes a chart widget"""
        widget = interactive(px.scatter(pulse, x='Age', y='Income'))
        assert isinstance(widget, PlotlyWidget)
        assert widget.kind == 'chart'

    def test_render_fragment(self):
        """Test that render returns an embeddable div"""
        html = interactive(go.Figure(go.Bar(x=['a'], y=[1]))).render()
        assert '<div' in html
        assert '<html' not in html

    def test_render_page(self):
        """Test the standalone page"""
        html = interactive(go.Figure()).render_page()
        assert '<html' in html

    def test_size(self):
        """Test width and height are applied to the layout"""
        widget = interactive(go.Figure(), width=500, height=300)
        assert widget.figure.layout.width == 500
        assert widget.figure.layout.height == 300

    def test_dict_figure(self):
        """Test that a figure dict is accepted"""
        widget = interactive({'data': [{'type': 'bar', 'x': ['a'], 'y': [1]}]})
        assert isinstance(widget.figure, go.Figure)

    def test_rewrap(self):
        """Test that wrapping a widget again keeps its figure"""
        figure = go.Figure()
        assert interactive(interactive(figure)).figure is figure

    def test_rejects_other_values(self):
        """Test that non-plotly values are rejected with guidance"""
        with pytest.raises(TypeError, match='plotly.express'):
            interactive([1, 2, 3])


class TestMapBuilder:
    """Tests for the leaflet() chain"""

    def test_requires_dataframe(self):
        """Test that leaflet needs a table"""
        with pytest.raises(TypeError, match='DataFrame'):
            leaflet([(1, 2)])

    def test_missing_column(self, quakes):
        """Test that unknown coordinate columns are named"""
        with pytest.raises(KeyError, match="Column 'lng' not found"):
            leaflet(quakes).add_markers(lng='lng', lat='lat')

    def test_missing_popup_column(self, quakes):
        """Test that the popup column must exist"""
        with pytest.raises(KeyError, match="Column 'place' not found"):
            leaflet(quakes).add_markers(popup='place')

    def test_markers(self, quakes):
        """Test one marker per row"""
        fmap = leaflet(quakes).add_markers(lng='long', lat='lat').build()
        assert isinstance(fmap, folium.Map)
        assert len(markers(fmap)) == 3

    def test_missing_coordinates_skipped(self, quakes):
        """Test that rows without coordinates get no marker"""
        quakes.loc[1, 'lat'] = np.nan
        fmap = leaflet(quakes).add_markers().build()
        assert len(markers(fmap)) == 2

    def test_popups(self, quakes):
        """Test that the popup column is attached to each marker"""
        fmap = leaflet(quakes).add_markers(popup='mag').build()
        for marker in markers(fmap):
            assert any(isinstance(child, folium.Popup) for child in marker._children.values())

    def test_popup_text_escaped(self, quakes):
        """Test that popup values are shown as text, not parsed as HTML"""
        quakes['note'] = ['depth <5 km', 'a<b', '<b>shallow</b>']
        page = leaflet(quakes).add_markers(popup='note').build().get_root().render()
        assert 'depth &lt;5 km' in page
        assert 'a&lt;b' in page
        assert '&lt;b&gt;shallow&lt;/b&gt;' in page

    def test_tiles(self, quakes):
        """Test default and named tile providers"""
        builder = leaflet(quakes).add_markers().add_tiles().add_tiles('CartoDB positron')
        assert builder.tiles == ['OpenStreetMap', 'CartoDB positron']
        fmap = builder.build()
        layers = [child for child in fmap._children.values() if isinstance(child, folium.TileLayer)]
        assert len(layers) == 2

    def test_control(self, quakes):
        """Test that a text control is added and rendered"""
        fmap = leaflet(quakes).add_markers().add_control('Strong quakes', position='bottomleft').build()
        controls = [child for child in fmap._children.values() if isinstance(child, TextControl)]
        assert len(controls) == 1
        page = MapWidget(fmap).render_page()
        assert 'L.control' in page
        assert 'Strong quakes' in page
        assert 'bottomleft' in page

    def test_bad_control_position(self, quakes):
        """Test that control positions are validated"""
        with pytest.raises(ValueError, match='topleft'):
            leaflet(quakes).add_control('x', position='middle')

    def test_widget(self, quakes, tmp_path):
        """Test building and saving a map widget"""
        widget = leaflet(quakes).add_markers().add_tiles().widget()
        assert isinstance(widget, MapWidget)
        assert widget.kind == 'map'
        assert widget.render()
        path = widget.save(tmp_path / 'map.html')
        assert 'leaflet' in path.read_text().lower()

    def test_builder_type(self, quakes):
        """Test that every chain step returns the builder"""
        builder = leaflet(quakes)
        assert isinstance(builder, MapBuilder)
        assert builder.add_markers() is builder
        assert builder.add_tiles() is builder
        assert builder.add_control('x') is builder
