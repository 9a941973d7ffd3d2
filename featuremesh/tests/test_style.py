"""Tests for style hooks and color parsing."""

import pytest

from featuremesh.feature import FeatureType
from featuremesh.style import Computed, Constant, Style, as_style_value, to_rgb


class TestToRgb:
    def test_none(self):
        assert to_rgb(None) is None

    def test_hex_and_names(self):
        assert to_rgb('#ff0000') == (1.0, 0.0, 0.0)
        assert to_rgb('blue') == (0.0, 0.0, 1.0)

    def test_unit_tuple(self):
        assert to_rgb((0.2, 0.4, 0.6)) == pytest.approx((0.2, 0.4, 0.6))

    def test_byte_tuple(self):
        assert to_rgb((255, 0, 51)) == pytest.approx((1.0, 0.0, 0.2))

    def test_rgba_drops_alpha(self):
        assert to_rgb((1.0, 0.5, 0.0, 0.3)) == pytest.approx((1.0, 0.5, 0.0))

    def test_bad_color(self):
        with pytest.raises(ValueError):
            to_rgb((1.0, 0.5))
        with pytest.raises(ValueError):
            to_rgb('not-a-color')


class TestStyleValues:
    def test_wrapping(self):
        assert as_style_value(None) is None
        assert isinstance(as_style_value(3.0), Constant)
        assert isinstance(as_style_value(lambda p: p), Computed)
        value = Constant(1.0)
        assert as_style_value(value) is value

    def test_resolve(self):
        assert Constant('red').resolve({'a': 1}) == 'red'
        computed = Computed(lambda properties, coord: properties['h'] + coord)
        assert computed.resolve({'h': 2.0}, 3.0) == 5.0


class TestStyle:
    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown FillStyle key"):
            Style(fill={'colour': 'red'})

    def test_attribute_access(self):
        style = Style(stroke={'width': 2.0})
        assert isinstance(style.stroke.width, Constant)
        assert style.stroke.color is None
        with pytest.raises(AttributeError):
            style.stroke.radius

    def test_parent_fallback(self):
        parent = Style(fill={'color': 'red', 'opacity': 0.5})
        child = Style(fill={'color': 'blue'}, parent=parent)
        assert child.fill.resolve('color', {}) == 'blue'
        assert child.fill.resolve('opacity', {}) == 0.5
        assert child.fill.resolve('extrusion_height', {}, default=0.0) == 0.0

    def test_reparenting(self):
        child = Style()
        assert child.point.get('color') is None
        child.parent = Style(point={'color': 'green'})
        assert child.point.resolve('color', {}) == 'green'
        child.parent = None
        assert child.point.get('color') is None

    def test_unset_value(self):
        style = Style(fill={'color': 'red'})
        style.fill['color'] = None
        assert style.fill.get('color') is None

    def test_computed_none_uses_default(self):
        style = Style(fill={'extrusion_height': lambda p: p.get('h')})
        assert style.fill.resolve('extrusion_height', {}, default=1.0) == 1.0
        assert style.fill.resolve('extrusion_height', {'h': 4.0}) == 4.0


class TestGeojsonProperties:
    PROPERTIES = {
        'fill': '#00ff00',
        'fill-opacity': '0.4',
        'stroke': '#0000ff',
        'stroke-width': 3,
        'stroke-opacity': 0.8,
        'marker-color': '#ff0000',
    }

    def test_polygon(self):
        style = Style().set_from_geojson_properties(self.PROPERTIES, FeatureType.POLYGON)
        assert style.fill.resolve('color', {}) == '#00ff00'
        assert style.fill.resolve('opacity', {}) == 0.4
        assert style.stroke.resolve('width', {}) == 3.0
        assert style.point.get('color') is None

    def test_line_ignores_fill(self):
        style = Style().set_from_geojson_properties(self.PROPERTIES, 'line')
        assert style.fill.get('color') is None
        assert style.stroke.resolve('color', {}) == '#0000ff'
        assert style.stroke.resolve('opacity', {}) == 0.8

    def test_point(self):
        style = Style().set_from_geojson_properties(self.PROPERTIES, 'point')
        assert style.point.resolve('color', {}) == '#ff0000'
        assert style.stroke.get('color') is None
