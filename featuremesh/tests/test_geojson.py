"""Tests for GeoJSON parsing into feature collections."""

import json

import numpy as np
import pytest

from featuremesh.convert import PrimitiveKind, features_to_primitives
from featuremesh.errors import UnsupportedCRS, UnsupportedFeatureType
from featuremesh.extent import Extent
from featuremesh.feature import FeatureType
from featuremesh.geojson import _load_json, parse, read_crs


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SQUARE = [[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0], [0.0, 0.0]]


def _feature(geometry_type, coordinates, properties=None, **members):
    record = {
        "type": "Feature",
        "geometry": {"type": geometry_type, "coordinates": coordinates},
        "properties": properties if properties is not None else {},
    }
    record.update(members)
    return record


def _collection(*features, **members):
    fc = {"type": "FeatureCollection", "features": list(features)}
    fc.update(members)
    return fc


def _by_type(collection, feature_type):
    return [f for f in collection.features if f.type == feature_type]


# ---------------------------------------------------------------------------
# _load_json
# ---------------------------------------------------------------------------

class TestLoadJson:
    def test_dict(self):
        fc = _collection()
        assert _load_json(fc) is fc

    def test_json_string(self):
        result = _load_json(json.dumps(_collection()))
        assert result["type"] == "FeatureCollection"

    def test_file_path(self, tmp_path):
        path = tmp_path / "data.geojson"
        path.write_text(json.dumps(_collection(_feature("Point", [1, 2]))))
        assert len(_load_json(path)["features"]) == 1
        assert len(_load_json(str(path))["features"]) == 1

    def test_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            _load_json(tmp_path / "missing.geojson")

    def test_bad_type(self):
        with pytest.raises(TypeError, match="Expected dict"):
            _load_json([1, 2, 3])


# ---------------------------------------------------------------------------
# read_crs
# ---------------------------------------------------------------------------

class TestReadCrs:
    def test_default(self):
        assert read_crs({}) == 'EPSG:4326'

    def test_epsg_type(self):
        crs = {"type": "EPSG", "properties": {"code": 2154}}
        assert read_crs({"crs": crs}) == 'EPSG:2154'

    @pytest.mark.parametrize("name, expected", [
        ("urn:ogc:def:crs:EPSG::3857", 'EPSG:3857'),
        ("urn:ogc:def:crs:EPSG:6.6:2154", 'EPSG:2154'),
        ("EPSG:32633", 'EPSG:32633'),
        ("urn:ogc:def:crs:OGC:1.3:CRS84", 'EPSG:4326'),
    ])
    def test_name_type(self, name, expected):
        crs = {"type": "name", "properties": {"name": name}}
        assert read_crs({"crs": crs}) == expected

    def test_unsupported(self):
        crs = {"type": "link", "properties": {"href": "http://example.com/crs"}}
        with pytest.raises(UnsupportedCRS):
            read_crs({"crs": crs})

    def test_unsupported_is_value_error(self):
        crs = {"type": "name", "properties": {"name": "my local grid"}}
        with pytest.raises(ValueError, match="Unsupported CRS"):
            read_crs({"crs": crs})


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------

class TestParse:
    def test_geometry_types(self):
        fc = _collection(
            _feature("Point", [1.0, 2.0]),
            _feature("MultiPoint", [[1.0, 2.0], [3.0, 4.0]]),
            _feature("LineString", [[0.0, 0.0], [1.0, 1.0]]),
            _feature("MultiLineString", [[[0.0, 0.0], [1.0, 1.0]],
                                         [[2.0, 2.0], [3.0, 3.0]]]),
            _feature("Polygon", [SQUARE]),
            _feature("MultiPolygon", [[SQUARE], [SQUARE]]),
        )
        collection = parse(fc)

        assert len(collection.features) == 3
        points, = _by_type(collection, FeatureType.POINT)
        lines, = _by_type(collection, FeatureType.LINE)
        polygons, = _by_type(collection, FeatureType.POLYGON)
        # one geometry per point, line and polygon
        assert points.geometry_count == 3
        assert lines.geometry_count == 3
        assert polygons.geometry_count == 3
        assert polygons.vertex_count == 15
        for feature in collection.features:
            feature.validate()

    def test_single_feature_root(self):
        collection = parse(_feature("LineString", [[0.0, 0.0], [1.0, 1.0]]))
        assert [f.type for f in collection.features] == [FeatureType.LINE]

    def test_polygon_rings(self):
        hole = [[0.2, 0.2], [0.2, 0.4], [0.4, 0.4], [0.2, 0.2]]
        collection = parse(_collection(_feature("Polygon", [SQUARE, hole])))
        geometry = collection.features[0].geometries[0]
        assert [(i.offset, i.count) for i in geometry.indices] == [(0, 5), (5, 4)]

    def test_coordinates_in_output_crs(self):
        collection = parse(_collection(_feature("Point", [1.0, 1.0])),
                           crs='EPSG:3857')
        assert collection.crs == 'EPSG:3857'
        world = collection.frame.to_world(collection.features[0].vertices)
        np.testing.assert_allclose(world[0], [111319.49, 111325.14], rtol=1e-6)

    def test_input_crs_from_document(self):
        fc = _collection(
            _feature("Point", [111319.49079327357, 0.0]),
            crs={"type": "name", "properties": {"name": "urn:ogc:def:crs:EPSG::3857"}},
        )
        collection = parse(fc, build_extent=True)
        assert collection.extent.crs == 'EPSG:4326'
        world = collection.frame.to_world(collection.features[0].vertices)
        np.testing.assert_allclose(world[0], [1.0, 0.0], atol=1e-9)

    def test_merge_features_false(self):
        fc = _collection(_feature("Polygon", [SQUARE]), _feature("Polygon", [SQUARE]))
        collection = parse(fc, merge_features=False)
        assert len(collection.features) == 2
        assert all(f.geometry_count == 1 for f in collection.features)

    def test_3d_coordinates(self):
        fc = _collection(_feature("LineString", [[0.0, 0.0, 10.0], [1.0, 1.0, 30.0]]))
        collection = parse(fc, structure='3d')
        assert (collection.altitude.min, collection.altitude.max) == (10.0, 30.0)
        assert len(collection.features[0].normals) == 6

    def test_extent(self):
        fc = _collection(
            _feature("Point", [-3.0, 2.0]),
            _feature("LineString", [[1.0, -1.0], [4.0, 5.0]]),
        )
        collection = parse(fc, build_extent=True, forced_extent_crs='EPSG:4326',
                           crs='EPSG:3857')
        ext = collection.extent
        assert (ext.west, ext.east, ext.south, ext.north) == pytest.approx((-3, 4, -1, 5))

    def test_properties_and_foreign_members(self):
        fc = _collection(_feature("Point", [1.0, 2.0], {"name": "a"},
                                  id="node/42", title="station"))
        collection = parse(fc)
        properties = collection.features[0].geometries[0].properties
        assert properties["name"] == "a"
        assert properties["geojson"] == {"id": "node/42", "title": "station"}
        # the input document is left untouched
        assert "geojson" not in fc["features"][0]["properties"]

    def test_null_geometry_skipped(self):
        fc = _collection({"type": "Feature", "geometry": None, "properties": {}},
                         _feature("Point", [1.0, 2.0]))
        collection = parse(fc)
        assert len(collection.features) == 1

    def test_empty_coordinates_skipped(self):
        fc = _collection(_feature("Polygon", []), _feature("LineString", []),
                         _feature("Point", [1.0, 2.0]))
        collection = parse(fc)
        assert [f.type for f in collection.features] == [FeatureType.POINT]

    def test_degenerate_polygon_warns(self):
        fc = _collection(_feature("Polygon", [[[0.0, 0.0], [1.0, 1.0]]]))
        with pytest.warns(UserWarning, match="outer ring"):
            collection = parse(fc)
        assert collection.features == []

    def test_geometry_collection_unsupported(self):
        fc = _collection({
            "type": "Feature",
            "geometry": {"type": "GeometryCollection", "geometries": []},
            "properties": {},
        })
        with pytest.raises(UnsupportedFeatureType, match="geometrycollection"):
            parse(fc)

    def test_unsupported_root(self):
        with pytest.raises(ValueError, match="Unsupported GeoJSON type"):
            parse({"type": "Point", "coordinates": [1, 2]})


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

class TestFiltering:
    def test_filter_callback(self):
        fc = _collection(
            _feature("Point", [1.0, 2.0], {"keep": True}),
            _feature("Point", [3.0, 4.0], {"keep": False}),
        )
        seen = []

        def keep(properties, geometry):
            seen.append(geometry["type"])
            return properties["keep"]

        collection = parse(fc, filter=keep)
        assert seen == ["Point", "Point"]
        assert collection.features[0].geometry_count == 1

    def test_filtering_extent(self):
        fc = _collection(
            _feature("Polygon", [SQUARE]),
            _feature("Polygon", [[[x + 20.0, y] for x, y in SQUARE]]),
        )
        extent = Extent('EPSG:4326', -5.0, 5.0, -5.0, 5.0)
        collection = parse(fc, filtering_extent=extent)
        assert collection.features[0].geometry_count == 1
        assert collection.filter_extent is extent

    def test_filtering_extent_uses_first_point_only(self):
        straddling = [[4.0, 0.0], [30.0, 0.0], [30.0, 1.0], [4.0, 0.0]]
        extent = Extent('EPSG:4326', -5.0, 5.0, -5.0, 5.0)
        collection = parse(_collection(_feature("Polygon", [straddling])),
                           filtering_extent=extent)
        assert collection.features[0].geometry_count == 1

    def test_filtering_extent_from_bbox(self):
        fc = _collection(
            _feature("Point", [1.0, 1.0]),
            _feature("Point", [50.0, 50.0]),
            bbox=[0.0, 0.0, 10.0, 10.0],
        )
        collection = parse(fc, filtering_extent=True)
        assert collection.features[0].geometry_count == 1

    def test_filtering_extent_without_bbox(self):
        with pytest.raises(ValueError, match="bbox"):
            parse(_collection(), filtering_extent=True)

    def test_all_filtered_out(self):
        extent = Extent('EPSG:4326', 100.0, 101.0, 0.0, 1.0)
        collection = parse(_collection(_feature("Polygon", [SQUARE])),
                           filtering_extent=extent)
        assert collection.features == []


# ---------------------------------------------------------------------------
# Simplestyle and conversion
# ---------------------------------------------------------------------------

class TestStyleAndConversion:
    def test_simplestyle_colors(self):
        fc = _collection(
            _feature("Polygon", [SQUARE], {"fill": "#00ff00"}),
            _feature("LineString", [[0.0, 0.0], [1.0, 1.0]], {"stroke": "#0000ff"}),
            _feature("Point", [1.0, 2.0], {"marker-color": "#ff0000"}),
        )
        primitives = features_to_primitives(parse(fc))
        colors = {p.kind: tuple(p.colors[:3].tolist()) for p in primitives}
        assert colors[PrimitiveKind.MESH] == (0, 255, 0)
        assert colors[PrimitiveKind.LINE_STRIP] == (0, 0, 255)
        assert colors[PrimitiveKind.POINTS] == (255, 0, 0)

    def test_extruded_buildings(self):
        fc = _collection(
            _feature("Polygon", [SQUARE], {"height": 12.0}),
            _feature("Polygon", [[[x + 2.0, y] for x, y in SQUARE]], {"height": 6.0}),
        )
        collection = parse(fc, crs='EPSG:3857')
        primitive, = features_to_primitives(collection,
                                            extrude=lambda p: p["height"])
        assert primitive.kind is PrimitiveKind.EXTRUDED_MESH
        assert primitive.vertex_count == 20
        assert primitive.index_count == 60
        z = primitive.positions.reshape(-1, 3)[:, 2]
        np.testing.assert_allclose(z[10:15], 12.0)
        np.testing.assert_allclose(z[15:], 6.0)
