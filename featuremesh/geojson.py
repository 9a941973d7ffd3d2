"""GeoJSON parsing into feature collections.

Reads GeoJSON ``FeatureCollection`` and ``Feature`` documents and feeds
their Point, LineString and Polygon geometries (and Multi* variants)
into a :class:`~featuremesh.feature.FeatureCollection`. Each point,
line string and polygon becomes one
:class:`~featuremesh.feature.FeatureGeometry`; polygon rings become its
sub-geometries.
"""

import json
import warnings
from pathlib import Path

from .coordinates import Coordinates, format_crs
from .errors import UnsupportedCRS, UnsupportedFeatureType
from .extent import Extent
from .feature import FeatureCollection, FeatureType
from .style import Style

_FEATURE_TYPES = {
    'point': FeatureType.POINT,
    'multipoint': FeatureType.POINT,
    'linestring': FeatureType.LINE,
    'multilinestring': FeatureType.LINE,
    'polygon': FeatureType.POLYGON,
    'multipolygon': FeatureType.POLYGON,
}

# Members of a GeoJSON feature that are not copied to its properties
_KEY_MEMBERS = ('type', 'geometry', 'properties')


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _load_json(geojson):
    """Load GeoJSON from a path, a JSON string or an already parsed dict."""
    if isinstance(geojson, str) and geojson.lstrip().startswith('{'):
        geojson = json.loads(geojson)
    elif isinstance(geojson, (str, Path)):
        path = Path(geojson)
        if not path.exists():
            raise FileNotFoundError(f"GeoJSON file not found: {path}")
        with open(path) as f:
            geojson = json.load(f)

    if not isinstance(geojson, dict):
        raise TypeError(f"Expected dict, str, or Path, got {type(geojson)}")
    return geojson


def read_crs(geojson):
    """Return the CRS declared by a GeoJSON document.

    Handles the legacy ``crs`` member (``epsg`` and ``name`` types, URNs
    such as ``urn:ogc:def:crs:EPSG::2154``). Documents without one are
    in ``EPSG:4326``.
    """
    crs = geojson.get('crs')
    if not crs:
        return 'EPSG:4326'
    crs_type = str(crs.get('type', '')).lower()
    properties = crs.get('properties') or {}
    if crs_type == 'epsg' and 'code' in properties:
        return f"EPSG:{properties['code']}"
    if crs_type == 'name':
        name = str(properties.get('name', ''))
        if name.upper().endswith('CRS84'):
            return 'EPSG:4326'
        epsg_idx = name.lower().find('epsg:')
        if epsg_idx >= 0:
            # authority:version:code => EPSG:code
            code_start = name.find(':', epsg_idx + 5)
            code = name[code_start + 1:] if code_start > 0 else name[epsg_idx + 5:]
            if code:
                return f"EPSG:{code}"
    raise UnsupportedCRS(f"Unsupported CRS type {crs!r}")


def _bbox_extent(geojson, crs):
    bbox = geojson.get('bbox')
    if not bbox or len(bbox) not in (4, 6):
        raise ValueError("filtering_extent=True requires a 4 or 6 value 'bbox' member")
    if len(bbox) == 6:
        west, south, _, east, north, _ = bbox
    else:
        west, south, east, north = bbox
    return Extent(crs, west, east, south, north)


# ---------------------------------------------------------------------------
# Population
# ---------------------------------------------------------------------------

def _first_point_is_out(extent, coordinates, crs):
    first = coordinates[0]
    return not extent.is_point_inside(Coordinates(crs, first[0], first[1]))


def _bind_geometry(feature, properties):
    geometry = feature.bind_new_geometry()
    geometry.properties = properties
    geometry.style = Style(parent=feature.style).set_from_geojson_properties(
        properties, feature.type)
    return geometry


def _populate_ring(crs_in, coordinates, geometry, feature):
    geometry.start_sub_geometry(len(coordinates), feature)
    for position in coordinates:
        z = position[2] if len(position) > 2 else 0.0
        geometry.push_coordinates(Coordinates(crs_in, position[0], position[1], z),
                                  feature)
    geometry.update_extent()


def _add_run(feature, crs_in, coordinates, collection, properties):
    """Add one geometry made of a single run of positions."""
    if not coordinates:
        return
    # rejected before any buffer growth
    if (collection.filter_extent is not None
            and _first_point_is_out(collection.filter_extent, coordinates, crs_in)):
        return
    geometry = _bind_geometry(feature, properties)
    _populate_ring(crs_in, coordinates, geometry, feature)
    feature.update_extent(geometry)


def _add_polygon(feature, crs_in, rings, collection, properties):
    rings = [ring for ring in rings if ring]
    if not rings:
        return
    if len(rings[0]) < 3:
        warnings.warn(
            f"Polygon outer ring has {len(rings[0])} positions, at least 3 "
            f"are needed; geometry skipped.",
            stacklevel=4,
        )
        return
    if (collection.filter_extent is not None
            and _first_point_is_out(collection.filter_extent, rings[0], crs_in)):
        return
    geometry = _bind_geometry(feature, properties)
    for ring in rings:
        _populate_ring(crs_in, ring, geometry, feature)
    feature.update_extent(geometry)


def _coordinates_to_feature(json_type, feature, crs_in, coordinates, collection,
                            properties):
    if not coordinates:
        return
    if json_type == 'point':
        _add_run(feature, crs_in, [coordinates], collection, properties)
    elif json_type == 'multipoint':
        for position in coordinates:
            _add_run(feature, crs_in, [position], collection, properties)
    elif json_type == 'linestring':
        _add_run(feature, crs_in, coordinates, collection, properties)
    elif json_type == 'multilinestring':
        for line in coordinates:
            _add_run(feature, crs_in, line, collection, properties)
    elif json_type == 'polygon':
        _add_polygon(feature, crs_in, coordinates, collection, properties)
    elif json_type == 'multipolygon':
        for polygon in coordinates:
            _add_polygon(feature, crs_in, polygon, collection, properties)


def _to_feature_type(json_type):
    try:
        return _FEATURE_TYPES[json_type]
    except KeyError:
        raise UnsupportedFeatureType(f"Unhandled geometry type {json_type!r}") from None


def _json_feature_to_feature(crs_in, json_feature, collection):
    geometry = json_feature.get('geometry')
    if geometry is None:
        return None
    json_type = str(geometry.get('type', '')).lower()
    feature = collection.request_feature_by_type(_to_feature_type(json_type))
    properties = dict(json_feature.get('properties') or {})

    # keep foreign members such as 'id' under properties['geojson']
    for key, value in json_feature.items():
        if key.lower() not in _KEY_MEMBERS:
            properties.setdefault('geojson', {})[key] = value

    _coordinates_to_feature(json_type, feature, crs_in,
                            geometry.get('coordinates') or [], collection, properties)
    return feature


def parse(geojson, crs_in=None, crs='EPSG:4326', filter=None,
          filtering_extent=None, **collection_options):
    """Parse GeoJSON into a :class:`FeatureCollection`.

    Parameters
    ----------
    geojson : str, Path, or dict
        File path, JSON text, or parsed GeoJSON object.
    crs_in : str, optional
        CRS of the input coordinates. Read from the document by default.
    crs : str
        CRS the features are converted to.
    filter : callable, optional
        ``fn(properties, geometry) -> bool``; records returning False are
        skipped.
    filtering_extent : Extent or True, optional
        Skip geometries whose first point lies outside this extent. True
        uses the document ``bbox``.
    **collection_options
        Forwarded to :class:`FeatureCollection` (``structure``,
        ``build_extent``, ``merge_features``, ``style``...).

    Returns
    -------
    FeatureCollection
    """
    geojson = _load_json(geojson)
    crs_in = format_crs(crs_in or read_crs(geojson))

    if filtering_extent is True:
        collection_options['filter_extent'] = _bbox_extent(geojson, crs_in)
    elif isinstance(filtering_extent, Extent):
        collection_options['filter_extent'] = filtering_extent
    elif filtering_extent not in (None, False):
        raise TypeError(f"filtering_extent must be an Extent or a bool, "
                        f"got {type(filtering_extent)}")

    gtype = str(geojson.get('type', '')).lower()
    if gtype == 'featurecollection':
        json_features = geojson.get('features') or []
    elif gtype == 'feature':
        json_features = [geojson]
    else:
        raise ValueError(f"Unsupported GeoJSON type: {geojson.get('type')!r}")

    collection = FeatureCollection(crs=crs, **collection_options)
    for json_feature in json_features:
        if filter is None or filter(json_feature.get('properties') or {},
                                    json_feature.get('geometry')):
            _json_feature_to_feature(crs_in, json_feature, collection)

    collection.remove_empty_feature()
    collection.update_extent()
    return collection
