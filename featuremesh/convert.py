"""Tessellation of features into renderer-ready primitives.

Converts a populated :class:`~featuremesh.feature.Feature` into flat
position / color / batch-id / index arrays:

- points   -> point cloud (positions only)
- lines    -> one line strip, or disjoint line segments
- polygons -> triangle mesh, flat or extruded (floor, roof and walls)

Indices are packed as uint16. A geometry whose indices would not fit is
dropped together with every geometry after it, and an
:class:`~featuremesh.errors.IndexOverflowWarning` is emitted.
"""

import enum
import warnings

import numpy as np

from . import _kernels
from .errors import IndexOverflowWarning, UnsupportedFeatureType
from .feature import FeatureCollection, FeatureType
from .style import as_style_value, to_rgb
from .triangulate import ring_area
from .triangulate import triangulate as earcut_triangulate

MAX_INDEX = 0xFFFF
MAX_BATCH_ID = 0xFFFFFFFF

# Walls are drawn darker than roofs to fake shading without lights
WALL_SHADE = 0.5

DEFAULT_PALETTE = [
    (0.90, 0.22, 0.20),  # red
    (0.20, 0.56, 0.90),  # blue
    (0.95, 0.75, 0.10),  # yellow
    (0.20, 0.78, 0.40),  # green
    (0.75, 0.30, 0.75),  # purple
    (1.00, 0.50, 0.00),  # orange
    (0.00, 0.80, 0.80),  # cyan
    (1.00, 0.40, 0.60),  # pink
]


class PrimitiveKind(enum.Enum):
    POINTS = 'points'
    LINE_STRIP = 'line_strip'
    LINE_SEGMENTS = 'line_segments'
    MESH = 'mesh'
    EXTRUDED_MESH = 'extruded_mesh'


class MeshPrimitive:
    """Render buffers produced for one feature.

    Attributes
    ----------
    kind : PrimitiveKind
    positions : np.ndarray
        Flat float32 array, ``dim`` values per vertex, in the collection's
        local frame.
    colors : np.ndarray
        Flat uint8 RGB array, 3 values per vertex.
    indices : np.ndarray or None
        Flat uint16 array (None for points and line strips).
    batch_ids : np.ndarray or None
        uint32 id per vertex when a ``batch_id`` function was given.
    dim : int
        Number of values per vertex in ``positions``.
    altitude : float
        Elevation subtracted from the vertices (extruded meshes); add it
        back along the up axis to place the mesh.
    feature : Feature
        The source feature.
    """

    def __init__(self, kind, positions, colors, indices=None, batch_ids=None,
                 dim=3, altitude=0.0, feature=None):
        self.kind = kind
        self.positions = positions
        self.colors = colors
        self.indices = indices
        self.batch_ids = batch_ids
        self.dim = dim
        self.altitude = altitude
        self.feature = feature

    def __repr__(self):
        return (f"MeshPrimitive(kind={self.kind.value}, vertices={self.vertex_count}, "
                f"indices={self.index_count})")

    @property
    def vertex_count(self):
        return len(self.positions) // self.dim

    @property
    def index_count(self):
        return 0 if self.indices is None else len(self.indices)


class ConvertOptions:
    """Options controlling the conversion.

    Parameters
    ----------
    color : color, callable, or None
        Color of every geometry, or ``fn(properties)``. Overrides styles.
    altitude : float, callable, or None
        Raise points and flat polygons along their normals by this amount
        (or ``fn(properties)``), resolved once per geometry.
    extrude : float, callable, or None
        Extrusion height of polygons (or ``fn(properties)``). When None,
        the style ``fill.extrusion_height`` is used if defined.
    batch_id : callable, optional
        ``fn(properties, feature_index)`` returning an id in the uint32
        range; adds a per-vertex ``batch_ids`` array.
    triangulate : callable, optional
        Replacement for :func:`featuremesh.triangulate.triangulate`.
    """

    def __init__(self, color=None, altitude=None, extrude=None, batch_id=None,
                 triangulate=None):
        if batch_id is not None and not callable(batch_id):
            raise TypeError(f"batch_id must be callable, got {type(batch_id)}")
        self.color = as_style_value(color)
        self.altitude = as_style_value(altitude)
        self.extrude = as_style_value(extrude)
        self.batch_id = batch_id
        self.triangulate = triangulate or earcut_triangulate


def _as_options(options, kwargs):
    if options is None:
        return ConvertOptions(**kwargs)
    if kwargs:
        raise TypeError("Pass either a ConvertOptions instance or keyword options, not both")
    return options


def _rgb255(rgb):
    return tuple(int(round(c * 255)) for c in rgb)


def _geometry_style(geometry, feature):
    return geometry.style if geometry.style is not None else feature.style


def _geometry_color(options, geometry, feature, section, sequence):
    properties = geometry.properties
    if options.color is not None:
        value = options.color.resolve(properties)
        if value is not None:
            return to_rgb(value)
    style = getattr(_geometry_style(geometry, feature), section)
    value = style.resolve('color', properties)
    if value is not None:
        return to_rgb(value)
    return DEFAULT_PALETTE[sequence % len(DEFAULT_PALETTE)]


def _batch_id(options, properties, feature_id):
    value = int(options.batch_id(properties, feature_id))
    if not 0 <= value <= MAX_BATCH_ID:
        raise ValueError(f"batch_id {value} is outside of the uint32 range")
    return value


def _warn_overflow(kind, dropped, total):
    warnings.warn(
        f"Feature to {kind}: integer overflow, too many points; "
        f"{dropped} of {total} geometries dropped from the index buffer",
        IndexOverflowWarning,
        stacklevel=3,
    )


def _feature_normals(feature):
    normals = feature.normals
    if normals is None:
        return _kernels.up_normals(feature.vertex_count)
    return normals


def _to_indices(chunks):
    if not chunks:
        return np.empty(0, dtype=np.uint16)
    return np.concatenate(chunks).astype(np.uint16)


def _emitted_geometries(feature):
    """Check the feature ranges and return the geometries holding any.

    The kernels write without bounds checks: a range outside of the buffer
    must raise FeatureBufferError before any of them runs. The position of
    a geometry in the returned list is its sequence number for colors and
    batch ids.
    """
    feature.validate()
    return [geometry for geometry in feature.geometries if geometry.indices]


# ---------------------------------------------------------------------------
# Points
# ---------------------------------------------------------------------------

def feature_to_points(feature, options=None, **kwargs):
    """Convert a point feature to a point cloud."""
    options = _as_options(options, kwargs)
    geometries = _emitted_geometries(feature)
    vertices = feature.vertices
    n = feature.vertex_count
    colors = np.zeros(n * 3, dtype=np.uint8)
    batch_ids = np.zeros(n, dtype=np.uint32) if options.batch_id else None

    if options.altitude is None:
        positions = np.array(vertices, dtype=np.float64)
        dim = feature.size
    else:
        positions = np.zeros(n * 3, dtype=np.float64)
        normals = _feature_normals(feature)
        dim = 3

    for feature_id, geometry in enumerate(geometries):
        rgb = _rgb255(_geometry_color(options, geometry, feature, 'point', feature_id))
        if options.altitude is not None:
            altitude = float(options.altitude.resolve(geometry.properties) or 0.0)
        if batch_ids is not None:
            bid = _batch_id(options, geometry.properties, feature_id)
        for index in geometry.indices:
            if options.altitude is not None:
                _kernels.offset_vertices(vertices, feature.size, normals, positions,
                                         altitude, index.offset, index.offset, index.count)
            _kernels.fill_colors(colors, index.offset, index.count, *rgb)
            if batch_ids is not None:
                _kernels.fill_batch_ids(batch_ids, index.offset, index.end, bid)

    return MeshPrimitive(PrimitiveKind.POINTS, positions.astype(np.float32), colors,
                         batch_ids=batch_ids, dim=dim, feature=feature)


# ---------------------------------------------------------------------------
# Lines
# ---------------------------------------------------------------------------

def _line_positions(feature, base):
    if feature.size != 3 or base == 0.0:
        return np.asarray(feature.vertices, dtype=np.float32).copy()
    positions = np.zeros(len(feature.vertices), dtype=np.float64)
    _kernels.offset_vertices(feature.vertices, 3, feature.normals, positions,
                             -base, 0, 0, feature.vertex_count)
    return positions.astype(np.float32)


def feature_to_line(feature, options=None, **kwargs):
    """Convert a line feature to a line strip or to line segments.

    A feature holding a single line is drawn as one strip. Otherwise each
    run of vertices contributes its own edges ``(i, i + 1)`` so that
    separate lines are never joined.

    3D lines are moved down along their normals by the same base altitude
    as extruded polygons (see :func:`feature_to_extruded_polygon`), which
    is stored in ``MeshPrimitive.altitude``.
    """
    options = _as_options(options, kwargs)
    geometries = _emitted_geometries(feature)
    n = feature.vertex_count
    base = _base_altitude(feature) if feature.size == 3 else 0.0
    positions = _line_positions(feature, base)
    colors = np.zeros(n * 3, dtype=np.uint8)
    batch_ids = np.zeros(n, dtype=np.uint32) if options.batch_id else None

    if len(geometries) == 1 and len(geometries[0].indices) == 1:
        geometry = geometries[0]
        index = geometry.indices[0]
        rgb = _rgb255(_geometry_color(options, geometry, feature, 'stroke', 0))
        _kernels.fill_colors(colors, index.offset, index.count, *rgb)
        if batch_ids is not None:
            bid = _batch_id(options, geometry.properties, 0)
            _kernels.fill_batch_ids(batch_ids, index.offset, index.end, bid)
        return MeshPrimitive(PrimitiveKind.LINE_STRIP, positions, colors,
                             batch_ids=batch_ids, dim=feature.size, altitude=base,
                             feature=feature)

    n_edges = sum(max(index.count - 1, 0)
                  for geometry in geometries for index in geometry.indices)
    indices = np.empty(n_edges * 2, dtype=np.int64)
    pos = 0
    for feature_id, geometry in enumerate(geometries):
        if max(index.end for index in geometry.indices) - 1 > MAX_INDEX:
            _warn_overflow('line', len(geometries) - feature_id, len(geometries))
            break
        rgb = _rgb255(_geometry_color(options, geometry, feature, 'stroke', feature_id))
        if batch_ids is not None:
            bid = _batch_id(options, geometry.properties, feature_id)
        for index in geometry.indices:
            _kernels.fill_colors(colors, index.offset, index.count, *rgb)
            pos = _kernels.add_line_segments(indices, pos, index.offset, index.end)
            if batch_ids is not None:
                _kernels.fill_batch_ids(batch_ids, index.offset, index.end, bid)

    return MeshPrimitive(PrimitiveKind.LINE_SEGMENTS, positions, colors,
                         indices=indices[:pos].astype(np.uint16),
                         batch_ids=batch_ids, dim=feature.size, altitude=base,
                         feature=feature)


# ---------------------------------------------------------------------------
# Polygons
# ---------------------------------------------------------------------------

def _geometry_span(geometry):
    return geometry.indices[0].offset, geometry.indices[-1].end


def _hole_offsets(geometry, start):
    return [index.offset - start for index in geometry.indices[1:]]


def feature_to_polygon(feature, options=None, **kwargs):
    """Triangulate a polygon feature into a flat mesh.

    For each geometry the first range is the outer ring and the others
    are holes. Triangle indices are shifted back to buffer positions.
    """
    options = _as_options(options, kwargs)
    geometries = _emitted_geometries(feature)
    vertices = feature.vertices
    n = feature.vertex_count
    colors = np.zeros(n * 3, dtype=np.uint8)
    batch_ids = np.zeros(n, dtype=np.uint32) if options.batch_id else None

    if options.altitude is None:
        positions = np.array(vertices, dtype=np.float64)
        dim = feature.size
    else:
        positions = np.zeros(n * 3, dtype=np.float64)
        normals = _feature_normals(feature)
        dim = 3

    chunks = []
    for feature_id, geometry in enumerate(geometries):
        start, end = _geometry_span(geometry)
        if end - 1 > MAX_INDEX:
            _warn_overflow('polygon', len(geometries) - feature_id, len(geometries))
            break
        count = end - start
        if options.altitude is not None:
            altitude = float(options.altitude.resolve(geometry.properties) or 0.0)
            _kernels.offset_vertices(vertices, feature.size, normals, positions,
                                     altitude, start, start, count)
        rgb = _rgb255(_geometry_color(options, geometry, feature, 'fill', feature_id))
        _kernels.fill_colors(colors, start, count, *rgb)

        triangles = options.triangulate(positions[start * dim:end * dim],
                                        _hole_offsets(geometry, start), dim)
        chunks.append(np.asarray(triangles, dtype=np.int64) + start)

        if batch_ids is not None:
            bid = _batch_id(options, geometry.properties, feature_id)
            _kernels.fill_batch_ids(batch_ids, start, end, bid)

    return MeshPrimitive(PrimitiveKind.MESH, positions.astype(np.float32), colors,
                         indices=_to_indices(chunks), batch_ids=batch_ids,
                         dim=dim, feature=feature)


def _base_altitude(feature):
    for altitude in (feature.collection_altitude, feature.altitude):
        if not altitude.is_empty:
            return float(altitude.min)
    return 0.0


def _extrusion_height(options, geometry, feature):
    if options.extrude is not None:
        value = options.extrude.resolve(geometry.properties)
    else:
        value = _geometry_style(geometry, feature).fill.resolve(
            'extrusion_height', geometry.properties)
    return float(value or 0.0)


def feature_to_extruded_polygon(feature, options=None, **kwargs):
    """Extrude a polygon feature into floor, roof and wall triangles.

    The vertex buffer is duplicated: vertex ``i`` of the floor (held at
    the base altitude) matches vertex ``i + n`` of the roof (raised by the
    extrusion height). Roofs are triangulated like flat polygons; each
    ring edge adds two wall triangles whose order follows the winding of
    the geometry's outer ring. Output positions are always 3D.
    """
    options = _as_options(options, kwargs)
    geometries = _emitted_geometries(feature)
    vertices = feature.vertices
    size = feature.size
    n = feature.vertex_count
    normals = _feature_normals(feature)
    positions = np.zeros(n * 2 * 3, dtype=np.float64)
    colors = np.zeros(n * 2 * 3, dtype=np.uint8)
    batch_ids = np.zeros(n * 2, dtype=np.uint32) if options.batch_id else None
    base = _base_altitude(feature)

    chunks = []
    for feature_id, geometry in enumerate(geometries):
        start, end = _geometry_span(geometry)
        if end - 1 + n > MAX_INDEX:
            _warn_overflow('extruded polygon', len(geometries) - feature_id, len(geometries))
            break
        count = end - start
        start_top = start + n
        height = _extrusion_height(options, geometry, feature)
        roof_rgb = _geometry_color(options, geometry, feature, 'fill', feature_id)
        wall_rgb = tuple(c * WALL_SHADE for c in roof_rgb)

        _kernels.offset_vertices(vertices, size, normals, positions,
                                 -base, start, start, count)
        _kernels.fill_colors(colors, start, count, *_rgb255(wall_rgb))
        _kernels.offset_vertices(vertices, size, normals, positions,
                                 height - base, start, start_top, count)
        _kernels.fill_colors(colors, start_top, count, *_rgb255(roof_rgb))

        roof = positions[start_top * 3:(end + n) * 3]
        triangles = options.triangulate(roof, _hole_offsets(geometry, start), 3)
        chunks.append(np.asarray(triangles, dtype=np.int64) + start_top)

        outer = geometry.indices[0]
        clockwise = ring_area(vertices, outer.offset, outer.count, size) < 0
        sides = np.empty(sum(max(i.count - 1, 0) for i in geometry.indices) * 6,
                         dtype=np.int64)
        pos = 0
        for index in geometry.indices:
            pos = _kernels.add_side_faces(sides, pos, n, index.offset, index.count,
                                          clockwise)
        chunks.append(sides[:pos])

        if batch_ids is not None:
            bid = _batch_id(options, geometry.properties, feature_id)
            _kernels.fill_batch_ids(batch_ids, start, end, bid)
            _kernels.fill_batch_ids(batch_ids, start_top, end + n, bid)

    return MeshPrimitive(PrimitiveKind.EXTRUDED_MESH, positions.astype(np.float32),
                         colors, indices=_to_indices(chunks), batch_ids=batch_ids,
                         dim=3, altitude=base, feature=feature)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def _is_extruded(feature, options):
    return (options.extrude is not None
            or feature.style.fill.get('extrusion_height') is not None)


def feature_to_primitive(feature, options=None, **kwargs):
    """Convert one feature with the converter matching its type."""
    options = _as_options(options, kwargs)
    if feature.type == FeatureType.POINT:
        return feature_to_points(feature, options)
    if feature.type == FeatureType.LINE:
        return feature_to_line(feature, options)
    if feature.type == FeatureType.POLYGON:
        if _is_extruded(feature, options):
            return feature_to_extruded_polygon(feature, options)
        return feature_to_polygon(feature, options)
    raise UnsupportedFeatureType(f"Unsupported feature type: {feature.type!r}")


def features_to_primitives(features, options=None, **kwargs):
    """Convert a collection (or an iterable of features) to primitives.

    Features without geometries are skipped.

    Returns
    -------
    list of MeshPrimitive
    """
    options = _as_options(options, kwargs)
    if isinstance(features, FeatureCollection):
        features = features.features
    return [feature_to_primitive(feature, options)
            for feature in features if feature.geometries]


def convert(**kwargs):
    """Return a converter ``fn(collection) -> list of MeshPrimitive``.

    Examples
    --------
    >>> to_meshes = convert(extrude=lambda p: p.get('height', 10))
    >>> primitives = to_meshes(collection)  # doctest: +SKIP
    """
    options = ConvertOptions(**kwargs)

    def _convert(collection):
        if collection is None:
            return []
        return features_to_primitives(collection, options)

    return _convert
