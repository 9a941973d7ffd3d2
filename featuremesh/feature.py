"""Feature data model: typed vertex stores and their geometries.

A :class:`FeatureCollection` owns :class:`Feature` objects, one per
semantic type (or one per input record when features are not merged).
Each feature owns a packed vertex buffer (plus a normal buffer for 3D
collections) shared by all of its :class:`FeatureGeometry` objects. A
geometry owns no storage: it only records :class:`SubGeometryIndex`
ranges into its feature's buffer, one per ring or run of vertices.

Producers populate features with the following sequence::

    feature = collection.request_feature_by_type(FeatureType.POLYGON)
    geometry = feature.bind_new_geometry()
    for ring in rings:
        geometry.start_sub_geometry(len(ring), feature)
        for x, y in ring:
            geometry.push_coordinates(Coordinates(crs_in, x, y), feature)
        geometry.update_extent()
    feature.update_extent(geometry)

Vertices are stored in the collection's local frame, not in absolute
coordinates; ``collection.frame.to_world`` recovers world positions.
"""

import enum

import numpy as np

from .buffer import VertexBuffer
from .coordinates import Coordinates, format_crs
from .errors import AliasedFeatureError, FeatureBufferError, UnsupportedFeatureType
from .extent import AltitudeRange, Extent
from .frame import LocalCoordinateFrame
from .style import Style

_UP = (0.0, 0.0, 1.0)


class FeatureType(enum.IntEnum):
    POINT = 0
    LINE = 1
    POLYGON = 2

    @classmethod
    def coerce(cls, value):
        """Accept a FeatureType, its name (any case) or its integer value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.upper()]
            except KeyError:
                pass
        elif isinstance(value, (int, np.integer)) and not isinstance(value, bool):
            try:
                return cls(int(value))
            except ValueError:
                pass
        raise UnsupportedFeatureType(f"Unsupported feature type: {value!r}")


class SubGeometryIndex:
    """One contiguous run of ``count`` vertices starting at ``offset``."""

    __slots__ = ('offset', 'count', 'extent')

    def __init__(self, offset, count, extent=None):
        self.offset = offset
        self.count = count
        self.extent = extent

    def __repr__(self):
        return f"SubGeometryIndex(offset={self.offset}, count={self.count})"

    @property
    def end(self):
        return self.offset + self.count


class FeatureGeometry:
    """A single shape stored as index ranges into a feature buffer.

    For polygons the first range is the outer ring and the following
    ones are holes. ``extent`` and ``altitude`` roll up the ranges.
    ``style`` is the per-geometry style (None to use the feature style).
    """

    def __init__(self, feature):
        FeatureType.coerce(feature.type)
        self.indices = []
        self.properties = {}
        self.style = None
        self.size = feature.size
        if feature.extent is not None:
            self.extent = Extent(feature.extent.crs)
            self._current_extent = Extent(feature.extent.crs)
        else:
            self.extent = None
            self._current_extent = None
        self.altitude = AltitudeRange()

    def __repr__(self):
        return f"FeatureGeometry(indices={self.indices!r})"

    @property
    def last_sub_geometry(self):
        return self.indices[-1] if self.indices else None

    @property
    def vertex_count(self):
        return sum(index.count for index in self.indices)

    def start_sub_geometry(self, count, feature):
        """Reserve ``count`` vertices in ``feature`` and open a new range.

        The coordinates of the range are then written with
        :meth:`push_coordinates`.
        """
        last = self.last_sub_geometry
        extent = Extent(self.extent.crs) if self.extent is not None else None
        if last is not None:
            offset = last.end
        else:
            offset = len(feature._vertices) // self.size
        index = SubGeometryIndex(offset, count, extent)
        self.indices.append(index)
        self._current_extent = extent
        feature._extend_buffer(count)
        feature._check_range(index)

    def close_sub_geometry(self, count, feature):
        """Close a range whose ``count`` coordinates were already pushed.

        Used by writers that append values without calling
        :meth:`start_sub_geometry` first.
        """
        last = self.last_sub_geometry
        if last is not None:
            offset = last.end
        else:
            offset = len(feature._vertices) // self.size - count
        index = SubGeometryIndex(offset, count, self._current_extent)
        self.indices.append(index)
        if self.extent is not None:
            self.extent.union(self._current_extent)
            self._current_extent = Extent(self.extent.crs)
        feature._check_range(index)

    def _base_altitude_hook(self, feature):
        if feature.type == FeatureType.POLYGON:
            return feature.style.fill.get('base_altitude')
        if feature.type == FeatureType.LINE:
            return feature.style.stroke.get('base_altitude')
        return None

    def push_coordinates(self, coord_in, feature):
        """Project ``coord_in`` and append it to the feature buffer.

        ``coord_in`` is left untouched. The elevation written is, in order
        of precedence: the style base altitude hook, 0 when the collection
        overrides altitudes to zero, the collection altitude getter, the
        input z.
        """
        z = coord_in.z
        hook = self._base_altitude_hook(feature)
        if hook is not None:
            z = hook.resolve(self.properties, coord_in)
        elif feature.override_altitude_in_to_zero:
            z = 0.0
        elif feature.altitude.get is not None:
            z = feature.altitude.get(self.properties, coord_in)
        if z is None:
            z = 0.0

        coord = Coordinates(coord_in.crs, coord_in.x, coord_in.y, z)
        coord_out = coord.as_crs(feature.crs)
        feature.set_local_coordinates(coord_out)

        if feature._normals is not None:
            feature._normals.write(feature._pos, coord_out.geodesic_normal)
        feature._push_values(coord_out.x, coord_out.y, coord_out.z)

        if self._current_extent is not None:
            if feature.use_crs_out:
                self._current_extent.expand_by_values(coord_out.x, coord_out.y)
            else:
                self._current_extent.expand_by_coordinates(coord)

        if self.size == 3:
            self.altitude.expand(z)

    def push_coordinates_values(self, feature, x, y, z=0.0, normal=_UP):
        """Append raw values: no projection, no frame conversion."""
        if feature._normals is not None:
            feature._normals.write(feature._pos, normal)
        feature._push_values(x, y, z)
        if self._current_extent is not None:
            self._current_extent.expand_by_values(x, y)
        if self.size == 3:
            self.altitude.expand(z)

    def copy(self):
        """Snapshot of the ranges, extents and altitude.

        Properties and style are shared with this geometry.
        """
        geometry = object.__new__(FeatureGeometry)
        geometry.indices = [
            SubGeometryIndex(index.offset, index.count,
                             index.extent.copy() if index.extent is not None else None)
            for index in self.indices
        ]
        geometry.properties = self.properties
        geometry.style = self.style
        geometry.size = self.size
        geometry.extent = self.extent.copy() if self.extent is not None else None
        geometry._current_extent = None
        geometry.altitude = self.altitude.copy()
        return geometry

    def update_extent(self):
        """Union the geometry extent with the last range's extent."""
        if self.extent is not None:
            last = self.last_sub_geometry
            if last is not None:
                self.extent.union(last.extent)


class Feature:
    """Packed vertex store for all geometries of one type.

    Parameters
    ----------
    type : FeatureType, str or int
        ``point``, ``line`` or ``polygon``.
    collection : FeatureCollection
        Parent collection; provides CRS, structure size, local frame,
        extent CRS and the parent style.
    id : optional
        Identifier used by :meth:`FeatureCollection.request_feature_by_id`.

    Attributes
    ----------
    vertices : np.ndarray
        Flat float64 array, ``size`` values per vertex, local frame.
    normals : np.ndarray or None
        Flat float64 array of unit normals (3D collections only).
    """

    def __init__(self, type, collection, id=None):
        self.type = FeatureType.coerce(type)
        self.id = id
        self.geometries = []
        self.crs = collection.crs
        self.size = collection.size
        self._vertices = VertexBuffer()
        self._normals = VertexBuffer() if self.size == 3 else None
        self._frozen = None
        self._frame = collection.frame
        self.override_altitude_in_to_zero = collection.override_altitude_in_to_zero
        if collection.extent is not None:
            self.extent = Extent(collection.extent.crs)
            # extents in the output CRS are expanded with local coordinates
            self.use_crs_out = collection.extent.crs == collection.crs
        else:
            self.extent = None
            self.use_crs_out = True
        self._pos = 0
        self.style = Style(parent=collection.style)
        self.altitude = AltitudeRange(get=collection.altitude.get)
        self.collection_altitude = collection.altitude

    def __repr__(self):
        return (f"Feature(type={self.type.name}, geometries={self.geometry_count}, "
                f"vertices={self.vertex_count})")

    @property
    def is_reference(self):
        return self._frozen is not None

    @property
    def vertices(self):
        if self._frozen is not None:
            return self._frozen[0]
        return self._vertices.view()

    @property
    def normals(self):
        if self._frozen is not None:
            return self._frozen[1]
        if self._normals is None:
            return None
        return self._normals.view()

    @property
    def geometry_count(self):
        return len(self.geometries)

    @property
    def vertex_count(self):
        return len(self.vertices) // self.size

    def set_local_coordinates(self, coord):
        return self._frame.to_local(coord)

    def _push_values(self, x, y, z=0.0):
        if self.size == 3:
            self._vertices.write(self._pos, (x, y, z))
        else:
            self._vertices.write(self._pos, (x, y))
        self._pos += self.size

    def _extend_buffer(self, count):
        if self._frozen is not None:
            raise AliasedFeatureError("Cannot extend the buffers of a reference feature")
        self._vertices.extend(count * self.size)
        if self._normals is not None:
            self._normals.resize(len(self._vertices))

    def _check_range(self, index):
        if index.offset < 0 or index.count < 0 or index.end > self.vertex_count:
            raise FeatureBufferError(
                f"Range [{index.offset}, {index.end}) outside of a buffer "
                f"holding {self.vertex_count} vertices"
            )

    def validate(self):
        """Check the buffer invariants, raising FeatureBufferError."""
        vertices = self.vertices
        if len(vertices) % self.size:
            raise FeatureBufferError(
                f"Vertex buffer length {len(vertices)} is not a multiple of {self.size}"
            )
        normals = self.normals
        if (normals is None) != (self.size != 3):
            raise FeatureBufferError("Normals must be present iff size == 3")
        if normals is not None and len(normals) != len(vertices):
            raise FeatureBufferError(
                f"Normal buffer length {len(normals)} differs from "
                f"vertex buffer length {len(vertices)}"
            )
        for geometry in self.geometries:
            for index in geometry.indices:
                self._check_range(index)

    def frozen_buffers(self):
        """Read-only views of the vertex and normal buffers at call time."""
        if self._frozen is not None:
            return self._frozen
        normals = self._normals.frozen() if self._normals is not None else None
        return self._vertices.frozen(), normals

    def bind_new_geometry(self):
        """Create a :class:`FeatureGeometry` bound to this feature."""
        if self._frozen is not None:
            raise AliasedFeatureError("Cannot add geometries to a reference feature")
        geometry = FeatureGeometry(self)
        self.geometries.append(geometry)
        return geometry

    def update_extent(self, geometry):
        if self.extent is not None:
            self.extent.union(geometry.extent)
        if self.size == 3:
            self.altitude.union(geometry.altitude)


class FeatureCollection:
    """Features sharing one CRS and one local coordinate frame.

    Parameters
    ----------
    crs : str
        CRS the input coordinates are converted to.
    build_extent : bool
        Track extents on the collection, its features and geometries.
    forced_extent_crs : str, optional
        CRS of the tracked extents. Defaults to ``crs``, in which case
        extents are expressed in the local frame.
    merge_features : bool
        If True (default) all geometries of a type share one feature.
    structure : {'2d', '3d'}
        '3d' stores 3 values and a normal per vertex and tracks altitude.
    override_altitude_in_to_zero : bool
        Ignore input elevations and write 0 instead.
    style : Style, optional
        Parent style of every feature.
    filter_extent : Extent, optional
        Geometries whose first point is outside are dropped by producers.
    altitude : callable, optional
        Altitude getter ``fn(properties, coord)`` used for input z.
    transform : array-like, optional
        4x4 local-to-world matrix. When omitted the frame is anchored at
        the first coordinate written.
    """

    def __init__(self, crs='EPSG:4326', build_extent=False, forced_extent_crs=None,
                 merge_features=True, structure='2d',
                 override_altitude_in_to_zero=False, style=None,
                 filter_extent=None, altitude=None, transform=None):
        if structure not in ('2d', '3d'):
            raise ValueError(f"structure must be '2d' or '3d', got {structure!r}")
        if style is not None and not isinstance(style, Style):
            raise TypeError(f"Expected Style or None, got {type(style)}")
        self.crs = format_crs(crs)
        self.features = []
        self.merge_features = merge_features
        self.size = 3 if structure == '3d' else 2
        self.forced_extent_crs = (format_crs(forced_extent_crs)
                                  if forced_extent_crs else None)
        if build_extent:
            self.extent = Extent(self.forced_extent_crs or self.crs)
        else:
            self.extent = None
        self.filter_extent = filter_extent
        self.override_altitude_in_to_zero = override_altitude_in_to_zero
        self.style = style
        self.frame = LocalCoordinateFrame(self.size, transform)
        self.altitude = AltitudeRange(get=altitude)

    def __repr__(self):
        return f"FeatureCollection(crs={self.crs!r}, features={len(self.features)})"

    @property
    def matrix_world(self):
        return self.frame.matrix_world

    @property
    def matrix_world_inverse(self):
        return self.frame.matrix_world_inverse

    def set_matrix_world(self, matrix):
        self.frame.set_matrix_world(matrix)

    def set_local_coordinates(self, coord):
        return self.frame.to_local(coord)

    def update_extent(self, extent=None):
        """Union ``extent``, or every feature extent, into the collection.

        Altitude ranges of 3D features are always rolled up.
        """
        if self.extent is not None:
            extents = [extent] if extent is not None else [f.extent for f in self.features]
            for ext in extents:
                self.extent.union(ext)
        if self.size == 3:
            for feature in self.features:
                self.altitude.union(feature.altitude)

    def remove_empty_feature(self):
        self.features = [f for f in self.features if f.geometries]

    def push_feature(self, feature):
        self.features.append(feature)
        self.update_extent(feature.extent)

    def _request_feature(self, type, predicate, id=None):
        if self.merge_features:
            for feature in self.features:
                if predicate(feature):
                    return feature
        feature = Feature(type, self, id=id)
        self.features.append(feature)
        return feature

    def request_feature_by_type(self, type):
        """Return the feature of ``type`` when merging, else a new one."""
        type = FeatureType.coerce(type)
        return self._request_feature(type, lambda f: f.type == type)

    def request_feature_by_id(self, id, type):
        """Return the feature with ``id`` and ``type`` when merging, else a new one."""
        type = FeatureType.coerce(type)
        return self._request_feature(
            type, lambda f: f.id == id and f.type == type, id=id)

    def new_feature_by_reference(self, feature):
        """Add a feature aliasing ``feature``'s buffers with its own style.

        The alias is frozen at creation: it sees the vertices, normals and
        geometry ranges present at this point, read-only, and cannot be
        grown. Rings added later to the source geometries are not seen.
        Style, extent and altitude are independent copies.
        """
        ref = Feature(feature.type, self, id=feature.id)
        ref.size = feature.size
        ref._vertices = None
        ref._normals = None
        ref._frozen = feature.frozen_buffers()
        ref._pos = feature._pos
        ref.geometries = tuple(geometry.copy() for geometry in feature.geometries)
        ref.extent = feature.extent.copy() if feature.extent is not None else None
        ref.altitude = feature.altitude.copy()
        self.features.append(ref)
        return ref

    def set_parent_style(self, style):
        if style is not None:
            for feature in self.features:
                feature.style.parent = style
