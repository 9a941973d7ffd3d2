"""Bounding box and altitude range accumulators."""

import math

import numpy as np


class Extent:
    """Axis-aligned 2D bounding box in a given CRS.

    A new extent is inverted (``west = south = +inf``, ``east = north =
    -inf``) so that the first expansion sets it. ``union`` and the
    ``expand_*`` methods only ever grow the box.

    Parameters
    ----------
    crs : str
        CRS the bounds are expressed in.
    west, east, south, north : float
        Bounds, i.e. ``xmin, xmax, ymin, ymax``.
    """

    __slots__ = ('crs', 'west', 'east', 'south', 'north')

    def __init__(self, crs, west=math.inf, east=-math.inf,
                 south=math.inf, north=-math.inf):
        self.crs = crs
        self.west = west
        self.east = east
        self.south = south
        self.north = north

    def __repr__(self):
        return (f"Extent({self.crs!r}, west={self.west}, east={self.east}, "
                f"south={self.south}, north={self.north})")

    def __eq__(self, other):
        if not isinstance(other, Extent):
            return NotImplemented
        return (self.crs == other.crs and self.west == other.west
                and self.east == other.east and self.south == other.south
                and self.north == other.north)

    @property
    def is_empty(self):
        return self.west > self.east or self.south > self.north

    def copy(self):
        return Extent(self.crs, self.west, self.east, self.south, self.north)

    def expand_by_values(self, x, y):
        if x < self.west:
            self.west = x
        if x > self.east:
            self.east = x
        if y < self.south:
            self.south = y
        if y > self.north:
            self.north = y
        return self

    def expand_by_coordinates(self, coord):
        """Grow the box to contain ``coord``, reprojecting it if needed."""
        if coord.crs != self.crs:
            coord = coord.as_crs(self.crs)
        return self.expand_by_values(coord.x, coord.y)

    def union(self, other):
        """Grow the box to contain ``other``. Empty extents are ignored."""
        if other is None or other.is_empty:
            return self
        if self.is_empty:
            self.west, self.east = other.west, other.east
            self.south, self.north = other.south, other.north
            return self
        self.west = min(self.west, other.west)
        self.east = max(self.east, other.east)
        self.south = min(self.south, other.south)
        self.north = max(self.north, other.north)
        return self

    def is_point_inside(self, coord, epsilon=0.0):
        """Return True if ``coord`` lies inside the box (borders included)."""
        if coord.crs != self.crs:
            coord = coord.as_crs(self.crs)
        return (self.west - epsilon <= coord.x <= self.east + epsilon
                and self.south - epsilon <= coord.y <= self.north + epsilon)

    def as_crs(self, crs):
        """Return a new extent covering this one once reprojected to ``crs``."""
        from .coordinates import Coordinates

        if crs == self.crs:
            return self.copy()
        result = Extent(crs)
        if self.is_empty:
            return result
        for x, y in ((self.west, self.south), (self.east, self.south),
                     (self.east, self.north), (self.west, self.north)):
            result.expand_by_coordinates(
                Coordinates(self.crs, x, y, 0.0).as_crs(crs))
        return result

    def apply_matrix(self, matrix):
        """Return the extent transformed by a 4x4 affine matrix.

        Used to bring an extent accumulated in a collection's local frame
        back to world coordinates with ``frame.matrix_world``.
        """
        result = Extent(self.crs)
        if self.is_empty:
            return result
        m = np.asarray(matrix, dtype=np.float64)
        corners = np.array([
            [self.west, self.south, 0.0, 1.0],
            [self.east, self.south, 0.0, 1.0],
            [self.east, self.north, 0.0, 1.0],
            [self.west, self.north, 0.0, 1.0],
        ])
        for x, y, _, _ in corners @ m.T:
            result.expand_by_values(float(x), float(y))
        return result


class AltitudeRange:
    """Min/max elevation accumulator.

    ``get`` optionally holds an altitude getter ``fn(properties, coord)``
    forwarded from the collection configuration.
    """

    __slots__ = ('min', 'max', 'get')

    def __init__(self, min=math.inf, max=-math.inf, get=None):
        self.min = min
        self.max = max
        self.get = get

    def __repr__(self):
        return f"AltitudeRange(min={self.min}, max={self.max})"

    @property
    def is_empty(self):
        return self.min > self.max

    def copy(self):
        return AltitudeRange(self.min, self.max, self.get)

    def expand(self, z):
        if z < self.min:
            self.min = z
        if z > self.max:
            self.max = z
        return self

    def union(self, other):
        if other is None:
            return self
        self.min = min(self.min, other.min)
        self.max = max(self.max, other.max)
        return self
