"""Coordinates in a CRS, reprojection and geodesic normals.

Reprojection goes through ``pyproj.Transformer`` objects built once per
CRS pair. All transformers use ``always_xy=True`` so that geographic
coordinates are always (longitude, latitude).
"""

import math
from functools import lru_cache

import numpy as np
from pyproj import CRS, Transformer


@lru_cache(maxsize=None)
def format_crs(crs):
    """Normalise a CRS definition to ``"AUTHORITY:CODE"`` when possible.

    Examples
    --------
    >>> format_crs('epsg:4326')
    'EPSG:4326'
    """
    parsed = CRS.from_user_input(crs)
    authority = parsed.to_authority()
    if authority is not None:
        return f"{authority[0]}:{authority[1]}"
    return parsed.to_string()


@lru_cache(maxsize=None)
def _get_transformer(crs_in, crs_out):
    return Transformer.from_crs(crs_in, crs_out, always_xy=True)


@lru_cache(maxsize=None)
def is_geocentric(crs):
    return CRS.from_user_input(crs).is_geocentric


@lru_cache(maxsize=None)
def _ellipsoid_radii(crs):
    ellipsoid = CRS.from_user_input(crs).ellipsoid
    return ellipsoid.semi_major_metre, ellipsoid.semi_minor_metre


def project(point, crs_in, crs_out):
    """Reproject an ``(x, y[, z])`` tuple from ``crs_in`` to ``crs_out``.

    Returns
    -------
    tuple of float
        ``(x, y, z)``; a missing input z is treated as 0.
    """
    x, y = point[0], point[1]
    z = point[2] if len(point) > 2 else 0.0
    if crs_in == crs_out:
        return float(x), float(y), float(z)
    return _get_transformer(crs_in, crs_out).transform(x, y, z)


class Coordinates:
    """A single (x, y, z) position expressed in ``crs``.

    The geodesic normal is computed on demand: the ellipsoid surface
    normal for geocentric CRSs, the vertical ``(0, 0, 1)`` otherwise.
    It can also be set explicitly, e.g. after a frame rotation.
    """

    __slots__ = ('crs', 'x', 'y', 'z', '_normal')

    def __init__(self, crs, x=0.0, y=0.0, z=0.0):
        self.crs = crs
        self.x = x
        self.y = y
        self.z = z
        self._normal = None

    def __repr__(self):
        return f"Coordinates({self.crs!r}, {self.x}, {self.y}, {self.z})"

    def set_from_values(self, x=0.0, y=0.0, z=0.0):
        self.x = x
        self.y = y
        self.z = 0.0 if z is None else z
        self._normal = None
        return self

    def set_from_array(self, array, offset=0, size=3):
        z = array[offset + 2] if size > 2 and len(array) > offset + 2 else 0.0
        return self.set_from_values(array[offset], array[offset + 1], z)

    def to_array(self):
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    def copy(self):
        c = Coordinates(self.crs, self.x, self.y, self.z)
        c._normal = None if self._normal is None else self._normal.copy()
        return c

    @property
    def geodesic_normal(self):
        if self._normal is None:
            self._normal = self._compute_normal()
        return self._normal

    @geodesic_normal.setter
    def geodesic_normal(self, normal):
        self._normal = np.asarray(normal, dtype=np.float64)

    def _compute_normal(self):
        if not is_geocentric(self.crs):
            return np.array([0.0, 0.0, 1.0])
        a, b = _ellipsoid_radii(self.crs)
        n = np.array([self.x / (a * a), self.y / (a * a), self.z / (b * b)])
        length = math.sqrt(float(n @ n))
        if length == 0.0:
            return np.array([0.0, 0.0, 1.0])
        return n / length

    def as_crs(self, crs, target=None):
        """Return this position reprojected to ``crs``.

        Parameters
        ----------
        crs : str
            Output CRS.
        target : Coordinates, optional
            Instance to write into. A new one is created when omitted.
        """
        if target is None:
            target = Coordinates(crs)
        if crs == self.crs:
            target.crs = crs
            target.set_from_values(self.x, self.y, self.z)
            return target
        x, y, z = project((self.x, self.y, self.z), self.crs, crs)
        target.crs = crs
        target.set_from_values(x, y, z)
        return target

    def apply_matrix(self, matrix):
        """Transform the position in place by a 4x4 affine matrix."""
        m = np.asarray(matrix, dtype=np.float64)
        x, y, z, w = m @ np.array([self.x, self.y, self.z, 1.0])
        if w != 1.0 and w != 0.0:
            x, y, z = x / w, y / w, z / w
        self.x, self.y, self.z = float(x), float(y), float(z)
        return self
