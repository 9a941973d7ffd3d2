"""Local coordinate frame of a feature collection.

Vertices are stored relative to a local origin so that large projected
or geocentric values fit in float32 render buffers. The frame is fixed
by the first coordinate that goes through it, unless a world matrix is
given explicitly.

- 2D collections use a pure planar translation.
- 3D collections use the east/north/up tangent basis at the origin,
  derived from its geodesic normal, plus a translation. Normals are
  rotated with the normal matrix of the inverse transform.
"""

import numpy as np


def _translation(x, y, z):
    m = np.eye(4)
    m[:3, 3] = (x, y, z)
    return m


def tangent_basis(normal):
    """Return ``(east, north, up)`` unit vectors for a surface normal."""
    up = np.asarray(normal, dtype=np.float64)
    up = up / np.linalg.norm(up)
    east = np.cross(np.array([0.0, 0.0, 1.0]), up)
    length = np.linalg.norm(east)
    if length < 1e-12:
        # at the poles (or for a vertical normal) any horizontal axis works
        east = np.array([1.0, 0.0, 0.0])
    else:
        east /= length
    north = np.cross(up, east)
    return east, north, up


class LocalCoordinateFrame:
    """World <-> local transform shared by all features of a collection.

    Parameters
    ----------
    size : int
        2 for planar collections, 3 for collections with elevation.
    matrix_world : array-like, optional
        4x4 local-to-world matrix. When omitted the frame is fixed at the
        first converted coordinate.
    """

    def __init__(self, size, matrix_world=None):
        if size not in (2, 3):
            raise ValueError(f"Frame size must be 2 or 3, got {size}")
        self.size = size
        self.matrix_world = np.eye(4)
        self.matrix_world_inverse = np.eye(4)
        self.normal_matrix = np.eye(3)
        self.is_fixed = False
        if matrix_world is not None:
            self.set_matrix_world(matrix_world)

    @property
    def position(self):
        return self.matrix_world[:3, 3].copy()

    def set_matrix_world(self, matrix):
        m = np.asarray(matrix, dtype=np.float64)
        if m.shape != (4, 4):
            raise ValueError(f"Expected a 4x4 matrix, got shape {m.shape}")
        self.matrix_world = m.copy()
        self.matrix_world_inverse = np.linalg.inv(m)
        self.normal_matrix = np.linalg.inv(self.matrix_world_inverse[:3, :3]).T
        self.is_fixed = True

    def fix_origin(self, coord):
        """Anchor the frame at ``coord`` (already in the output CRS)."""
        if self.size == 2:
            self.set_matrix_world(_translation(coord.x, coord.y, 0.0))
            return
        east, north, up = tangent_basis(coord.geodesic_normal)
        m = np.eye(4)
        m[:3, 0] = east
        m[:3, 1] = north
        m[:3, 2] = up
        m[:3, 3] = (coord.x, coord.y, coord.z)
        self.set_matrix_world(m)

    def to_local(self, coord):
        """Convert ``coord`` in place to local coordinates."""
        if not self.is_fixed:
            self.fix_origin(coord)
        if self.size == 2:
            coord.x -= self.matrix_world[0, 3]
            coord.y -= self.matrix_world[1, 3]
            return coord
        normal = self.normal_matrix @ coord.geodesic_normal
        coord.apply_matrix(self.matrix_world_inverse)
        coord.geodesic_normal = normal / np.linalg.norm(normal)
        return coord

    def to_world(self, vertices):
        """Convert a flat local vertex array back to world coordinates.

        Returns
        -------
        np.ndarray
            (N, size) float64 array.
        """
        pts = np.asarray(vertices, dtype=np.float64).reshape(-1, self.size)
        if self.size == 2:
            return pts + self.matrix_world[:2, 3]
        homogeneous = np.column_stack([pts, np.ones(len(pts))])
        return (homogeneous @ self.matrix_world.T)[:, :3]
