"""Polygon triangulation and ring orientation.

Triangulation of a ring with holes is delegated to ``mapbox_earcut``.
Any callable with the same signature as :func:`triangulate` can be
passed to the converters instead.
"""

import numpy as np
import mapbox_earcut as earcut


def triangulate(vertices, hole_offsets=(), dim=2):
    """Triangulate a polygon given as a flat vertex array.

    Parameters
    ----------
    vertices : array-like
        Flat array of the outer ring followed by the holes, ``dim`` values
        per vertex. Only x and y are used.
    hole_offsets : sequence of int
        Vertex index at which each hole starts, relative to the start of
        ``vertices``.
    dim : int
        Number of values per vertex (2 or 3).

    Returns
    -------
    np.ndarray
        Flat uint32 array of triangle vertex indices, relative to the
        start of ``vertices``.

    Examples
    --------
    >>> triangulate([0, 0, 1, 0, 1, 1, 0, 1], dim=2).size
    6
    """
    pts = np.asarray(vertices, dtype=np.float64).reshape(-1, dim)
    n = len(pts)
    if n < 3:
        return np.empty(0, dtype=np.uint32)
    xy = np.ascontiguousarray(pts[:, :2])
    ring_ends = [int(h) for h in hole_offsets if 0 < int(h) < n]
    ring_ends.append(n)
    rings = np.array(ring_ends, dtype=np.uint32)
    return np.asarray(earcut.triangulate_float64(xy, rings), dtype=np.uint32)


def ring_area(vertices, offset, count, size):
    """Signed shoelace area of a ring stored in a flat vertex array.

    Positive for counter-clockwise rings, negative for clockwise ones.
    A repeated closing vertex adds nothing to the sum.
    """
    pts = np.asarray(vertices, dtype=np.float64).reshape(-1, size)
    ring = pts[offset:offset + count, :2]
    if len(ring) < 3:
        return 0.0
    x = ring[:, 0]
    y = ring[:, 1]
    return 0.5 * float(np.sum(np.roll(x, 1) * y - x * np.roll(y, 1)))
