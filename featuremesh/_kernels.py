"""
Internal numba kernels for the tessellation inner loops.

Index arrays are filled into preallocated int64 buffers; the callers
check the 16-bit limit and cast afterwards.
"""

import numba as nb
import numpy as np


@nb.njit
def offset_vertices(pts_in, size, normals, target, offset, start_in,
                    offset_out, count):
    """Copy ``count`` vertices to a stride-3 target, moved along the normals.

    ``target[offset_out + k] = pts_in[start_in + k] + normal * offset``.
    2D input vertices get z = 0.
    """
    for k in range(count):
        i = (start_in + k) * size
        n = (start_in + k) * 3
        j = (offset_out + k) * 3
        z = pts_in[i + 2] if size == 3 else 0.0
        target[j] = pts_in[i] + normals[n] * offset
        target[j + 1] = pts_in[i + 1] + normals[n + 1] * offset
        target[j + 2] = z + normals[n + 2] * offset


@nb.njit
def fill_colors(colors, start, count, r, g, b):
    for i in range(start * 3, (start + count) * 3, 3):
        colors[i] = r
        colors[i + 1] = g
        colors[i + 2] = b


@nb.njit
def fill_batch_ids(batch_ids, start, end, value):
    for i in range(start, end):
        batch_ids[i] = value


@nb.njit
def add_line_segments(indices, pos, start, end):
    """Append edges (i, i + 1) for i in [start, end - 1). Returns new pos."""
    for i in range(start, end - 1):
        indices[pos] = i
        indices[pos + 1] = i + 1
        pos += 2
    return pos


@nb.njit
def add_side_faces(indices, pos, length, offset, count, clockwise):
    """Append two wall triangles per ring edge. Returns new pos.

    Floor vertex ``i`` pairs with roof vertex ``i + length``. The vertex
    order depends on the ring winding so that walls face outwards.
    """
    for i in range(offset, offset + count - 1):
        if clockwise:
            indices[pos] = i
            indices[pos + 1] = i + length
            indices[pos + 2] = i + 1
            indices[pos + 3] = i + 1
            indices[pos + 4] = i + length
            indices[pos + 5] = i + length + 1
        else:
            indices[pos] = i + length
            indices[pos + 1] = i
            indices[pos + 2] = i + length + 1
            indices[pos + 3] = i + length + 1
            indices[pos + 4] = i
            indices[pos + 5] = i + 1
        pos += 6
    return pos


def up_normals(vertex_count):
    """Flat array of ``(0, 0, 1)`` normals for 2D features."""
    normals = np.zeros(vertex_count * 3, dtype=np.float64)
    normals[2::3] = 1.0
    return normals
