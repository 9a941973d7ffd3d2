"""Growable contiguous float buffer backing feature vertices and normals."""

import numpy as np


class VertexBuffer:
    """Flat float64 array with amortised growth.

    ``len(buffer)`` is the number of values in use; the underlying
    storage doubles when it runs out of room. ``view()`` returns the used
    part without copying.

    Parameters
    ----------
    capacity : int
        Initial number of values allocated.
    """

    def __init__(self, capacity=192):
        self._data = np.zeros(max(int(capacity), 1), dtype=np.float64)
        self._length = 0

    def __len__(self):
        return self._length

    def __getitem__(self, item):
        return self.view()[item]

    @property
    def capacity(self):
        return self._data.size

    def _reserve(self, n_values):
        if n_values <= self._data.size:
            return
        new_capacity = self._data.size
        while new_capacity < n_values:
            new_capacity *= 2
        data = np.zeros(new_capacity, dtype=np.float64)
        data[:self._length] = self._data[:self._length]
        self._data = data

    def extend(self, n_values):
        """Grow the used length by ``n_values`` zero-initialised values."""
        self.resize(self._length + n_values)

    def resize(self, n_values):
        if n_values < 0:
            raise ValueError(f"Buffer length must be >= 0, got {n_values}")
        self._reserve(n_values)
        if n_values < self._length:
            self._data[n_values:self._length] = 0.0
        self._length = n_values

    def write(self, pos, values):
        """Write ``values`` starting at value index ``pos``.

        The buffer grows if the write runs past the current length.
        """
        end = pos + len(values)
        if end > self._length:
            self.resize(end)
        self._data[pos:end] = values

    def view(self):
        return self._data[:self._length]

    def frozen(self):
        """Read-only view of the values in use at call time."""
        v = self._data[:self._length].view()
        v.flags.writeable = False
        return v
