"""
Matrix descriptor shared by every kernel.

A Matrix is a lightweight (data, rows, cols) value. `data` is a flat,
row-major float32 buffer holding exactly rows*cols elements, with element
(i, j) at offset i*cols + j. On the host it is a NumPy array, on the device
a Numba device array. Copying the descriptor never copies the buffer.
"""

from collections import namedtuple

import numpy as np


DEFAULT_SEED = 42
DEFAULT_TOLERANCE = 1e-2


class Matrix(namedtuple("Matrix", "data rows cols")):
    __slots__ = ()

    @property
    def shape(self):
        return (self.rows, self.cols)

    @property
    def size(self):
        return self.rows * self.cols

    @property
    def on_device(self):
        return not isinstance(self.data, np.ndarray)

    def as_array(self):
        """Return a (rows, cols) view of host data without copying."""
        if self.on_device:
            raise ValueError("as_array() needs a host matrix; copy it back first")
        return self.data.reshape(self.rows, self.cols)

    def __repr__(self):
        where = "device" if self.on_device else "host"
        return f"Matrix({self.rows}x{self.cols}, {where})"


def make_matrix(data, rows, cols):
    """
    Build a Matrix, validating the shape where it is first established.

    Kernels never re-check shapes, so this is the place mismatches get caught.

    Args:
        data: host array-like (any shape) or device array with rows*cols elements
        rows: positive number of rows
        cols: positive number of columns

    Returns:
        Matrix over a flat float32 buffer
    """
    rows = int(rows)
    cols = int(cols)
    if rows <= 0 or cols <= 0:
        raise ValueError(f"Matrix dimensions must be positive, got {rows}x{cols}")

    if isinstance(data, np.ndarray) or not hasattr(data, "copy_to_host"):
        data = np.ascontiguousarray(data, dtype=np.float32).reshape(-1)

    if data.size != rows * cols:
        raise ValueError(
            f"Dimension mismatch: buffer has {data.size} elements, expected {rows}x{cols}={rows * cols}"
        )
    return Matrix(data, rows, cols)


def from_array(array):
    """Wrap a 2-D host array as a Matrix (copying only if not float32 contiguous)."""
    array = np.asarray(array)
    if array.ndim != 2:
        raise ValueError(f"Unsupported input dimension: {array.ndim}")
    return make_matrix(array, array.shape[0], array.shape[1])


def zeros(rows, cols):
    return make_matrix(np.zeros(rows * cols, dtype=np.float32), rows, cols)


def empty_like(m):
    """Uninitialized host matrix with the shape of `m` (which may live on either side)."""
    return Matrix(np.empty(m.rows * m.cols, dtype=np.float32), m.rows, m.cols)


def generate_random_matrix(rows, cols, seed=DEFAULT_SEED):
    """
    Deterministic pseudo-random matrix with values uniform in [0, 10).

    The generator is reseeded on every call, so two calls with the same seed
    and shape return byte-identical buffers.
    """
    rng = np.random.RandomState(seed)
    data = (10.0 * rng.random_sample(rows * cols)).astype(np.float32)
    return make_matrix(data, rows, cols)


def clone_matrix(m):
    """Full independent host copy, used to keep an untouched input around."""
    if m.on_device:
        raise ValueError("clone_matrix() copies host matrices; use device.clone_device()")
    return Matrix(m.data.copy(), m.rows, m.cols)


def _host_data(m):
    return m.data if isinstance(m, Matrix) else np.asarray(m, dtype=np.float32).reshape(-1)


def compare_matrices(a, b, tol=DEFAULT_TOLERANCE):
    """
    True when every element pair satisfies |a[i] - b[i]| <= tol.

    Infinities of the same sign and NaNs in the same position count as equal,
    since both paths follow IEEE rules for division by zero.
    """
    x = _host_data(a)
    y = _host_data(b)
    if x.size != y.size:
        return False
    return bool(np.all(np.isclose(x, y, rtol=0.0, atol=tol, equal_nan=True)))


def max_abs_diff(a, b):
    """Largest finite absolute difference between two matrices (0.0 if none)."""
    x = _host_data(a).astype(np.float64)
    y = _host_data(b).astype(np.float64)
    with np.errstate(invalid="ignore"):
        diff = np.abs(x - y)
    diff = diff[np.isfinite(diff)]
    if diff.size == 0:
        return 0.0
    return float(diff.max())
