"""
Numba JIT elementwise kernels (CPU reference path).
Features:
- One generic apply loop per op, specialized on the op's element function
- Parallel loop over the flat buffer using prange
- IEEE division semantics (error_model="numpy"): x/0 gives inf/nan, no exception

All ops work in place: they overwrite the first operand's buffer and return
the same Matrix.
"""

from functools import lru_cache

import numpy as np
from numba import njit, prange

from matkern.kernels.elementwise_ops import get_binary_op, get_unary_op
from matkern.matrix import clone_matrix, from_array


@lru_cache(maxsize=None)
def _unary_kernel(fn):
    element = njit(error_model="numpy")(fn)

    @njit(parallel=True, error_model="numpy")
    def kernel(data, k, width):
        for i in prange(data.size):
            data[i] = element(data, i, k, width)

    return kernel


@lru_cache(maxsize=None)
def _binary_kernel(fn, tile):
    element = njit(error_model="numpy")(fn)

    if tile:
        @njit(parallel=True, error_model="numpy")
        def kernel(a, b, cols):
            for i in prange(a.size):
                a[i] = element(a[i], b[i % cols])
    else:
        @njit(parallel=True, error_model="numpy")
        def kernel(a, b, cols):
            for i in prange(a.size):
                a[i] = element(a[i], b[i])

    return kernel


def apply_unary(op, a, k=0.0, width=None):
    """
    Apply a unary op to every element of `a` in place.

    Args:
        op: UnaryOp or op name ("divide_const", "add_const", "isqrt", "exp",
            "broadcast", "tril", "gelu")
        a: host Matrix
        k: float scalar used by divide_const / add_const
        width: row width for broadcast / tril, defaults to a.cols

    Returns:
        a (same buffer, mutated)
    """
    op = get_unary_op(op)
    if width is None:
        width = a.cols
    _unary_kernel(op.fn)(a.data, float(k), int(width))
    return a


def apply_binary(op, a, b):
    """
    Apply a binary op pairwise, writing into `a` in place.

    For tiled ops `b` is read at i % a.cols, so a single row of length
    a.cols is reused down every row of `a`. Shapes are not checked.

    Returns:
        a (same buffer, mutated)
    """
    op = get_binary_op(op)
    _binary_kernel(op.fn, op.tile)(a.data, b.data, int(a.cols))
    return a


def divide_const(a, k):
    return apply_unary("divide_const", a, k)


def add_const(a, k):
    return apply_unary("add_const", a, k)


def isqrt(a, k=0.0):
    return apply_unary("isqrt", a, k)


def exp(a, k=0.0):
    return apply_unary("exp", a, k)


def broadcast(a, k=0.0):
    return apply_unary("broadcast", a, k)


def tril(a, k=0.0, width=None):
    return apply_unary("tril", a, k, width)


def gelu(a, k=0.0):
    return apply_unary("gelu", a, k)


def add(a, b):
    return apply_binary("add", a, b)


def multiply(a, b):
    return apply_binary("multiply", a, b)


def divide(a, b):
    return apply_binary("divide", a, b)


def add_tile(a, b):
    return apply_binary("add_tile", a, b)


def multiply_tile(a, b):
    return apply_binary("multiply_tile", a, b)


if __name__ == "__main__":
    np.random.seed(42)
    x = from_array(np.random.randn(128, 256).astype(np.float32))
    ref = x.as_array().astype(np.float64)
    ref = ref / 2.0 * (1.0 + np.tanh(0.7978845 * (ref + 0.044715 * ref ** 3)))

    print("Running Numba elementwise (gelu)...")
    # Warmup
    _ = gelu(clone_matrix(x))

    out = gelu(x).as_array()

    if np.allclose(out, ref, rtol=1e-4, atol=1e-4):
        print("Correctness check passed!")
    else:
        print("Correctness check failed!")
        print(f"Max diff: {np.max(np.abs(out - ref)):.6e}")
