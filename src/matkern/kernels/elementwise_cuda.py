"""
Numba CUDA elementwise kernels.

Same ops and in-place contract as elementwise_numba, launched as a
grid-stride loop over the flat device buffer (one element per thread per
step). Element functions become device functions; each op gets its own
kernel, built once and memoized.
"""

from functools import lru_cache

from numba import cuda

from matkern.kernels.elementwise_ops import get_binary_op, get_unary_op

THREADS_PER_BLOCK = 256
MAX_BLOCKS = 65535


def launch_config(n, threads=THREADS_PER_BLOCK):
    """(blocks, threads) for a 1-D grid-stride launch over n elements."""
    blocks = (n + threads - 1) // threads
    return max(1, min(blocks, MAX_BLOCKS)), threads


@lru_cache(maxsize=None)
def _unary_kernel(fn):
    element = cuda.jit(device=True)(fn)

    @cuda.jit
    def kernel(data, k, width):
        start = cuda.grid(1)
        stride = cuda.gridsize(1)
        for i in range(start, data.size, stride):
            data[i] = element(data, i, k, width)

    return kernel


@lru_cache(maxsize=None)
def _binary_kernel(fn, tile):
    element = cuda.jit(device=True)(fn)

    if tile:
        @cuda.jit
        def kernel(a, b, cols):
            start = cuda.grid(1)
            stride = cuda.gridsize(1)
            for i in range(start, a.size, stride):
                a[i] = element(a[i], b[i % cols])
    else:
        @cuda.jit
        def kernel(a, b, cols):
            start = cuda.grid(1)
            stride = cuda.gridsize(1)
            for i in range(start, a.size, stride):
                a[i] = element(a[i], b[i])

    return kernel


def apply_unary_cuda(op, a, k=0.0, width=None):
    """
    Device twin of apply_unary: mutates the device buffer of `a` in place.

    The launch is asynchronous; synchronize (or copy back) before reading.
    """
    op = get_unary_op(op)
    if width is None:
        width = a.cols
    blocks, threads = launch_config(a.rows * a.cols)
    _unary_kernel(op.fn)[blocks, threads](a.data, float(k), int(width))
    return a


def apply_binary_cuda(op, a, b):
    """Device twin of apply_binary (in place on `a`)."""
    op = get_binary_op(op)
    blocks, threads = launch_config(a.rows * a.cols)
    _binary_kernel(op.fn, op.tile)[blocks, threads](a.data, b.data, int(a.cols))
    return a


def divide_const_cuda(a, k):
    return apply_unary_cuda("divide_const", a, k)


def add_const_cuda(a, k):
    return apply_unary_cuda("add_const", a, k)


def isqrt_cuda(a, k=0.0):
    return apply_unary_cuda("isqrt", a, k)


def exp_cuda(a, k=0.0):
    return apply_unary_cuda("exp", a, k)


def broadcast_cuda(a, k=0.0):
    return apply_unary_cuda("broadcast", a, k)


def tril_cuda(a, k=0.0, width=None):
    return apply_unary_cuda("tril", a, k, width)


def gelu_cuda(a, k=0.0):
    return apply_unary_cuda("gelu", a, k)


def add_cuda(a, b):
    return apply_binary_cuda("add", a, b)


def multiply_cuda(a, b):
    return apply_binary_cuda("multiply", a, b)


def divide_cuda(a, b):
    return apply_binary_cuda("divide", a, b)


def add_tile_cuda(a, b):
    return apply_binary_cuda("add_tile", a, b)


def multiply_tile_cuda(a, b):
    return apply_binary_cuda("multiply_tile", a, b)
