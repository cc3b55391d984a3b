"""
Numba CUDA GEMM kernels for C = A . B^T (both operands row-major).

- matmul_cuda_naive: one thread per output element, straight dot product.
- matmul_cuda_tiled: 16x16 thread blocks stage a tile of A and a tile of B
  in shared memory per step of the shared dimension, so each global element
  is read once per block instead of once per thread.
"""

from numba import cuda, float32

from matkern.device import device_empty
from matkern.kernels.matmul_numba import check_matmul_shapes
from matkern.matrix import Matrix

TILE = 16
TILE_PAD = TILE + 1


@cuda.jit
def _matmul_naive_kernel(a, b, out, a_rows, a_cols, b_rows):
    col, row = cuda.grid(2)
    if row < a_rows and col < b_rows:
        acc = float32(0.0)
        for k in range(a_cols):
            acc += a[row * a_cols + k] * b[col * a_cols + k]
        out[row * b_rows + col] = acc


@cuda.jit
def _matmul_tiled_kernel(a, b, out, a_rows, a_cols, b_rows):
    a_tile = cuda.shared.array((TILE, TILE), dtype=float32)
    b_tile = cuda.shared.array((TILE, TILE_PAD), dtype=float32)

    tx = cuda.threadIdx.x
    ty = cuda.threadIdx.y
    row = cuda.blockIdx.y * TILE + ty
    col = cuda.blockIdx.x * TILE + tx
    # Row of B this thread loads; B rows map to output columns
    b_row = cuda.blockIdx.x * TILE + ty

    acc = float32(0.0)
    for t in range((a_cols + TILE - 1) // TILE):
        k = t * TILE + tx
        if row < a_rows and k < a_cols:
            a_tile[ty, tx] = a[row * a_cols + k]
        else:
            a_tile[ty, tx] = 0.0
        if b_row < b_rows and k < a_cols:
            b_tile[ty, tx] = b[b_row * a_cols + k]
        else:
            b_tile[ty, tx] = 0.0
        cuda.syncthreads()

        for kk in range(TILE):
            acc += a_tile[ty, kk] * b_tile[tx, kk]
        cuda.syncthreads()

    if row < a_rows and col < b_rows:
        out[row * b_rows + col] = acc


def _grid(a, b):
    return ((b.rows + TILE - 1) // TILE, (a.rows + TILE - 1) // TILE), (TILE, TILE)


def matmul_cuda_naive(a, b, out=None):
    """
    Naive device GEMM, C = A . B^T.

    Args:
        a: device Matrix (aRows x aCols)
        b: device Matrix (bRows x aCols)
        out: optional device Matrix (aRows x bRows)

    Returns:
        device Matrix (aRows x bRows)
    """
    check_matmul_shapes(a, b, out)
    if out is None:
        out = device_empty(a.rows, b.rows)
    blocks, threads = _grid(a, b)
    _matmul_naive_kernel[blocks, threads](a.data, b.data, out.data, a.rows, a.cols, b.rows)
    return Matrix(out.data, a.rows, b.rows)


def matmul_cuda_tiled(a, b, out=None):
    """Shared-memory tiled device GEMM, C = A . B^T. Same contract as the naive kernel."""
    check_matmul_shapes(a, b, out)
    if out is None:
        out = device_empty(a.rows, b.rows)
    blocks, threads = _grid(a, b)
    _matmul_tiled_kernel[blocks, threads](a.data, b.data, out.data, a.rows, a.cols, b.rows)
    return Matrix(out.data, a.rows, b.rows)
