"""
Numba CUDA tiled transpose.

Each 32x8 thread block moves a 32x32 tile: coalesced reads of input rows
into shared memory, then coalesced writes of output rows from the tile's
columns. The tile row is padded by one element to avoid shared-memory bank
conflicts on the column reads.
"""

from numba import cuda, float32

from matkern.device import device_empty, release
from matkern.matrix import Matrix

TILE_DIM = 32
TILE_PAD = TILE_DIM + 1
BLOCK_ROWS = 8


@cuda.jit
def _transpose_kernel(src, dst, rows, cols):
    tile = cuda.shared.array((TILE_DIM, TILE_PAD), dtype=float32)
    tx = cuda.threadIdx.x
    ty = cuda.threadIdx.y

    col = cuda.blockIdx.x * TILE_DIM + tx
    row0 = cuda.blockIdx.y * TILE_DIM + ty
    for j in range(0, TILE_DIM, BLOCK_ROWS):
        row = row0 + j
        if row < rows and col < cols:
            tile[ty + j, tx] = src[row * cols + col]

    cuda.syncthreads()

    # Output is cols x rows: output row = input column, output column = input row
    out_col = cuda.blockIdx.y * TILE_DIM + tx
    out_row0 = cuda.blockIdx.x * TILE_DIM + ty
    for j in range(0, TILE_DIM, BLOCK_ROWS):
        out_row = out_row0 + j
        if out_row < cols and out_col < rows:
            dst[out_row * rows + out_col] = tile[tx, ty + j]


def _launch(src, dst, rows, cols):
    blocks = ((cols + TILE_DIM - 1) // TILE_DIM, (rows + TILE_DIM - 1) // TILE_DIM)
    _transpose_kernel[blocks, (TILE_DIM, BLOCK_ROWS)](src, dst, rows, cols)


def transpose_cuda(input, output=None):
    """
    Out-of-place device transpose.

    Args:
        input: device Matrix (rows x cols)
        output: optional device Matrix with rows*cols elements

    Returns:
        device Matrix (cols x rows)
    """
    if output is None:
        output = device_empty(input.cols, input.rows)
    _launch(input.data, output.data, input.rows, input.cols)
    return Matrix(output.data, input.cols, input.rows)


def transpose_cuda_inplace(m):
    """
    Transpose a device matrix through a staging buffer and copy the result
    back into the original storage.

    Returns:
        device Matrix (cols x rows) over m's buffer
    """
    staging = device_empty(m.cols, m.rows)
    _launch(m.data, staging.data, m.rows, m.cols)
    m.data.copy_to_device(staging.data)
    release(staging.data)
    return Matrix(m.data, m.cols, m.rows)
