"""
Numba CUDA row reduction.

One block per row: threads stride over the row's columns accumulating
partial sums, then fold them in a shared-memory tree. Thread 0 writes the
row total into column 0 of the output. Same contract as reduce_numba.
"""

from numba import cuda, float32

from matkern.device import device_empty
from matkern.kernels.elementwise_cuda import broadcast_cuda

MAX_REDUCE_THREADS = 256


@cuda.jit
def _row_sum_kernel(src, dst, cols):
    partial = cuda.shared.array(MAX_REDUCE_THREADS, dtype=float32)
    row = cuda.blockIdx.x
    tid = cuda.threadIdx.x
    base = row * cols

    acc = float32(0.0)
    for j in range(tid, cols, cuda.blockDim.x):
        acc += src[base + j]
    partial[tid] = acc
    cuda.syncthreads()

    step = cuda.blockDim.x // 2
    while step > 0:
        if tid < step:
            partial[tid] += partial[tid + step]
        cuda.syncthreads()
        step //= 2

    if tid == 0:
        dst[base] = partial[0]


def reduce_threads(cols):
    """Smallest power of two covering cols, capped at MAX_REDUCE_THREADS."""
    threads = 1
    while threads < cols and threads < MAX_REDUCE_THREADS:
        threads *= 2
    return threads


def row_sum_cuda(input, output=None):
    """Device twin of row_sum; `output` is allocated on the device when omitted."""
    if output is None:
        output = device_empty(input.rows, input.cols)
    _row_sum_kernel[input.rows, reduce_threads(input.cols)](input.data, output.data, input.cols)
    return output


def row_sum_broadcast_cuda(input, output=None):
    output = row_sum_cuda(input, output)
    return broadcast_cuda(output)
