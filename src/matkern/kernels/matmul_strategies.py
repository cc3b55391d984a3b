"""
Interchangeable GEMM strategies for C = A . B^T.

Every strategy is a plain function fn(a, b, out=None) -> Matrix; `device`
says whether it expects device-resident operands. The harness picks
strategies by name.
"""

from collections import namedtuple

from matkern.device import release_matrices, require_cuda, to_device, to_host
from matkern.kernels.matmul_cublas import matmul_cublas
from matkern.kernels.matmul_cuda import matmul_cuda_naive, matmul_cuda_tiled
from matkern.kernels.matmul_numba import matmul_blocked
from matkern.kernels.matmul_numpy import matmul_numpy


MatmulStrategy = namedtuple("MatmulStrategy", "name fn device description")

MATMUL_STRATEGIES = {
    s.name: s
    for s in (
        MatmulStrategy("blocked", matmul_blocked, False, "cache-blocked CPU reference (Numba)"),
        MatmulStrategy("numpy", matmul_numpy, False, "host BLAS via NumPy"),
        MatmulStrategy("cuda_naive", matmul_cuda_naive, True, "naive CUDA kernel"),
        MatmulStrategy("cuda_tiled", matmul_cuda_tiled, True, "shared-memory tiled CUDA kernel"),
        MatmulStrategy("cublas", matmul_cublas, True, "cuBLAS via CuPy"),
    )
}


def get_strategy(name):
    try:
        return MATMUL_STRATEGIES[name]
    except KeyError:
        raise KeyError(
            f"Unknown matmul strategy {name!r}; choose from {sorted(MATMUL_STRATEGIES)}"
        ) from None


def run_strategy(name, a, b):
    """
    Multiply host matrices with the named strategy and return a host result.

    Device strategies get their operands copied over and the product copied
    back; device buffers are released before returning.
    """
    strategy = get_strategy(name)
    if not strategy.device:
        return strategy.fn(a, b)

    require_cuda()
    d_a = d_b = d_c = None
    try:
        d_a = to_device(a)
        d_b = to_device(b)
        d_c = strategy.fn(d_a, d_b)
        return to_host(d_c)
    finally:
        release_matrices(d_a, d_b, d_c)
