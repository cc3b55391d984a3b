"""
Execution backends: one bundle of primitives per target.

Code written against a Backend runs unchanged on the CPU reference path or
on the CUDA path. Matrices handed to a backend must live where it computes
(host matrices for CPU, device matrices for CUDA).
"""

from collections import namedtuple

from matkern.device import clone_device, device_empty, release_matrices
from matkern.kernels.elementwise_cuda import apply_binary_cuda, apply_unary_cuda
from matkern.kernels.elementwise_numba import apply_binary, apply_unary
from matkern.kernels.matmul_cuda import matmul_cuda_tiled
from matkern.kernels.matmul_numba import matmul_blocked
from matkern.kernels.reduce_cuda import row_sum_cuda
from matkern.kernels.reduce_numba import row_sum
from matkern.kernels.transpose_cuda import transpose_cuda
from matkern.kernels.transpose_numba import transpose
from matkern.matrix import clone_matrix, zeros


Backend = namedtuple(
    "Backend",
    "name unary binary row_sum transpose matmul empty clone release",
)


def _release_host(*matrices):
    pass


CPU = Backend(
    name="cpu",
    unary=apply_unary,
    binary=apply_binary,
    row_sum=row_sum,
    transpose=transpose,
    matmul=matmul_blocked,
    empty=zeros,
    clone=clone_matrix,
    release=_release_host,
)

CUDA = Backend(
    name="cuda",
    unary=apply_unary_cuda,
    binary=apply_binary_cuda,
    row_sum=row_sum_cuda,
    transpose=transpose_cuda,
    matmul=matmul_cuda_tiled,
    empty=device_empty,
    clone=clone_device,
    release=release_matrices,
)

BACKENDS = {CPU.name: CPU, CUDA.name: CUDA}
