"""
NumPy GEMM: C = A . B^T through the host BLAS (`@` operator).
Used as an independent host-side oracle for the other strategies.
"""

import numpy as np

from matkern.kernels.matmul_numba import check_matmul_shapes
from matkern.matrix import Matrix


def matmul_numpy(a, b, out=None):
    """
    Compute C = A . B^T with NumPy.

    Args:
        a: host Matrix (aRows x aCols)
        b: host Matrix (bRows x aCols)
        out: optional host Matrix (aRows x bRows)

    Returns:
        out
    """
    check_matmul_shapes(a, b, out)
    if out is None:
        out = Matrix(np.empty(a.rows * b.rows, dtype=np.float32), a.rows, b.rows)
    np.matmul(
        a.data.reshape(a.rows, a.cols),
        b.data.reshape(b.rows, b.cols).T,
        out=out.data.reshape(a.rows, b.rows),
    )
    return Matrix(out.data, a.rows, b.rows)
