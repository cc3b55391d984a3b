"""
Numba JIT cache-blocked GEMM (CPU reference path).
Features:
- Computes C = A . B^T with both operands row-major (B is a weight matrix
  stored one output column per row)
- Parallel outer loop over output rows
- 4-wide blocks over B's rows and 4-deep blocks over the shared dimension,
  accumulated (in float64) as a 4x4 micro-tile before moving on
- Fastmath optimizations
"""

import numpy as np
from numba import njit, prange

from matkern.matrix import Matrix, from_array

BLOCK = 4


def check_matmul_shapes(a, b, out=None):
    """Validate A (aRows x aCols), B (bRows x bCols), out (aRows x bRows)."""
    if a.cols != b.cols:
        raise ValueError(f"Dimension mismatch: a.cols={a.cols} != b.cols={b.cols}")
    if out is not None and out.rows * out.cols != a.rows * b.rows:
        raise ValueError(
            f"Dimension mismatch: output has {out.rows}x{out.cols}, expected {a.rows}x{b.rows}"
        )


@njit(parallel=True, fastmath=True, cache=True)
def _matmul_blocked_kernel(a, b, out, a_rows, a_cols, b_rows):
    for i in prange(a_rows):
        a_base = i * a_cols
        acc = np.zeros(BLOCK, dtype=np.float64)

        for jj in range(0, b_rows, BLOCK):
            j_width = min(BLOCK, b_rows - jj)
            for j2 in range(BLOCK):
                acc[j2] = 0.0

            for kk in range(0, a_cols, BLOCK):
                k_width = min(BLOCK, a_cols - kk)
                # 4x4 micro-tile: 4 steps of k against 4 rows of B
                for k2 in range(k_width):
                    a_val = a[a_base + kk + k2]
                    for j2 in range(j_width):
                        acc[j2] += a_val * b[(jj + j2) * a_cols + kk + k2]

            for j2 in range(j_width):
                out[i * b_rows + jj + j2] = acc[j2]


def matmul_blocked(a, b, out=None):
    """
    Compute C = A . B^T, i.e. C[i, j] = sum_k A[i, k] * B[j, k].

    Args:
        a: host Matrix (aRows x aCols)
        b: host Matrix (bRows x bCols), bCols == aCols
        out: optional host Matrix (aRows x bRows); every element is overwritten

    Returns:
        out
    """
    check_matmul_shapes(a, b, out)
    if out is None:
        out = Matrix(np.empty(a.rows * b.rows, dtype=np.float32), a.rows, b.rows)
    _matmul_blocked_kernel(a.data, b.data, out.data, a.rows, a.cols, b.rows)
    return out


if __name__ == "__main__":
    # Test with small matrices
    np.random.seed(42)
    M, K, N = 128, 256, 64
    A = from_array(np.random.randn(M, K).astype(np.float32))
    B = from_array(np.random.randn(N, K).astype(np.float32))
    C_ref = A.as_array() @ B.as_array().T

    print("Running Numba matmul (blocked, C = A . B^T)...")
    # Warmup
    _ = matmul_blocked(A, B)

    C = matmul_blocked(A, B).as_array()

    if np.allclose(C, C_ref, rtol=1e-2, atol=1e-2):
        print("Correctness check passed!")
    else:
        print("Correctness check failed!")
        print(f"Max diff: {np.max(np.abs(C - C_ref)):.6e}")
