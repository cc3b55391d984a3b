"""
Numba JIT out-of-place transpose (CPU reference path).
"""

import numpy as np
from numba import njit, prange

from matkern.matrix import Matrix, from_array


@njit(parallel=True, cache=True)
def _transpose_kernel(src, dst, rows, cols):
    for i in prange(rows * cols):
        dst[(i % cols) * rows + i // cols] = src[i]


def transpose(input, output=None):
    """
    Transpose a rows x cols matrix into a new cols x rows matrix.

    Args:
        input: host Matrix (rows x cols)
        output: optional host Matrix with rows*cols elements; must not share
            storage with `input`

    Returns:
        Matrix (cols x rows)
    """
    if output is None:
        output = np.empty(input.rows * input.cols, dtype=np.float32)
    else:
        output = output.data
        if np.may_share_memory(output, input.data):
            raise ValueError("transpose() output must not alias its input")
    _transpose_kernel(input.data, output, input.rows, input.cols)
    return Matrix(output, input.cols, input.rows)


if __name__ == "__main__":
    np.random.seed(42)
    x = from_array(np.random.randn(770, 800).astype(np.float32))

    print("Running Numba transpose...")
    # Warmup
    _ = transpose(x)

    out = transpose(x).as_array()

    if np.array_equal(out, x.as_array().T):
        print("Correctness check passed!")
    else:
        print("Correctness check failed!")
        print(f"Max diff: {np.max(np.abs(out - x.as_array().T)):.6e}")
