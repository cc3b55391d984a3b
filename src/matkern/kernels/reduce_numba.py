"""
Numba JIT row reduction (CPU reference path).

row_sum writes each row's total into that row's first slot of the output;
row_sum_broadcast then copies the total across the row. The reduction
assigns its destination slot, so the output does not need to be zeroed
first, and input and output may be the same buffer.
"""

import numpy as np
from numba import njit, prange

from matkern.kernels.elementwise_numba import broadcast
from matkern.matrix import Matrix, from_array


@njit(parallel=True, cache=True)
def _row_sum_kernel(src, dst, rows, cols):
    for r in prange(rows):
        base = r * cols
        acc = 0.0
        for j in range(cols):
            acc += src[base + j]
        dst[base] = acc


def row_sum(input, output=None):
    """
    Sum every row of `input` into column 0 of `output`.

    Args:
        input: host Matrix (rows x cols)
        output: host Matrix of the same shape; allocated when omitted.
            Only column 0 is written.

    Returns:
        output
    """
    if output is None:
        output = Matrix(np.zeros(input.rows * input.cols, dtype=np.float32), input.rows, input.cols)
    _row_sum_kernel(input.data, output.data, input.rows, input.cols)
    return output


def row_sum_broadcast(input, output=None):
    """Replace every element of `output` with its row's total from `input`."""
    output = row_sum(input, output)
    return broadcast(output)


if __name__ == "__main__":
    np.random.seed(42)
    x = from_array(np.random.randn(3200, 768).astype(np.float32))
    ref = np.repeat(x.as_array().sum(axis=1, dtype=np.float64)[:, None], x.cols, axis=1)

    print("Running Numba row sum (broadcast across each row)...")
    # Warmup
    _ = row_sum_broadcast(x)

    out = row_sum_broadcast(x).as_array()

    if np.allclose(out, ref, rtol=1e-2, atol=1e-2):
        print("Correctness check passed!")
    else:
        print("Correctness check failed!")
        print(f"Max diff: {np.max(np.abs(out - ref)):.6e}")
