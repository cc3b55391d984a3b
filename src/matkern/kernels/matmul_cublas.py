"""
Vendor GEMM through cuBLAS (via CuPy).

The device buffers are shared with CuPy through __cuda_array_interface__,
no copies. cuBLAS is column-major; cupy.cublas.gemm takes care of the
storage order, and this module supplies the operand flags that turn the
library's C = op(A) . op(B) into C = A . B^T: A as stored ("N"), B flagged
as transposed ("T"). The product is written straight into the destination
buffer.
"""

from matkern.device import DeviceAllocationError, device_empty
from matkern.kernels.matmul_numba import check_matmul_shapes
from matkern.matrix import Matrix


def matmul_cublas(a, b, out=None):
    """
    cuBLAS-backed device GEMM, C = A . B^T.

    Args:
        a: device Matrix (aRows x aCols)
        b: device Matrix (bRows x aCols)
        out: optional device Matrix (aRows x bRows)

    Returns:
        device Matrix (aRows x bRows)

    Raises:
        ImportError: if CuPy is not installed (the `cublas` extra)
        DeviceAllocationError: if CuPy runs out of device memory
    """
    import cupy
    from cupy import cublas

    check_matmul_shapes(a, b, out)
    if out is None:
        out = device_empty(a.rows, b.rows)

    a2 = cupy.asarray(a.data).reshape(a.rows, a.cols)
    b2 = cupy.asarray(b.data).reshape(b.rows, b.cols)
    c2 = cupy.asarray(out.data).reshape(a.rows, b.rows)
    try:
        cublas.gemm("N", "T", a2, b2, out=c2)
    except cupy.cuda.memory.OutOfMemoryError as e:
        raise DeviceAllocationError(f"cuBLAS GEMM could not allocate device memory: {e}") from e
    return Matrix(out.data, a.rows, b.rows)
