"""
Device memory service backed by Numba CUDA.

Handles are flat float32 Numba device arrays. All copies are synchronous from
the caller's point of view. Allocation failures surface as
DeviceAllocationError; nothing here retries.
"""

import numba
import numpy as np
from numba import cuda

from matkern.matrix import Matrix, empty_like


class DeviceAllocationError(RuntimeError):
    """Raised when the device cannot provide a requested buffer."""


def cuda_available():
    """True when a CUDA device (or the Numba CUDA simulator) is usable."""
    try:
        return bool(cuda.is_available())
    except Exception:
        return False


def simulating():
    """True when kernels run on the Numba CUDA simulator instead of hardware."""
    return bool(getattr(numba.config, "ENABLE_CUDASIM", 0))


def require_cuda():
    if not cuda_available():
        raise RuntimeError("CUDA not available")


def allocate(nbytes):
    """
    Allocate an uninitialized float32 device buffer of `nbytes` bytes.

    Args:
        nbytes: size in bytes, a multiple of 4

    Returns:
        flat float32 device array (the handle)
    """
    nbytes = int(nbytes)
    if nbytes % 4 != 0:
        raise ValueError(f"nbytes must be a multiple of 4 for float32 buffers, got {nbytes}")
    try:
        return cuda.device_array(nbytes // 4, dtype=np.float32)
    except Exception as e:
        raise DeviceAllocationError(f"Device allocation of {nbytes} bytes failed: {e}") from e


def copy_to_device(host, handle, nbytes):
    if int(nbytes) != int(host.nbytes):
        raise ValueError(f"nbytes mismatch: nbytes={nbytes}, host.nbytes={host.nbytes}")
    handle.copy_to_device(np.ascontiguousarray(host, dtype=np.float32).reshape(-1))


def copy_to_host(handle, host, nbytes):
    if int(nbytes) != int(host.nbytes):
        raise ValueError(f"nbytes mismatch: nbytes={nbytes}, host.nbytes={host.nbytes}")
    handle.copy_to_host(host)


def release(handle):
    """
    Free a device buffer now instead of waiting for garbage collection.

    The handle must not be used afterwards. Buffers without an explicit
    device pointer (simulator arrays) are simply dropped.
    """
    gpu_data = getattr(handle, "gpu_data", None)
    free = getattr(gpu_data, "free", None)
    if free is not None:
        free()


# ---------------------------------------------------------------------
# Matrix-level helpers
# ---------------------------------------------------------------------


def device_empty(rows, cols):
    return Matrix(allocate(rows * cols * 4), rows, cols)


def to_device(m):
    """Copy a host matrix into a freshly allocated device buffer."""
    if m.on_device:
        raise ValueError("Matrix is already on the device")
    handle = allocate(m.data.nbytes)
    copy_to_device(m.data, handle, m.data.nbytes)
    return Matrix(handle, m.rows, m.cols)


def to_host(m, out=None):
    """
    Copy a device matrix back to the host.

    Args:
        m: device Matrix
        out: optional host Matrix of the same size to copy into

    Returns:
        host Matrix (out, when given)
    """
    if not m.on_device:
        raise ValueError("Matrix is already on the host")
    if out is None:
        out = empty_like(m)
    copy_to_host(m.data, out.data, out.data.nbytes)
    return Matrix(out.data, m.rows, m.cols)


def clone_device(m):
    """Device-to-device copy into a new buffer."""
    dst = device_empty(m.rows, m.cols)
    dst.data.copy_to_device(m.data)
    return dst


def release_matrices(*matrices):
    for m in matrices:
        if m is not None and m.on_device:
            release(m.data)
