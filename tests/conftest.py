import os

# Run device kernels on the Numba CUDA simulator unless a real setup is requested
os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")

import numpy as np
import pytest

from matkern.device import cuda_available, simulating

requires_cuda = pytest.mark.skipif(not cuda_available(), reason="CUDA not available")
requires_gpu = pytest.mark.skipif(
    simulating() or not cuda_available(), reason="needs a real CUDA device"
)


@pytest.fixture
def rng():
    return np.random.RandomState(0)
