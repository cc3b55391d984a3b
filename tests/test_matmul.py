import numpy as np
import pytest

from conftest import requires_cuda, requires_gpu
from matkern.device import release_matrices, to_device, to_host
from matkern.kernels.matmul_cuda import matmul_cuda_naive, matmul_cuda_tiled
from matkern.kernels.matmul_numba import matmul_blocked
from matkern.kernels.matmul_numpy import matmul_numpy
from matkern.kernels.matmul_strategies import MATMUL_STRATEGIES, get_strategy, run_strategy
from matkern.matrix import compare_matrices, generate_random_matrix, zeros


def _reference(a, b):
    return a.as_array().astype(np.float64) @ b.as_array().astype(np.float64).T


def test_blocked_matches_numpy_on_benchmark_shapes():
    a = generate_random_matrix(500, 300)
    b = generate_random_matrix(400, 300)
    c_blocked = matmul_blocked(a, b)
    c_numpy = matmul_numpy(a, b)
    assert (c_blocked.rows, c_blocked.cols) == (500, 400)
    assert compare_matrices(c_blocked, c_numpy, 1e-2)


@pytest.mark.parametrize("m, k, n", [(1, 1, 1), (7, 5, 3), (9, 13, 6), (16, 4, 17)])
def test_blocked_handles_ragged_edges(m, k, n):
    a = generate_random_matrix(m, k, seed=1)
    b = generate_random_matrix(n, k, seed=2)
    out = matmul_blocked(a, b)
    np.testing.assert_allclose(out.as_array(), _reference(a, b), rtol=1e-5, atol=1e-3)


def test_blocked_overwrites_output():
    a = generate_random_matrix(6, 5)
    b = generate_random_matrix(3, 5, seed=3)
    out = zeros(6, 3)
    out.data[:] = 123.0
    result = matmul_blocked(a, b, out)
    assert result is out
    np.testing.assert_allclose(out.as_array(), _reference(a, b), rtol=1e-5, atol=1e-3)


def test_shape_mismatch_raises():
    a = generate_random_matrix(4, 5)
    b = generate_random_matrix(3, 6)
    with pytest.raises(ValueError, match="Dimension mismatch"):
        matmul_blocked(a, b)
    with pytest.raises(ValueError, match="Dimension mismatch"):
        matmul_numpy(a, generate_random_matrix(3, 5), zeros(4, 4))


def test_strategy_registry():
    assert set(MATMUL_STRATEGIES) == {"blocked", "numpy", "cuda_naive", "cuda_tiled", "cublas"}
    assert not get_strategy("blocked").device
    assert get_strategy("cuda_tiled").device
    with pytest.raises(KeyError, match="Unknown matmul strategy"):
        get_strategy("strassen")


def test_run_strategy_host():
    a = generate_random_matrix(8, 6)
    b = generate_random_matrix(5, 6, seed=4)
    out = run_strategy("numpy", a, b)
    np.testing.assert_allclose(out.as_array(), _reference(a, b), rtol=1e-5, atol=1e-3)


@requires_cuda
@pytest.mark.parametrize("kernel", [matmul_cuda_naive, matmul_cuda_tiled])
def test_cuda_kernels_match_blocked(kernel):
    # Not multiples of the 16x16 tile, to exercise the padded loads
    a = generate_random_matrix(20, 13)
    b = generate_random_matrix(18, 13, seed=5)
    expected = matmul_blocked(a, b)

    d_a = to_device(a)
    d_b = to_device(b)
    d_c = kernel(d_a, d_b)
    assert (d_c.rows, d_c.cols) == (20, 18)
    assert compare_matrices(to_host(d_c), expected, 1e-2)
    release_matrices(d_a, d_b, d_c)


@requires_cuda
def test_run_strategy_device_roundtrip():
    a = generate_random_matrix(5, 4)
    b = generate_random_matrix(3, 4, seed=6)
    out = run_strategy("cuda_tiled", a, b)
    assert not out.on_device
    np.testing.assert_allclose(out.as_array(), _reference(a, b), rtol=1e-5, atol=1e-3)


@requires_gpu
def test_cublas_matches_tiled():
    pytest.importorskip("cupy")
    a = generate_random_matrix(500, 300)
    b = generate_random_matrix(400, 300)
    tiled = run_strategy("cuda_tiled", a, b)
    vendor = run_strategy("cublas", a, b)
    assert compare_matrices(tiled, vendor, 1e-2)


@requires_gpu
@pytest.mark.parametrize("name", ["cuda_naive", "cuda_tiled"])
def test_device_strategies_on_benchmark_shapes(name):
    a = generate_random_matrix(500, 300)
    b = generate_random_matrix(400, 300)
    out = run_strategy(name, a, b)
    assert (out.rows, out.cols) == (500, 400)
    assert compare_matrices(out, matmul_blocked(a, b), 1e-2)


def test_run_strategy_device_requires_cuda(monkeypatch):
    from matkern import device

    monkeypatch.setattr(device, "cuda_available", lambda: False)
    a = generate_random_matrix(2, 2)
    with pytest.raises(RuntimeError, match="CUDA not available"):
        run_strategy("cuda_naive", a, a)
    # Host strategies never touch the device
    assert run_strategy("blocked", a, a).shape == (2, 2)


def test_strategy_fields():
    strategy = get_strategy("cublas")
    assert strategy._fields == ("name", "fn", "device", "description")
    assert strategy.device
    assert strategy.description
