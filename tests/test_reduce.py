import numpy as np

from conftest import requires_cuda
from matkern.device import device_empty, release_matrices, to_device, to_host
from matkern.kernels.reduce_cuda import reduce_threads, row_sum_broadcast_cuda, row_sum_cuda
from matkern.kernels.reduce_numba import row_sum, row_sum_broadcast
from matkern.matrix import Matrix, generate_random_matrix, zeros


def test_row_sum_broadcast_matches_numpy():
    # Benchmark shape
    a = generate_random_matrix(3200, 768)
    out = row_sum_broadcast(a, zeros(3200, 768))
    expected = a.as_array().astype(np.float64).sum(axis=1, keepdims=True)
    np.testing.assert_allclose(out.as_array(), np.broadcast_to(expected, (3200, 768)), atol=1e-2)


def test_row_sum_writes_first_column_only():
    a = Matrix(np.arange(12, dtype=np.float32), 3, 4)
    out = Matrix(np.full(12, -7.0, dtype=np.float32), 3, 4)
    row_sum(a, out)
    grid = out.as_array()
    np.testing.assert_array_equal(grid[:, 0], [6.0, 22.0, 38.0])
    assert (grid[:, 1:] == -7.0).all()


def test_row_sum_does_not_need_zeroed_output():
    a = generate_random_matrix(10, 9)
    garbage = Matrix(np.full(90, 1e6, dtype=np.float32), 10, 9)
    fresh = row_sum_broadcast(a)
    reused = row_sum_broadcast(a, garbage)
    np.testing.assert_array_equal(fresh.data, reused.data)


def test_row_sum_in_place():
    a = Matrix(np.arange(6, dtype=np.float32), 2, 3)
    row_sum_broadcast(a, a)
    np.testing.assert_array_equal(a.as_array(), [[3.0, 3.0, 3.0], [12.0, 12.0, 12.0]])


def test_reduce_threads_power_of_two():
    assert reduce_threads(1) == 1
    assert reduce_threads(3) == 4
    assert reduce_threads(64) == 64
    assert reduce_threads(768) == 256


@requires_cuda
def test_row_sum_cuda_matches_cpu():
    a = generate_random_matrix(4, 37)
    expected = row_sum_broadcast(a)

    d_a = to_device(a)
    d_out = device_empty(4, 37)
    row_sum_broadcast_cuda(d_a, d_out)
    np.testing.assert_allclose(to_host(d_out).data, expected.data, atol=1e-3)
    release_matrices(d_a, d_out)


@requires_cuda
def test_row_sum_cuda_allocates_output():
    a = Matrix(np.ones(10, dtype=np.float32), 2, 5)
    d_a = to_device(a)
    d_out = row_sum_cuda(d_a)
    assert d_out.on_device
    assert to_host(d_out).as_array()[:, 0].tolist() == [5.0, 5.0]
    release_matrices(d_a, d_out)
