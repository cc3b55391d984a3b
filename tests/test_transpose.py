import numpy as np
import pytest

from conftest import requires_cuda
from matkern.device import release_matrices, to_device, to_host
from matkern.kernels.transpose_cuda import transpose_cuda, transpose_cuda_inplace
from matkern.kernels.transpose_numba import transpose
from matkern.matrix import Matrix, generate_random_matrix


def test_transpose_matches_numpy():
    a = generate_random_matrix(770, 800)
    t = transpose(a)
    assert (t.rows, t.cols) == (800, 770)
    np.testing.assert_array_equal(t.as_array(), a.as_array().T)


def test_transpose_twice_is_identity():
    a = generate_random_matrix(13, 29)
    back = transpose(transpose(a))
    assert (back.rows, back.cols) == (13, 29)
    np.testing.assert_array_equal(back.data, a.data)


def test_transpose_into_output():
    a = generate_random_matrix(3, 5)
    out = Matrix(np.zeros(15, dtype=np.float32), 5, 3)
    t = transpose(a, out)
    assert t.data is out.data
    np.testing.assert_array_equal(t.as_array(), a.as_array().T)


def test_transpose_rejects_aliasing():
    a = generate_random_matrix(4, 4)
    with pytest.raises(ValueError, match="alias"):
        transpose(a, a)


@requires_cuda
def test_transpose_cuda_out_of_place():
    a = generate_random_matrix(35, 9)
    d_a = to_device(a)
    d_t = transpose_cuda(d_a)
    assert (d_t.rows, d_t.cols) == (9, 35)
    np.testing.assert_array_equal(to_host(d_t).as_array(), a.as_array().T)
    np.testing.assert_array_equal(to_host(d_a).data, a.data)
    release_matrices(d_a, d_t)


@requires_cuda
def test_transpose_cuda_in_place():
    a = generate_random_matrix(6, 33)
    d_a = to_device(a)
    d_t = transpose_cuda_inplace(d_a)
    assert d_t.data is d_a.data
    assert (d_t.rows, d_t.cols) == (33, 6)
    np.testing.assert_array_equal(to_host(d_t).as_array(), a.as_array().T)
    release_matrices(d_t)
