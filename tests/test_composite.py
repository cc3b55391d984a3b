import numpy as np
import pytest

from conftest import requires_cuda
from matkern.device import release_matrices, to_device, to_host
from matkern.kernels.backend import BACKENDS, CPU, CUDA
from matkern.kernels.composite import (
    causal_attention_weights, layer_norm, normalize_rows, softmax_rows,
)
from matkern.matrix import clone_matrix, from_array


def _small(rng, rows, cols, scale=1.0):
    return from_array((rng.randn(rows, cols) * scale).astype(np.float32))


def _softmax_ref(x):
    e = np.exp(x.astype(np.float64))
    return e / e.sum(axis=1, keepdims=True)


def _layer_norm_ref(x, gamma, beta, eps=1e-5):
    x = x.astype(np.float64)
    mean = x.mean(axis=1, keepdims=True)
    var = ((x - mean) ** 2).mean(axis=1, keepdims=True)
    return gamma * (x - mean) / np.sqrt(var + eps) + beta


def _attention_ref(q, k):
    scores = q.astype(np.float64) @ k.astype(np.float64).T
    n = scores.shape[0]
    mask = np.tril(np.ones((n, n), dtype=bool))
    w = np.where(mask, np.exp(scores / 8.0), 0.0)
    return w / w.sum(axis=1, keepdims=True)


def test_backends_registry():
    assert BACKENDS == {"cpu": CPU, "cuda": CUDA}


def test_normalize_rows_sums_to_one(rng):
    m = from_array(rng.rand(6, 9).astype(np.float32) + 0.1)
    normalize_rows(m)
    np.testing.assert_allclose(m.as_array().sum(axis=1), np.ones(6), rtol=1e-5)


def test_softmax_rows_matches_numpy(rng):
    m = _small(rng, 8, 12)
    expected = _softmax_ref(m.as_array())
    out = softmax_rows(m)
    assert out is m
    np.testing.assert_allclose(m.as_array(), expected, rtol=1e-5, atol=1e-6)


def test_layer_norm_matches_numpy(rng):
    m = _small(rng, 5, 16, scale=3.0)
    gamma = _small(rng, 1, 16)
    beta = _small(rng, 1, 16)
    expected = _layer_norm_ref(m.as_array(), gamma.as_array(), beta.as_array())
    layer_norm(m, gamma, beta)
    np.testing.assert_allclose(m.as_array(), expected, rtol=1e-4, atol=1e-4)


def test_causal_attention_weights_matches_numpy(rng):
    q = _small(rng, 7, 4)
    k = _small(rng, 7, 4)
    w = causal_attention_weights(q, k)
    assert (w.rows, w.cols) == (7, 7)
    expected = _attention_ref(q.as_array(), k.as_array())
    np.testing.assert_allclose(w.as_array(), expected, rtol=1e-5, atol=1e-6)
    # Future positions carry no weight
    assert np.all(np.triu(w.as_array(), k=1) == 0.0)


@requires_cuda
@pytest.mark.parametrize("op", ["softmax", "layer_norm", "attention"])
def test_cuda_backend_matches_cpu(rng, op):
    m = _small(rng, 4, 8)
    other = _small(rng, 4, 8)
    gamma = _small(rng, 1, 8)
    beta = _small(rng, 1, 8)

    d_inputs = [to_device(x) for x in (m, other, gamma, beta)]
    d_m, d_other, d_gamma, d_beta = d_inputs
    host = clone_matrix(m)
    if op == "softmax":
        expected = softmax_rows(host)
        d_out = softmax_rows(d_m, CUDA)
    elif op == "layer_norm":
        expected = layer_norm(host, gamma, beta)
        d_out = layer_norm(d_m, d_gamma, d_beta, CUDA)
    else:
        expected = causal_attention_weights(host, other)
        d_out = causal_attention_weights(d_m, d_other, CUDA)

    np.testing.assert_allclose(to_host(d_out).data, expected.data, rtol=1e-4, atol=1e-4)
    if d_out.data is not d_m.data:
        release_matrices(d_out)
    release_matrices(*d_inputs)
