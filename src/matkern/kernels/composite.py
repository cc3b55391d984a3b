"""
Transformer building blocks composed only from the primitive kernels.

Each function takes a Backend, so the same composition runs on the CPU
reference path and on the CUDA path. Like the primitives they are built
from, they consume their first argument and return it transformed.
"""

from matkern.kernels.backend import CPU


def normalize_rows(m, backend=CPU):
    """Divide every element by its row's total (row-sum, broadcast, divide)."""
    totals = backend.empty(m.rows, m.cols)
    backend.row_sum(m, totals)
    backend.unary("broadcast", totals)
    backend.binary("divide", m, totals)
    backend.release(totals)
    return m


def softmax_rows(m, backend=CPU):
    """
    Row-wise softmax: exp(x) / sum(exp(x)) along each row.

    There is no max subtraction, so inputs must be small enough for exp()
    not to overflow float32.
    """
    backend.unary("exp", m)
    return normalize_rows(m, backend)


def layer_norm(m, gamma, beta, backend=CPU, eps=1e-5):
    """
    LayerNorm along each row: gamma * (x - mean) / sqrt(variance + eps) + beta.

    Args:
        m: Matrix (rows x cols), normalized in place
        gamma: Matrix (1 x cols) scale, applied with multiply_tile
        beta: Matrix (1 x cols) shift, applied with add_tile
        backend: CPU or CUDA
        eps: variance floor

    Returns:
        m
    """
    n = float(m.cols)
    stats = backend.empty(m.rows, m.cols)

    # x - mean: the row mean is negated by dividing by -n, then added
    backend.row_sum(m, stats)
    backend.unary("broadcast", stats)
    backend.unary("divide_const", stats, -n)
    backend.binary("add", m, stats)

    squares = backend.clone(m)
    backend.binary("multiply", squares, m)
    backend.row_sum(squares, stats)
    backend.unary("broadcast", stats)
    backend.unary("divide_const", stats, n)
    backend.unary("add_const", stats, eps)
    backend.unary("isqrt", stats)

    backend.binary("multiply", m, stats)
    backend.binary("multiply_tile", m, gamma)
    backend.binary("add_tile", m, beta)

    backend.release(stats, squares)
    return m


def causal_attention_weights(q, k, backend=CPU):
    """
    Causal attention weights for one head.

    scores = Q . K^T, then tril() zeroes every future position and applies
    exp(score / 8), then each row is normalized to sum to 1.

    Args:
        q: Matrix (seq_len x head_dim)
        k: Matrix (seq_len x head_dim)

    Returns:
        new Matrix (seq_len x seq_len)
    """
    scores = backend.matmul(q, k, backend.empty(q.rows, k.rows))
    backend.unary("tril", scores, 0.0, k.rows)
    return normalize_rows(scores, backend)
