"""
Elementwise operation descriptors.

Each unary op carries a per-element function fn(data, i, k, width) that
returns the new value of data[i]. `k` is the float scalar (divisor, addend);
`width` is the integer row width used by ops that need row/column
arithmetic (broadcast, tril). Each binary op carries a pairwise fn(x, y) and
a `tile` flag: tiled ops read the second operand at i % a.cols.

The functions are plain Python so each target can compile them itself:
`@njit` on the CPU, `@cuda.jit(device=True)` on the GPU.
"""

import math
from collections import namedtuple


UnaryOp = namedtuple("UnaryOp", "name fn")
BinaryOp = namedtuple("BinaryOp", "name fn tile")

GELU_SCALE = 0.7978845  # sqrt(2 / pi)
GELU_CUBIC = 0.044715
TRIL_EXP_DIVISOR = 8.0


# ---------------------------------------------------------------------
# Unary element functions
# ---------------------------------------------------------------------


def _divide_const(data, i, k, width):
    return data[i] / k


def _add_const(data, i, k, width):
    return data[i] + k


def _isqrt(data, i, k, width):
    return 1.0 / math.sqrt(data[i])


def _exp(data, i, k, width):
    return math.exp(data[i])


def _broadcast(data, i, k, width):
    # Column 0 of the row; it is rewritten with its own value, so in-place is safe
    return data[(i // width) * width]


def _tril(data, i, k, width):
    row = i // width
    col = i % width
    if col > row:
        return 0.0
    return math.exp(data[i] / TRIL_EXP_DIVISOR)


def _gelu(data, i, k, width):
    b = data[i]
    return b / 2.0 * (1.0 + math.tanh(GELU_SCALE * (b + GELU_CUBIC * b * b * b)))


# ---------------------------------------------------------------------
# Binary element functions
# ---------------------------------------------------------------------


def _add(x, y):
    return x + y


def _multiply(x, y):
    return x * y


def _divide(x, y):
    return x / y


DIVIDE_CONST = UnaryOp("divide_const", _divide_const)
ADD_CONST = UnaryOp("add_const", _add_const)
ISQRT = UnaryOp("isqrt", _isqrt)
EXP = UnaryOp("exp", _exp)
BROADCAST = UnaryOp("broadcast", _broadcast)
TRIL = UnaryOp("tril", _tril)
GELU = UnaryOp("gelu", _gelu)

ADD = BinaryOp("add", _add, False)
MULTIPLY = BinaryOp("multiply", _multiply, False)
DIVIDE = BinaryOp("divide", _divide, False)
ADD_TILE = BinaryOp("add_tile", _add, True)
MULTIPLY_TILE = BinaryOp("multiply_tile", _multiply, True)

UNARY_OPS = {
    op.name: op
    for op in (DIVIDE_CONST, ADD_CONST, ISQRT, EXP, BROADCAST, TRIL, GELU)
}
BINARY_OPS = {
    op.name: op
    for op in (ADD, MULTIPLY, DIVIDE, ADD_TILE, MULTIPLY_TILE)
}


def get_unary_op(op):
    """Accept a UnaryOp or its name."""
    if isinstance(op, UnaryOp):
        return op
    try:
        return UNARY_OPS[op]
    except KeyError:
        raise KeyError(f"Unknown unary op {op!r}; choose from {sorted(UNARY_OPS)}") from None


def get_binary_op(op):
    """Accept a BinaryOp or its name."""
    if isinstance(op, BinaryOp):
        return op
    try:
        return BINARY_OPS[op]
    except KeyError:
        raise KeyError(f"Unknown binary op {op!r}; choose from {sorted(BINARY_OPS)}") from None
