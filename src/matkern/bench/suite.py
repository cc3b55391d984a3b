"""
Parity & benchmark suite: every primitive, CPU reference vs CUDA.

Each test generates deterministic inputs, runs the reference on the host
timer, moves inputs to the device, runs the accelerated path on the device
timer, copies the result back and compares. Transfers are outside the timed
region. Tests run one after another; a failing or aborted test never stops
the rest.
"""

from collections import namedtuple

import numpy as np
import pandas as pd

from matkern.bench.parity import (
    ABORTED, ERROR, SKIPPED, new_result, print_result, run_parity,
)
from matkern.device import (
    DeviceAllocationError, cuda_available, device_empty, release_matrices,
    simulating, to_device, to_host,
)
from matkern.kernels.elementwise_cuda import apply_binary_cuda, apply_unary_cuda
from matkern.kernels.elementwise_numba import apply_binary, apply_unary
from matkern.kernels.matmul_strategies import get_strategy
from matkern.kernels.reduce_cuda import row_sum_broadcast_cuda
from matkern.kernels.reduce_numba import row_sum_broadcast
from matkern.kernels.transpose_cuda import transpose_cuda_inplace
from matkern.kernels.transpose_numba import transpose
from matkern.matrix import (
    DEFAULT_SEED, DEFAULT_TOLERANCE, Matrix, clone_matrix,
    generate_random_matrix, zeros,
)
from matkern.timing import DeviceTimer, HostTimer, timed

HOST_TIMER = HostTimer()
DEVICE_TIMER = DeviceTimer()

DEFAULT_CONFIG = {
    'seed': DEFAULT_SEED,
    'tolerance': DEFAULT_TOLERANCE,
    'k': 5.0,
    'tril_width': 5,
    'matmul_a': (500, 300),
    'matmul_b': (400, 300),
    'sum_shape': (3200, 768),
    'transpose_shape': (770, 800),
    'elementwise_shape': (6666, 9999),
    'warmup': True,
}

SHAPE_KEYS = ('matmul_a', 'matmul_b', 'sum_shape', 'transpose_shape', 'elementwise_shape')
WARMUP_SHAPE = (8, 8)

UNARY_TESTS = ("divide_const", "add_const", "isqrt", "exp", "broadcast", "tril", "gelu")
BINARY_TESTS = ("add", "multiply", "divide", "add_tile", "multiply_tile")

ParityTest = namedtuple("ParityTest", "name build reference_label accelerated_label vendor")


def make_config(**overrides):
    """DEFAULT_CONFIG with overrides applied; unknown keys are rejected."""
    unknown = set(overrides) - set(DEFAULT_CONFIG)
    if unknown:
        raise ValueError(f"Unknown config keys: {sorted(unknown)}")
    config = dict(DEFAULT_CONFIG)
    config.update(overrides)
    return config


def scale_config(config, scale):
    """Shrink (or grow) every benchmark shape by `scale`, keeping at least 1."""
    scaled = dict(config)
    for key in SHAPE_KEYS:
        scaled[key] = tuple(max(1, int(round(d * scale))) for d in config[key])
    return scaled


def warmup_config(config):
    """Tiny shapes that trigger JIT compilation without real work."""
    return dict(config, **{key: WARMUP_SHAPE for key in SHAPE_KEYS})


# ---------------------------------------------------------------------
# Test builders: config -> (reference, accelerated) callables
# ---------------------------------------------------------------------


def _unary_case(op_name):
    def build(config):
        rows, cols = config['elementwise_shape']
        k = config['k']
        width = config['tril_width'] if op_name == "tril" else None
        cpu_in = generate_random_matrix(rows, cols, config['seed'])
        gpu_in = clone_matrix(cpu_in)

        def reference():
            return timed(HOST_TIMER, apply_unary, op_name, cpu_in, k, width)

        def accelerated():
            d_in = to_device(gpu_in)
            try:
                d_out, ms = timed(DEVICE_TIMER, apply_unary_cuda, op_name, d_in, k, width)
                return to_host(d_out, gpu_in), ms
            finally:
                release_matrices(d_in)

        return reference, accelerated

    return build


def _binary_case(op_name):
    def build(config):
        rows, cols = config['elementwise_shape']
        cpu_a = generate_random_matrix(rows, cols, config['seed'])
        cpu_b = generate_random_matrix(rows, cols, config['seed'] + 1)
        gpu_a = clone_matrix(cpu_a)
        gpu_b = clone_matrix(cpu_b)

        def reference():
            return timed(HOST_TIMER, apply_binary, op_name, cpu_a, cpu_b)

        def accelerated():
            d_a = d_b = None
            try:
                d_a = to_device(gpu_a)
                d_b = to_device(gpu_b)
                d_out, ms = timed(DEVICE_TIMER, apply_binary_cuda, op_name, d_a, d_b)
                return to_host(d_out, gpu_a), ms
            finally:
                release_matrices(d_a, d_b)

        return reference, accelerated

    return build


def _row_sum_case(config):
    rows, cols = config['sum_shape']
    cpu_in = generate_random_matrix(rows, cols, config['seed'])
    cpu_out = zeros(rows, cols)

    def reference():
        return timed(HOST_TIMER, row_sum_broadcast, cpu_in, cpu_out)

    def accelerated():
        d_in = d_out = None
        try:
            d_in = to_device(cpu_in)
            d_out = device_empty(rows, cols)
            d_out, ms = timed(DEVICE_TIMER, row_sum_broadcast_cuda, d_in, d_out)
            return to_host(d_out), ms
        finally:
            release_matrices(d_in, d_out)

    return reference, accelerated


def _transpose_case(config):
    rows, cols = config['transpose_shape']
    cpu_in = generate_random_matrix(rows, cols, config['seed'])
    cpu_out = Matrix(np.empty(rows * cols, dtype=np.float32), cols, rows)

    def reference():
        return timed(HOST_TIMER, transpose, cpu_in, cpu_out)

    def accelerated():
        d_in = to_device(cpu_in)
        try:
            d_out, ms = timed(DEVICE_TIMER, transpose_cuda_inplace, d_in)
            return to_host(d_out), ms
        finally:
            release_matrices(d_in)

    return reference, accelerated


def _matmul_runner(strategy_name, a, b):
    strategy = get_strategy(strategy_name)

    def run():
        if not strategy.device:
            out = zeros(a.rows, b.rows)
            return timed(HOST_TIMER, strategy.fn, a, b, out)
        d_a = d_b = d_c = None
        try:
            d_a = to_device(a)
            d_b = to_device(b)
            d_c = device_empty(a.rows, b.rows)
            d_c, ms = timed(DEVICE_TIMER, strategy.fn, d_a, d_b, d_c)
            return to_host(d_c), ms
        finally:
            release_matrices(d_a, d_b, d_c)

    return run


def _matmul_case(reference_strategy, accelerated_strategy):
    def build(config):
        a = generate_random_matrix(*config['matmul_a'], seed=config['seed'])
        b = generate_random_matrix(*config['matmul_b'], seed=config['seed'])
        return (
            _matmul_runner(reference_strategy, a, b),
            _matmul_runner(accelerated_strategy, a, b),
        )

    return build


TESTS = [
    ParityTest("row_sum", _row_sum_case, "CPU", "GPU", False),
    ParityTest("matmul_cuda", _matmul_case("blocked", "cuda_tiled"), "CPU", "GPU", False),
    ParityTest("matmul_cuda_2", _matmul_case("cuda_naive", "cuda_tiled"),
               "Naive CUDA", "Optimized CUDA", False),
    ParityTest("matmul_cublas", _matmul_case("cuda_tiled", "cublas"), "CUDA", "CUBLAS", True),
    ParityTest("transpose", _transpose_case, "CPU", "GPU", False),
]
TESTS += [ParityTest(name, _unary_case(name), "CPU", "GPU", False) for name in UNARY_TESTS]
TESTS += [ParityTest(name, _binary_case(name), "CPU", "GPU", False) for name in BINARY_TESTS]

TESTS_BY_NAME = {t.name: t for t in TESTS}


def _skipped(test, reason):
    result = new_result(test.name, test.reference_label, test.accelerated_label)
    result['status'] = SKIPPED
    result['error'] = reason
    return result


def run_test(test, config):
    """Run one parity test, converting every failure mode into a result row."""
    if not cuda_available():
        return _skipped(test, "CUDA not available")
    if test.vendor and simulating():
        return _skipped(test, "vendor GEMM needs a real CUDA device")

    try:
        if config['warmup']:
            warm_ref, warm_acc = test.build(warmup_config(config))
            warm_ref()
            warm_acc()
        reference, accelerated = test.build(config)
        return run_parity(
            test.name, reference, accelerated, tol=config['tolerance'],
            reference_label=test.reference_label,
            accelerated_label=test.accelerated_label,
        )
    except ImportError as e:
        return _skipped(test, f"missing dependency: {e}")
    except DeviceAllocationError as e:
        result = new_result(test.name, test.reference_label, test.accelerated_label)
        result['status'] = ABORTED
        result['error'] = str(e)
        return result
    except Exception as e:
        print(f"    Error: {e}")
        result = new_result(test.name, test.reference_label, test.accelerated_label)
        result['status'] = ERROR
        result['error'] = f"{type(e).__name__}: {e}"
        return result


def run_suite(config=None, only=None, verbose=True):
    """
    Run the parity suite.

    Args:
        config: dict as produced by make_config(); DEFAULT_CONFIG when omitted
        only: optional iterable of test names to run (suite order is kept)
        verbose: print per-test progress in the harness format

    Returns:
        DataFrame with one row per test
    """
    config = config or make_config()
    if only:
        unknown = set(only) - set(TESTS_BY_NAME)
        if unknown:
            raise KeyError(f"Unknown tests {sorted(unknown)}; choose from {list(TESTS_BY_NAME)}")
        selected = [t for t in TESTS if t.name in set(only)]
    else:
        selected = TESTS

    results = []
    for test in selected:
        if verbose:
            print("-" * 42)
            print(f"Test {test.name} RUNNING.")
        result = run_test(test, config)
        if verbose:
            print_result(result)
        results.append(result)

    return pd.DataFrame(results)
