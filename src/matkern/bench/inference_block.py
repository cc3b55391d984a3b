"""
End-to-end inference block chaining primitives together.
Tests: Projection (GEMM) → Softmax → LayerNorm → GELU, on CPU and CUDA.
"""

import sys
import warnings
from pathlib import Path

import numpy as np
import pandas as pd
from numba.core.errors import NumbaPerformanceWarning

from matkern.device import cuda_available, release_matrices, require_cuda, to_device, to_host
from matkern.kernels.backend import CPU, CUDA
from matkern.kernels.composite import layer_norm, softmax_rows
from matkern.matrix import from_array
from matkern.timing import DeviceTimer, HostTimer

STAGES = ('projection', 'softmax', 'layernorm', 'gelu')


def inference_block(x, w_proj, gamma, beta, backend=CPU, timer=None):
    """
    End-to-end inference block:
    1. Projection (GEMM): x . w_proj^T
    2. Softmax: softmax(projection) along rows
    3. LayerNorm: layernorm(softmax_output)
    4. GELU activation

    Args:
        x: Matrix (batch_size x input_dim)
        w_proj: Matrix (hidden_dim x input_dim), one output unit per row
        gamma: Matrix (1 x hidden_dim) LayerNorm scale
        beta: Matrix (1 x hidden_dim) LayerNorm shift
        backend: CPU or CUDA; operands must live where the backend computes
        timer: HostTimer / DeviceTimer, picked from the backend when omitted

    Returns:
        output: Matrix (batch_size x hidden_dim) on the backend's side
        timings: Dict with individual stage timings
    """
    if timer is None:
        timer = DeviceTimer() if backend is CUDA else HostTimer()
    timings = {}

    t_start = timer.mark()
    out = backend.matmul(x, w_proj, backend.empty(x.rows, w_proj.rows))
    t_end = timer.mark()
    timings['projection_ms'] = timer.elapsed(t_start, t_end)

    t_start = timer.mark()
    softmax_rows(out, backend)
    t_end = timer.mark()
    timings['softmax_ms'] = timer.elapsed(t_start, t_end)

    t_start = timer.mark()
    layer_norm(out, gamma, beta, backend)
    t_end = timer.mark()
    timings['layernorm_ms'] = timer.elapsed(t_start, t_end)

    t_start = timer.mark()
    backend.unary("gelu", out)
    t_end = timer.mark()
    timings['gelu_ms'] = timer.elapsed(t_start, t_end)

    timings['total_ms'] = sum(timings[f'{s}_ms'] for s in STAGES)
    return out, timings


def make_inputs(batch_size, input_dim, hidden_dim, seed=42):
    """Random inputs scaled so the projection stays in exp()'s safe range."""
    rng = np.random.RandomState(seed)
    x = from_array(rng.randn(batch_size, input_dim).astype(np.float32))
    w_proj = from_array(
        (rng.randn(hidden_dim, input_dim) / np.sqrt(input_dim)).astype(np.float32)
    )
    gamma = from_array(np.ones((1, hidden_dim), dtype=np.float32))
    beta = from_array(np.zeros((1, hidden_dim), dtype=np.float32))
    return x, w_proj, gamma, beta


def _run_once(inputs, backend):
    """Run the block once; device runs copy inputs over and the output back."""
    if backend is CPU:
        return inference_block(*inputs, backend=CPU)
    require_cuda()
    d_inputs = []
    d_out = None
    try:
        d_inputs = [to_device(m) for m in inputs]
        d_out, timings = inference_block(*d_inputs, backend=CUDA)
        return to_host(d_out), timings
    finally:
        release_matrices(d_out, *d_inputs)


def benchmark_inference_block(configs, backends=None, num_warmup=2, num_runs=10):
    """
    Benchmark end-to-end inference block.

    Args:
        configs: List of tuples (batch_size, input_dim, hidden_dim)
        backends: backends to run; CPU, plus CUDA when available, by default
        num_warmup: Number of warmup runs
        num_runs: Number of timed runs

    Returns:
        List of timing dictionaries, one per (config, backend)
    """
    if backends is None:
        backends = [CPU, CUDA] if cuda_available() else [CPU]

    results = []
    for batch_size, input_dim, hidden_dim in configs:
        inputs = make_inputs(batch_size, input_dim, hidden_dim)
        for backend in backends:
            print(f"\nBenchmarking Inference Block [{backend.name}]: "
                  f"batch={batch_size}, input={input_dim}, hidden={hidden_dim}")

            for _ in range(num_warmup):
                _run_once(inputs, backend)

            all_timings = [_run_once(inputs, backend)[1] for _ in range(num_runs)]

            row = {
                'backend': backend.name,
                'batch_size': batch_size,
                'input_dim': input_dim,
                'hidden_dim': hidden_dim,
            }
            for key in [f'{s}_ms' for s in STAGES] + ['total_ms']:
                times = [t[key] for t in all_timings]
                row[f'{key}_mean'] = np.mean(times)
                row[f'{key}_p50'] = np.percentile(times, 50)
                row[f'{key}_p95'] = np.percentile(times, 95)
            results.append(row)

            total = row['total_ms_mean']
            for stage in STAGES:
                mean = row[f'{stage}_ms_mean']
                share = 100 * mean / total if total > 0 else 0.0
                print(f"  {stage.capitalize():<11} {mean:.3f} ms ({share:.1f}%)")
            print(f"  {'Total':<11} {total:.3f} ms")

    return results


def main(output_dir=None):
    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

    # Format: (batch_size, input_dim, hidden_dim)
    configs = [
        (32, 512, 512),
        (64, 1024, 1024),
        (128, 2048, 2048),
    ]

    print("=" * 60)
    print("End-to-End Inference Block Benchmark")
    print("=" * 60)

    results = benchmark_inference_block(configs)

    output_dir = Path(output_dir) if output_dir else Path("results")
    output_dir.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame(results)
    output_path = output_dir / "inference_block_results.csv"
    df.to_csv(output_path, index=False)
    print(f"\nResults saved to: {output_path}")

    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    print(df.to_string(index=False))
    return df


if __name__ == "__main__":
    main(sys.argv[1] if len(sys.argv) > 1 else None)
