"""
Command-line driver for the parity & benchmark suite.
Usage: matkern-bench [--only add tril ...] [--scale 0.1] [--plot]
"""

import os
import sys

# BLAS thread limits only take effect if set before NumPy is imported
if "--single-threaded" in sys.argv:
    os.environ["OMP_NUM_THREADS"] = "1"
    os.environ["MKL_NUM_THREADS"] = "1"
    os.environ["OPENBLAS_NUM_THREADS"] = "1"
    os.environ["NUMEXPR_NUM_THREADS"] = "1"

import argparse
import warnings
from pathlib import Path

from numba.core.errors import NumbaPerformanceWarning

from matkern.bench.parity import ABORTED, ERROR, FAILED
from matkern.bench.suite import DEFAULT_CONFIG, TESTS, make_config, run_suite, scale_config


def build_parser():
    parser = argparse.ArgumentParser(description='Parity and speedup suite for matkern kernels')
    parser.add_argument('--only', nargs='+', metavar='TEST',
                        help='Run only these tests (see --list)')
    parser.add_argument('--list', action='store_true',
                        help='List test names and exit')
    parser.add_argument('--scale', type=float, default=1.0,
                        help='Multiply every benchmark shape by this factor')
    parser.add_argument('--seed', type=int, default=DEFAULT_CONFIG['seed'],
                        help='Seed for input generation')
    parser.add_argument('--tolerance', type=float, default=DEFAULT_CONFIG['tolerance'],
                        help='Absolute per-element tolerance')
    parser.add_argument('--k', type=float, default=DEFAULT_CONFIG['k'],
                        help='Scalar passed to the unary ops')
    parser.add_argument('--tril-width', type=int, default=DEFAULT_CONFIG['tril_width'],
                        help='Row width of the causal mask in the tril test')
    parser.add_argument('--no-warmup', action='store_true',
                        help='Skip the JIT warmup run before timing')
    parser.add_argument('--threads', type=int, default=None,
                        help='Numba thread count for the CPU reference kernels')
    parser.add_argument('--single-threaded', action='store_true',
                        help='Limit BLAS and Numba to one thread')
    parser.add_argument('--output-dir', type=Path, default=Path('results'),
                        help='Directory for parity_results.csv')
    parser.add_argument('--plot', action='store_true',
                        help='Save a speedup plot under <output-dir>/plots')
    return parser


def config_from_args(args):
    config = make_config(
        seed=args.seed,
        tolerance=args.tolerance,
        k=args.k,
        tril_width=args.tril_width,
        warmup=not args.no_warmup,
    )
    if args.scale != 1.0:
        config = scale_config(config, args.scale)
    return config


def main(argv=None):
    args = build_parser().parse_args(argv)
    # Low-occupancy launch warnings from the small benchmark grids
    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

    if args.list:
        for test in TESTS:
            print(test.name)
        return 0

    threads = 1 if args.single_threaded else args.threads
    if threads is not None:
        from numba import set_num_threads
        set_num_threads(threads)

    config = config_from_args(args)

    print("=" * 60)
    print("matkern parity suite")
    print("=" * 60)
    print(f"Seed: {config['seed']}, tolerance: {config['tolerance']}, scale: {args.scale}")

    df = run_suite(config, only=args.only)

    args.output_dir.mkdir(parents=True, exist_ok=True)
    output_path = args.output_dir / "parity_results.csv"
    df.to_csv(output_path, index=False)
    print(f"\nResults saved to: {output_path}")

    if args.plot:
        from matkern.bench.plot_results import plot_parity_results
        plot_parity_results(output_path, args.output_dir / "plots")

    print("\n" + "=" * 60)
    print("Summary")
    print("=" * 60)
    print(df[['primitive', 'status', 'reference_ms', 'accelerated_ms', 'speedup', 'max_abs_diff']]
          .to_string(index=False))

    bad = df['status'].isin([FAILED, ABORTED, ERROR]).sum()
    return 1 if bad else 0


if __name__ == "__main__":
    sys.exit(main())
