"""
Plot parity suite results from CSV.
Usage: python -m matkern.bench.plot_results [results/parity_results.csv]
"""

import sys
from pathlib import Path

import matplotlib.pyplot as plt
import pandas as pd

results_dir = Path("results")

STATUS_COLORS = {
    'passed': 'tab:green',
    'failed': 'tab:red',
    'aborted': 'tab:orange',
    'error': 'tab:purple',
    'skipped': 'tab:gray',
}


def plot_parity_results(csv_path=None, plots_dir=None):
    """
    Plot per-primitive speedup and reference/accelerated latency.

    Returns:
        path of the saved PNG, or None when the CSV does not exist
    """
    csv_path = Path(csv_path) if csv_path else results_dir / "parity_results.csv"
    plots_dir = Path(plots_dir) if plots_dir else csv_path.parent / "plots"
    if not csv_path.exists():
        print(f"Results file not found: {csv_path}")
        return None

    df = pd.read_csv(csv_path)
    timed_rows = df[df['status'].isin(['passed', 'failed'])]

    fig, axes = plt.subplots(1, 2, figsize=(14, 5))

    colors = [STATUS_COLORS.get(s, 'tab:blue') for s in df['status']]
    axes[0].bar(df['primitive'], df['speedup'].fillna(0.0), color=colors)
    axes[0].axhline(1.0, color='black', linewidth=0.8, linestyle='--')
    axes[0].set_ylabel('Speedup (reference / accelerated)')
    axes[0].set_title('Speedup per primitive')
    axes[0].tick_params(axis='x', rotation=60)
    axes[0].grid(True, axis='y', alpha=0.3)

    x = range(len(timed_rows))
    axes[1].bar([i - 0.2 for i in x], timed_rows['reference_ms'], width=0.4, label='Reference')
    axes[1].bar([i + 0.2 for i in x], timed_rows['accelerated_ms'], width=0.4, label='Accelerated')
    axes[1].set_xticks(list(x))
    axes[1].set_xticklabels(timed_rows['primitive'], rotation=60)
    if len(timed_rows) and (timed_rows[['reference_ms', 'accelerated_ms']] > 0).all().all():
        axes[1].set_yscale('log')
    axes[1].set_ylabel('Latency (ms)')
    axes[1].set_title('Reference vs accelerated latency')
    axes[1].legend()
    axes[1].grid(True, axis='y', alpha=0.3)

    plt.tight_layout()
    plots_dir.mkdir(parents=True, exist_ok=True)
    out_path = plots_dir / "parity_speedup.png"
    plt.savefig(out_path, dpi=150)
    print(f"Saved plot: {out_path}")
    plt.close(fig)
    return out_path


if __name__ == "__main__":
    plot_parity_results(sys.argv[1] if len(sys.argv) > 1 else None)
