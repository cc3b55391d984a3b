import numpy as np
import pandas as pd

from matkern.bench import run_suite
from matkern.bench.plot_results import plot_parity_results


def test_list_prints_test_names(capsys):
    assert run_suite.main(["--list"]) == 0
    out = capsys.readouterr().out.split()
    assert out[0] == "row_sum"
    assert "multiply_tile" in out


def test_config_from_args_applies_scale():
    args = run_suite.build_parser().parse_args(["--scale", "0.01", "--seed", "3", "--no-warmup"])
    config = run_suite.config_from_args(args)
    assert config['seed'] == 3
    assert config['warmup'] is False
    assert config['transpose_shape'] == (8, 8)
    assert config['tril_width'] == 5


def test_tril_width_flag():
    args = run_suite.build_parser().parse_args(["--tril-width", "7"])
    assert run_suite.config_from_args(args)['tril_width'] == 7


def test_main_writes_results_csv(tmp_path, capsys):
    code = run_suite.main([
        "--only", "add", "row_sum", "transpose",
        "--scale", "0.002", "--no-warmup",
        "--output-dir", str(tmp_path),
    ])
    assert code == 0

    df = pd.read_csv(tmp_path / "parity_results.csv")
    assert list(df['primitive']) == ["row_sum", "transpose", "add"]
    assert set(df['status']) <= {"passed", "skipped"}

    out = capsys.readouterr().out
    assert "matkern parity suite" in out
    assert "Summary" in out


def test_plot_parity_results(tmp_path):
    csv_path = tmp_path / "parity_results.csv"
    pd.DataFrame([
        {'primitive': 'add', 'status': 'passed', 'reference_ms': 2.0,
         'accelerated_ms': 0.5, 'speedup': 4.0},
        {'primitive': 'gelu', 'status': 'passed', 'reference_ms': 3.0,
         'accelerated_ms': 0.0, 'speedup': np.nan},
        {'primitive': 'matmul_cublas', 'status': 'skipped', 'reference_ms': np.nan,
         'accelerated_ms': np.nan, 'speedup': np.nan},
    ]).to_csv(csv_path, index=False)

    out_path = plot_parity_results(csv_path, tmp_path / "plots")
    assert out_path == tmp_path / "plots" / "parity_speedup.png"
    assert out_path.exists()


def test_plot_missing_csv(tmp_path):
    assert plot_parity_results(tmp_path / "missing.csv") is None
