"""
Parity check between a reference and an accelerated implementation.

A parity run calls two zero-argument callables, each returning
(host_result_matrix, elapsed_ms), compares the results element-wise with an
absolute tolerance, and reports timings and speedup. Divergence is a
failed result, never an exception; a device allocation failure aborts only
this primitive.
"""

import math

from matkern.device import DeviceAllocationError
from matkern.matrix import DEFAULT_TOLERANCE, compare_matrices, max_abs_diff

PASSED = "passed"
FAILED = "failed"
SKIPPED = "skipped"
ABORTED = "aborted"
ERROR = "error"


def compute_speedup(reference_ms, accelerated_ms):
    """reference / accelerated, or NaN when the accelerated time is not positive."""
    if accelerated_ms is None or not accelerated_ms > 0:
        return float("nan")
    return reference_ms / accelerated_ms


def new_result(name, reference_label="CPU", accelerated_label="GPU", rows=None, cols=None):
    return {
        'primitive': name,
        'status': None,
        'reference': reference_label,
        'accelerated': accelerated_label,
        'rows': rows,
        'cols': cols,
        'reference_ms': float("nan"),
        'accelerated_ms': float("nan"),
        'speedup': float("nan"),
        'max_abs_diff': float("nan"),
        'error': '',
    }


def run_parity(name, reference, accelerated, tol=DEFAULT_TOLERANCE,
               reference_label="CPU", accelerated_label="GPU"):
    """
    Run both implementations of one primitive and compare them.

    Args:
        name: primitive name for reporting
        reference: callable() -> (Matrix, ms), the trusted implementation
        accelerated: callable() -> (Matrix, ms), the implementation under test
        tol: absolute tolerance per element
        reference_label: label for the reference timing line
        accelerated_label: label for the accelerated timing line

    Returns:
        result dict (see new_result) with status passed / failed / aborted
    """
    result = new_result(name, reference_label, accelerated_label)

    try:
        ref_out, ref_ms = reference()
        acc_out, acc_ms = accelerated()
    except DeviceAllocationError as e:
        result['status'] = ABORTED
        result['error'] = str(e)
        return result

    result['rows'] = ref_out.rows
    result['cols'] = ref_out.cols
    result['reference_ms'] = float(ref_ms)
    result['accelerated_ms'] = float(acc_ms)
    result['speedup'] = compute_speedup(ref_ms, acc_ms)

    same_shape = (ref_out.rows, ref_out.cols) == (acc_out.rows, acc_out.cols)
    if same_shape:
        result['max_abs_diff'] = max_abs_diff(ref_out, acc_out)
    if same_shape and compare_matrices(ref_out, acc_out, tol):
        result['status'] = PASSED
    else:
        result['status'] = FAILED
        if not same_shape:
            result['error'] = (
                f"shape mismatch: {ref_out.rows}x{ref_out.cols} vs {acc_out.rows}x{acc_out.cols}"
            )
    return result


def print_result(result):
    """Print timings, speedup and the PASSED/FAILED line for one primitive."""
    status = result['status']
    if status in (PASSED, FAILED):
        print()
        print(f"{result['reference']} time: {result['reference_ms']:.3f} milliseconds")
        print(f"{result['accelerated']} time: {result['accelerated_ms']:.3f} milliseconds")
        speedup = result['speedup']
        shown = f"{speedup:.3f}" if not math.isnan(speedup) else "n/a"
        print()
        print(f"Speedup factor: {shown}")
        print()
        if status == FAILED:
            print(f"Max abs diff: {result['max_abs_diff']:.6e}")
    else:
        print(f"    {status}: {result['error']}")
    print(f"Test {result['primitive']} {status.upper()}.")
