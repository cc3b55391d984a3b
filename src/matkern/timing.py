"""
Timer service: host wall-clock timing and CUDA event timing.

Both timers expose mark() -> timestamp and elapsed(start, stop) -> ms.
DeviceTimer measures on the device stream, so it captures kernel completion
rather than just the launch. The CUDA simulator has no usable events, so
there DeviceTimer synchronizes and falls back to wall-clock time.
"""

import time

from numba import cuda

from matkern.device import simulating


class HostTimer:
    """Wall-clock timer based on time.perf_counter."""

    def mark(self):
        return time.perf_counter()

    def elapsed(self, start, stop):
        return (stop - start) * 1000.0


class DeviceTimer:
    """CUDA event timer; elapsed() blocks until the stop event completes."""

    def __init__(self):
        self.simulated = simulating()

    def mark(self):
        if self.simulated:
            cuda.synchronize()
            return time.perf_counter()
        event = cuda.event()
        event.record()
        return event

    def elapsed(self, start, stop):
        if self.simulated:
            return (stop - start) * 1000.0
        stop.synchronize()
        return float(start.elapsed_time(stop))


def timed(timer, fn, *args, **kwargs):
    """
    Run fn(*args, **kwargs) between two timer marks.

    Returns:
        (result, elapsed_ms)
    """
    start = timer.mark()
    result = fn(*args, **kwargs)
    stop = timer.mark()
    return result, timer.elapsed(start, stop)
