"""
Timing utilities for policy decision point benchmarking.

Provides a wall-clock timer, a context manager for timing blocking calls,
and the statistics used to reduce per-request durations:
- Minimum / maximum
- Arithmetic mean
- Median
- Percentiles (console summaries only)
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

NANOS_PER_MS = 1_000_000.0


class EmptySampleError(ValueError):
    """Raised when a statistic is requested over zero samples."""


def _require_samples(samples: Sequence[float], statistic: str) -> None:
    if len(samples) == 0:
        raise EmptySampleError(f"cannot compute {statistic} of an empty sample")


def minimum(samples: Sequence[float]) -> float:
    """Smallest sample."""
    _require_samples(samples, "minimum")
    result = samples[0]
    for value in samples:
        if value < result:
            result = value
    return float(result)


def maximum(samples: Sequence[float]) -> float:
    """Largest sample."""
    _require_samples(samples, "maximum")
    result = samples[0]
    for value in samples:
        if value > result:
            result = value
    return float(result)


def mean(samples: Sequence[float]) -> float:
    """Arithmetic mean."""
    _require_samples(samples, "mean")
    return sum(samples) / float(len(samples))


def median(samples: Sequence[float]) -> float:
    """Median of the samples.

    For an even count this is the mean of the two middle elements
    (zero-based indices n/2 - 1 and n/2 after sorting).
    """
    _require_samples(samples, "median")
    ordered = sorted(samples)
    index = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[index - 1] + ordered[index]) / 2.0
    return float(ordered[index])


def percentile(samples: Sequence[float], p: float) -> float:
    """Calculate percentile of a list of values (linear interpolation)."""
    if not samples:
        return 0.0
    sorted_values = sorted(samples)
    k = (len(sorted_values) - 1) * (p / 100)
    f = int(k)
    c = f + 1 if f + 1 < len(sorted_values) else f
    return sorted_values[f] + (k - f) * (sorted_values[c] - sorted_values[f])


def nanos_to_ms(nanoseconds: int) -> float:
    """Convert a nanosecond delta to milliseconds."""
    return nanoseconds / NANOS_PER_MS


@dataclass(frozen=True)
class AggregateStats:
    """Summary statistics over one configuration's execution durations."""

    min_ms: float
    max_ms: float
    mean_ms: float
    median_ms: float

    @classmethod
    def from_samples(cls, samples: Sequence[float]) -> "AggregateStats":
        return cls(
            min_ms=minimum(samples),
            max_ms=maximum(samples),
            mean_ms=mean(samples),
            median_ms=median(samples),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "min_ms": self.min_ms,
            "max_ms": self.max_ms,
            "mean_ms": self.mean_ms,
            "median_ms": self.median_ms,
        }


class Timer:
    """Simple timer for manual timing control."""

    def __init__(self, name: str = "timer"):
        self.name = name
        self.start_ns: int = 0
        self.end_ns: int = 0
        self._running = False

    def start(self) -> "Timer":
        """Start the timer."""
        self.start_ns = time.perf_counter_ns()
        self._running = True
        return self

    def stop(self) -> "Timer":
        """Stop the timer."""
        self.end_ns = time.perf_counter_ns()
        self._running = False
        return self

    @property
    def running(self) -> bool:
        return self._running

    @property
    def elapsed_ms(self) -> float:
        """Elapsed time in milliseconds."""
        end = self.end_ns if not self._running else time.perf_counter_ns()
        return nanos_to_ms(end - self.start_ns)


@contextmanager
def timed(name: str = "operation") -> Iterator[Timer]:
    """Context manager for timing synchronous operations.

    Usage:
        with timed("decide") as timer:
            handle.decide(request)
        print(f"Elapsed: {timer.elapsed_ms}ms")

    The timer stops even when the block raises.
    """
    timer = Timer(name).start()
    try:
        yield timer
    finally:
        timer.stop()


class LatencyCollector:
    """Collects execution durations for one configuration."""

    def __init__(self, name: Optional[str] = None):
        self.name = name
        self.durations_ms: list[float] = []
        self.preparations_ms: list[float] = []

    def add(self, duration_ms: float) -> None:
        """Add one execution duration."""
        self.durations_ms.append(duration_ms)

    def add_preparation(self, preparation_ms: float) -> None:
        """Add one engine preparation duration."""
        self.preparations_ms.append(preparation_ms)

    def clear(self) -> None:
        """Clear all collected samples."""
        self.durations_ms.clear()
        self.preparations_ms.clear()

    @property
    def count(self) -> int:
        """Number of collected execution durations."""
        return len(self.durations_ms)

    def aggregate(self) -> AggregateStats:
        """Reduce execution durations; raises EmptySampleError when empty."""
        return AggregateStats.from_samples(self.durations_ms)

    def stats(self) -> dict:
        """Calculate summary statistics for console output."""
        durations = self.durations_ms
        return {
            "count": self.count,
            "latency_min_ms": minimum(durations) if durations else 0.0,
            "latency_max_ms": maximum(durations) if durations else 0.0,
            "latency_mean_ms": mean(durations) if durations else 0.0,
            "latency_median_ms": median(durations) if durations else 0.0,
            "latency_p95_ms": percentile(durations, 95),
            "latency_p99_ms": percentile(durations, 99),
            "preparation_mean_ms": mean(self.preparations_ms) if self.preparations_ms else 0.0,
        }
