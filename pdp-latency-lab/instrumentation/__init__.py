"""
Instrumentation module for policy decision point benchmarking.

Provides timing utilities, statistics and tracing integration.
"""

from .timing import (
    AggregateStats,
    EmptySampleError,
    LatencyCollector,
    Timer,
    maximum,
    mean,
    median,
    minimum,
    nanos_to_ms,
    percentile,
    timed,
)

from .traces import (
    Tracer,
    TracingConfig,
    get_tracer,
    init_tracing,
    shutdown_tracing,
)

__all__ = [
    # Timing
    "AggregateStats",
    "EmptySampleError",
    "LatencyCollector",
    "Timer",
    "maximum",
    "mean",
    "median",
    "minimum",
    "nanos_to_ms",
    "percentile",
    "timed",
    # Tracing
    "Tracer",
    "TracingConfig",
    "get_tracer",
    "init_tracing",
    "shutdown_tracing",
]
