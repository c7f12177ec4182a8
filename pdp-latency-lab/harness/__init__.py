"""
Benchmark harness for policy decision point latency experiments.

Provides orchestration, the per-configuration workload driver and
result sinks.
"""

__version__ = "0.1.0"

from .errors import (
    BenchmarkError,
    DecisionEvaluationError,
    EngineConstructionError,
    ExportError,
    NamespacePreparationError,
    PreconditionError,
)

from .driver import (
    TimingRecord,
    WorkloadDriver,
)

from .runner import (
    AggregateRecord,
    BenchmarkConfig,
    BenchmarkRunner,
    ResultSink,
    RunContainer,
)

from .reporter import (
    ChartReporter,
    ConsoleReporter,
    DatabaseReporter,
    JSONReporter,
    ResultReporter,
    SpreadsheetReporter,
)

__all__ = [
    # Errors
    "BenchmarkError",
    "DecisionEvaluationError",
    "EngineConstructionError",
    "ExportError",
    "NamespacePreparationError",
    "PreconditionError",
    # Driver
    "TimingRecord",
    "WorkloadDriver",
    # Runner
    "AggregateRecord",
    "BenchmarkConfig",
    "BenchmarkRunner",
    "ResultSink",
    "RunContainer",
    # Reporter
    "ChartReporter",
    "ConsoleReporter",
    "DatabaseReporter",
    "JSONReporter",
    "ResultReporter",
    "SpreadsheetReporter",
]
