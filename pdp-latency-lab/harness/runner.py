"""
Benchmark orchestrator for policy decision point latency experiments.

Drives every test case of a suite through the workload driver, collects
the raw timing records into a run-scoped container, reduces them into
per-configuration aggregates and hands the finished container to the
configured result sinks.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from engine.protocol import EngineGateway, IndexType
from instrumentation.timing import AggregateStats, LatencyCollector
from instrumentation.traces import Tracer
from scenarios.definitions import PolicyGeneratorConfiguration

from .driver import TimingRecord, WorkloadDriver
from .errors import BenchmarkError, ExportError, PreconditionError

logger = logging.getLogger(__name__)

DEFAULT_ITERATIONS = 10
DEFAULT_RUNS = 30


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    if value.strip().lower() in ("1", "true", "yes", "on"):
        return True
    if value.strip().lower() in ("0", "false", "no", "off"):
        return False
    raise PreconditionError(f"{name} must be true or false, got {value!r}", phase="config")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise PreconditionError(f"{name} must be an integer, got {value!r}", phase="config") from None


@dataclass
class BenchmarkConfig:
    """Process-level parameters of one benchmark run."""

    output_dir: Path = Path("results")
    reuse_existing_policies: bool = True
    index_type: IndexType = IndexType.FAST
    iterations: int = DEFAULT_ITERATIONS
    runs: int = DEFAULT_RUNS
    test_file: Optional[Path] = None
    suite: str = "default"
    seed: Optional[int] = None
    database_url: Optional[str] = None
    persist: bool = True
    charts: bool = True
    tracing: bool = False

    @classmethod
    def from_env(cls) -> "BenchmarkConfig":
        """Defaults from PDP_BENCH_* environment variables."""
        test_file = os.getenv("PDP_BENCH_TEST_FILE")
        index = os.getenv("PDP_BENCH_INDEX")
        try:
            index_type = IndexType.parse(index) if index else IndexType.FAST
        except ValueError as e:
            raise PreconditionError(str(e), phase="config") from None
        return cls(
            output_dir=Path(os.getenv("PDP_BENCH_OUTPUT_DIR", "results")),
            reuse_existing_policies=_env_bool("PDP_BENCH_REUSE", True),
            index_type=index_type,
            iterations=_env_int("PDP_BENCH_ITERATIONS", DEFAULT_ITERATIONS),
            runs=_env_int("PDP_BENCH_RUNS", DEFAULT_RUNS),
            test_file=Path(test_file) if test_file else None,
            suite=os.getenv("PDP_BENCH_SUITE", "default"),
            seed=_env_int("PDP_BENCH_SEED", None),
            database_url=os.getenv("DATABASE_URL") or None,
            persist=_env_bool("PDP_BENCH_PERSIST", True),
            charts=_env_bool("PDP_BENCH_CHARTS", True),
            tracing=_env_bool("PDP_BENCH_TRACING", False),
        )

    def validate(self) -> "BenchmarkConfig":
        """Raise PreconditionError for unusable parameters."""
        if self.iterations < 1:
            raise PreconditionError(f"iterations must be >= 1, got {self.iterations}", phase="config")
        if self.runs < 1:
            raise PreconditionError(f"runs must be >= 1, got {self.runs}", phase="config")
        if self.test_file is not None and not self.test_file.is_file():
            raise PreconditionError(f"test file {self.test_file} does not exist", phase="config")
        return self

    def to_dict(self) -> dict:
        """Convert config to dictionary."""
        return {
            "output_dir": str(self.output_dir),
            "reuse_existing_policies": self.reuse_existing_policies,
            "index_type": self.index_type.value,
            "iterations": self.iterations,
            "runs": self.runs,
            "test_file": str(self.test_file) if self.test_file else None,
            "suite": self.suite,
            "seed": self.seed,
            "persist": self.persist,
            "charts": self.charts,
            "tracing": self.tracing,
        }


@dataclass(frozen=True)
class AggregateRecord:
    """Summary of one configuration's execution durations."""

    name: str
    min: float
    max: float
    avg: float
    mdn: float

    def to_dict(self) -> dict:
        return {"name": self.name, "min": self.min, "max": self.max, "avg": self.avg, "mdn": self.mdn}


class RunContainer:
    """Accumulates everything measured during one run.

    identifiers, min_values, max_values, avg_values and mdn_values are
    index-aligned; add_configuration() is the only way to extend them.
    All public views are tuples.
    """

    def __init__(
        self,
        index_type: IndexType,
        reuse_existing_policies: bool,
        iterations: int,
        runs: int,
        started_at: Optional[datetime] = None,
    ):
        self.index_type = index_type
        self.reuse_existing_policies = reuse_existing_policies
        self.iterations = iterations
        self.runs = runs
        self.started_at = started_at or datetime.now()
        self.finished_at: Optional[datetime] = None
        self._identifiers: list[str] = []
        self._min_values: list[float] = []
        self._max_values: list[float] = []
        self._avg_values: list[float] = []
        self._mdn_values: list[float] = []
        self._data: list[TimingRecord] = []
        self._aggregate_data: list[AggregateRecord] = []

    @property
    def run_id(self) -> str:
        return f"{self.started_at.strftime('%Y%m%d_%H%M%S_%f')}_{self.index_type.value}"

    @property
    def identifiers(self) -> tuple[str, ...]:
        return tuple(self._identifiers)

    @property
    def min_values(self) -> tuple[float, ...]:
        return tuple(self._min_values)

    @property
    def max_values(self) -> tuple[float, ...]:
        return tuple(self._max_values)

    @property
    def avg_values(self) -> tuple[float, ...]:
        return tuple(self._avg_values)

    @property
    def mdn_values(self) -> tuple[float, ...]:
        return tuple(self._mdn_values)

    @property
    def data(self) -> tuple[TimingRecord, ...]:
        return tuple(self._data)

    @property
    def aggregate_data(self) -> tuple[AggregateRecord, ...]:
        return tuple(self._aggregate_data)

    def add_configuration(self, name: str, records: Sequence[TimingRecord], stats: AggregateStats) -> None:
        """Append one configuration's records and statistics to every parallel list."""
        if name in self._identifiers:
            raise ValueError(f"configuration {name!r} already recorded")
        self._identifiers.append(name)
        self._min_values.append(stats.min_ms)
        self._max_values.append(stats.max_ms)
        self._avg_values.append(stats.mean_ms)
        self._mdn_values.append(stats.median_ms)
        self._data.extend(records)

    def build_aggregate_data(self) -> tuple[AggregateRecord, ...]:
        """Rebuild the aggregate list from the parallel lists, in identifier order."""
        self._aggregate_data = [
            AggregateRecord(
                name=self._identifiers[i],
                min=self._min_values[i],
                max=self._max_values[i],
                avg=self._avg_values[i],
                mdn=self._mdn_values[i],
            )
            for i in range(len(self._identifiers))
        ]
        return self.aggregate_data

    def records_for(self, name: str) -> list[TimingRecord]:
        return [record for record in self._data if record.name == name]

    def execution_series(self) -> dict[str, list[float]]:
        """Per-configuration execution durations, in identifier order."""
        return {name: [r.duration_ms for r in self.records_for(name)] for name in self._identifiers}

    def to_dict(self) -> dict:
        """Convert the container to a dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "index_type": self.index_type.value,
            "reuse_existing_policies": self.reuse_existing_policies,
            "iterations": self.iterations,
            "runs": self.runs,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "identifiers": list(self._identifiers),
            "aggregates": [a.to_dict() for a in self._aggregate_data],
            "data": [r.to_dict() for r in self._data],
        }


class ResultSink(Protocol):
    """Consumer of benchmark output."""

    def configuration_finished(self, container: RunContainer, name: str, records: Sequence[TimingRecord]) -> None:
        ...

    def run_finished(self, container: RunContainer) -> None:
        ...


class BenchmarkRunner:
    """Orchestrates a benchmark run over an ordered list of test cases."""

    def __init__(
        self,
        gateway: EngineGateway,
        workspace: Path,
        index_type: IndexType = IndexType.FAST,
        iterations: int = DEFAULT_ITERATIONS,
        runs: int = DEFAULT_RUNS,
        reuse_existing_policies: bool = True,
        sinks: Optional[list[ResultSink]] = None,
        tracer: Optional[Tracer] = None,
        verbose: bool = False,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ):
        self.workspace = workspace
        self.index_type = index_type
        self.iterations = iterations
        self.runs = runs
        self.reuse_existing_policies = reuse_existing_policies
        self.sinks = sinks or []
        self.tracer = tracer
        self.verbose = verbose
        self.progress_callback = progress_callback
        self.driver = WorkloadDriver(gateway, workspace, index_type=index_type, tracer=tracer)

    @classmethod
    def from_config(
        cls,
        config: BenchmarkConfig,
        gateway: EngineGateway,
        sinks: Optional[list[ResultSink]] = None,
        tracer: Optional[Tracer] = None,
        verbose: bool = False,
    ) -> "BenchmarkRunner":
        return cls(
            gateway=gateway,
            workspace=config.output_dir,
            index_type=config.index_type,
            iterations=config.iterations,
            runs=config.runs,
            reuse_existing_policies=config.reuse_existing_policies,
            sinks=sinks,
            tracer=tracer,
            verbose=verbose,
        )

    def benchmark_configuration(
        self,
        container: RunContainer,
        config: PolicyGeneratorConfiguration,
    ) -> list[TimingRecord]:
        """Run one configuration and record it in the container."""
        if self.verbose:
            print(f"\nRunning benchmark: {config.name}")
            print(f"  Policies: {config.policy_count}, variables: {config.variable_pool_count}")

        try:
            records = self.driver.run_workload(
                config,
                iterations=self.iterations,
                runs=self.runs,
                reuse_existing=self.reuse_existing_policies,
            )
        except BenchmarkError as e:
            logger.error("Error running test %s during %s: %s", config.name, e.phase, e.message)
            raise

        collector = LatencyCollector(config.name)
        for record in records:
            collector.add(record.duration_ms)
            collector.add_preparation(record.preparation_ms)
        container.add_configuration(config.name, records, collector.aggregate())

        if self.verbose:
            stats = collector.stats()
            print(f"  min: {stats['latency_min_ms']:.3f}ms  max: {stats['latency_max_ms']:.3f}ms  "
                  f"avg: {stats['latency_mean_ms']:.3f}ms  mdn: {stats['latency_median_ms']:.3f}ms  "
                  f"p95: {stats['latency_p95_ms']:.3f}ms  prep: {stats['preparation_mean_ms']:.3f}ms")
        return records

    def _notify(self, action: Callable[[ResultSink], None], failures: list[str]) -> None:
        for sink in self.sinks:
            try:
                action(sink)
            except (OSError, ExportError) as e:
                logger.error("result sink %s failed: %s", type(sink).__name__, e)
                failures.append(f"{type(sink).__name__}: {e}")

    @staticmethod
    def _check_unique(configurations: Sequence[PolicyGeneratorConfiguration]) -> None:
        names: set[str] = set()
        namespaces: dict[str, str] = {}
        for config in configurations:
            if config.name in names:
                raise PreconditionError(
                    f"duplicate test case name {config.name!r}",
                    configuration=config.name,
                    phase="startup",
                )
            if config.namespace in namespaces:
                raise PreconditionError(
                    f"test cases {namespaces[config.namespace]!r} and {config.name!r} "
                    f"share the policy namespace {config.namespace!r}",
                    configuration=config.name,
                    phase="startup",
                )
            names.add(config.name)
            namespaces[config.namespace] = config.name

    def run_all(self, configurations: Sequence[PolicyGeneratorConfiguration]) -> RunContainer:
        """Benchmark every configuration in order and export the results.

        Any measurement failure aborts the run before aggregation. Sink
        failures are reported together once measurement is complete.
        """
        if not configurations:
            raise PreconditionError("at least one test case must be present", phase="startup")
        self._check_unique(configurations)

        container = RunContainer(
            index_type=self.index_type,
            reuse_existing_policies=self.reuse_existing_policies,
            iterations=self.iterations,
            runs=self.runs,
        )
        logger.info(
            "run %s: %d test cases, index=%s, reuse=%s, iterations=%d, runs=%d",
            container.run_id, len(configurations), self.index_type.value,
            self.reuse_existing_policies, self.iterations, self.runs,
        )

        export_failures: list[str] = []
        total = len(configurations)
        for position, config in enumerate(configurations, start=1):
            if self.tracer is not None:
                with self.tracer.span("configuration", {"benchmark.configuration": config.name}):
                    records = self.benchmark_configuration(container, config)
            else:
                records = self.benchmark_configuration(container, config)

            self._notify(
                lambda sink: sink.configuration_finished(container, config.name, records),
                export_failures,
            )
            if self.progress_callback:
                self.progress_callback(position, total)

        container.build_aggregate_data()
        container.finished_at = datetime.now()

        self._notify(lambda sink: sink.run_finished(container), export_failures)
        if export_failures:
            raise ExportError(
                f"{len(export_failures)} result sink(s) failed",
                phase="export",
                details={"failures": export_failures},
            )
        return container
