"""
Workload driver: benchmarks a single test case against the engine.

For each outer iteration a fresh engine is constructed (its construction
time is the iteration's preparation time), then the configured number of
decisions is fired at it one by one and timed individually.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from engine.filesystem import ENGINE_CONFIG_FILE
from engine.protocol import EngineError, EngineGateway, EngineHandle, IndexType
from instrumentation.timing import timed
from instrumentation.traces import Tracer
from scenarios.definitions import PolicyGeneratorConfiguration
from scenarios.generator import PolicyGenerator

from .errors import DecisionEvaluationError, EngineConstructionError, NamespacePreparationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimingRecord:
    """One measured authorization decision."""

    number: int
    name: str
    preparation_ms: float
    duration_ms: float
    request: str
    response: str

    def to_dict(self) -> dict:
        return {
            "number": self.number,
            "name": self.name,
            "preparation_ms": self.preparation_ms,
            "duration_ms": self.duration_ms,
            "request": self.request,
            "response": self.response,
        }


class WorkloadDriver:
    """Runs the outer/inner measurement loop for one configuration at a time."""

    def __init__(
        self,
        gateway: EngineGateway,
        workspace: Path,
        index_type: IndexType = IndexType.FAST,
        tracer: Optional[Tracer] = None,
        generator_factory: Callable[[PolicyGeneratorConfiguration], PolicyGenerator] = PolicyGenerator,
    ):
        self.gateway = gateway
        self.workspace = workspace
        self.index_type = index_type
        self.tracer = tracer
        self.generator_factory = generator_factory

    def namespace_path(self, config: PolicyGeneratorConfiguration) -> Path:
        return self.workspace / config.namespace

    def prepare_namespace(self, config: PolicyGeneratorConfiguration, generator: PolicyGenerator) -> Path:
        """Generate the policy set and copy the shared engine config into its namespace."""
        namespace = self.namespace_path(config)
        shared_config = self.workspace / ENGINE_CONFIG_FILE
        try:
            generator.generate_policies(namespace)
            shutil.copy2(shared_config, namespace / ENGINE_CONFIG_FILE)
        except OSError as e:
            raise NamespacePreparationError(
                f"cannot prepare policy namespace {namespace}: {e}",
                configuration=config.name,
                phase="prepare",
                details={"namespace": str(namespace)},
            ) from e
        logger.info("generated %d policies for %s in %s", config.policy_count, config.name, namespace)
        return namespace

    def _construct(self, config: PolicyGeneratorConfiguration, namespace: Path) -> tuple[EngineHandle, float]:
        try:
            with timed("construct") as timer:
                handle = self.gateway.construct(namespace, self.index_type)
        except (EngineError, OSError) as e:
            raise EngineConstructionError(
                f"engine construction failed: {e}",
                configuration=config.name,
                phase="construct",
                details={"namespace": str(namespace), "index_type": self.index_type.value},
            ) from e
        return handle, timer.elapsed_ms

    def _measure_iteration(
        self,
        config: PolicyGeneratorConfiguration,
        generator: PolicyGenerator,
        namespace: Path,
        iteration: int,
        runs: int,
    ) -> list[TimingRecord]:
        handle, prep = self._construct(config, namespace)
        records = []
        try:
            for run in range(runs):
                request = generator.create_request()
                try:
                    with timed("decide") as timer:
                        decision = handle.decide(request)
                except (EngineError, OSError) as e:
                    raise DecisionEvaluationError(
                        f"decision evaluation failed: {e}",
                        configuration=config.name,
                        phase="decide",
                        details={"iteration": iteration, "run": run},
                    ) from e

                if decision is None:
                    raise DecisionEvaluationError(
                        "engine returned no decision",
                        configuration=config.name,
                        phase="decide",
                        details={"iteration": iteration, "run": run},
                    )

                records.append(TimingRecord(
                    number=run + iteration * runs,
                    name=config.name,
                    preparation_ms=prep,
                    duration_ms=timer.elapsed_ms,
                    request=str(request),
                    response=getattr(decision, "value", str(decision)),
                ))
                logger.debug("Total : %.4fms", timer.elapsed_ms)
        finally:
            handle.close()
        return records

    def run_workload(
        self,
        config: PolicyGeneratorConfiguration,
        iterations: int,
        runs: int,
        reuse_existing: bool,
    ) -> list[TimingRecord]:
        """Benchmark one configuration; returns records in sequence order."""
        generator = self.generator_factory(config)

        if reuse_existing:
            namespace = self.namespace_path(config)
            if not namespace.is_dir():
                raise NamespacePreparationError(
                    f"policy namespace {namespace} does not exist; run without reuse first",
                    configuration=config.name,
                    phase="prepare",
                    details={"namespace": str(namespace)},
                )
        else:
            namespace = self.prepare_namespace(config, generator)

        records: list[TimingRecord] = []
        for iteration in range(iterations):
            if self.tracer is not None:
                attributes = {
                    "benchmark.configuration": config.name,
                    "benchmark.iteration": iteration,
                    "benchmark.index_type": self.index_type.value,
                }
                with self.tracer.span("outer_iteration", attributes):
                    records.extend(self._measure_iteration(config, generator, namespace, iteration, runs))
            else:
                records.extend(self._measure_iteration(config, generator, namespace, iteration, runs))
        return records
