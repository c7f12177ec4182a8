"""
Unit tests for the benchmark orchestrator and run container.
"""

from datetime import datetime
from pathlib import Path

import pytest

from engine import IndexType, StubEngineGateway
from harness import (
    AggregateRecord,
    BenchmarkConfig,
    EngineConstructionError,
    ExportError,
    PreconditionError,
    ResultReporter,
    RunContainer,
    TimingRecord,
)
from instrumentation.timing import AggregateStats
from scenarios import PolicyGeneratorConfiguration


def make_configs(*names):
    return [
        PolicyGeneratorConfiguration(name=name, policy_count=3, variable_pool_count=4, logical_variable_count=2)
        for name in names
    ]


class RecordingSink(ResultReporter):
    """Sink remembering every notification it receives."""

    def __init__(self):
        super().__init__()
        self.finished_configurations = []
        self.finished_runs = []

    def configuration_finished(self, container, name, records):
        self.finished_configurations.append((name, len(records)))

    def run_finished(self, container):
        self.finished_runs.append(container)


class FailingSink(ResultReporter):
    def run_finished(self, container):
        raise OSError("disk full")


def record(number, name, duration, preparation=1.0):
    return TimingRecord(number, name, preparation, duration, "{}", "PERMIT")


class TestRunContainer:
    """Test the run-scoped accumulator."""

    def make_container(self):
        return RunContainer(IndexType.IMPROVED, reuse_existing_policies=False, iterations=1, runs=2)

    def test_run_id(self):
        container = self.make_container()
        assert container.run_id.endswith("_IMPROVED")

    def test_run_id_has_sub_second_precision(self):
        started_at = datetime(2024, 5, 6, 7, 8, 9, 123456)
        container = RunContainer(IndexType.FAST, reuse_existing_policies=True, iterations=1, runs=1,
                                 started_at=started_at)

        assert container.run_id == "20240506_070809_123456_FAST"

    def test_parallel_lists_stay_aligned(self):
        container = self.make_container()
        container.add_configuration("a", [record(0, "a", 1.0), record(1, "a", 3.0)],
                                    AggregateStats.from_samples([1.0, 3.0]))
        container.add_configuration("b", [record(0, "b", 5.0)], AggregateStats.from_samples([5.0]))

        assert container.identifiers == ("a", "b")
        assert container.min_values == (1.0, 5.0)
        assert container.max_values == (3.0, 5.0)
        assert container.avg_values == (2.0, 5.0)
        assert container.mdn_values == (2.0, 5.0)
        assert len(container.data) == 3

    def test_duplicate_configuration_rejected(self):
        container = self.make_container()
        container.add_configuration("a", [record(0, "a", 1.0)], AggregateStats.from_samples([1.0]))

        with pytest.raises(ValueError):
            container.add_configuration("a", [record(0, "a", 1.0)], AggregateStats.from_samples([1.0]))
        assert len(container.identifiers) == len(container.min_values) == 1

    def test_views_are_read_only(self):
        container = self.make_container()
        assert isinstance(container.identifiers, tuple)
        assert isinstance(container.data, tuple)
        assert isinstance(container.aggregate_data, tuple)

    def test_build_aggregate_data_is_idempotent(self):
        container = self.make_container()
        container.add_configuration("a", [record(0, "a", 1.0)], AggregateStats.from_samples([1.0]))
        container.add_configuration("b", [record(0, "b", 2.0)], AggregateStats.from_samples([2.0]))

        first = container.build_aggregate_data()
        second = container.build_aggregate_data()

        assert first == second
        assert first == (
            AggregateRecord("a", 1.0, 1.0, 1.0, 1.0),
            AggregateRecord("b", 2.0, 2.0, 2.0, 2.0),
        )

    def test_execution_series(self):
        container = self.make_container()
        container.add_configuration("a", [record(0, "a", 1.0), record(1, "a", 2.0)],
                                    AggregateStats.from_samples([1.0, 2.0]))

        assert container.execution_series() == {"a": [1.0, 2.0]}

    def test_to_dict(self):
        container = self.make_container()
        container.add_configuration("a", [record(0, "a", 1.0)], AggregateStats.from_samples([1.0]))
        container.build_aggregate_data()

        data = container.to_dict()
        assert data["identifiers"] == ["a"]
        assert data["aggregates"] == [{"name": "a", "min": 1.0, "max": 1.0, "avg": 1.0, "mdn": 1.0}]
        assert data["data"][0]["duration_ms"] == 1.0


class TestBenchmarkRunner:
    """Test BenchmarkRunner.run_all."""

    def test_identifiers_follow_configuration_order(self, make_runner):
        runner = make_runner(StubEngineGateway())

        container = runner.run_all(make_configs("A", "B", "C"))

        assert container.identifiers == ("A", "B", "C")
        assert len(container.min_values) == len(container.max_values) == 3
        assert len(container.avg_values) == len(container.mdn_values) == 3
        assert [a.name for a in container.aggregate_data] == ["A", "B", "C"]
        assert len(container.data) == 3 * 2 * 3

    def test_aggregates_match_records(self, make_runner):
        container = make_runner(StubEngineGateway()).run_all(make_configs("A", "B"))

        for i, name in enumerate(container.identifiers):
            durations = [r.duration_ms for r in container.data if r.name == name]
            assert container.min_values[i] == min(durations)
            assert container.max_values[i] == max(durations)

    def test_construct_failure_aborts_run(self, make_runner):
        sink = RecordingSink()
        runner = make_runner(StubEngineGateway(fail_construct_for={"B"}), sinks=[sink])

        with pytest.raises(EngineConstructionError) as excinfo:
            runner.run_all(make_configs("A", "B", "C"))

        assert excinfo.value.configuration == "B"
        assert sink.finished_configurations == [("A", 6)]
        assert sink.finished_runs == []

    def test_empty_configurations_rejected(self, make_runner):
        with pytest.raises(PreconditionError):
            make_runner(StubEngineGateway()).run_all([])

    def test_sinks_notified(self, make_runner):
        sink = RecordingSink()
        container = make_runner(StubEngineGateway(), sinks=[sink]).run_all(make_configs("A", "B"))

        assert sink.finished_configurations == [("A", 6), ("B", 6)]
        assert sink.finished_runs == [container]
        assert container.finished_at is not None

    def test_sink_failure_reported_after_measurement(self, make_runner):
        recording = RecordingSink()
        runner = make_runner(StubEngineGateway(), sinks=[FailingSink(), recording])

        with pytest.raises(ExportError) as excinfo:
            runner.run_all(make_configs("A"))

        assert len(recording.finished_runs) == 1
        assert len(recording.finished_runs[0].aggregate_data) == 1
        assert "disk full" in excinfo.value.details["failures"][0]

    def test_progress_callback(self, make_runner):
        progress = []
        runner = make_runner(StubEngineGateway())
        runner.progress_callback = lambda current, total: progress.append((current, total))

        runner.run_all(make_configs("A", "B"))

        assert progress == [(1, 2), (2, 2)]

    def test_structurally_identical_reruns(self, make_runner):
        configs = make_configs("A", "B")
        first = make_runner(StubEngineGateway()).run_all(configs)
        second = make_runner(StubEngineGateway()).run_all(configs)

        assert first.identifiers == second.identifiers
        assert [(r.number, r.name, r.request, r.response) for r in first.data] == \
               [(r.number, r.name, r.request, r.response) for r in second.data]

    def test_end_to_end_fixed_delays(self, make_runner):
        gateway = StubEngineGateway(construct_delay_ms=2.0, decide_delay_ms=5.0)
        runner = make_runner(gateway, iterations=1, runs=2)

        container = runner.run_all([PolicyGeneratorConfiguration(name="X", policy_count=1)])

        assert len(container.aggregate_data) == 1
        aggregate = container.aggregate_data[0]
        assert aggregate.name == "X"
        for value in (aggregate.min, aggregate.max, aggregate.avg, aggregate.mdn):
            assert 4.9 <= value < 50.0
        assert len(container.data) == 2
        for timing in container.data:
            assert 1.9 <= timing.preparation_ms < 50.0

    def test_back_to_back_runs_get_distinct_ids(self, make_runner):
        first = make_runner(StubEngineGateway(), iterations=1, runs=1).run_all(make_configs("A"))
        second = make_runner(StubEngineGateway(), iterations=1, runs=1).run_all(make_configs("A"))

        assert first.run_id != second.run_id

    @pytest.mark.parametrize("names", [
        ("A", "B", "A"),
        ("case-1", "case 1"),
    ])
    def test_colliding_configurations_rejected_before_measurement(self, make_runner, workspace, names):
        gateway = StubEngineGateway()
        sink = RecordingSink()

        with pytest.raises(PreconditionError) as excinfo:
            make_runner(gateway, sinks=[sink]).run_all(make_configs(*names))

        assert excinfo.value.exit_code == 2
        assert excinfo.value.phase == "startup"
        assert excinfo.value.configuration == names[-1]
        assert gateway.constructed == 0
        assert gateway.decide_calls == 0
        assert sink.finished_configurations == []
        assert not (workspace / "A").exists()

    def test_reuse_existing_policies(self, make_runner, workspace):
        make_runner(StubEngineGateway(), reuse=False).run_all(make_configs("A"))
        container = make_runner(StubEngineGateway(), reuse=True).run_all(make_configs("A"))

        assert container.reuse_existing_policies is True
        assert container.identifiers == ("A",)


class TestBenchmarkConfig:
    """Test process-level configuration."""

    def test_defaults(self, monkeypatch):
        for name in ("PDP_BENCH_OUTPUT_DIR", "PDP_BENCH_REUSE", "PDP_BENCH_INDEX", "PDP_BENCH_ITERATIONS",
                     "PDP_BENCH_RUNS", "PDP_BENCH_TEST_FILE", "PDP_BENCH_SUITE", "PDP_BENCH_SEED", "DATABASE_URL"):
            monkeypatch.delenv(name, raising=False)

        config = BenchmarkConfig.from_env()

        assert config.output_dir == Path("results")
        assert config.reuse_existing_policies is True
        assert config.index_type is IndexType.FAST
        assert config.iterations == 10
        assert config.runs == 30
        assert config.database_url is None
        assert config.seed is None

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PDP_BENCH_OUTPUT_DIR", str(tmp_path))
        monkeypatch.setenv("PDP_BENCH_REUSE", "false")
        monkeypatch.setenv("PDP_BENCH_INDEX", "improved")
        monkeypatch.setenv("PDP_BENCH_ITERATIONS", "3")
        monkeypatch.setenv("PDP_BENCH_RUNS", "7")
        monkeypatch.setenv("PDP_BENCH_SEED", "42")

        config = BenchmarkConfig.from_env()

        assert config.output_dir == tmp_path
        assert config.reuse_existing_policies is False
        assert config.index_type is IndexType.IMPROVED
        assert (config.iterations, config.runs) == (3, 7)
        assert config.seed == 42
        assert config.to_dict()["index_type"] == "IMPROVED"

    @pytest.mark.parametrize("name,value", [
        ("PDP_BENCH_REUSE", "maybe"),
        ("PDP_BENCH_INDEX", "btree"),
        ("PDP_BENCH_RUNS", "many"),
        ("PDP_BENCH_SEED", "random"),
    ])
    def test_invalid_env(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)
        with pytest.raises(PreconditionError):
            BenchmarkConfig.from_env()

    @pytest.mark.parametrize("kwargs", [
        {"iterations": 0},
        {"runs": 0},
        {"test_file": Path("/does/not/exist.json")},
    ])
    def test_validate(self, kwargs):
        with pytest.raises(PreconditionError):
            BenchmarkConfig(**kwargs).validate()
