"""
Unit tests for the workload driver.
"""

import json

import pytest

from engine import ENGINE_CONFIG_FILE, POLICY_SUFFIX, FilesystemEngineGateway, IndexType, StubEngineGateway
from harness import (
    BenchmarkError,
    BenchmarkRunner,
    DecisionEvaluationError,
    EngineConstructionError,
    NamespacePreparationError,
    WorkloadDriver,
)


class TestNamespacePreparation:
    """Test policy materialization into per-configuration namespaces."""

    def test_fresh_namespace(self, driver, workspace, small_config):
        driver.run_workload(small_config, iterations=1, runs=1, reuse_existing=False)

        namespace = workspace / "smalltestcase"
        assert (namespace / ENGINE_CONFIG_FILE).read_text() == (workspace / ENGINE_CONFIG_FILE).read_text()
        assert len(list(namespace.glob(f"*{POLICY_SUFFIX}"))) == small_config.policy_count

    def test_missing_shared_config_is_fatal(self, tmp_path, small_config):
        driver = WorkloadDriver(StubEngineGateway(), tmp_path)

        with pytest.raises(NamespacePreparationError) as excinfo:
            driver.run_workload(small_config, iterations=1, runs=1, reuse_existing=False)

        assert excinfo.value.configuration == small_config.name
        assert excinfo.value.phase == "prepare"

    def test_reuse_requires_existing_namespace(self, driver, small_config):
        with pytest.raises(NamespacePreparationError, match="does not exist"):
            driver.run_workload(small_config, iterations=1, runs=1, reuse_existing=True)

    def test_reuse_does_not_regenerate(self, driver, workspace, small_config, stub_gateway):
        namespace = workspace / small_config.namespace
        namespace.mkdir()

        records = driver.run_workload(small_config, iterations=1, runs=2, reuse_existing=True)

        assert len(records) == 2
        assert list(namespace.iterdir()) == []


class TestMeasurementLoop:
    """Test the outer/inner repetition loop."""

    def test_sequence_and_preparation(self, workspace, small_config):
        gateway = StubEngineGateway(construct_delay_ms=1.0)
        driver = WorkloadDriver(gateway, workspace)

        records = driver.run_workload(small_config, iterations=2, runs=3, reuse_existing=False)

        assert len(records) == 6
        assert [r.number for r in records] == [0, 1, 2, 3, 4, 5]
        assert len({r.preparation_ms for r in records[:3]}) == 1
        assert len({r.preparation_ms for r in records[3:]}) == 1
        assert all(r.name == small_config.name for r in records)

    def test_engine_rebuilt_per_iteration(self, driver, stub_gateway, small_config):
        driver.run_workload(small_config, iterations=3, runs=2, reuse_existing=False)

        assert stub_gateway.constructed == 3
        assert stub_gateway.disposed == 3
        assert stub_gateway.decide_calls == 6
        assert stub_gateway.index_types == [IndexType.FAST] * 3

    def test_request_and_response_are_serialized(self, driver, small_config):
        record = driver.run_workload(small_config, iterations=1, runs=1, reuse_existing=False)[0]

        assert json.loads(record.request)["action"]
        assert record.response == "PERMIT"

    def test_requests_are_deterministic(self, workspace, small_config):
        first = WorkloadDriver(StubEngineGateway(), workspace).run_workload(small_config, 2, 2, False)
        second = WorkloadDriver(StubEngineGateway(), workspace).run_workload(small_config, 2, 2, False)

        assert [r.request for r in first] == [r.request for r in second]

    def test_filesystem_engine(self, workspace, small_config):
        driver = WorkloadDriver(FilesystemEngineGateway(), workspace, index_type=IndexType.IMPROVED)

        records = driver.run_workload(small_config, iterations=2, runs=5, reuse_existing=False)

        assert len(records) == 10
        assert all(r.response in ("PERMIT", "DENY") for r in records)
        assert all(r.duration_ms >= 0.0 and r.preparation_ms >= 0.0 for r in records)


class TestFailures:
    """Test failure propagation out of the driver."""

    def test_construct_failure(self, workspace, small_config):
        gateway = StubEngineGateway(fail_construct_for={small_config.namespace})
        driver = WorkloadDriver(gateway, workspace)

        with pytest.raises(EngineConstructionError) as excinfo:
            driver.run_workload(small_config, iterations=1, runs=1, reuse_existing=False)

        assert excinfo.value.configuration == small_config.name
        assert excinfo.value.phase == "construct"

    def test_decide_failure_disposes_engine(self, workspace, small_config):
        gateway = StubEngineGateway(fail_decide_for={small_config.namespace})
        driver = WorkloadDriver(gateway, workspace)

        with pytest.raises(DecisionEvaluationError) as excinfo:
            driver.run_workload(small_config, iterations=2, runs=3, reuse_existing=False)

        assert excinfo.value.phase == "decide"
        assert excinfo.value.details == {"iteration": 0, "run": 0}
        assert gateway.constructed == 1
        assert gateway.disposed == 1

    def test_null_decision_is_fatal(self, workspace, small_config):
        gateway = StubEngineGateway(return_none=True)
        driver = WorkloadDriver(gateway, workspace)

        with pytest.raises(DecisionEvaluationError, match="no decision"):
            driver.run_workload(small_config, iterations=1, runs=2, reuse_existing=False)

        assert gateway.disposed == 1

    def test_error_message_names_configuration(self, workspace, small_config):
        gateway = StubEngineGateway(return_none=True)
        driver = WorkloadDriver(gateway, workspace)

        with pytest.raises(DecisionEvaluationError) as excinfo:
            driver.run_workload(small_config, iterations=1, runs=1, reuse_existing=False)

        assert small_config.name in str(excinfo.value)
        assert excinfo.value.to_dict()["error"] == "DecisionEvaluationError"


class UnreachableAttributeStore(StubEngineGateway):
    """Gateway whose engines fail to load attributes on every decision."""

    def construct(self, namespace, index_type):
        handle = super().construct(namespace, index_type)

        def decide(request):
            raise OSError("attribute store unreachable")

        handle.decide = decide
        return handle


class TestAttributeLoadingFailures:
    """Test I/O failures raised while the engine loads attributes."""

    def test_io_error_during_decide_is_translated(self, workspace, small_config):
        gateway = UnreachableAttributeStore()
        driver = WorkloadDriver(gateway, workspace)

        with pytest.raises(DecisionEvaluationError, match="attribute store unreachable") as excinfo:
            driver.run_workload(small_config, iterations=1, runs=2, reuse_existing=False)

        assert excinfo.value.configuration == small_config.name
        assert excinfo.value.phase == "decide"
        assert isinstance(excinfo.value.__cause__, OSError)
        assert gateway.disposed == 1

    def test_io_error_aborts_run_as_benchmark_error(self, workspace, small_config):
        runner = BenchmarkRunner(UnreachableAttributeStore(), workspace, iterations=1, runs=1,
                                 reuse_existing_policies=False)

        with pytest.raises(BenchmarkError) as excinfo:
            runner.run_all([small_config])

        assert excinfo.value.exit_code == 1
