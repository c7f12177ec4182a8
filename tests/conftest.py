"""Shared fixtures for the PDP latency lab tests."""

import pytest

from engine import IndexType, StubEngineGateway
from harness import BenchmarkRunner, WorkloadDriver
from scenarios import PolicyGeneratorConfiguration, write_engine_config


@pytest.fixture
def workspace(tmp_path):
    """Output directory holding the shared engine configuration."""
    write_engine_config(tmp_path)
    return tmp_path


@pytest.fixture
def small_config():
    return PolicyGeneratorConfiguration(
        name="small test-case",
        seed=7,
        policy_count=4,
        variable_pool_count=5,
        logical_variable_count=2,
    )


@pytest.fixture
def stub_gateway():
    return StubEngineGateway()


@pytest.fixture
def driver(stub_gateway, workspace):
    return WorkloadDriver(stub_gateway, workspace, index_type=IndexType.FAST)


@pytest.fixture
def make_runner(workspace):
    def factory(gateway, iterations=2, runs=3, reuse=False, sinks=None, index_type=IndexType.FAST):
        return BenchmarkRunner(
            gateway=gateway,
            workspace=workspace,
            index_type=index_type,
            iterations=iterations,
            runs=runs,
            reuse_existing_policies=reuse,
            sinks=sinks,
        )
    return factory
