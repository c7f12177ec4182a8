"""
Unit tests for tracing integration.
"""

import pytest
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from engine import StubEngineGateway
from harness import BenchmarkRunner, EngineConstructionError
from instrumentation import Tracer, TracingConfig, get_tracer, init_tracing, shutdown_tracing
from scenarios import PolicyGeneratorConfiguration


@pytest.fixture
def exporter():
    return InMemorySpanExporter()


@pytest.fixture
def tracer(exporter):
    tracer = Tracer(TracingConfig(service_name="test"))
    tracer.add_span_processor(SimpleSpanProcessor(exporter))
    yield tracer
    tracer.shutdown()


class TestTracer:
    """Test the tracer wrapper."""

    def test_span_attributes(self, tracer, exporter):
        with tracer.span("work", {"benchmark.configuration": "a"}):
            pass

        spans = exporter.get_finished_spans()
        assert [s.name for s in spans] == ["work"]
        assert spans[0].attributes["benchmark.configuration"] == "a"

    def test_span_records_errors(self, tracer, exporter):
        with pytest.raises(RuntimeError):
            with tracer.span("broken"):
                raise RuntimeError("boom")

        span = exporter.get_finished_spans()[0]
        assert not span.status.is_ok
        assert span.events[0].name == "exception"

    def test_global_tracer_lifecycle(self):
        tracer = init_tracing(TracingConfig(service_name="global"))
        try:
            assert tracer.initialized
            assert get_tracer() is tracer
        finally:
            shutdown_tracing()
        assert get_tracer() is not tracer
        shutdown_tracing()


class TestRunnerSpans:
    """Test spans emitted around configurations and engine constructions."""

    def test_configuration_and_iteration_spans(self, tracer, exporter, workspace):
        runner = BenchmarkRunner(StubEngineGateway(), workspace, iterations=2, runs=1,
                                 reuse_existing_policies=False, tracer=tracer)

        runner.run_all([PolicyGeneratorConfiguration(name="traced", policy_count=2)])

        names = [s.name for s in exporter.get_finished_spans()]
        assert names.count("outer_iteration") == 2
        assert names.count("configuration") == 1

    def test_failed_configuration_span(self, tracer, exporter, workspace):
        runner = BenchmarkRunner(StubEngineGateway(fail_construct_for={"traced"}), workspace,
                                 iterations=1, runs=1, reuse_existing_policies=False, tracer=tracer)

        with pytest.raises(EngineConstructionError):
            runner.run_all([PolicyGeneratorConfiguration(name="traced", policy_count=2)])

        configuration = [s for s in exporter.get_finished_spans() if s.name == "configuration"][0]
        assert not configuration.status.is_ok
