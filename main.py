#!/usr/bin/env python3
"""
PDP Latency Lab - Main entry point for running decision engine benchmarks.

Usage:
    python main.py [options]

Each test case of the selected suite gets its own generated policy set.
The engine is rebuilt for every outer iteration (--iterations) and then
answers --runs authorization requests; every decision is timed.
Results land in <path>/<timestamp>_<INDEX>/.
"""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Add pdp-latency-lab to path for package imports
sys.path.insert(0, str(Path(__file__).parent / "pdp-latency-lab"))

logger = logging.getLogger("pdp_latency_lab")


def parse_bool(value: str) -> bool:
    """Parse the --reuse option (true / false, case-insensitive)."""
    normalized = value.strip().upper()
    if normalized == "TRUE":
        return True
    if normalized == "FALSE":
        return False
    raise argparse.ArgumentTypeError("invalid policy reuse option provided (expected true or false)")


def parse_index(value: str):
    from engine import IndexType

    try:
        return IndexType.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PDP Latency Lab - Benchmark policy decision point latency",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py --suite smoke --reuse false
    python main.py --index IMPROVED --iterations 5 --runs 100
    python main.py --test tests.json --path /tmp/pdp-bench --no-db
    python main.py --list-suites
        """,
    )

    parser.add_argument(
        "--path", "--output-dir",
        dest="output_dir",
        type=Path,
        default=None,
        help="Path for generated policies and output files (default: results/)",
    )
    parser.add_argument(
        "--reuse",
        type=parse_bool,
        default=None,
        help="Reuse existing policies (true, false; default: true)",
    )
    parser.add_argument(
        "--index",
        type=parse_index,
        default=None,
        help="Index type used (SIMPLE, FAST, IMPROVED; default: FAST)",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Engine constructions per test case (default: 10)",
    )
    parser.add_argument(
        "--runs",
        type=int,
        default=None,
        help="Decisions per engine construction (default: 30)",
    )
    parser.add_argument(
        "--test",
        dest="test_file",
        type=Path,
        default=None,
        help="JSON file containing test definition",
    )
    parser.add_argument(
        "--suite",
        default=None,
        help="Predefined suite to run when no --test file is given (default: default)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the generation seed of every test case (default: $PDP_BENCH_SEED)",
    )
    parser.add_argument(
        "--engine",
        choices=["filesystem", "stub"],
        default="filesystem",
        help="Decision engine to benchmark (default: filesystem)",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL for result rows (default: $DATABASE_URL or <path>/benchmark.db)",
    )
    parser.add_argument(
        "--no-db",
        action="store_true",
        help="Do not persist aggregate rows",
    )
    parser.add_argument(
        "--no-charts",
        action="store_true",
        help="Do not render charts",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Export OpenTelemetry spans to the console",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress console progress and summary table",
    )
    parser.add_argument(
        "--list-suites",
        action="store_true",
        help="List predefined suites and exit",
    )
    return parser


def build_config(args: argparse.Namespace):
    """Environment defaults overridden by command line options."""
    from harness import BenchmarkConfig

    config = BenchmarkConfig.from_env()
    if args.output_dir is not None:
        config.output_dir = args.output_dir
    if args.reuse is not None:
        config.reuse_existing_policies = args.reuse
    if args.index is not None:
        config.index_type = args.index
    if args.iterations is not None:
        config.iterations = args.iterations
    if args.runs is not None:
        config.runs = args.runs
    if args.test_file is not None:
        config.test_file = args.test_file
    if args.suite is not None:
        config.suite = args.suite
    if args.seed is not None:
        config.seed = args.seed
    if args.database_url is not None:
        config.database_url = args.database_url
    if args.no_db:
        config.persist = False
    if args.no_charts:
        config.charts = False
    if args.trace:
        config.tracing = True
    return config.validate()


def load_cases(config):
    """Resolve the run's test cases; any problem is a precondition violation."""
    from pydantic import ValidationError

    from harness import PreconditionError
    from scenarios import resolve_suite

    try:
        suite = resolve_suite(config.test_file, config.suite)
    except (OSError, ValueError, ValidationError) as e:
        raise PreconditionError(f"Error reading test configuration: {e}", phase="startup") from e

    cases = list(suite.cases)
    if config.seed is not None:
        cases = [case.model_copy(update={"seed": config.seed}) for case in cases]
    logger.info("suite %s contains %d test cases", suite.name, len(cases))
    return cases


def prepare_workspace(config) -> None:
    """Create the output directory and the shared engine configuration."""
    from engine import ENGINE_CONFIG_FILE
    from harness import PreconditionError
    from scenarios import write_engine_config

    try:
        config.output_dir.mkdir(parents=True, exist_ok=True)
        if not config.reuse_existing_policies and not (config.output_dir / ENGINE_CONFIG_FILE).exists():
            path = write_engine_config(config.output_dir)
            logger.info("wrote default engine configuration to %s", path)
    except OSError as e:
        raise PreconditionError(f"cannot prepare output directory {config.output_dir}: {e}", phase="startup") from e


def build_sinks(config, quiet: bool) -> list:
    from harness import (
        ChartReporter,
        ConsoleReporter,
        DatabaseReporter,
        JSONReporter,
        SpreadsheetReporter,
    )
    from persistence import default_database_url

    sinks = []
    if not quiet:
        sinks.append(ConsoleReporter(use_color=sys.stdout.isatty()))
    if config.charts:
        sinks.append(ChartReporter(config.output_dir))
    sinks.append(SpreadsheetReporter(config.output_dir))
    sinks.append(JSONReporter(config.output_dir))
    if config.persist:
        sinks.append(DatabaseReporter(config.database_url or default_database_url(config.output_dir)))
    return sinks


def run_benchmark(args: argparse.Namespace) -> None:
    """Run one benchmark; raises BenchmarkError on any failure."""
    from engine import FilesystemEngineGateway, StubEngineGateway
    from harness import BenchmarkRunner
    from instrumentation import TracingConfig, init_tracing, shutdown_tracing

    config = build_config(args)
    logger.info(
        "index=%s, reuse=%s, testfile=%s, path=%s",
        config.index_type.value, config.reuse_existing_policies, config.test_file, config.output_dir,
    )

    cases = load_cases(config)
    prepare_workspace(config)

    gateway = StubEngineGateway() if args.engine == "stub" else FilesystemEngineGateway()
    tracer = init_tracing(TracingConfig(enable_console_export=True)) if config.tracing else None

    runner = BenchmarkRunner.from_config(
        config,
        gateway=gateway,
        sinks=build_sinks(config, args.quiet),
        tracer=tracer,
        verbose=not args.quiet,
    )
    try:
        container = runner.run_all(cases)
    finally:
        if tracer is not None:
            shutdown_tracing()

    logger.info("results written to %s", config.output_dir / container.run_id)


def list_suites() -> None:
    from scenarios import ALL_SUITES

    for name, suite in ALL_SUITES.items():
        print(f"{name}: {len(suite.cases)} test cases")
        for case in suite.cases:
            print(f"  - {case.name} (policies={case.policy_count}, variables={case.variable_pool_count})")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.list_suites:
        list_suites()
        return 0

    from harness import BenchmarkError

    logger.info("command line runner started")
    try:
        run_benchmark(args)
    except KeyboardInterrupt:
        print("\nBenchmark interrupted by user")
        return 1
    except BenchmarkError as e:
        logger.error("encountered an error running the benchmark: %s", e)
        for failure in e.details.get("failures", []):
            logger.error("  %s", failure)
        return e.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
