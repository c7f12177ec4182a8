"""
Test-case definitions and workload generation for PDP benchmarking.
"""

from .definitions import (
    PolicyGeneratorConfiguration,
    TestSuite,
    ALL_SUITES,
    SMOKE_SUITE,
    DEFAULT_SUITE,
    SCALING_SUITE,
    generate_suite,
    get_suite,
    list_suites,
    load_suite,
    resolve_suite,
    sanitize_name,
)

from .generator import (
    PolicyGenerator,
    write_engine_config,
)

__all__ = [
    "PolicyGeneratorConfiguration",
    "TestSuite",
    "ALL_SUITES",
    "SMOKE_SUITE",
    "DEFAULT_SUITE",
    "SCALING_SUITE",
    "generate_suite",
    "get_suite",
    "list_suites",
    "load_suite",
    "resolve_suite",
    "sanitize_name",
    "PolicyGenerator",
    "write_engine_config",
]
