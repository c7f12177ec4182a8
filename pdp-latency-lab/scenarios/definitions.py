"""
Benchmark test-case definitions.

A test case describes one generated workload: how many policies to write,
how large the attribute pool is and how targets are shaped. Suites are
ordered lists of test cases; evaluation order is list order.

Predefined suites:
1. smoke   - two tiny cases, seconds to run
2. default - policy count x variable pool matrix
3. scaling - growing policy sets over a fixed pool
"""

import json
import re
from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


def sanitize_name(name: str) -> str:
    """Strip every non-alphanumeric character from a test-case name."""
    return _NON_ALPHANUMERIC.sub("", name)


class PolicyGeneratorConfiguration(BaseModel):
    """Definition of one benchmark configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1, description="Unique test-case name")
    seed: int = Field(default=0, description="Seed for policy and request generation")
    policy_count: int = Field(default=10, ge=1, description="Number of policies to generate")
    variable_pool_count: int = Field(default=10, ge=1, description="Number of distinct resource attributes")
    logical_variable_count: int = Field(default=3, ge=1, description="Literals per policy target")
    negation_probability: float = Field(default=0.3, ge=0.0, le=1.0)
    disjunction_probability: float = Field(default=0.2, ge=0.0, le=1.0)
    false_probability: float = Field(default=0.5, ge=0.0, le=1.0)
    permit_probability: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("name")
    @classmethod
    def name_has_namespace(cls, value: str) -> str:
        if not sanitize_name(value):
            raise ValueError("name must contain at least one alphanumeric character")
        return value

    @property
    def namespace(self) -> str:
        """Directory name the configuration's policies live under."""
        return sanitize_name(self.name)


class TestSuite(BaseModel):
    """Ordered, non-empty list of test cases."""

    __test__ = False  # not a pytest class

    model_config = ConfigDict(frozen=True)

    name: str = "custom"
    cases: list[PolicyGeneratorConfiguration] = Field(min_length=1)

    @field_validator("cases")
    @classmethod
    def unique_namespaces(cls, cases: list[PolicyGeneratorConfiguration]) -> list[PolicyGeneratorConfiguration]:
        seen: dict[str, str] = {}
        for case in cases:
            if case.namespace in seen:
                raise ValueError(
                    f"test cases {seen[case.namespace]!r} and {case.name!r} map to the same namespace"
                )
            seen[case.namespace] = case.name
        return cases

    def names(self) -> list[str]:
        return [case.name for case in self.cases]


def generate_suite(
    policy_counts: Iterable[int],
    variable_counts: Iterable[int],
    seed: int = 0,
    name: str = "generated",
    **overrides,
) -> TestSuite:
    """Build the policy-count x variable-pool matrix of test cases."""
    variable_counts = list(variable_counts)
    cases = []
    for policies in policy_counts:
        for variables in variable_counts:
            cases.append(
                PolicyGeneratorConfiguration(
                    name=f"{policies} policies, {variables} variables",
                    seed=seed,
                    policy_count=policies,
                    variable_pool_count=variables,
                    logical_variable_count=min(3, variables),
                    **overrides,
                )
            )
    return TestSuite(name=name, cases=cases)


SMOKE_SUITE = TestSuite(
    name="smoke",
    cases=[
        PolicyGeneratorConfiguration(name="smoke-small", policy_count=5, variable_pool_count=5, logical_variable_count=2),
        PolicyGeneratorConfiguration(name="smoke-medium", policy_count=25, variable_pool_count=10),
    ],
)

DEFAULT_SUITE = generate_suite(
    policy_counts=[10, 50, 100, 200],
    variable_counts=[10, 50],
    name="default",
)

SCALING_SUITE = generate_suite(
    policy_counts=[100, 250, 500, 1000, 2000],
    variable_counts=[100],
    name="scaling",
)

ALL_SUITES = {
    suite.name: suite
    for suite in (SMOKE_SUITE, DEFAULT_SUITE, SCALING_SUITE)
}


def get_suite(name: str) -> TestSuite:
    """Get a predefined suite by name."""
    try:
        return ALL_SUITES[name]
    except KeyError:
        raise ValueError(f"Unknown suite: {name} (available: {', '.join(list_suites())})") from None


def list_suites() -> list[str]:
    """List predefined suite names."""
    return list(ALL_SUITES.keys())


def load_suite(path: Path) -> TestSuite:
    """Load a suite from a JSON test definition file.

    Accepts either {"name": ..., "cases": [...]} or a bare list of cases.
    """
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, list):
        data = {"name": Path(path).stem, "cases": data}
    return TestSuite.model_validate(data)


def resolve_suite(test_file: Optional[Path] = None, suite_name: str = "default") -> TestSuite:
    """Pick the suite for a run: an explicit test file wins over a named suite."""
    if test_file is not None:
        return load_suite(test_file)
    return get_suite(suite_name)
