"""Embedded reference engine reading policies from a namespace directory.

A namespace holds one `pdp.json` (combining algorithm) and any number of
`*.policy.json` documents. Policy targets are in disjunctive normal form:
a list of conjunctions, each a list of boolean literals over resource
attributes. The index type only changes how applicable policies are found,
never which ones.
"""

import json
import logging
from pathlib import Path
from typing import Optional

from .protocol import (
    AttributeResolutionError,
    AuthorizationRequest,
    Decision,
    EngineConfigurationError,
    IndexType,
)

logger = logging.getLogger(__name__)

ENGINE_CONFIG_FILE = "pdp.json"
POLICY_SUFFIX = ".policy.json"

COMBINING_ALGORITHMS = (
    "DENY_OVERRIDES",
    "PERMIT_OVERRIDES",
    "DENY_UNLESS_PERMIT",
    "PERMIT_UNLESS_DENY",
)

# (variable, negated)
Literal = tuple[str, bool]


class Policy:
    """A loaded policy document."""

    def __init__(self, name: str, entitlement: Decision, target: list[list[Literal]]):
        self.name = name
        self.entitlement = entitlement
        self.target = target

    @property
    def variables(self) -> set[str]:
        return {variable for conjunction in self.target for variable, _ in conjunction}

    @classmethod
    def from_dict(cls, data: dict, source: str = "<policy>") -> "Policy":
        try:
            entitlement = Decision(str(data["entitlement"]).upper())
            if entitlement not in (Decision.PERMIT, Decision.DENY):
                raise ValueError(f"entitlement must be PERMIT or DENY, got {entitlement.value}")
            target = [
                [(str(literal["variable"]), bool(literal.get("negated", False))) for literal in conjunction]
                for conjunction in data.get("target", [])
            ]
            return cls(name=str(data["name"]), entitlement=entitlement, target=target)
        except (KeyError, TypeError, ValueError) as e:
            raise EngineConfigurationError(f"malformed policy {source}: {e}") from e


def combine(algorithm: str, entitlements: list[Decision]) -> Decision:
    """Apply a combining algorithm to the entitlements of applicable policies."""
    has_permit = Decision.PERMIT in entitlements
    has_deny = Decision.DENY in entitlements

    if algorithm == "DENY_OVERRIDES":
        if has_deny:
            return Decision.DENY
        return Decision.PERMIT if has_permit else Decision.NOT_APPLICABLE
    if algorithm == "PERMIT_OVERRIDES":
        if has_permit:
            return Decision.PERMIT
        return Decision.DENY if has_deny else Decision.NOT_APPLICABLE
    if algorithm == "DENY_UNLESS_PERMIT":
        return Decision.PERMIT if has_permit else Decision.DENY
    if algorithm == "PERMIT_UNLESS_DENY":
        return Decision.DENY if has_deny else Decision.PERMIT
    return Decision.INDETERMINATE


class SimpleIndex:
    """Linear scan over every literal of every policy."""

    def __init__(self, policies: list[Policy]):
        self.policies = policies

    def applicable(self, attributes: dict[str, bool]) -> list[Policy]:
        matches = []
        for policy in self.policies:
            if not policy.target:
                matches.append(policy)
                continue
            for conjunction in policy.target:
                if all(_resolve(attributes, variable) != negated for variable, negated in conjunction):
                    matches.append(policy)
                    break
        return matches


class FastIndex:
    """Conjunctions pre-compiled into required-true / required-false sets."""

    def __init__(self, policies: list[Policy]):
        self.policies = policies
        self.variables = set().union(*(p.variables for p in policies)) if policies else set()
        self._compiled: list[tuple[Policy, list[tuple[frozenset, frozenset]]]] = []
        for policy in policies:
            conjunctions = [
                (
                    frozenset(v for v, negated in conjunction if not negated),
                    frozenset(v for v, negated in conjunction if negated),
                )
                for conjunction in policy.target
            ]
            self._compiled.append((policy, conjunctions))

    def applicable(self, attributes: dict[str, bool]) -> list[Policy]:
        true_vars = {v for v in self.variables if _resolve(attributes, v)}
        matches = []
        for policy, conjunctions in self._compiled:
            if not conjunctions:
                matches.append(policy)
                continue
            for required_true, required_false in conjunctions:
                if required_true <= true_vars and required_false.isdisjoint(true_vars):
                    matches.append(policy)
                    break
        return matches


class ImprovedIndex:
    """Inverted variable index with satisfied-literal counting."""

    def __init__(self, policies: list[Policy]):
        self.policies = policies
        self._always: list[int] = []
        self._owner: list[int] = []
        self._sizes: list[int] = []
        self._postings: dict[str, list[tuple[int, bool]]] = {}

        for policy_id, policy in enumerate(policies):
            if not policy.target:
                self._always.append(policy_id)
                continue
            for conjunction in policy.target:
                conjunction_id = len(self._owner)
                self._owner.append(policy_id)
                self._sizes.append(len(conjunction))
                for variable, negated in conjunction:
                    self._postings.setdefault(variable, []).append((conjunction_id, negated))

    def applicable(self, attributes: dict[str, bool]) -> list[Policy]:
        satisfied = [0] * len(self._owner)
        for variable, postings in self._postings.items():
            value = _resolve(attributes, variable)
            for conjunction_id, negated in postings:
                if value != negated:
                    satisfied[conjunction_id] += 1

        matched = set(self._always)
        for conjunction_id, count in enumerate(satisfied):
            if count == self._sizes[conjunction_id]:
                matched.add(self._owner[conjunction_id])
        return [self.policies[i] for i in sorted(matched)]


INDEX_IMPLEMENTATIONS = {
    IndexType.SIMPLE: SimpleIndex,
    IndexType.FAST: FastIndex,
    IndexType.IMPROVED: ImprovedIndex,
}


def _resolve(attributes: dict[str, bool], variable: str) -> bool:
    try:
        return bool(attributes[variable])
    except KeyError:
        raise AttributeResolutionError(f"attribute resource.{variable} is not present") from None


class FilesystemEngine:
    """Engine instance bound to one namespace directory."""

    def __init__(self, algorithm: str, policies: list[Policy], index_type: IndexType):
        self.algorithm = algorithm
        self.policies = policies
        self.index_type = index_type
        self._index = INDEX_IMPLEMENTATIONS[index_type](policies)
        self._closed = False

    def decide(self, request: AuthorizationRequest) -> Optional[Decision]:
        if self._closed:
            raise EngineConfigurationError("engine has been closed")
        applicable = self._index.applicable(request.resource)
        return combine(self.algorithm, [policy.entitlement for policy in applicable])

    def close(self) -> None:
        self._closed = True


class FilesystemEngineGateway:
    """Builds FilesystemEngine instances from namespace directories."""

    def construct(self, namespace: Path, index_type: IndexType) -> FilesystemEngine:
        config_path = namespace / ENGINE_CONFIG_FILE
        if not config_path.is_file():
            raise EngineConfigurationError(f"engine configuration {config_path} not found")

        algorithm = self._read_json(config_path).get("algorithm", "DENY_UNLESS_PERMIT")
        if algorithm not in COMBINING_ALGORITHMS:
            raise EngineConfigurationError(f"unknown combining algorithm {algorithm!r} in {config_path}")

        policies = [
            Policy.from_dict(self._read_json(path), source=str(path))
            for path in sorted(namespace.glob(f"*{POLICY_SUFFIX}"))
        ]
        logger.debug("loaded %d policies from %s (index=%s)", len(policies), namespace, index_type.value)
        return FilesystemEngine(algorithm, policies, index_type)

    @staticmethod
    def _read_json(path: Path) -> dict:
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise EngineConfigurationError(f"invalid JSON in {path}: {e}") from e
        if not isinstance(data, dict):
            raise EngineConfigurationError(f"{path} must contain a JSON object")
        return data
