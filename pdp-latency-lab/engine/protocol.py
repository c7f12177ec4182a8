"""Protocol definition for the decision engine under benchmark.

The harness only ever crosses this boundary: it constructs an engine bound
to a policy namespace and an index type, fires decisions at it and disposes
of it. Anything that implements these protocols structurally can be
benchmarked, including adapters around external engines.
"""

from __future__ import annotations

__all__ = [
    "AttributeResolutionError",
    "AuthorizationRequest",
    "Decision",
    "EngineConfigurationError",
    "EngineError",
    "EngineGateway",
    "EngineHandle",
    "FunctionEvaluationError",
    "IndexType",
]

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable


class IndexType(str, Enum):
    """Policy matching structure used by the engine."""

    SIMPLE = "SIMPLE"
    FAST = "FAST"
    IMPROVED = "IMPROVED"

    @classmethod
    def parse(cls, value: str) -> "IndexType":
        """Parse an index type name case-insensitively."""
        try:
            return cls(value.strip().upper())
        except ValueError:
            choices = ", ".join(member.value for member in cls)
            raise ValueError(f"invalid index type {value!r} (expected one of {choices})") from None


class Decision(str, Enum):
    """Authorization decision returned by the engine."""

    PERMIT = "PERMIT"
    DENY = "DENY"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    INDETERMINATE = "INDETERMINATE"


@dataclass(frozen=True)
class AuthorizationRequest:
    """One authorization subscription sent to the engine."""

    subject: str
    action: str
    resource: dict[str, bool] = field(default_factory=dict)
    environment: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            "subject": self.subject,
            "action": self.action,
            "resource": dict(self.resource),
            "environment": self.environment,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    def __str__(self) -> str:
        return self.to_json()


class EngineError(Exception):
    """Base class for errors raised across the engine boundary."""


class EngineConfigurationError(EngineError):
    """Engine configuration or policy set could not be loaded."""


class AttributeResolutionError(EngineError):
    """An attribute required by a policy could not be resolved."""


class FunctionEvaluationError(EngineError):
    """A function used by a policy failed during evaluation."""


@runtime_checkable
class EngineHandle(Protocol):
    """A constructed engine instance.

    decide() may return None when the engine produced no decision; the
    harness treats that as a failed measurement. It raises EngineError for
    evaluation failures and OSError when attributes cannot be loaded.
    """

    def decide(self, request: AuthorizationRequest) -> Optional[Decision]:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class EngineGateway(Protocol):
    """Factory for engine instances.

    construct() raises EngineError (or OSError) when the namespace cannot be
    loaded with the requested index type.
    """

    def construct(self, namespace: Path, index_type: IndexType) -> EngineHandle:
        ...
