"""Deterministic stub engine for exercising the harness in isolation."""

import time
from pathlib import Path
from typing import Iterable, Optional

from .protocol import (
    AuthorizationRequest,
    Decision,
    EngineConfigurationError,
    FunctionEvaluationError,
    IndexType,
)


class StubEngineHandle:
    """Engine instance that answers every request with a fixed decision."""

    def __init__(self, gateway: "StubEngineGateway", namespace: Path):
        self._gateway = gateway
        self.namespace = namespace
        self.closed = False

    def decide(self, request: AuthorizationRequest) -> Optional[Decision]:
        if self._gateway.decide_delay_ms:
            time.sleep(self._gateway.decide_delay_ms / 1000.0)
        self._gateway.decide_calls += 1
        if self.namespace.name in self._gateway.fail_decide_for:
            raise FunctionEvaluationError(f"scripted decide failure for {self.namespace.name}")
        if self._gateway.return_none:
            return None
        return self._gateway.decision

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._gateway.disposed += 1


class StubEngineGateway:
    """Gateway with fixed construct/decide delays and scripted failures.

    Failures are keyed by namespace directory name, i.e. the sanitized
    configuration name.
    """

    def __init__(
        self,
        construct_delay_ms: float = 0.0,
        decide_delay_ms: float = 0.0,
        decision: Decision = Decision.PERMIT,
        fail_construct_for: Iterable[str] = (),
        fail_decide_for: Iterable[str] = (),
        return_none: bool = False,
    ):
        self.construct_delay_ms = construct_delay_ms
        self.decide_delay_ms = decide_delay_ms
        self.decision = decision
        self.fail_construct_for = set(fail_construct_for)
        self.fail_decide_for = set(fail_decide_for)
        self.return_none = return_none
        self.constructed = 0
        self.disposed = 0
        self.decide_calls = 0
        self.index_types: list[IndexType] = []

    def construct(self, namespace: Path, index_type: IndexType) -> StubEngineHandle:
        if self.construct_delay_ms:
            time.sleep(self.construct_delay_ms / 1000.0)
        if namespace.name in self.fail_construct_for:
            raise EngineConfigurationError(f"scripted construct failure for {namespace.name}")
        self.constructed += 1
        self.index_types.append(index_type)
        return StubEngineHandle(self, namespace)
