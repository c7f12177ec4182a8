"""
Decision engine boundary for the benchmark harness.

Defines the gateway protocols, a deterministic stub and an embedded
filesystem-backed reference engine.
"""

from .protocol import (
    AttributeResolutionError,
    AuthorizationRequest,
    Decision,
    EngineConfigurationError,
    EngineError,
    EngineGateway,
    EngineHandle,
    FunctionEvaluationError,
    IndexType,
)
from .filesystem import (
    ENGINE_CONFIG_FILE,
    POLICY_SUFFIX,
    COMBINING_ALGORITHMS,
    FilesystemEngine,
    FilesystemEngineGateway,
    Policy,
    combine,
)
from .stub import StubEngineGateway, StubEngineHandle

__all__ = [
    # Protocol
    "AttributeResolutionError",
    "AuthorizationRequest",
    "Decision",
    "EngineConfigurationError",
    "EngineError",
    "EngineGateway",
    "EngineHandle",
    "FunctionEvaluationError",
    "IndexType",
    # Filesystem engine
    "ENGINE_CONFIG_FILE",
    "POLICY_SUFFIX",
    "COMBINING_ALGORITHMS",
    "FilesystemEngine",
    "FilesystemEngineGateway",
    "Policy",
    "combine",
    # Stub
    "StubEngineGateway",
    "StubEngineHandle",
]
