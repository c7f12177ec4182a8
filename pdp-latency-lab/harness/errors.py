"""
Error taxonomy for benchmark runs.

Every error names the configuration and phase it happened in so the
top-level handler can report it; none of them is retried.
"""

from typing import Any, Optional


class BenchmarkError(Exception):
    """Base exception class for all benchmark harness errors."""

    exit_code = 1

    def __init__(
        self,
        message: str,
        configuration: Optional[str] = None,
        phase: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.configuration = configuration
        self.phase = phase
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        context = []
        if self.configuration is not None:
            context.append(f"configuration={self.configuration!r}")
        if self.phase is not None:
            context.append(f"phase={self.phase}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "configuration": self.configuration,
            "phase": self.phase,
            "details": self.details,
        }


class PreconditionError(BenchmarkError):
    """Run parameters or test cases are unusable; raised before any measurement."""

    exit_code = 2


class NamespacePreparationError(BenchmarkError):
    """Policy namespace could not be generated or the engine config not copied."""


class EngineConstructionError(BenchmarkError):
    """The engine could not be built for a configuration."""


class DecisionEvaluationError(BenchmarkError):
    """A decide call failed or returned no decision."""


class ExportError(BenchmarkError):
    """A result sink could not write its output."""
