"""
Exception hierarchy for PureTrans.

Only InvalidInputError ever reaches a caller of the gateway. Engine and purity
failures are internal signals that the gateway turns into fallback results;
EnhancementRegressionDetected stays inside the feedback loop.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List


class PureTransError(Exception):
    """Base exception for all PureTrans errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        suggestion: Optional[str] = None
    ):
        """
        Initialize error.

        Args:
            message: Human-readable error message
            details: Additional error details
            recoverable: Whether error can be recovered from
            suggestion: Suggested fix or workaround
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "suggestion": self.suggestion
        }

    def __str__(self) -> str:
        result = self.message
        if self.suggestion:
            result += f"\nSuggestion: {self.suggestion}"
        return result


class InvalidInputError(PureTransError):
    """Raised for empty text or an unsupported language pair."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        valid_values: Optional[List[Any]] = None
    ):
        details = {"field": field_name, "valid_values": valid_values}
        suggestion = None
        if field_name and valid_values:
            suggestion = f"Valid values for {field_name}: {', '.join(map(str, valid_values))}"
        super().__init__(message, details, recoverable=False, suggestion=suggestion)
        self.field_name = field_name
        self.valid_values = valid_values


class EngineError(PureTransError):
    """Base class for failures of the external translation engine."""

    def __init__(self, engine: str, message: str, original_error: Optional[Exception] = None):
        details = {
            "engine": engine,
            "original_error": str(original_error) if original_error else None,
        }
        super().__init__(f"Engine '{engine}' failed: {message}", details, recoverable=True)
        self.engine = engine
        self.original_error = original_error


class EngineTimeoutError(EngineError):
    """The engine did not answer within the configured timeout."""

    def __init__(self, engine: str, timeout: float):
        super().__init__(engine, f"no response within {timeout:.1f}s")
        self.timeout = timeout


class EngineUnavailableError(EngineError):
    """The engine could not be reached or rejected the call."""


class PurityFailure(PureTransError):
    """A candidate text failed purity validation."""

    def __init__(self, message: str, target_ratio: float = 0.0, threshold: float = 0.0):
        super().__init__(
            message,
            {"target_ratio": target_ratio, "threshold": threshold},
            recoverable=True,
        )
        self.target_ratio = target_ratio
        self.threshold = threshold


class EnhancementRegressionDetected(PureTransError):
    """A proposed enhancement would make previously accepted text fail."""

    def __init__(self, enhancement_id: str, failures: List[str]):
        message = (
            f"Enhancement {enhancement_id} blocked: "
            f"{len(failures)} previously accepted samples regressed"
        )
        super().__init__(
            message,
            {"enhancement_id": enhancement_id, "failures": failures},
            recoverable=True,
            suggestion="Review the enhancement manually before deploying it.",
        )
        self.enhancement_id = enhancement_id
        self.failures = failures


class InvalidTransitionError(PureTransError):
    """A state machine was asked to move along an edge it does not have."""

    def __init__(self, machine: str, current: str, requested: str):
        super().__init__(
            f"{machine}: cannot move from {current} to {requested}",
            {"machine": machine, "current": current, "requested": requested},
        )


class ConfigurationError(PureTransError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        invalid_value: Optional[Any] = None,
        valid_values: Optional[List[Any]] = None
    ):
        details = {
            "config_key": config_key,
            "invalid_value": invalid_value,
            "valid_values": valid_values
        }

        suggestion = None
        if config_key and valid_values:
            suggestion = f"Valid values for {config_key}: {', '.join(map(str, valid_values))}"
        elif config_key:
            suggestion = f"Check configuration for '{config_key}'"

        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.config_key = config_key
        self.invalid_value = invalid_value
        self.valid_values = valid_values


class CacheError(PureTransError):
    """Raised when cache operations fail."""

    def __init__(
        self,
        message: str,
        cache_type: Optional[str] = None,
        operation: Optional[str] = None
    ):
        details = {
            "cache_type": cache_type,
            "operation": operation
        }
        suggestion = (
            "Cache errors are non-fatal. The system will continue without caching.\n"
            "To fix: Check disk space and permissions for cache directory."
        )

        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.cache_type = cache_type
        self.operation = operation
