"""
Custom exceptions for the ClearPolicy answer pipeline.

Upstream failures (registries, completion service, persistence) are recovered
close to where they happen. Only InvalidQueryError is meant to reach callers.
"""
from typing import Any


class ClearPolicyError(Exception):
    """Base exception for ClearPolicy errors."""
    pass


class CompletionError(ClearPolicyError):
    """Completion service call failed."""
    pass


class LLMResponseError(CompletionError):
    """LLM returned an invalid or unexpected response."""
    pass


class CompletionUnavailableError(CompletionError):
    """Completion service unreachable, timed out, or rejected the request."""
    pass


class ValidationError(ClearPolicyError):
    """Validation of input data failed."""
    pass


class InvalidQueryError(ValidationError):
    """User input rejected before any synthesis work begins."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid {field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {"error": "invalid_query", "field": self.field, "reason": self.reason}


class APIKeyMissingError(ClearPolicyError):
    """Required API key is not configured."""
    pass
