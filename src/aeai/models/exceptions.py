"""
Custom exceptions raised across the assistant's service layer.

These errors are designed to provide actionable feedback about why a
model request or a host call failed so the dispatch loop can turn them
into a user-visible message while surfacing the root cause to operators.
"""
from __future__ import annotations

from typing import Optional


class LLMServiceError(Exception):
    """
    Base exception for failures that originate from the inference endpoint.

    Args:
        message: Human-readable description of the error.
        operation: Optional operation identifier associated with the failure.
        cause: Optional underlying exception that triggered the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.__cause__ = cause


class LLMRateLimitError(LLMServiceError):
    """
    Raised when the endpoint signals that the client exceeded a rate limit
    or quota threshold.
    """


class LLMTimeoutError(LLMServiceError):
    """
    Raised when a request to the endpoint exceeds the allotted timeout window.
    """


class LLMConnectionError(LLMServiceError):
    """
    Raised when the client cannot reach the endpoint due to network
    connectivity issues.
    """


class BridgeError(Exception):
    """Base exception for failures crossing the host bridge."""


class HostScriptNotLoadedError(BridgeError):
    """
    Raised when the host-side entry point is missing. Reloading the host
    scripts fixes this; retrying the same call does not.
    """


class BridgeDecodeError(BridgeError):
    """
    Raised when the host returned text that is not a JSON result envelope.

    Args:
        message: Human-readable description of the error.
        raw: The undecodable payload, kept for diagnosis.
    """

    def __init__(self, message: str, *, raw: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw = raw


class UnauthorizedActionError(Exception):
    """Raised when an action name is not part of the action catalog."""

    def __init__(self, action: str) -> None:
        super().__init__(f"Invalid action: {action}")
        self.action = action


class CommandExtractionError(ValueError):
    """Raised internally when a candidate command span cannot be parsed."""
