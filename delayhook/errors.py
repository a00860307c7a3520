"""
DelayHook exception hierarchy.

All exceptions inherit from DelayHookError so callers can catch every
DelayHook failure with a single except clause.
"""

from typing import Optional


class DelayHookError(Exception):
    """Base exception for all DelayHook errors."""

    def __init__(self, message: str, error_code: str = "DELAYHOOK_ERROR"):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class ValidationError(DelayHookError):
    """A callback request failed validation. Reported to the caller, never retried."""

    def __init__(self, message: str):
        super().__init__(message, "DELAYHOOK_VALIDATION_ERROR")


class StorageUnavailable(DelayHookError):
    """The storage could not save a callback or establish a subscription."""

    def __init__(self, message: str):
        super().__init__(message, "DELAYHOOK_STORAGE_UNAVAILABLE")


class DeliveryFailure(DelayHookError):
    """
    The remote endpoint did not respond successfully.

    Attributes:
        status: HTTP status code when a response was received, None for
            transport errors and timeouts.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message, "DELAYHOOK_DELIVERY_FAILURE")


class FinalizationFailure(DelayHookError):
    """Marking a delivered callback as done failed."""

    def __init__(self, message: str):
        super().__init__(message, "DELAYHOOK_FINALIZATION_FAILURE")
