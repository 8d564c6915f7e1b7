"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the alert relay.

- Provides clear exception hierarchy
- Separates retryable from non-retryable delivery failures
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
RelayException (base)
├── ConfigurationError
├── DeliveryError
│   ├── TransientDeliveryError
│   └── PermanentDeliveryError
├── PersistenceError
│   └── SnapshotLoadError
└── MalformedObservationError

============================================================
"""

from enum import Enum
from typing import Any, Dict, Optional


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error is absorbed locally, processing continues."""

    TRANSIENT = "transient"
    """Temporary error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires operator intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class RelayException(Exception):
    """
    Base exception for all relay errors.

    All exceptions carry:
    - classification: for error handling decisions
    - context: for debugging
    """

    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_retryable(self) -> bool:
        """Check if the failed operation may be retried."""
        return self.classification == ErrorClassification.TRANSIENT


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(RelayException):
    """Error in configuration."""

    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# DELIVERY ERRORS
# ============================================================

class DeliveryError(RelayException):
    """Notification could not be delivered to the provider."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if provider:
            context["provider"] = provider
        if status_code is not None:
            context["status_code"] = status_code
        if response_body:
            context["response_body"] = response_body[:200]

        self.status_code = status_code
        super().__init__(message, context=context, **kwargs)


class TransientDeliveryError(DeliveryError):
    """Network error, timeout, 5xx or provider busy. Retry later."""

    default_classification = ErrorClassification.TRANSIENT


class PermanentDeliveryError(DeliveryError):
    """Bad credentials or malformed payload. Never retried."""

    default_classification = ErrorClassification.NON_RECOVERABLE


# ============================================================
# PERSISTENCE ERRORS
# ============================================================

class PersistenceError(RelayException):
    """Snapshot could not be written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if path:
            context["path"] = path

        super().__init__(message, context=context, **kwargs)


class SnapshotLoadError(PersistenceError):
    """Existing snapshot could not be read. Aborts start-up."""

    default_classification = ErrorClassification.NON_RECOVERABLE


# ============================================================
# INGEST ERRORS
# ============================================================

class MalformedObservationError(RelayException):
    """Single observation in a batch could not be understood."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if field_name:
            context["field"] = field_name

        super().__init__(message, context=context, **kwargs)


__all__ = [
    "ErrorClassification",
    "RelayException",
    "ConfigurationError",
    "DeliveryError",
    "TransientDeliveryError",
    "PermanentDeliveryError",
    "PersistenceError",
    "SnapshotLoadError",
    "MalformedObservationError",
]
