"""
Error handling utilities for the Voice Control Assistant.

This module provides the application's exception taxonomy and helpers for
logging errors without exposing sensitive information such as client secrets.
"""

import sys
import traceback
from enum import Enum
from typing import Any, Dict, Optional, Type

from voice_control.config.logging_config import get_logger

logger = get_logger(__name__)


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AppError(Exception):
    """Base exception class for application errors."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """
        Initialize the error.

        Args:
            message: Human-readable error message
            severity: Error severity level
            error_code: Optional error code for categorization
            details: Additional error details
            cause: Original exception that caused this error
        """
        self.message = message
        self.severity = severity
        self.error_code = error_code
        self.details = details or {}
        self.cause = cause

        # Include cause's message in our message if provided
        if cause and str(cause) not in message:
            full_message = f"{message}: {str(cause)}"
        else:
            full_message = message

        super().__init__(full_message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the error to a dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary representation of the error
        """
        error_dict = {
            "message": self.message,
            "severity": self.severity.value,
        }

        if self.error_code:
            error_dict["code"] = self.error_code

        safe_details = _safe_details(self.details)
        if safe_details:
            error_dict["details"] = safe_details

        return error_dict

    def log(self, include_traceback: bool = True) -> None:
        """
        Log the error with the level matching its severity.

        Args:
            include_traceback: Whether to include the traceback in the log
        """
        log_method = getattr(logger, self.severity.value.lower(), logger.error)

        log_message = f"{self.__class__.__name__}: {self.message}"
        if self.error_code:
            log_message = f"{log_message} [Code: {self.error_code}]"

        log_method(log_message)

        safe_details = _safe_details(self.details)
        if safe_details:
            log_method(f"Error details: {safe_details}")

        if include_traceback and self.severity.value in ("error", "critical"):
            if self.cause:
                log_method(f"Caused by: {type(self.cause).__name__}: {str(self.cause)}")
                if self.cause.__traceback__:
                    log_method("".join(traceback.format_tb(self.cause.__traceback__)))
            elif sys.exc_info()[2] is not None:
                log_method("".join(traceback.format_tb(sys.exc_info()[2])))


class ConfigError(AppError):
    """Error related to application configuration."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize with a default error code for configuration errors."""
        error_code = error_code or "CONFIG_ERROR"
        super().__init__(message, severity, error_code, details, cause)


class AudioError(AppError):
    """Error related to microphone capture or speaker playback."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize with a default error code for audio errors."""
        error_code = error_code or "AUDIO_ERROR"
        super().__init__(message, severity, error_code, details, cause)


class NegotiationError(AppError):
    """Credential fetch, media acquisition or SDP handshake failed."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize with a default error code for negotiation errors."""
        error_code = error_code or "NEGOTIATION_ERROR"
        super().__init__(message, severity, error_code, details, cause)


class ChannelError(AppError):
    """Transport-level error on an open data channel or peer connection."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize with a default error code for channel errors."""
        error_code = error_code or "CHANNEL_ERROR"
        super().__init__(message, severity, error_code, details, cause)


class MalformedFunctionCall(AppError):
    """Function-call arguments could not be parsed or violate the tool schema."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize with a default error code for malformed calls."""
        error_code = error_code or "MALFORMED_FUNCTION_CALL"
        super().__init__(message, severity, error_code, details, cause)


class UnknownTool(AppError):
    """Function-call names a tool that was never announced to the model."""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize with a default error code for unknown tools."""
        error_code = error_code or "UNKNOWN_TOOL"
        super().__init__(message, severity, error_code, details, cause)


class LookupMiss(AppError):
    """
    A command referenced an id that is not in the collection.

    Lookup misses are benign: they are logged through ``log()`` and
    never raised.
    """

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.WARNING,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        """Initialize with a default error code for lookup misses."""
        error_code = error_code or "LOOKUP_MISS"
        super().__init__(message, severity, error_code, details, cause)


def handle_exception(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None,
    error_class: Type[AppError] = AppError,
    log_exception: bool = True
) -> AppError:
    """
    Convert any exception to an application error.

    An ``AppError`` of a different class is wrapped, so callers can rely on
    the returned error being an instance of ``error_class``.

    Args:
        exception: The exception to handle
        context: Additional context information
        error_class: The specific AppError class to use
        log_exception: Whether to log the exception

    Returns:
        AppError: The application error instance
    """
    if isinstance(exception, error_class):
        if context:
            for key, value in context.items():
                exception.details.setdefault(key, value)

        if log_exception:
            exception.log()

        return exception

    details = dict(context or {})
    details["exception_type"] = type(exception).__name__

    message = exception.message if isinstance(exception, AppError) else str(exception)

    app_error = error_class(
        message=message or f"An {type(exception).__name__} occurred",
        cause=exception,
        details=details
    )

    if log_exception:
        app_error.log()

    return app_error


def _safe_details(details: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in details.items() if not _is_sensitive_key(k)}


def _is_sensitive_key(key: str) -> bool:
    """
    Check if a key might contain sensitive information.

    Args:
        key: The key to check

    Returns:
        bool: True if the key might contain sensitive information
    """
    sensitive_patterns = [
        "password", "secret", "key", "token", "auth", "cred",
        "private", "security", "cert", "signature"
    ]

    lowercase_key = key.lower()
    return any(pattern in lowercase_key for pattern in sensitive_patterns)
