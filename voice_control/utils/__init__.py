"""
Utility modules for the Voice Control Assistant.

This package contains error handling and async task helpers shared by
the services, domain and presentation layers.
"""

from voice_control.utils.error_handling import (
    ErrorSeverity,
    AppError,
    AudioError,
    ChannelError,
    ConfigError,
    LookupMiss,
    MalformedFunctionCall,
    NegotiationError,
    UnknownTool,
    handle_exception,
)

from voice_control.utils.async_helpers import TaskManager

__all__ = [
    # Error handling
    "ErrorSeverity",
    "AppError",
    "AudioError",
    "ChannelError",
    "ConfigError",
    "LookupMiss",
    "MalformedFunctionCall",
    "NegotiationError",
    "UnknownTool",
    "handle_exception",

    # Async utilities
    "TaskManager",
]
