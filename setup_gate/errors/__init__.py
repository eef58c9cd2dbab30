"""
Error handling system for setup-gate.

Structured exceptions that render as JSON error bodies in the API.
"""

from .exceptions import (
    SetupError,
    SetupConfigurationError,
    PasswordGenerationError,
    CompletionTrackerError,
    SetupLockedError,
)
from .handlers import register_exception_handlers

__all__ = [
    "SetupError",
    "SetupConfigurationError",
    "PasswordGenerationError",
    "CompletionTrackerError",
    "SetupLockedError",
    "register_exception_handlers",
]
