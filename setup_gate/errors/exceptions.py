"""
Exception classes for setup-gate.
"""

from typing import Optional, Dict, Any


class SetupError(Exception):
    """Base exception for all setup-gate errors."""

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Render as a JSON error body, shaped like the wizard result dicts."""
        return {
            "success": False,
            "error_code": self.code,
            "message": self.message,
            "details": self.details,
        }


class SetupConfigurationError(SetupError):
    """Invalid step registration or settings, raised before serving traffic."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code="CFG-0001",
            message=message,
            http_status=500,
            details=details,
        )


class PasswordGenerationError(SetupError):
    """The setup password could not be generated or handed to its sink."""

    def __init__(self, message: str = "Setup password could not be generated"):
        super().__init__(code="PWD-0001", message=message, http_status=500)


class CompletionTrackerError(SetupError):
    """The completion marker could not be written or removed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code="CMP-0001",
            message=message,
            http_status=500,
            details=details,
        )


class SetupLockedError(SetupError):
    """Setup already completed and re-running it is disabled."""

    def __init__(self, message: str = "Setup has already been completed"):
        super().__init__(code="WIZ-0001", message=message, http_status=403)
