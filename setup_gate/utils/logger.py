"""
Structured logging for setup-gate.

Events are snake_case names with key/value context. Values under
password-like keys are masked before rendering so a submitted or generated
setup password never reaches the log output.
"""
import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.types import FilteringBoundLogger

REDACTED = "***"

SENSITIVE_KEYS = frozenset({"password", "secret", "submitted", "setup_password"})


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """structlog processor masking password-like values."""
    for key in event_dict:
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    """
    Configure structlog over the standard library logger.

    Args:
        level: Log level name; defaults to LOG_LEVEL from settings
        json_output: JSON lines instead of console output; defaults to LOG_JSON
    """
    if level is None or json_output is None:
        from setup_gate.config import get_setup_settings
        settings = get_setup_settings()
        level = level or settings.log_level
        json_output = settings.log_json if json_output is None else json_output

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=True,
    )

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            redact_secrets,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Request lines would echo every redirected path
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
