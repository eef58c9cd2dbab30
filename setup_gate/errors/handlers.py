"""
FastAPI exception handlers for the error system.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from setup_gate.errors.exceptions import SetupError
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


async def setup_error_handler(request: Request, exc: SetupError) -> JSONResponse:
    """Handle SetupError exceptions."""
    if exc.http_status >= 500:
        logger.error(
            "setup_server_error",
            error_code=exc.code,
            message=exc.message,
            path=request.url.path,
        )
    else:
        logger.warning(
            "setup_client_error",
            error_code=exc.code,
            message=exc.message,
            path=request.url.path,
        )

    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    """Register setup-gate exception handlers on a FastAPI app."""
    app.add_exception_handler(SetupError, setup_error_handler)
