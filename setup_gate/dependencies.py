"""
FastAPI dependencies for the setup wizard API.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from setup_gate.auth.password import PasswordGate
from setup_gate.config import SetupSettings
from setup_gate.errors import SetupLockedError
from setup_gate.middleware.setup_gate import RequestGate
from setup_gate.setup.completion import CompletionTracker
from setup_gate.setup.sessions import WizardContext, WizardSessionManager
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "setup_session"


@dataclass
class SetupGate:
    """Components wired into one application (stored on ``app.state``)."""
    settings: SetupSettings
    completion: CompletionTracker
    password_gate: PasswordGate
    sessions: WizardSessionManager
    request_gate: RequestGate


def get_setup_gate(request: Request) -> SetupGate:
    """Require the setup gate to be installed on the app."""
    gate: Optional[SetupGate] = getattr(request.app.state, "setup_gate", None)
    if gate is None:
        raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, "Setup gate not initialized")
    return gate


def get_client_id(request: Request, gate: SetupGate = Depends(get_setup_gate)) -> str:
    """
    Identify the client for password rate limiting.

    Uses the first X-Forwarded-For entry only when the deployment says a
    trusted proxy sets it.
    """
    if gate.settings.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


async def require_setup_open(gate: SetupGate = Depends(get_setup_gate)) -> None:
    """Close the wizard once setup is complete, unless re-runs are allowed."""
    if gate.settings.allow_setup_rerun:
        return
    try:
        complete = await gate.completion.is_complete()
    except Exception:
        # Unreadable flag counts as not complete
        logger.error("completion_check_failed", exc_info=True)
        complete = False
    if complete:
        raise SetupLockedError()


async def require_verified_client(
    gate: SetupGate = Depends(get_setup_gate),
    client_id: str = Depends(get_client_id),
) -> str:
    """Require the client to have supplied the setup password."""
    if not gate.settings.require_password:
        return client_id

    await gate.password_gate.ensure_password()
    if not await gate.password_gate.is_verified(client_id):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Setup password required",
        )
    return client_id


def get_wizard_context(
    request: Request,
    gate: SetupGate = Depends(get_setup_gate),
) -> WizardContext:
    """Get the caller's wizard context, starting a new one if needed."""
    return gate.sessions.get_or_create(request.cookies.get(SESSION_COOKIE_NAME))
