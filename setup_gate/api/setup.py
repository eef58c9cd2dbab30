"""
Setup wizard API endpoints.

Mounted under the configured setup path. Password endpoints are open;
wizard endpoints require a verified client and are closed once setup is
complete (unless re-runs are allowed).
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from setup_gate.dependencies import (
    SESSION_COOKIE_NAME,
    SetupGate,
    get_client_id,
    get_setup_gate,
    get_wizard_context,
    require_setup_open,
    require_verified_client,
)
from setup_gate.setup.sessions import WizardContext
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["setup"])

wizard_guards = [Depends(require_setup_open), Depends(require_verified_client)]

COMPLETION_FAILED_MESSAGE = "Setup could not be completed. Check the server logs for details."


class PasswordRequest(BaseModel):
    password: str = ""


class StateUpdateRequest(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)


def set_session_cookie(response: Response, session_id: str, secure: bool) -> None:
    """Set HTTP-only wizard session cookie."""
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        secure=secure,
        samesite="strict",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


def _wizard_payload(context: WizardContext) -> dict:
    orchestrator = context.orchestrator
    payload = orchestrator.describe()
    payload["current_step"] = orchestrator.current_step().describe()
    return payload


def _remember_session(response: Response, gate: SetupGate, context: WizardContext) -> None:
    set_session_cookie(response, context.id, gate.settings.environment == "production")


def _navigation_result(
    response: Response,
    gate: SetupGate,
    context: WizardContext,
    success: bool,
) -> dict:
    _remember_session(response, gate, context)

    orchestrator = context.orchestrator
    result = {"success": success, "wizard": _wizard_payload(context)}
    if orchestrator.last_outcome is not None and not orchestrator.last_outcome.valid:
        result["errors"] = list(orchestrator.last_outcome.errors)
    if orchestrator.last_error is not None:
        # Step errors are logged, never echoed to the client
        result["warning"] = "A step reported an error. Check the server logs for details."
    return result


@router.get("/status")
async def get_setup_status(
    gate: SetupGate = Depends(get_setup_gate),
    client_id: str = Depends(get_client_id),
) -> dict:
    """Current setup completion and password status for this client."""
    try:
        complete = await gate.completion.is_complete()
    except Exception:
        logger.error("completion_check_failed", exc_info=True)
        complete = False

    verified = True
    if gate.settings.require_password:
        verified = await gate.password_gate.is_verified(client_id)

    return {
        "setup_complete": complete,
        "password_required": gate.settings.require_password,
        "password_verified": verified,
        "setup_path": gate.settings.setup_path,
    }


@router.post("/password", dependencies=[Depends(require_setup_open)])
async def submit_password(
    data: PasswordRequest,
    gate: SetupGate = Depends(get_setup_gate),
    client_id: str = Depends(get_client_id),
):
    """
    Verify the setup password.

    Returns:
        200 on success, 401 with remaining attempts on a wrong password,
        429 with Retry-After while locked out
    """
    if not gate.settings.require_password:
        return {"success": True, "status": "success", "message": "Password not required"}

    result = await gate.password_gate.check(client_id, data.password)

    if result.is_valid:
        return result.to_dict()

    if result.is_locked_out:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=result.to_dict(),
            headers={"Retry-After": str(result.seconds_remaining)},
        )

    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=result.to_dict())


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    client_id: str = Depends(get_client_id),
) -> dict:
    """Drop this client's verification and wizard context."""
    await gate.password_gate.revoke(client_id)
    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    if session_id:
        gate.sessions.destroy(session_id)
    clear_session_cookie(response)
    return {"success": True}


@router.get("/wizard", dependencies=wizard_guards)
async def get_wizard(
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    """Current position and step list."""
    _remember_session(response, gate, context)
    return _wizard_payload(context)


@router.get("/wizard/state", dependencies=wizard_guards)
async def get_wizard_state(
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    """Values collected so far in this wizard run."""
    _remember_session(response, gate, context)
    return {"values": context.state.to_dict()}


@router.post("/wizard/state", dependencies=wizard_guards)
async def update_wizard_state(
    data: StateUpdateRequest,
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    """
    Store submitted form values.

    A null value removes the key.
    """
    _remember_session(response, gate, context)
    for key, value in data.values.items():
        if not key.strip():
            continue
        context.state.set(key, value)
    return {"success": True, "keys": context.state.keys()}


@router.get("/wizard/validate", dependencies=wizard_guards)
async def validate_current_step(
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    """Validate the current step without moving."""
    _remember_session(response, gate, context)
    outcome = await context.orchestrator.validate_current()
    return outcome.to_dict()


@router.post("/wizard/next", dependencies=wizard_guards)
async def next_step(
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    success = await context.orchestrator.next()
    return _navigation_result(response, gate, context, success)


@router.post("/wizard/previous", dependencies=wizard_guards)
async def previous_step(
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    success = await context.orchestrator.previous()
    return _navigation_result(response, gate, context, success)


@router.post("/wizard/jump/{index}", dependencies=wizard_guards)
async def jump_to_step(
    index: int,
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    success = await context.orchestrator.jump_to(index)
    return _navigation_result(response, gate, context, success)


@router.post("/wizard/reset", dependencies=wizard_guards)
async def reset_wizard(
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    """Clear collected values and return to the first step."""
    await context.orchestrator.reset()
    return _navigation_result(response, gate, context, True)


@router.post("/wizard/complete", dependencies=wizard_guards)
async def complete_setup(
    response: Response,
    gate: SetupGate = Depends(get_setup_gate),
    context: WizardContext = Depends(get_wizard_context),
) -> dict:
    """
    Validate and apply every step, then mark setup complete.

    On success the setup password is discarded and all wizard sessions end.
    """
    orchestrator = context.orchestrator
    success = await orchestrator.complete()

    if not success:
        _remember_session(response, gate, context)
        result = {"success": False, "wizard": _wizard_payload(context)}
        if orchestrator.last_outcome is not None and not orchestrator.last_outcome.valid:
            result["errors"] = list(orchestrator.last_outcome.errors)
        else:
            result["error"] = COMPLETION_FAILED_MESSAGE
        return result

    await gate.password_gate.reset()
    gate.sessions.clear()
    clear_session_cookie(response)
    logger.info("setup_finished", redirect="/")
    return {"success": True, "redirect": "/"}
