"""
Setup admission middleware.

Until setup is complete every request is redirected to the setup wizard,
except requests for excluded prefixes (static files, health checks) and for
the wizard itself. Once the completion tracker reports complete, requests
pass straight through.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import RedirectResponse

from setup_gate.setup.completion import CompletionTracker
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


class Admission(str, Enum):
    PASS = "pass"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class AdmissionDecision:
    action: Admission
    location: Optional[str] = None

    @property
    def passes(self) -> bool:
        return self.action == Admission.PASS


_PASS = AdmissionDecision(Admission.PASS)


class RequestGate:
    """Decides whether a request may reach the application."""

    def __init__(
        self,
        completion: CompletionTracker,
        setup_path: str = "/setup",
        excluded_paths: Iterable[str] = (),
    ):
        self.completion = completion
        self.setup_path = setup_path
        self.excluded_paths = tuple(p.lower() for p in excluded_paths if p)
        self._setup_prefix = setup_path.lower()
        self._redirect = AdmissionDecision(Admission.REDIRECT, location=setup_path)

    async def admit(self, path: str) -> AdmissionDecision:
        """
        Decide admission for a request path.

        A failure reading the completion flag counts as "not complete", so
        the application is never exposed by a broken tracker.
        """
        try:
            if await self.completion.is_complete():
                return _PASS
        except Exception:
            logger.error("completion_check_failed", path=path, exc_info=True)

        lowered = (path or "").lower()

        if any(lowered.startswith(prefix) for prefix in self.excluded_paths):
            return _PASS

        if lowered.startswith(self._setup_prefix):
            return _PASS

        logger.debug("setup_redirect", path=path, setup_path=self.setup_path)
        return self._redirect


class SetupGateMiddleware(BaseHTTPMiddleware):
    """Starlette adapter that applies a RequestGate to every request."""

    def __init__(self, app, gate: RequestGate, status_code: int = 302):
        super().__init__(app)
        self.gate = gate
        self.status_code = status_code

    async def dispatch(self, request: Request, call_next) -> Response:
        decision = await self.gate.admit(request.url.path)
        if decision.passes:
            return await call_next(request)
        return RedirectResponse(url=decision.location, status_code=self.status_code)
