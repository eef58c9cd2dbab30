"""
Wizard contexts keyed by session id.

Each browser session gets its own StateStore and WizardOrchestrator. Contexts
live in process memory and expire after a period of inactivity; expiry is
checked whenever a context is read, and idle contexts are swept each time a
new one is created.
"""

import secrets
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence

from setup_gate.setup.completion import CompletionTracker
from setup_gate.setup.registry import StepDescriptor
from setup_gate.setup.state import StateStore
from setup_gate.setup.steps import StepFactory
from setup_gate.setup.wizard import WizardOrchestrator
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class WizardContext:
    """One wizard run bound to a session."""
    id: str
    orchestrator: WizardOrchestrator
    created_at: float
    last_activity: float
    idle_timeout_seconds: float = field(default=30 * 60)

    @property
    def state(self) -> StateStore:
        return self.orchestrator.state

    def is_inactive(self, now: float) -> bool:
        """Check if the context has timed out due to inactivity."""
        return now > self.last_activity + self.idle_timeout_seconds

    def touch(self, now: float) -> None:
        self.last_activity = now


class WizardSessionManager:
    """Creates, looks up and expires wizard contexts."""

    def __init__(
        self,
        steps: Sequence[StepDescriptor],
        completion: CompletionTracker,
        step_factory: Optional[StepFactory] = None,
        idle_timeout_seconds: float = 30 * 60,
        clock: Callable[[], float] = time.time,
    ):
        self.steps = tuple(steps)
        self.completion = completion
        self.step_factory = step_factory
        self.idle_timeout_seconds = idle_timeout_seconds
        self._clock = clock
        self._contexts: Dict[str, WizardContext] = {}
        self._lock = threading.Lock()

    def create(self) -> WizardContext:
        """Start a new wizard run with an empty state store, dropping idle ones."""
        self.cleanup_expired()
        now = self._clock()
        context = WizardContext(
            id=secrets.token_urlsafe(32),
            orchestrator=WizardOrchestrator(
                steps=self.steps,
                state=StateStore(),
                completion=self.completion,
                step_factory=self.step_factory,
            ),
            created_at=now,
            last_activity=now,
            idle_timeout_seconds=self.idle_timeout_seconds,
        )
        with self._lock:
            self._contexts[context.id] = context
        logger.info("wizard_session_created", total_steps=len(self.steps))
        return context

    def get(self, session_id: Optional[str]) -> Optional[WizardContext]:
        """Get a live context by id, dropping it if it timed out."""
        if not session_id:
            return None

        now = self._clock()
        with self._lock:
            context = self._contexts.get(session_id)
            if context is None:
                return None
            if context.is_inactive(now):
                del self._contexts[session_id]
                logger.info("wizard_session_expired")
                return None
            context.touch(now)
            return context

    def get_or_create(self, session_id: Optional[str]) -> WizardContext:
        context = self.get(session_id)
        if context is None:
            context = self.create()
        return context

    def destroy(self, session_id: str) -> bool:
        with self._lock:
            removed = self._contexts.pop(session_id, None) is not None
        if removed:
            context_count = len(self)
            logger.info("wizard_session_destroyed", remaining=context_count)
        return removed

    def clear(self) -> None:
        """Drop every wizard context."""
        with self._lock:
            count = len(self._contexts)
            self._contexts.clear()
        logger.info("wizard_sessions_cleared", removed=count)

    def cleanup_expired(self) -> int:
        """Remove inactive contexts. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [sid for sid, ctx in self._contexts.items() if ctx.is_inactive(now)]
            for session_id in expired:
                del self._contexts[session_id]
        if expired:
            logger.info("wizard_sessions_expired", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._contexts)
