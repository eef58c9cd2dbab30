"""
Setup wizard navigation.

WizardOrchestrator walks one wizard run through the built step sequence:

- next() validates the current step before moving forward
- previous() and jump_to() move without validation
- complete() validates every step, executes every step in order, then marks
  setup complete
- reset() clears collected state and starts over

Navigation calls on one orchestrator are serialized, so two concurrent
requests from the same session can never both advance from the same index.
Validation failures are returned as data. Errors raised by step code are
logged and reported as a False result.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional, Sequence

from setup_gate.setup.completion import CompletionTracker
from setup_gate.setup.registry import StepDescriptor
from setup_gate.setup.state import StateStore
from setup_gate.setup.steps import SetupStep, StepFactory, default_step_factory
from setup_gate.setup.validators import ValidationOutcome
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class WizardSession:
    """Position of one wizard run."""
    total_steps: int
    current_index: int = 0
    completed: bool = False

    @property
    def is_first_step(self) -> bool:
        return self.current_index == 0

    @property
    def is_last_step(self) -> bool:
        return self.current_index == self.total_steps - 1

    @property
    def progress_percentage(self) -> int:
        if self.total_steps == 0:
            return 0
        return round((self.current_index + 1) * 100 / self.total_steps)

    def to_dict(self) -> dict:
        return {
            "current_index": self.current_index,
            "total_steps": self.total_steps,
            "is_first_step": self.is_first_step,
            "is_last_step": self.is_last_step,
            "progress_percentage": self.progress_percentage,
            "completed": self.completed,
        }


class WizardOrchestrator:
    """Navigation state machine for one wizard run."""

    def __init__(
        self,
        steps: Sequence[StepDescriptor],
        state: StateStore,
        completion: CompletionTracker,
        step_factory: Optional[StepFactory] = None,
    ):
        if not steps:
            raise ValueError("WizardOrchestrator requires at least one step")

        self.steps = tuple(steps)
        self.state = state
        self.completion = completion
        self.step_factory = step_factory or default_step_factory
        self.session = WizardSession(total_steps=len(self.steps))

        # Outcome of the most recent validation run by next()/validate_current()
        self.last_outcome: Optional[ValidationOutcome] = None
        # Error raised by step code during the most recent operation, if any
        self.last_error: Optional[BaseException] = None

        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        """Lazy initialization of lock for tests."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    # ------------------------------------------------------------------
    # Position
    # ------------------------------------------------------------------

    @property
    def current_index(self) -> int:
        return self.session.current_index

    @property
    def total_steps(self) -> int:
        return self.session.total_steps

    @property
    def is_first_step(self) -> bool:
        return self.session.is_first_step

    @property
    def is_last_step(self) -> bool:
        return self.session.is_last_step

    @property
    def can_go_next(self) -> bool:
        return self.current_index < self.total_steps - 1

    @property
    def can_go_previous(self) -> bool:
        return self.current_index > 0

    @property
    def progress_percentage(self) -> int:
        return self.session.progress_percentage

    @property
    def is_completed(self) -> bool:
        return self.session.completed

    # ------------------------------------------------------------------
    # Step instances
    # ------------------------------------------------------------------

    def _build(self, index: int) -> SetupStep:
        return self.step_factory(self.steps[index].step_type, self.state)

    def current_step(self) -> SetupStep:
        """New instance of the step at the current index."""
        return self._build(self.current_index)

    def all_steps(self) -> List[SetupStep]:
        """New instances of every step, in wizard order."""
        return [self._build(i) for i in range(self.total_steps)]

    def describe(self) -> dict:
        """Position plus the titles of all steps, for rendering."""
        steps = []
        for i, descriptor in enumerate(self.steps):
            step_type = descriptor.step_type
            steps.append({
                "index": i,
                "name": descriptor.name,
                "title": getattr(step_type, "title", "") or descriptor.name,
                "description": getattr(step_type, "description", ""),
            })
        return {**self.session.to_dict(), "steps": steps}

    # ------------------------------------------------------------------
    # Validation and hooks
    # ------------------------------------------------------------------

    async def _validate(self, step: SetupStep, index: int) -> ValidationOutcome:
        try:
            outcome = await step.validate()
        except Exception as e:
            logger.error("step_validation_error", step_index=index, step=type(step).__name__, exc_info=True)
            self.last_error = e
            return ValidationOutcome.failure("Validation could not be completed for this step")

        if not isinstance(outcome, ValidationOutcome):
            logger.error(
                "step_validation_bad_result",
                step_index=index,
                step=type(step).__name__,
                result_type=type(outcome).__name__,
            )
            return ValidationOutcome.failure("Validation could not be completed for this step")

        logger.debug("step_validated", step_index=index, step=type(step).__name__, valid=outcome.valid)
        return outcome

    async def _run_hook(self, index: int, hook: str) -> bool:
        """Run on_enter/on_leave on a fresh instance. Returns False if it raised."""
        try:
            step = self._build(index)
            await getattr(step, hook)()
        except Exception as e:
            logger.error("step_hook_error", step_index=index, hook=hook, exc_info=True)
            self.last_error = e
            return False
        return True

    async def validate_current(self) -> ValidationOutcome:
        """Validate the current step against the shared state."""
        async with self._get_lock():
            outcome = await self._validate(self.current_step(), self.current_index)
            self.last_outcome = outcome
            return outcome

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    async def next(self) -> bool:
        """
        Move forward one step.

        Returns:
            False if already on the last step, the current step is invalid,
            or its leave hook failed. The index is unchanged in those cases.
        """
        async with self._get_lock():
            self.last_error = None
            self.last_outcome = None

            if not self.can_go_next:
                logger.warning("wizard_next_refused", reason="last_step", step_index=self.current_index)
                return False

            index = self.current_index
            outcome = await self._validate(self._build(index), index)
            self.last_outcome = outcome
            if not outcome.valid:
                logger.info(
                    "wizard_next_refused",
                    reason="validation_failed",
                    step_index=index,
                    error_count=len(outcome.errors),
                )
                return False

            if not await self._run_hook(index, "on_leave"):
                return False

            self.session.current_index = index + 1
            logger.info("wizard_step_advanced", step_index=self.current_index, total_steps=self.total_steps)

            # Move is committed even if the enter hook fails
            await self._run_hook(self.current_index, "on_enter")
            return True

    async def previous(self) -> bool:
        """Move back one step. No validation; hook errors do not block."""
        async with self._get_lock():
            self.last_error = None
            self.last_outcome = None

            if not self.can_go_previous:
                logger.warning("wizard_previous_refused", reason="first_step")
                return False

            await self._run_hook(self.current_index, "on_leave")
            self.session.current_index -= 1
            logger.info("wizard_step_back", step_index=self.current_index, total_steps=self.total_steps)
            await self._run_hook(self.current_index, "on_enter")
            return True

    async def jump_to(self, index: int) -> bool:
        """
        Move directly to a step.

        Only the step being left and the target step get their hooks run.

        Returns:
            False if index is out of range, True otherwise
        """
        async with self._get_lock():
            self.last_error = None
            self.last_outcome = None

            if index < 0 or index >= self.total_steps:
                logger.warning("wizard_jump_refused", target=index, total_steps=self.total_steps)
                return False

            if index == self.current_index:
                return True

            previous_index = self.current_index
            await self._run_hook(previous_index, "on_leave")
            self.session.current_index = index
            logger.info("wizard_step_jumped", from_index=previous_index, step_index=index)
            await self._run_hook(index, "on_enter")
            return True

    async def complete(self) -> bool:
        """
        Validate and execute every step, then mark setup complete.

        Execution is not rolled back when a later step fails; steps must
        apply their changes idempotently.

        Returns:
            True only if every step validated and executed and the
            completion marker was written
        """
        async with self._get_lock():
            self.last_error = None
            self.last_outcome = None
            logger.info("wizard_completion_started", total_steps=self.total_steps)

            steps = self.all_steps()
            for index, step in enumerate(steps):
                outcome = await self._validate(step, index)
                if not outcome.valid:
                    self.last_outcome = outcome
                    logger.warning(
                        "wizard_completion_refused",
                        reason="validation_failed",
                        step_index=index,
                        step=type(step).__name__,
                    )
                    return False

            for index, step in enumerate(steps):
                try:
                    logger.debug("step_executing", step_index=index, step=type(step).__name__)
                    await step.execute()
                except Exception as e:
                    self.last_error = e
                    logger.error(
                        "wizard_completion_failed",
                        reason="execution_error",
                        step_index=index,
                        step=type(step).__name__,
                        exc_info=True,
                    )
                    return False

            try:
                await self.completion.mark_complete()
            except Exception as e:
                self.last_error = e
                logger.error("wizard_completion_failed", reason="marker_error", exc_info=True)
                return False

            self.session.completed = True
            logger.info("wizard_completed", total_steps=self.total_steps)
            return True

    async def reset(self) -> None:
        """Clear collected state and return to the first step."""
        async with self._get_lock():
            self.last_error = None
            self.last_outcome = None
            logger.info("wizard_reset", from_index=self.current_index)

            self.state.clear()
            self.session.current_index = 0
            self.session.completed = False
            await self._run_hook(0, "on_enter")
