"""
Setup wizard step contract.

Application and plugin authors subclass SetupStep. A step is built fresh by
the step factory every time the wizard needs it, so it must keep no truth in
instance fields: everything a step validates or applies is read from the
shared StateStore.

Example:
    class AdminAccountStep(SetupStep):
        title = "Admin account"
        description = "Create the first administrator"
        order = 10

        async def validate(self):
            if not self.state.get("admin_email", str):
                return self.invalid("Admin email is required")
            return self.valid()

        async def execute(self):
            await create_admin(self.state.get("admin_email", str))
"""

from abc import ABC, abstractmethod
from typing import Callable, Type

from setup_gate.setup.state import StateStore
from setup_gate.setup.validators import ValidationOutcome


class SetupStep(ABC):
    """Base class for one unit of the setup sequence."""

    title: str = ""
    description: str = ""
    order: int = 0

    def __init__(self, state: StateStore):
        self.state = state

    async def validate(self) -> ValidationOutcome:
        """Check the data collected for this step. Valid by default."""
        return self.valid()

    @abstractmethod
    async def execute(self) -> None:
        """
        Apply this step's configuration.

        Called once per step, in wizard order, when the whole wizard
        completes. Must be idempotent: a failure in a later step leaves
        earlier steps applied.
        """

    async def on_enter(self) -> None:
        """Called when the wizard moves onto this step."""

    async def on_leave(self) -> None:
        """Called when the wizard moves off this step."""

    def valid(self) -> ValidationOutcome:
        return ValidationOutcome.success()

    def invalid(self, *errors: str) -> ValidationOutcome:
        return ValidationOutcome.failure(*errors)

    def describe(self) -> dict:
        return {
            "title": self.title or type(self).__name__,
            "description": self.description,
            "order": self.order,
        }


StepFactory = Callable[[Type[SetupStep], StateStore], SetupStep]


def default_step_factory(step_type: Type[SetupStep], state: StateStore) -> SetupStep:
    """Build a step instance bound to the wizard's state store."""
    return step_type(state)
