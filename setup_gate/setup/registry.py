"""
Ordered catalog of setup steps.

Steps are registered once at startup and validated by build() before the
app serves traffic. Third-party packages add their own steps by registering
on the same registry before build() is called.
"""

import inspect
from dataclasses import dataclass
from typing import List, Optional, Tuple, Type

from setup_gate.errors import SetupConfigurationError
from setup_gate.setup.steps import SetupStep
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepDescriptor:
    """A registered step: its class and its execution order."""
    step_type: Type[SetupStep]
    order: int = 0

    @property
    def name(self) -> str:
        return self.step_type.__name__


class StepRegistry:
    """Registers step descriptors and builds their effective order."""

    def __init__(self):
        self._descriptors: List[StepDescriptor] = []

    def register(self, descriptor: StepDescriptor) -> "StepRegistry":
        if not isinstance(descriptor.step_type, type):
            raise SetupConfigurationError(
                f"Step type must be a class, got {descriptor.step_type!r}"
            )
        if inspect.isabstract(descriptor.step_type):
            missing = sorted(descriptor.step_type.__abstractmethods__)
            raise SetupConfigurationError(
                f"Step {descriptor.name} must implement: {', '.join(missing)}",
                details={"step": descriptor.name, "missing": missing},
            )
        self._descriptors.append(descriptor)
        return self

    def add_step(self, step_type: Type[SetupStep], order: Optional[int] = None) -> "StepRegistry":
        """
        Register a step class.

        Args:
            step_type: SetupStep subclass
            order: Execution order; defaults to the class's ``order`` attribute

        Returns:
            The registry, for chaining
        """
        if order is None:
            order = getattr(step_type, "order", 0)
        return self.register(StepDescriptor(step_type=step_type, order=order))

    @property
    def registered(self) -> Tuple[StepDescriptor, ...]:
        """Descriptors in registration sequence."""
        return tuple(self._descriptors)

    def build(self) -> Tuple[StepDescriptor, ...]:
        """
        Validate registrations and return them in effective order.

        Order is ascending ``order``, ties kept in registration sequence.

        Raises:
            SetupConfigurationError: If no steps are registered or a step
                class is registered twice
        """
        if not self._descriptors:
            raise SetupConfigurationError(
                "At least one setup step must be registered"
            )

        seen = set()
        duplicates = []
        for descriptor in self._descriptors:
            if descriptor.step_type in seen and descriptor.name not in duplicates:
                duplicates.append(descriptor.name)
            seen.add(descriptor.step_type)

        if duplicates:
            raise SetupConfigurationError(
                f"Duplicate step types registered: {', '.join(duplicates)}. "
                "Each step type can only be registered once.",
                details={"duplicates": duplicates},
            )

        ordered = tuple(
            descriptor
            for _, descriptor in sorted(
                enumerate(self._descriptors),
                key=lambda item: (item[1].order, item[0]),
            )
        )

        logger.info(
            "step_registry_built",
            steps=[d.name for d in ordered],
        )
        return ordered

    def __len__(self) -> int:
        return len(self._descriptors)
