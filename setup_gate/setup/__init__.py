"""
Setup wizard engine.

- StepRegistry / StepDescriptor: ordered catalog of steps
- SetupStep: base class for application-defined steps
- StateStore: data shared between the steps of one wizard run
- WizardOrchestrator: navigation and completion
- WizardSessionManager: one orchestrator per browser session
- CompletionTracker: persisted "setup is done" flag
"""

from setup_gate.setup.completion import (
    CompletionMarker,
    CompletionTracker,
    FileCompletionTracker,
    MemoryCompletionTracker,
)
from setup_gate.setup.registry import StepDescriptor, StepRegistry
from setup_gate.setup.sessions import WizardContext, WizardSessionManager
from setup_gate.setup.state import StateStore
from setup_gate.setup.steps import SetupStep, StepFactory, default_step_factory
from setup_gate.setup.validators import ValidationOutcome
from setup_gate.setup.wizard import WizardOrchestrator, WizardSession

__all__ = [
    "CompletionMarker",
    "CompletionTracker",
    "FileCompletionTracker",
    "MemoryCompletionTracker",
    "StepDescriptor",
    "StepRegistry",
    "WizardContext",
    "WizardSessionManager",
    "StateStore",
    "SetupStep",
    "StepFactory",
    "default_step_factory",
    "ValidationOutcome",
    "WizardOrchestrator",
    "WizardSession",
]
