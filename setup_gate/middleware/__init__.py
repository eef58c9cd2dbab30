"""HTTP middleware."""

from setup_gate.middleware.setup_gate import (
    Admission,
    AdmissionDecision,
    RequestGate,
    SetupGateMiddleware,
)

__all__ = ["Admission", "AdmissionDecision", "RequestGate", "SetupGateMiddleware"]
