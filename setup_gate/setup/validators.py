"""
Validation results for setup wizard steps.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Tuple


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating one step. Built fresh on every call."""
    valid: bool
    errors: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> "ValidationOutcome":
        return cls(valid=True)

    @classmethod
    def failure(cls, *errors: str) -> "ValidationOutcome":
        """
        Build a failed outcome.

        Args:
            *errors: Human-readable messages; blank entries are dropped

        Raises:
            ValueError: If no non-blank message is given
        """
        messages = _clean(errors)
        if not messages:
            raise ValueError("At least one error message must be provided")
        return cls(valid=False, errors=messages)

    @classmethod
    def from_errors(cls, errors: Iterable[str]) -> "ValidationOutcome":
        """Success when the collected error list is empty, failure otherwise."""
        messages = _clean(errors)
        if not messages:
            return cls.success()
        return cls(valid=False, errors=messages)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _clean(errors: Iterable[str]) -> Tuple[str, ...]:
    return tuple(e for e in errors if e and e.strip())
