"""
Ephemeral key/value store shared by the steps of one wizard run.

Values live in memory only and are dropped when the wizard is reset or its
session ends. Reads never raise for a missing key or a value of another
type; both come back as "not found".
"""

import threading
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key.strip():
        raise ValueError("State key must be a non-empty string")


class StateStore:
    """Thread-safe typed key/value store scoped to one wizard session."""

    def __init__(self):
        self._values: Dict[str, Any] = {}
        self._lock = threading.RLock()

    def set(self, key: str, value: Any) -> None:
        """Store a value; None removes the key instead."""
        _check_key(key)
        with self._lock:
            if value is None:
                self._values.pop(key, None)
                logger.debug("state_value_removed", key=key)
            else:
                self._values[key] = value
                logger.debug("state_value_set", key=key, value_type=type(value).__name__)

    def get(self, key: str, type_: Type[T] = object, default: Optional[T] = None) -> Optional[T]:
        """
        Get a value by key.

        Args:
            key: State key
            type_: Expected type; a stored value of another type counts as absent
            default: Returned when the key is absent or the type does not match

        Returns:
            The stored value or default
        """
        value, found = self.try_get(key, type_)
        return value if found else default

    def try_get(self, key: str, type_: Type[T] = object) -> Tuple[Optional[T], bool]:
        """Get a value and whether it was found with the expected type."""
        _check_key(key)
        with self._lock:
            if key not in self._values:
                return None, False
            value = self._values[key]

        if not isinstance(value, type_):
            logger.debug(
                "state_type_mismatch",
                key=key,
                expected=getattr(type_, "__name__", str(type_)),
                actual=type(value).__name__,
            )
            return None, False
        return value, True

    def contains(self, key: str) -> bool:
        _check_key(key)
        with self._lock:
            return key in self._values

    def remove(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""
        _check_key(key)
        with self._lock:
            removed = self._values.pop(key, None) is not None
        if removed:
            logger.debug("state_value_removed", key=key)
        return removed

    def clear(self) -> None:
        with self._lock:
            count = len(self._values)
            self._values.clear()
        logger.debug("state_cleared", removed=count)

    def keys(self) -> List[str]:
        """Snapshot of current keys."""
        with self._lock:
            return list(self._values.keys())

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of all entries."""
        with self._lock:
            return dict(self._values)

    def __contains__(self, key: str) -> bool:
        return self.contains(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
