"""
Setup completion tracking.

The request gate and the wizard only need three operations: is setup
complete, mark it complete, and clear it. FileCompletionTracker keeps a
small JSON marker on disk; MemoryCompletionTracker is for tests and demos.
"""

import asyncio
import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable

from setup_gate import __version__
from setup_gate.errors import CompletionTrackerError
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class CompletionTracker(Protocol):
    """Narrow contract consumed by the request gate and the wizard."""

    async def is_complete(self) -> bool: ...

    async def mark_complete(self) -> None: ...

    async def clear(self) -> None: ...


@dataclass
class CompletionMarker:
    """Contents of the completion marker file."""
    completed_at: str
    version: str
    package_version: str = __version__
    metadata: Optional[Dict[str, str]] = field(default=None)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletionMarker":
        return cls(
            completed_at=data["completed_at"],
            version=data["version"],
            package_version=data.get("package_version", __version__),
            metadata=data.get("metadata"),
        )


class FileCompletionTracker:
    """Completion marker stored as a JSON file."""

    def __init__(
        self,
        marker_path: Union[str, Path],
        version: str = "1.0.0",
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.marker_path = Path(marker_path)
        self.version = version
        self.metadata = metadata
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        """Lazy initialization of lock for tests."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def is_complete(self) -> bool:
        """
        Check for a valid completion marker.

        A missing, unreadable or corrupt marker means "not complete".
        """
        marker = await self.read_marker()
        return marker is not None

    async def read_marker(self) -> Optional[CompletionMarker]:
        if not self.marker_path.exists():
            logger.debug("completion_marker_missing", path=str(self.marker_path))
            return None

        try:
            async with self._get_lock():
                content = self.marker_path.read_text(encoding="utf-8")
            return CompletionMarker.from_dict(json.loads(content))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(
                "completion_marker_invalid",
                path=str(self.marker_path),
                error=str(e),
            )
            return None

    async def mark_complete(self) -> None:
        """
        Write the completion marker.

        Raises:
            CompletionTrackerError: If the marker cannot be written
        """
        marker = CompletionMarker(
            completed_at=datetime.now(timezone.utc).isoformat(),
            version=self.version,
            metadata=self.metadata,
        )
        try:
            async with self._get_lock():
                self.marker_path.parent.mkdir(parents=True, exist_ok=True)
                self.marker_path.write_text(
                    json.dumps(marker.to_dict(), indent=2),
                    encoding="utf-8",
                )
        except OSError as e:
            logger.error("completion_marker_write_failed", path=str(self.marker_path), error=str(e))
            raise CompletionTrackerError(
                "Failed to create setup completion marker. Ensure the application "
                "has write permissions to the marker directory.",
                details={"path": str(self.marker_path)},
            ) from e

        logger.info("setup_marked_complete", path=str(self.marker_path), version=self.version)

    async def clear(self) -> None:
        """
        Delete the completion marker if present.

        Raises:
            CompletionTrackerError: If the marker exists but cannot be deleted
        """
        if not self.marker_path.exists():
            return
        try:
            async with self._get_lock():
                self.marker_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("completion_marker_delete_failed", path=str(self.marker_path), error=str(e))
            raise CompletionTrackerError(
                "Failed to delete setup completion marker",
                details={"path": str(self.marker_path)},
            ) from e

        logger.info("setup_completion_cleared", path=str(self.marker_path))


class MemoryCompletionTracker:
    """In-process completion flag."""

    def __init__(self, complete: bool = False):
        self.complete = complete

    async def is_complete(self) -> bool:
        return self.complete

    async def mark_complete(self) -> None:
        self.complete = True

    async def clear(self) -> None:
        self.complete = False
