"""
Where the generated setup password is shown to the operator.

The password gate only produces the secret and hands it to a sink; how the
operator reads it (console, file, both) is decided by the sink.
"""

import os
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, TextIO, Union

from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)


class SecretSink(ABC):
    """Receives the setup password for display to the operator."""

    @abstractmethod
    def emit(self, secret: str) -> None:
        """Publish the secret. Raising makes password generation fail."""

    def clear(self) -> None:
        """Withdraw a previously published secret, if the medium allows it."""


class ConsoleSecretSink(SecretSink):
    """Prints the password in a banner on stdout."""

    BORDER = "=" * 60

    def __init__(self, stream: TextIO = None):
        self.stream = stream

    def emit(self, secret: str) -> None:
        stream = self.stream or sys.stdout
        lines = [
            "",
            self.BORDER,
            "*** SETUP WIZARD PASSWORD ***",
            self.BORDER,
            "",
            f"  Password: {secret}",
            "",
            "  This password is required to access the setup wizard.",
            "  It is discarded automatically after setup is complete.",
            "",
            self.BORDER,
            "",
        ]
        stream.write("\n".join(lines))
        stream.flush()


class FileSecretSink(SecretSink):
    """Writes the password to a file readable only by the owner."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def emit(self, secret: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(secret + "\n")
        logger.info("setup_password_written", path=str(self.path))

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink(missing_ok=True)
            logger.info("setup_password_file_deleted", path=str(self.path))


class CompositeSecretSink(SecretSink):
    """Fans the password out to several sinks."""

    def __init__(self, sinks: Iterable[SecretSink]):
        self.sinks = list(sinks)

    def emit(self, secret: str) -> None:
        for sink in self.sinks:
            sink.emit(secret)

    def clear(self) -> None:
        for sink in self.sinks:
            sink.clear()
