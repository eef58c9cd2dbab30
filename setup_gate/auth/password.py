"""
Password protection for the setup wizard.

A one-off password is generated when first needed and handed to a SecretSink
(console banner, file) for the operator. Clients, identified by remote
address, must submit it before they can use the wizard:

- MAX_ATTEMPTS consecutive wrong submissions lock the client out for
  LOCKOUT_SECONDS
- a correct submission marks the client verified for VERIFICATION_TTL_SECONDS
- failures are forgotten ATTEMPT_WINDOW_SECONDS after the last one; a
  lockout record expires when the lockout ends
- expiry is computed on read and stale records are purged on write; nothing
  runs in the background

Attempt and verification records live in ExpiringStores. With the default
in-memory stores a restart or a second instance resets all lockouts; pass
Redis-backed stores to share them.
"""

import asyncio
import math
import secrets
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from setup_gate.auth.sinks import SecretSink
from setup_gate.auth.stores import ExpiringStore, MemoryExpiringStore
from setup_gate.errors import PasswordGenerationError
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)

# Visually ambiguous characters (0/O, 1/I/l) are left out
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PASSWORD_GROUPS = 4
PASSWORD_GROUP_LENGTH = 4

MAX_ATTEMPTS = 5
LOCKOUT_SECONDS = 60
VERIFICATION_TTL_SECONDS = 60 * 60
# Failures older than this are forgotten
ATTEMPT_WINDOW_SECONDS = 60 * 60


def generate_password() -> str:
    """Generate a password like ``XPK7-MN94-QR2L-VB8J``."""
    groups = [
        "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(PASSWORD_GROUP_LENGTH))
        for _ in range(PASSWORD_GROUPS)
    ]
    return "-".join(groups)


class PasswordCheckStatus(str, Enum):
    """Outcome of a password submission."""
    SUCCESS = "success"
    FAILURE = "failure"
    LOCKOUT = "lockout"


@dataclass(frozen=True)
class PasswordCheckResult:
    """Result of PasswordGate.check()."""
    status: PasswordCheckStatus
    message: Optional[str] = None
    remaining_attempts: int = 0
    seconds_remaining: int = 0

    @property
    def is_valid(self) -> bool:
        return self.status == PasswordCheckStatus.SUCCESS

    @property
    def is_locked_out(self) -> bool:
        return self.status == PasswordCheckStatus.LOCKOUT

    @classmethod
    def success(cls) -> "PasswordCheckResult":
        return cls(status=PasswordCheckStatus.SUCCESS)

    @classmethod
    def failure(cls, message: str, remaining_attempts: int) -> "PasswordCheckResult":
        return cls(
            status=PasswordCheckStatus.FAILURE,
            message=message,
            remaining_attempts=remaining_attempts,
        )

    @classmethod
    def lockout(cls, seconds_remaining: int) -> "PasswordCheckResult":
        return cls(
            status=PasswordCheckStatus.LOCKOUT,
            message=(
                "Too many failed attempts. Please wait "
                f"{seconds_remaining} seconds before trying again."
            ),
            seconds_remaining=seconds_remaining,
        )

    def to_dict(self) -> dict:
        return {
            "success": self.is_valid,
            "status": self.status.value,
            "message": self.message,
            "remaining_attempts": self.remaining_attempts,
            "seconds_remaining": self.seconds_remaining,
        }


@dataclass
class AttemptRecord:
    """Failed attempts for one client."""
    failure_count: int = 0
    lockout_until: Optional[float] = None

    def to_dict(self) -> dict:
        return {"failure_count": self.failure_count, "lockout_until": self.lockout_until}

    @classmethod
    def from_dict(cls, data: dict) -> "AttemptRecord":
        return cls(
            failure_count=int(data.get("failure_count", 0)),
            lockout_until=data.get("lockout_until"),
        )


@dataclass
class VerificationRecord:
    """Proof that a client supplied the password."""
    verified_at: float
    expires_at: float

    def to_dict(self) -> dict:
        return {"verified_at": self.verified_at, "expires_at": self.expires_at}

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationRecord":
        return cls(verified_at=data["verified_at"], expires_at=data["expires_at"])


class _KeyedLocks:
    """One asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key: str):
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                self._locks.pop(key, None)
                self._users.pop(key, None)


class PasswordGate:
    """Generates the setup password and verifies client submissions."""

    def __init__(
        self,
        sink: SecretSink,
        attempts: Optional[ExpiringStore] = None,
        verifications: Optional[ExpiringStore] = None,
        max_attempts: int = MAX_ATTEMPTS,
        lockout_seconds: int = LOCKOUT_SECONDS,
        verification_ttl_seconds: int = VERIFICATION_TTL_SECONDS,
        attempt_window_seconds: int = ATTEMPT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
        generator: Callable[[], str] = generate_password,
    ):
        self.sink = sink
        self.attempts = attempts if attempts is not None else MemoryExpiringStore(clock=clock)
        self.verifications = (
            verifications if verifications is not None else MemoryExpiringStore(clock=clock)
        )
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self.verification_ttl_seconds = verification_ttl_seconds
        self.attempt_window_seconds = attempt_window_seconds
        self._clock = clock
        self._generator = generator
        self._password: Optional[str] = None
        self._generate_lock: Optional[asyncio.Lock] = None
        self._client_locks = _KeyedLocks()

    def _get_generate_lock(self) -> asyncio.Lock:
        """Lazy initialization of lock for tests."""
        if self._generate_lock is None:
            self._generate_lock = asyncio.Lock()
        return self._generate_lock

    def use_stores(self, attempts: ExpiringStore, verifications: ExpiringStore) -> None:
        """Swap in shared record stores (set during app startup)."""
        self.attempts = attempts
        self.verifications = verifications

    @property
    def has_password(self) -> bool:
        return self._password is not None

    async def ensure_password(self) -> str:
        """
        Generate the password on first call and publish it to the sink.

        Raises:
            PasswordGenerationError: If generation or the sink fails
        """
        if self._password is not None:
            return self._password

        async with self._get_generate_lock():
            if self._password is None:
                try:
                    password = self._generator()
                    self.sink.emit(password)
                except Exception as e:
                    logger.error("setup_password_generation_failed", exc_info=True)
                    raise PasswordGenerationError(
                        f"Setup password could not be generated: {e}"
                    ) from e
                self._password = password
                logger.info("setup_password_generated", sink=type(self.sink).__name__)
        return self._password

    async def check(self, client_id: str, submitted: Optional[str]) -> PasswordCheckResult:
        """
        Verify a password submission from one client.

        Args:
            client_id: Client identity, normally the remote address
            submitted: Password as typed by the user

        Returns:
            SUCCESS, FAILURE with remaining attempts, or LOCKOUT with the
            seconds left before the next attempt is accepted
        """
        password = await self.ensure_password()

        async with self._client_locks.hold(client_id):
            now = self._clock()
            record = await self._get_attempts(client_id)

            if record.lockout_until is not None:
                if record.lockout_until > now:
                    seconds = max(1, math.ceil(record.lockout_until - now))
                    logger.warning("password_locked_out", client_id=client_id, seconds_remaining=seconds)
                    return PasswordCheckResult.lockout(seconds)
                # Lockout expired
                await self.attempts.delete(client_id)
                record = AttemptRecord()

            if not submitted or not submitted.strip():
                return PasswordCheckResult.failure(
                    "Password is required.",
                    self.max_attempts - record.failure_count,
                )

            if secrets.compare_digest(submitted.encode("utf-8"), password.encode("utf-8")):
                await self.attempts.delete(client_id)
                verification = VerificationRecord(
                    verified_at=now,
                    expires_at=now + self.verification_ttl_seconds,
                )
                await self.verifications.set(
                    client_id, verification.to_dict(), expires_at=verification.expires_at
                )
                logger.info("password_verified", client_id=client_id)
                return PasswordCheckResult.success()

            record.failure_count += 1
            if record.failure_count >= self.max_attempts:
                record.lockout_until = now + self.lockout_seconds
                await self.attempts.set(
                    client_id, record.to_dict(), expires_at=record.lockout_until
                )
                logger.warning(
                    "password_lockout",
                    client_id=client_id,
                    attempts=record.failure_count,
                    lockout_seconds=self.lockout_seconds,
                )
                return PasswordCheckResult.lockout(self.lockout_seconds)

            await self.attempts.set(
                client_id, record.to_dict(), expires_at=now + self.attempt_window_seconds
            )
            remaining = self.max_attempts - record.failure_count
            logger.warning("password_invalid", client_id=client_id, remaining_attempts=remaining)
            return PasswordCheckResult.failure(
                f"Invalid password. {remaining} attempt(s) remaining.",
                remaining,
            )

    async def is_verified(self, client_id: str) -> bool:
        """True if the client supplied the password within the TTL window."""
        if not client_id:
            return False

        data = await self.verifications.get(client_id)
        if data is None:
            return False

        record = VerificationRecord.from_dict(data)
        if record.expires_at <= self._clock():
            await self.verifications.delete(client_id)
            return False
        return True

    async def revoke(self, client_id: str) -> None:
        """Forget one client's verification."""
        await self.verifications.delete(client_id)

    async def reset(self) -> None:
        """
        Forget the password, all attempts and all verifications.

        A new password is generated on the next access check.
        """
        async with self._get_generate_lock():
            self._password = None
            await self.attempts.clear()
            await self.verifications.clear()
            try:
                self.sink.clear()
            except OSError:
                logger.warning("setup_password_sink_clear_failed", exc_info=True)
        logger.info("setup_password_reset")

    async def _get_attempts(self, client_id: str) -> AttemptRecord:
        data = await self.attempts.get(client_id)
        if data is None:
            return AttemptRecord()
        return AttemptRecord.from_dict(data)
