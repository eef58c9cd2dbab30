"""
Password protection for the setup wizard.
"""

from setup_gate.auth.password import (
    PASSWORD_ALPHABET,
    AttemptRecord,
    PasswordCheckResult,
    PasswordCheckStatus,
    PasswordGate,
    VerificationRecord,
    generate_password,
)
from setup_gate.auth.sinks import (
    CompositeSecretSink,
    ConsoleSecretSink,
    FileSecretSink,
    SecretSink,
)
from setup_gate.auth.stores import ExpiringStore, MemoryExpiringStore, RedisExpiringStore

__all__ = [
    "PASSWORD_ALPHABET",
    "AttemptRecord",
    "PasswordCheckResult",
    "PasswordCheckStatus",
    "PasswordGate",
    "VerificationRecord",
    "generate_password",
    "CompositeSecretSink",
    "ConsoleSecretSink",
    "FileSecretSink",
    "SecretSink",
    "ExpiringStore",
    "MemoryExpiringStore",
    "RedisExpiringStore",
]
