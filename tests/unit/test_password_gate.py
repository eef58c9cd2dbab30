"""
Tests for setup password generation, verification and lockout.
"""
import asyncio
import re
from unittest.mock import MagicMock

import pytest

from setup_gate.auth.password import (
    PASSWORD_ALPHABET,
    AttemptRecord,
    PasswordCheckResult,
    PasswordCheckStatus,
    PasswordGate,
    generate_password,
)
from setup_gate.auth.stores import MemoryExpiringStore
from setup_gate.errors import PasswordGenerationError

PASSWORD_PATTERN = re.compile(r"^[A-HJ-NP-Z2-9]{4}(-[A-HJ-NP-Z2-9]{4}){3}$")

CLIENT = "203.0.113.7"


@pytest.fixture
def gate(sink, clock):
    return PasswordGate(sink=sink, clock=clock)


class TestGeneratePassword:
    """Tests for the password generator."""

    def test_format(self):
        """Test passwords are four dash-separated groups of four."""
        for _ in range(50):
            assert PASSWORD_PATTERN.match(generate_password())

    def test_alphabet_excludes_ambiguous_characters(self):
        """Test 0/O and 1/I are never used."""
        for ch in "01OIl":
            assert ch not in PASSWORD_ALPHABET
        assert len(PASSWORD_ALPHABET) == 32

    def test_passwords_differ(self):
        """Test consecutive passwords are not repeated."""
        assert len({generate_password() for _ in range(20)}) == 20


class TestPasswordCheckResult:
    """Tests for PasswordCheckResult."""

    def test_lockout_message(self):
        """Test lockout result names the wait time."""
        result = PasswordCheckResult.lockout(42)

        assert result.is_locked_out is True
        assert result.is_valid is False
        assert result.message == (
            "Too many failed attempts. Please wait 42 seconds before trying again."
        )

    def test_to_dict(self):
        """Test serialization for API responses."""
        data = PasswordCheckResult.failure("Invalid password. 2 attempt(s) remaining.", 2).to_dict()

        assert data == {
            "success": False,
            "status": "failure",
            "message": "Invalid password. 2 attempt(s) remaining.",
            "remaining_attempts": 2,
            "seconds_remaining": 0,
        }

    def test_attempt_record_round_trip(self):
        """Test attempt records survive a dict round trip."""
        record = AttemptRecord(failure_count=3, lockout_until=123.5)
        assert AttemptRecord.from_dict(record.to_dict()) == record


class TestEnsurePassword:
    """Tests for lazy password generation."""

    @pytest.mark.asyncio
    async def test_generated_once(self, gate, sink):
        """Test the password is generated and emitted only once."""
        assert gate.has_password is False

        first = await gate.ensure_password()
        second = await gate.ensure_password()

        assert first == second
        assert sink.secrets == [first]
        assert gate.has_password is True

    @pytest.mark.asyncio
    async def test_concurrent_generation(self, gate, sink):
        """Test simultaneous first calls share one password."""
        results = await asyncio.gather(*(gate.ensure_password() for _ in range(5)))

        assert len(set(results)) == 1
        assert len(sink.secrets) == 1

    @pytest.mark.asyncio
    async def test_sink_failure(self, clock):
        """Test a failing sink raises PasswordGenerationError."""
        sink = MagicMock()
        sink.emit.side_effect = OSError("no console")
        gate = PasswordGate(sink=sink, clock=clock)

        with pytest.raises(PasswordGenerationError):
            await gate.ensure_password()
        assert gate.has_password is False

    @pytest.mark.asyncio
    async def test_check_generates_password(self, gate, sink):
        """Test a check before startup generation still works."""
        result = await gate.check(CLIENT, "WRONG-PASS")

        assert result.status == PasswordCheckStatus.FAILURE
        assert len(sink.secrets) == 1


class TestPasswordCheck:
    """Tests for check()."""

    @pytest.mark.asyncio
    async def test_correct_password(self, gate, sink):
        """Test a correct password verifies the client."""
        await gate.ensure_password()

        result = await gate.check(CLIENT, sink.last)

        assert result.is_valid is True
        assert await gate.is_verified(CLIENT) is True

    @pytest.mark.asyncio
    async def test_wrong_password(self, gate):
        """Test a wrong password reports remaining attempts."""
        result = await gate.check(CLIENT, "AAAA-AAAA-AAAA-AAAA")

        assert result.status == PasswordCheckStatus.FAILURE
        assert result.remaining_attempts == 4
        assert result.message == "Invalid password. 4 attempt(s) remaining."
        assert await gate.is_verified(CLIENT) is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("submitted", ["", "   ", None])
    async def test_blank_password_not_counted(self, gate, submitted):
        """Test an empty submission fails without using an attempt."""
        result = await gate.check(CLIENT, submitted)
        assert result.message == "Password is required."
        assert result.remaining_attempts == 5

        result = await gate.check(CLIENT, "nope")
        assert result.remaining_attempts == 4

    @pytest.mark.asyncio
    async def test_lockout_after_max_attempts(self, gate, sink):
        """Test five failures lock the client out, even for the right password."""
        await gate.ensure_password()

        results = [await gate.check(CLIENT, "nope") for _ in range(5)]

        assert [r.status for r in results[:4]] == [PasswordCheckStatus.FAILURE] * 4
        assert results[4].status == PasswordCheckStatus.LOCKOUT
        assert results[4].seconds_remaining == 60

        sixth = await gate.check(CLIENT, sink.last)
        assert sixth.status == PasswordCheckStatus.LOCKOUT
        assert await gate.is_verified(CLIENT) is False

    @pytest.mark.asyncio
    async def test_lockout_countdown(self, gate, clock):
        """Test seconds remaining counts down and rounds up."""
        for _ in range(5):
            await gate.check(CLIENT, "nope")

        clock.advance(10.5)
        result = await gate.check(CLIENT, "nope")

        assert result.is_locked_out is True
        assert result.seconds_remaining == 50

    @pytest.mark.asyncio
    async def test_lockout_expires(self, gate, clock, sink):
        """Test the counter starts over once the lockout has passed."""
        for _ in range(5):
            await gate.check(CLIENT, "nope")

        clock.advance(60)
        result = await gate.check(CLIENT, "nope")
        assert result.status == PasswordCheckStatus.FAILURE
        assert result.remaining_attempts == 4

        assert (await gate.check(CLIENT, sink.last)).is_valid is True

    @pytest.mark.asyncio
    async def test_success_resets_failures(self, gate, sink):
        """Test a correct password clears earlier failures."""
        await gate.ensure_password()
        for _ in range(3):
            await gate.check(CLIENT, "nope")

        await gate.check(CLIENT, sink.last)
        result = await gate.check(CLIENT, "nope")

        assert result.remaining_attempts == 4

    @pytest.mark.asyncio
    async def test_clients_are_isolated(self, gate, sink):
        """Test one client's lockout does not affect another."""
        await gate.ensure_password()
        for _ in range(5):
            await gate.check(CLIENT, "nope")

        result = await gate.check("198.51.100.2", sink.last)

        assert result.is_valid is True

    @pytest.mark.asyncio
    async def test_concurrent_failures_are_serialized(self, gate):
        """Test parallel wrong submissions never exceed the attempt limit."""
        results = await asyncio.gather(*(gate.check(CLIENT, "nope") for _ in range(10)))

        failures = [r for r in results if r.status == PasswordCheckStatus.FAILURE]
        lockouts = [r for r in results if r.is_locked_out]
        assert len(failures) == 4
        assert len(lockouts) == 6

    @pytest.mark.asyncio
    async def test_custom_limits(self, sink, clock):
        """Test configured attempt and lockout limits are used."""
        gate = PasswordGate(sink=sink, clock=clock, max_attempts=2, lockout_seconds=300)

        await gate.check(CLIENT, "nope")
        result = await gate.check(CLIENT, "nope")

        assert result.is_locked_out is True
        assert result.seconds_remaining == 300


class TestVerification:
    """Tests for verification expiry, revoke and reset."""

    @pytest.mark.asyncio
    async def test_verification_expires(self, gate, sink, clock):
        """Test verification lapses after the TTL."""
        await gate.ensure_password()
        await gate.check(CLIENT, sink.last)

        clock.advance(3599)
        assert await gate.is_verified(CLIENT) is True

        clock.advance(1)
        assert await gate.is_verified(CLIENT) is False

    @pytest.mark.asyncio
    async def test_unknown_client(self, gate):
        """Test unknown and empty client ids are not verified."""
        assert await gate.is_verified(CLIENT) is False
        assert await gate.is_verified("") is False

    @pytest.mark.asyncio
    async def test_revoke(self, gate, sink):
        """Test revoke drops one client's verification."""
        await gate.ensure_password()
        await gate.check(CLIENT, sink.last)

        await gate.revoke(CLIENT)

        assert await gate.is_verified(CLIENT) is False

    @pytest.mark.asyncio
    async def test_reset(self, sink, clock):
        """Test reset forgets password, attempts and verifications."""
        passwords = iter(["AAAA-BBBB-CCCC-DDDD", "EEEE-FFFF-GGGG-HHHH"])
        gate = PasswordGate(sink=sink, clock=clock, generator=lambda: next(passwords))
        await gate.check(CLIENT, "AAAA-BBBB-CCCC-DDDD")
        await gate.check("198.51.100.2", "nope")

        await gate.reset()

        assert gate.has_password is False
        assert sink.cleared == 1
        assert await gate.is_verified(CLIENT) is False
        result = await gate.check("198.51.100.2", "nope")
        assert result.remaining_attempts == 4
        assert sink.secrets == ["AAAA-BBBB-CCCC-DDDD", "EEEE-FFFF-GGGG-HHHH"]


class TestRecordStores:
    """Tests for the stores holding attempt and verification records."""

    @pytest.mark.asyncio
    async def test_injected_empty_stores_are_used(self, sink, clock):
        """Test stores passed in are kept even while they hold no records."""
        attempts = MemoryExpiringStore(clock=clock)
        verifications = MemoryExpiringStore(clock=clock)
        gate = PasswordGate(sink=sink, attempts=attempts, verifications=verifications, clock=clock)

        assert gate.attempts is attempts
        assert gate.verifications is verifications

        await gate.check(CLIENT, "nope")
        assert await attempts.get(CLIENT) == {"failure_count": 1, "lockout_until": None}

        await gate.check("198.51.100.2", sink.last)
        assert len(verifications) == 1
        assert await verifications.get("198.51.100.2") is not None

    @pytest.mark.asyncio
    async def test_lockout_record_expires_with_lockout(self, sink, clock):
        """Test a lockout record leaves the store when the lockout ends."""
        attempts = MemoryExpiringStore(clock=clock)
        gate = PasswordGate(sink=sink, attempts=attempts, clock=clock)
        for _ in range(5):
            await gate.check(CLIENT, "nope")
        assert len(attempts) == 1

        clock.advance(59)
        assert attempts.purge_expired() == 0

        clock.advance(1)
        assert attempts.purge_expired() == 1
        assert len(attempts) == 0

    @pytest.mark.asyncio
    async def test_failures_forgotten_after_window(self, sink, clock):
        """Test failures older than the attempt window stop counting."""
        attempts = MemoryExpiringStore(clock=clock)
        gate = PasswordGate(sink=sink, attempts=attempts, clock=clock, attempt_window_seconds=600)
        for _ in range(3):
            await gate.check(CLIENT, "nope")

        clock.advance(599)
        assert (await gate.check(CLIENT, "nope")).remaining_attempts == 1

        clock.advance(600)
        result = await gate.check(CLIENT, "nope")

        assert result.status == PasswordCheckStatus.FAILURE
        assert result.remaining_attempts == 4

    @pytest.mark.asyncio
    async def test_stale_records_from_many_clients_are_purged(self, sink, clock):
        """Test one-off failures from rotating addresses do not pile up."""
        attempts = MemoryExpiringStore(clock=clock)
        gate = PasswordGate(sink=sink, attempts=attempts, clock=clock, attempt_window_seconds=600)
        for i in range(100):
            await gate.check(f"10.0.0.{i}", "nope")
        assert len(attempts) == 100

        clock.advance(600)
        await gate.check("10.0.1.1", "nope")

        assert len(attempts) == 1
