"""
Tests for wizard contexts keyed by session id.
"""
import pytest

from setup_gate.setup.registry import StepRegistry
from setup_gate.setup.sessions import WizardSessionManager
from setup_gate.setup.steps import SetupStep


class OnlyStep(SetupStep):
    async def execute(self):
        pass


@pytest.fixture
def manager(tracker, clock):
    steps = StepRegistry().add_step(OnlyStep).build()
    return WizardSessionManager(steps, tracker, idle_timeout_seconds=1800, clock=clock)


class TestWizardSessionManager:
    """Tests for context creation, lookup and expiry."""

    def test_create_and_get(self, manager):
        """Test a created context can be looked up by id."""
        context = manager.create()

        assert manager.get(context.id) is context
        assert len(context.id) >= 32
        assert len(manager) == 1

    def test_contexts_have_separate_state(self, manager):
        """Test two sessions never share collected values."""
        first = manager.create()
        second = manager.create()
        first.state.set("name", "Alice")

        assert first.id != second.id
        assert second.state.get("name", str) is None

    @pytest.mark.parametrize("session_id", [None, "", "unknown"])
    def test_get_missing(self, manager, session_id):
        """Test absent ids return None."""
        assert manager.get(session_id) is None

    def test_get_or_create(self, manager):
        """Test get_or_create reuses live contexts and replaces unknown ones."""
        context = manager.get_or_create(None)

        assert manager.get_or_create(context.id) is context
        assert manager.get_or_create("stale-id") is not context
        assert len(manager) == 2

    def test_idle_expiry(self, manager, clock):
        """Test an idle context expires on read."""
        context = manager.create()

        clock.advance(1801)

        assert manager.get(context.id) is None
        assert len(manager) == 0

    def test_activity_extends_lifetime(self, manager, clock):
        """Test each lookup resets the idle timer."""
        context = manager.create()

        clock.advance(1000)
        assert manager.get(context.id) is context
        clock.advance(1000)
        assert manager.get(context.id) is context

    def test_destroy(self, manager):
        """Test destroy removes a context and reports whether it existed."""
        context = manager.create()

        assert manager.destroy(context.id) is True
        assert manager.destroy(context.id) is False
        assert manager.get(context.id) is None

    def test_clear(self, manager):
        """Test clear drops every context."""
        manager.create()
        manager.create()

        manager.clear()

        assert len(manager) == 0

    def test_cleanup_expired(self, manager, clock):
        """Test cleanup removes only idle contexts."""
        manager.create()
        clock.advance(1000)
        fresh = manager.create()
        clock.advance(900)

        assert manager.cleanup_expired() == 1
        assert manager.get(fresh.id) is fresh

    def test_create_sweeps_abandoned_contexts(self, manager, clock):
        """Test contexts nobody reads again are dropped when a new run starts."""
        abandoned = [manager.create() for _ in range(50)]
        clock.advance(1000)
        recent = manager.create()
        clock.advance(900)

        latest = manager.create()

        assert len(manager) == 2
        assert manager.get(recent.id) is recent
        assert manager.get(latest.id) is latest
        assert all(manager.get(context.id) is None for context in abandoned)
