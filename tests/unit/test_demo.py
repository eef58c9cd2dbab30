"""
Tests for the demo application steps.
"""
import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from setup_gate.config import SetupSettings
from setup_gate.demo import (
    AdminAccountStep,
    DatabaseStep,
    SiteSettingsStep,
    build_registry,
    config_path_for,
    create_demo_app,
    demo_step_factory,
    main,
)
from setup_gate.setup.state import StateStore


@pytest.fixture
def demo_settings(tmp_path):
    return SetupSettings(marker_directory=str(tmp_path), log_json=False)


class TestDemoSteps:
    """Tests for the demo steps."""

    def test_registry_order(self):
        """Test the demo wizard runs admin, site, database."""
        assert [d.name for d in build_registry().build()] == [
            "AdminAccountStep",
            "SiteSettingsStep",
            "DatabaseStep",
        ]

    @pytest.mark.asyncio
    async def test_admin_validation(self):
        """Test admin step reports every problem at once."""
        state = StateStore()
        state.set("admin_email", "not-an-email")
        state.set("admin_password", "short")

        outcome = await AdminAccountStep(state).validate()

        assert outcome.valid is False
        assert len(outcome.errors) == 2

    @pytest.mark.asyncio
    async def test_site_defaults_on_enter(self):
        """Test entering the site step pre-fills the site name."""
        state = StateStore()

        await SiteSettingsStep(state).on_enter()

        assert state.get("site_name", str) == "My Site"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url,valid",
        [
            ("sqlite:///app.db", True),
            ("postgresql+asyncpg://db/app", True),
            ("mongodb://db/app", False),
            ("", False),
        ],
    )
    async def test_database_validation(self, url, valid):
        """Test only supported database schemes pass."""
        state = StateStore()
        state.set("database_url", url)

        assert (await DatabaseStep(state).validate()).valid is valid

    @pytest.mark.asyncio
    async def test_execute_writes_config(self, tmp_path):
        """Test each step writes its own section of the site config."""
        config_path = tmp_path / "site-config.json"
        state = StateStore()
        state.set("admin_email", "admin@example.com")
        state.set("site_name", "Demo")
        state.set("site_url", "https://demo.example.com")
        state.set("database_url", "sqlite:///app.db")

        for step_type in (AdminAccountStep, SiteSettingsStep, DatabaseStep):
            await step_type(state, config_path=config_path).execute()

        config = json.loads(config_path.read_text(encoding="utf-8"))
        assert config == {
            "admin": {"email": "admin@example.com"},
            "site": {"name": "Demo", "url": "https://demo.example.com"},
            "database": {"url": "sqlite:///app.db"},
        }

    @pytest.mark.asyncio
    async def test_step_factory_targets_settings_directory(self, tmp_path):
        """Test steps built for given settings write next to their marker."""
        settings = SetupSettings(marker_directory=str(tmp_path / "custom"), log_json=False)
        state = StateStore()
        state.set("database_url", "postgresql://db/app")

        step = demo_step_factory(settings)(DatabaseStep, state)
        await step.execute()

        assert step.config_path == tmp_path / "custom" / "site-config.json"
        config = json.loads(config_path_for(settings).read_text(encoding="utf-8"))
        assert config == {"database": {"url": "postgresql://db/app"}}


class TestDemoApp:
    """Tests for the demo app factory and launcher."""

    def test_home_redirects_until_setup(self, demo_settings, capsys):
        """Test the demo home page is behind the wizard."""
        app = create_demo_app(settings=demo_settings)

        with TestClient(app) as client:
            response = client.get("/", follow_redirects=False)

        assert response.status_code == 302
        assert "SETUP WIZARD PASSWORD" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_app_writes_config_for_its_own_settings(self, tmp_path):
        """Test a demo built with custom settings keeps its config beside its marker."""
        settings = SetupSettings(marker_directory=str(tmp_path / "site-a"), log_json=False)
        default_settings = SetupSettings(marker_directory=str(tmp_path / "default"), log_json=False)
        app = create_demo_app(settings=settings)
        context = app.state.setup_gate.sessions.create()
        context.state.set("database_url", "sqlite:///a.db")

        with patch("setup_gate.demo.get_setup_settings", return_value=default_settings):
            steps = context.orchestrator.all_steps()
            await steps[-1].execute()

        assert (tmp_path / "site-a" / "site-config.json").exists()
        assert not (tmp_path / "default").exists()

    def test_main_runs_uvicorn(self):
        """Test the launcher serves the demo app factory with uvicorn."""
        with patch("setup_gate.demo.uvicorn.run") as mock_run:
            main(["--port", "9000", "--reload"])

        mock_run.assert_called_once_with(
            "setup_gate.demo:create_demo_app",
            factory=True,
            host="127.0.0.1",
            port=9000,
            reload=True,
        )
