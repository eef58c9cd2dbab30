"""
Demo application held behind the setup wizard.

Three steps collect an administrator account, site settings and a database
URL. Executing them writes the collected configuration to a JSON file next to
the completion marker of the settings the app was built with.

Run with ``python run_demo.py`` or the ``setup-gate-demo`` script.
"""

import argparse
import json
from pathlib import Path
from typing import List, Optional, Type

import uvicorn
from fastapi import FastAPI

from setup_gate.config import SetupSettings, get_setup_settings
from setup_gate.main import create_app
from setup_gate.setup.registry import StepRegistry
from setup_gate.setup.state import StateStore
from setup_gate.setup.steps import SetupStep, StepFactory
from setup_gate.setup.validators import ValidationOutcome
from setup_gate.utils.logger import get_logger

logger = get_logger(__name__)

CONFIG_FILE_NAME = "site-config.json"

SUPPORTED_DATABASE_SCHEMES = ("sqlite", "postgresql", "mysql")


def config_path_for(settings: SetupSettings) -> Path:
    return Path(settings.marker_directory) / CONFIG_FILE_NAME


class DemoStep(SetupStep):
    """Demo step that writes its section of the site config to ``config_path``."""

    def __init__(self, state: StateStore, config_path: Optional[Path] = None):
        super().__init__(state)
        self.config_path = config_path or config_path_for(get_setup_settings())

    def merge_config(self, section: str, values: dict) -> None:
        """Write one section of the site config, keeping the others."""
        path = self.config_path
        config = {}
        if path.exists():
            config = json.loads(path.read_text(encoding="utf-8"))
        config[section] = values
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(config, indent=2), encoding="utf-8")
        logger.info("site_config_written", section=section, path=str(path))


class AdminAccountStep(DemoStep):
    title = "Administrator"
    description = "Create the first administrator account"
    order = 10

    async def validate(self) -> ValidationOutcome:
        errors = []
        email = self.state.get("admin_email", str, "")
        password = self.state.get("admin_password", str, "")
        if not email or "@" not in email:
            errors.append("A valid administrator email is required")
        if len(password) < 12:
            errors.append("Administrator password must be at least 12 characters")
        return ValidationOutcome.from_errors(errors)

    async def execute(self) -> None:
        # Only the account name is persisted by the demo
        self.merge_config("admin", {"email": self.state.get("admin_email", str)})


class SiteSettingsStep(DemoStep):
    title = "Site settings"
    description = "Name the site and choose its public URL"
    order = 20

    async def on_enter(self) -> None:
        if not self.state.contains("site_name"):
            self.state.set("site_name", "My Site")

    async def validate(self) -> ValidationOutcome:
        errors = []
        if not self.state.get("site_name", str, "").strip():
            errors.append("Site name is required")
        url = self.state.get("site_url", str, "")
        if not url.startswith(("http://", "https://")):
            errors.append("Site URL must start with http:// or https://")
        return ValidationOutcome.from_errors(errors)

    async def execute(self) -> None:
        self.merge_config("site", {
            "name": self.state.get("site_name", str),
            "url": self.state.get("site_url", str),
        })


class DatabaseStep(DemoStep):
    title = "Database"
    description = "Connection string for the application database"
    order = 30

    async def validate(self) -> ValidationOutcome:
        url = self.state.get("database_url", str, "")
        scheme = url.split("://", 1)[0].split("+", 1)[0] if "://" in url else ""
        if scheme not in SUPPORTED_DATABASE_SCHEMES:
            return self.invalid(
                "Database URL must use one of: " + ", ".join(SUPPORTED_DATABASE_SCHEMES)
            )
        return self.valid()

    async def execute(self) -> None:
        self.merge_config("database", {"url": self.state.get("database_url", str)})


def build_registry() -> StepRegistry:
    return (
        StepRegistry()
        .add_step(AdminAccountStep)
        .add_step(SiteSettingsStep)
        .add_step(DatabaseStep)
    )


def demo_step_factory(settings: SetupSettings) -> StepFactory:
    """Build demo steps that write next to ``settings``' completion marker."""
    config_path = config_path_for(settings)

    def factory(step_type: Type[SetupStep], state: StateStore) -> SetupStep:
        if issubclass(step_type, DemoStep):
            return step_type(state, config_path=config_path)
        return step_type(state)

    return factory


def create_demo_app(settings: Optional[SetupSettings] = None) -> FastAPI:
    settings = settings or get_setup_settings()
    app = create_app(
        build_registry(),
        settings=settings,
        step_factory=demo_step_factory(settings),
        title="Setup Gate Demo",
    )

    @app.get("/")
    async def home():
        return {"message": "Setup is complete. Welcome!"}

    return app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Setup gate demo server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind the server")
    parser.add_argument("--port", type=int, default=8080, help="Port to bind the server")
    parser.add_argument(
        "--reload",
        action="store_true",
        default=False,
        help="Enable auto-reload (development only)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    """Serve the demo app with uvicorn."""
    args = parse_args(argv)
    logger.info("demo_server_starting", host=args.host, port=args.port, reload=args.reload)
    uvicorn.run(
        "setup_gate.demo:create_demo_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
