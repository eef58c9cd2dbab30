"""
FastAPI integration.

- build_setup_gate(): wire the gate components from settings
- install_setup_gate(): add the middleware, the wizard API and error handlers
  to an existing app
- setup_gate_lifespan: startup/shutdown hooks (logging, Redis, password)
- create_app(): app factory for applications built around the gate
"""

import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI

from setup_gate import __version__
from setup_gate.api import setup as setup_api
from setup_gate.auth.password import PasswordGate
from setup_gate.auth.sinks import (
    CompositeSecretSink,
    ConsoleSecretSink,
    FileSecretSink,
    SecretSink,
)
from setup_gate.auth.stores import RedisExpiringStore
from setup_gate.config import SetupSettings, get_setup_settings
from setup_gate.dependencies import SetupGate
from setup_gate.errors import register_exception_handlers
from setup_gate.middleware.setup_gate import RequestGate, SetupGateMiddleware
from setup_gate.setup.completion import CompletionTracker, FileCompletionTracker
from setup_gate.setup.registry import StepRegistry
from setup_gate.setup.sessions import WizardSessionManager
from setup_gate.setup.steps import StepFactory
from setup_gate.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)

ATTEMPTS_REDIS_PREFIX = "setup:attempts:"
VERIFIED_REDIS_PREFIX = "setup:verified:"


def _default_sink(settings: SetupSettings) -> SecretSink:
    sinks = [ConsoleSecretSink()]
    if settings.write_password_file:
        sinks.append(FileSecretSink(settings.password_path))
    return CompositeSecretSink(sinks)


def build_setup_gate(
    registry: StepRegistry,
    settings: Optional[SetupSettings] = None,
    completion: Optional[CompletionTracker] = None,
    sink: Optional[SecretSink] = None,
    step_factory: Optional[StepFactory] = None,
    clock: Callable[[], float] = time.time,
) -> SetupGate:
    """
    Build all gate components.

    Step registrations are validated here, so a misconfigured registry fails
    before the app starts serving.

    Raises:
        SetupConfigurationError: If the registry is empty or has duplicates
    """
    settings = settings or get_setup_settings()
    steps = registry.build()

    completion = completion or FileCompletionTracker(
        settings.marker_path,
        version=settings.app_version,
    )

    password_gate = PasswordGate(
        sink=sink or _default_sink(settings),
        max_attempts=settings.password_max_attempts,
        lockout_seconds=settings.password_lockout_seconds,
        attempt_window_seconds=settings.password_attempt_window_seconds,
        verification_ttl_seconds=settings.verification_ttl_seconds,
        clock=clock,
    )

    sessions = WizardSessionManager(
        steps=steps,
        completion=completion,
        step_factory=step_factory,
        idle_timeout_seconds=settings.session_idle_minutes * 60,
        clock=clock,
    )

    request_gate = RequestGate(
        completion=completion,
        setup_path=settings.setup_path,
        excluded_paths=settings.get_excluded_paths_list(),
    )

    return SetupGate(
        settings=settings,
        completion=completion,
        password_gate=password_gate,
        sessions=sessions,
        request_gate=request_gate,
    )


def install_setup_gate(app: FastAPI, gate: SetupGate) -> SetupGate:
    """Attach the gate to an app: middleware, wizard API, error handlers."""
    app.state.setup_gate = gate
    app.add_middleware(SetupGateMiddleware, gate=gate.request_gate)
    register_exception_handlers(app)
    app.include_router(setup_api.router, prefix=gate.settings.setup_path)
    return gate


@asynccontextmanager
async def setup_gate_lifespan(app: FastAPI):
    """Startup and shutdown for an app with the gate installed."""
    gate: SetupGate = app.state.setup_gate
    settings = gate.settings

    configure_logging(settings.log_level, settings.log_json)
    logger.info("setup_gate_starting", setup_path=settings.setup_path)

    redis_connected = False
    if settings.redis_url:
        from setup_gate.redis_client import connect_redis

        redis = await connect_redis(settings.redis_url)
        redis_connected = True
        gate.password_gate.use_stores(
            attempts=RedisExpiringStore(redis, ATTEMPTS_REDIS_PREFIX),
            verifications=RedisExpiringStore(redis, VERIFIED_REDIS_PREFIX),
        )

    complete = await gate.completion.is_complete()
    if not complete and settings.require_password:
        # Generation failure aborts startup
        await gate.password_gate.ensure_password()

    logger.info("setup_gate_ready", setup_complete=complete)

    yield

    logger.info("setup_gate_stopping")
    if redis_connected:
        from setup_gate.redis_client import close_redis
        await close_redis()


def create_app(
    registry: StepRegistry,
    settings: Optional[SetupSettings] = None,
    completion: Optional[CompletionTracker] = None,
    sink: Optional[SecretSink] = None,
    step_factory: Optional[StepFactory] = None,
    title: str = "Setup Gate",
) -> FastAPI:
    """Create a FastAPI app held behind the setup wizard."""
    gate = build_setup_gate(
        registry,
        settings=settings,
        completion=completion,
        sink=sink,
        step_factory=step_factory,
    )

    app = FastAPI(title=title, version=__version__, lifespan=setup_gate_lifespan)
    install_setup_gate(app, gate)

    @app.get("/health")
    async def health():
        """Liveness check; excluded from the setup redirect by default."""
        return {"status": "ok"}

    return app
