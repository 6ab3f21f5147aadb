"""FastAPI application factory for the UpdateBot Push API."""

import os
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.api_orchestrator import APIOrchestrator
from api.event_bus import EventBus
from api.routes import config_routes, events, health, runs
from orchestrator.scheduler import HostScheduler, PollScheduler, ThreadPoolHostScheduler
from orchestrator.service import OperationFactory, RunService
from utils.config import Config, load_config
from utils.logger import setup_logger


def create_app(
    config: Optional[Config] = None,
    host: Optional[HostScheduler] = None,
    operation_factory: Optional[OperationFactory] = None,
    client: Optional[Any] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Configuration to use; loaded from backend/config.yaml if None
        host: Shared scheduling facility; a bounded thread pool if None
        operation_factory: Override for how operation handles are built
        client: Embedded UpdateBot client, used when operation.type is in_process
    """
    backend_root = Path(__file__).parent.parent.parent
    if config is None:
        config = load_config(str(backend_root / "config.yaml"))
    setup_logger(level=config.logging.level, log_format=config.logging.format, log_file=config.logging.file)

    app = FastAPI(
        title="UpdateBot Push API",
        description="Push source changes with UpdateBot and wait for the resulting pull requests",
        version="0.1.0",
    )

    frontend_url = os.environ.get("FRONTEND_URL", "http://localhost:3000")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Initialize state eagerly (lifespan protocol unreliable on this stack)
    host = host or ThreadPoolHostScheduler(max_workers=config.scheduler.max_workers)
    event_bus = EventBus()
    orchestrator = APIOrchestrator(event_bus, PollScheduler(host))
    app.state.backend_root = str(backend_root)
    app.state.config = config
    app.state.event_bus = event_bus
    app.state.run_service = RunService(
        config,
        host=host,
        orchestrator=orchestrator,
        operation_factory=operation_factory,
        client=client,
    )

    @app.on_event("shutdown")
    def _shutdown_runs():
        app.state.run_service.shutdown()

    app.include_router(health.router, prefix="/api")
    app.include_router(runs.router, prefix="/api")
    app.include_router(config_routes.router, prefix="/api")
    app.include_router(events.router, prefix="/api")

    return app
