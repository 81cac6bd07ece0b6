from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wte_server.app.config import ConfigError, ServerConfig, get_settings
from wte_server.app.errors import ExecServiceError, InternalError
from wte_server.app.models import HealthResponse
from wte_server.app.routers import activity, exec as exec_router
from wte_server.app.workspaces.clients import ClientProvider, KubernetesClientProvider
from wte_server.app.workspaces.lifecycle import ActivityManager, new_activity_manager

logger = logging.getLogger("wte_server")

SERVICE_NAME = "web-terminal-exec"


def create_app(
    settings: Optional[ServerConfig] = None,
    client_provider: Optional[ClientProvider] = None,
    activity_manager: Optional[ActivityManager] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    settings defaults to the cached environment configuration and
    client_provider to in-cluster Kubernetes clients. When activity_manager is
    not given it is built during startup; a configuration or client error then
    aborts startup.
    """
    settings = settings or get_settings()
    client_provider = client_provider or KubernetesClientProvider(exec_timeout_seconds=settings.exec_timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        manager = app.state.activity_manager
        if manager is None:
            try:
                manager = new_activity_manager(settings, client_provider)
            except (ConfigError, InternalError) as e:
                logger.critical("Failed to set up activity manager: %s", e)
                raise SystemExit(1)
            app.state.activity_manager = manager

        manager.start()
        logger.info("Web Terminal Exec startup complete.")
        try:
            yield
        finally:
            await manager.shutdown()
            logger.info("Web Terminal Exec shutdown complete.")

    app = FastAPI(
        title="Web Terminal Exec",
        version=settings.service_version,
        description="Prepares terminal sessions inside a DevWorkspace and stops it when idle.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.client_provider = client_provider
    app.state.activity_manager = activity_manager

    @app.exception_handler(ExecServiceError)
    async def _exec_service_error_handler(request: Request, exc: ExecServiceError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.middleware("http")
    async def _log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "endpoint=%s method=%s status=%d duration=%.1fms",
            request.url.path,
            request.method,
            response.status_code,
            elapsed_ms,
        )
        return response

    app.include_router(exec_router.router)
    app.include_router(activity.router)

    @app.get("/healthz", response_model=HealthResponse)
    async def healthz() -> HealthResponse:
        """
        Basic health probe; intentionally unauthenticated.
        """
        return HealthResponse(status="ok", service=SERVICE_NAME, version=app.version)

    return app
