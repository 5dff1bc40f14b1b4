"""FastAPI application exposing the application catalog and host metrics."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from .config import Settings, get_settings
from .errors import NotFound, StorageError, ValidationError
from .models import ApplicationInput
from .registry import ApplicationRegistry, open_registry
from .sampler import MetricsSampler


class ApplicationPayload(BaseModel):
    name: Optional[str] = ""
    description: Optional[str] = ""
    url: Optional[str] = ""
    icon: Optional[str] = ""

    def to_input(self) -> ApplicationInput:
        return ApplicationInput(
            name=self.name or "",
            url=self.url or "",
            description=self.description or "",
            icon=self.icon or "",
        )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[ApplicationRegistry] = None,
    sampler: Optional[MetricsSampler] = None,
) -> FastAPI:
    """Build the service; a registry that cannot be opened aborts startup."""
    settings = settings or get_settings()
    registry = registry or open_registry(settings.database_path)
    sampler = sampler or MetricsSampler(cpu_window=settings.cpu_sample_interval)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        owns_sampler = sampler.state == "new"
        if owns_sampler:
            await run_in_threadpool(sampler.start, settings.metrics_interval, settings.mount_point)
        try:
            yield
        finally:
            if owns_sampler:
                await run_in_threadpool(sampler.stop)

    app = FastAPI(
        title="Homelab Dashboard",
        description="Catalog of self-hosted applications and live host resource usage.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.sampler = sampler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(_request: Request, exc: RequestValidationError):
        logging.warning("Rejected request body: %s", exc.errors())
        return _error(400, "Invalid request body")

    @app.exception_handler(ValidationError)
    async def invalid_application(_request: Request, exc: ValidationError):
        return _error(400, str(exc))

    @app.exception_handler(NotFound)
    async def application_not_found(_request: Request, _exc: NotFound):
        return _error(404, "Application not found")

    @app.exception_handler(StorageError)
    async def storage_failure(_request: Request, exc: StorageError):
        logging.error("Storage failure while handling request: %s", exc)
        return _error(500, "Storage operation failed")

    @app.get("/api/apps", summary="List applications, newest first", tags=["apps"])
    def list_applications():
        return [item.to_dict() for item in registry.list()]

    @app.post("/api/apps", status_code=201, summary="Create an application", tags=["apps"])
    def create_application(payload: ApplicationPayload):
        return registry.create(payload.to_input()).to_dict()

    @app.get("/api/apps/{app_id}", summary="Fetch one application", tags=["apps"])
    def get_application(app_id: str):
        return registry.get(app_id).to_dict()

    @app.put("/api/apps/{app_id}", summary="Replace an application", tags=["apps"])
    def update_application(app_id: str, payload: ApplicationPayload):
        return registry.update(app_id, payload.to_input()).to_dict()

    @app.delete("/api/apps/{app_id}", status_code=204, summary="Delete an application", tags=["apps"])
    def delete_application(app_id: str):
        registry.delete(app_id)
        return Response(status_code=204)

    @app.get("/api/metrics", summary="Return the latest host metrics snapshot", tags=["metrics"])
    def get_metrics():
        return sampler.get_snapshot().to_dict()

    @app.get("/health", summary="Service health check", tags=["system"], response_class=PlainTextResponse)
    def health():
        return "OK"

    return app
