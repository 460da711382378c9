from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from .models import StatusResponse
from .service import GitManagerService


def create_app(service: GitManagerService) -> FastAPI:
    app = FastAPI(title="ESPHome Git Manager", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/status", response_model=StatusResponse)
    async def status() -> StatusResponse:
        return service.status

    @app.post("/sync", status_code=202)
    async def manual_sync(body: dict[str, Any] | None = None) -> StatusResponse:
        reason = (body or {}).get("reason", "manual")
        service.request_sync(str(reason))
        return service.status

    @app.get("/config")
    async def config() -> dict[str, Any]:
        return service.public_config()

    return app
