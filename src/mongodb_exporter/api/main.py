from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from mongodb_exporter import __version__
from mongodb_exporter.api.routes import health, metrics
from mongodb_exporter.config import get_settings
from mongodb_exporter.exporter import Exporter


def create_app(exporter: Exporter | None = None) -> FastAPI:
    exporter = exporter or Exporter(get_settings())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        exporter.close()

    app = FastAPI(
        title="MongoDB Exporter",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )
    app.state.exporter = exporter

    app.add_api_route(
        exporter.settings.web_telemetry_path,
        metrics.metrics_endpoint,
        methods=["GET"],
        tags=["metrics"],
        include_in_schema=False,
    )
    app.include_router(health.router, tags=["health"])
    return app
