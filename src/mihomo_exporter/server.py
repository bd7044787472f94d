# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
HTTP surface of the exporter.

A small FastAPI app serving an informational root page and the Prometheus
text exposition. The app's lifespan owns the refresh scheduler, so the
loops start with the server and stop during its graceful shutdown.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from . import __version__
from .client import MihomoClient
from .scheduler import RefreshScheduler

logger = logging.getLogger(__name__)

INDEX_TEMPLATE = """<html>
<head><title>Mihomo Exporter</title></head>
<body>
<h1>Mihomo Exporter</h1>
<p><a href='{telemetry_path}'>Metrics</a></p>
</body>
</html>
"""


def create_app(
    registry: CollectorRegistry,
    scheduler: RefreshScheduler | None = None,
    client: MihomoClient | None = None,
    telemetry_path: str = "/metrics",
) -> FastAPI:
    """
    Build the exporter's ASGI app.

    Args:
        registry: Registry rendered on every metrics request
        scheduler: Refresh scheduler started/stopped with the app lifespan
        client: API client closed when the app shuts down
        telemetry_path: Path serving the metrics exposition

    After shutdown ``app.state.clean_shutdown`` tells whether the refresh
    loops stopped within their timeout.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.clean_shutdown = True
        if scheduler is not None:
            await scheduler.start()
        try:
            yield
        finally:
            logger.info("Shutting down exporter")
            if scheduler is not None:
                app.state.clean_shutdown = await scheduler.stop()
            if client is not None:
                await client.aclose()

    app = FastAPI(
        title="Mihomo Exporter",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.clean_shutdown = True

    index_html = INDEX_TEMPLATE.format(telemetry_path=telemetry_path)

    @app.get("/", response_class=HTMLResponse)
    def index() -> str:
        return index_html

    # Sync handler: runs in the threadpool so collection never blocks the loop
    @app.get(telemetry_path)
    def metrics() -> Response:
        return Response(
            content=generate_latest(registry), media_type=CONTENT_TYPE_LATEST
        )

    return app


__all__ = ["create_app"]
