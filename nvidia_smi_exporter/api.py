# nvidia_smi_exporter/api.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST

from .collector.poller import Poller
from .collector.registry import MetricRegistry

INDEX_HTML = """<!doctype html>
<html>
    <head>
        <meta charset="utf-8">
        <title>Nvidia SMI Exporter</title>
    </head>
    <body>
        <h1>Nvidia SMI Exporter</h1>
        <p><a href="/metrics">Metrics</a></p>
    </body>
</html>"""


def create_app(registry: MetricRegistry, poller: Optional[Poller] = None) -> FastAPI:
    """Build the HTTP app around an existing registry.

    Handlers only read `registry`; they never trigger a poll. If `poller` is
    given it is started with the app and stopped on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if poller is not None:
            poller.start()
        yield
        if poller is not None:
            poller.stop(timeout=1)

    app = FastAPI(title="Nvidia SMI Exporter", lifespan=lifespan)
    app.state.registry = registry

    @app.get("/", response_class=HTMLResponse)
    def index() -> str:
        logging.info("Serving /index")
        return INDEX_HTML

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=registry.render(), media_type=CONTENT_TYPE_LATEST)

    return app
