#!/usr/bin/env python
"""
nvidia-smi-exporter [--listen-address HOST:PORT] [--test-mode]

Example:
    TEST_MODE=1 nvidia-smi-exporter --listen-address 127.0.0.1:9202
"""
from __future__ import annotations

import logging
from typing import Optional

import typer
import uvicorn

from .api import create_app
from .collector.poller import FailurePolicy, Poller, Source, fixture_source, nvidia_smi_source
from .collector.registry import MetricRegistry
from .config import Settings
from .errors import ConfigError

app = typer.Typer(add_completion=False)


def _source(settings: Settings) -> Source:
    if settings.test_mode:
        logging.info("Test mode is enabled, reading %s", settings.fixture_path)
        return fixture_source(settings.fixture_path)
    return nvidia_smi_source(settings.nvidia_smi_path, timeout=settings.timeout)


def build(settings: Settings):
    """Wire registry, poller and HTTP app from settings."""
    registry = MetricRegistry(stale_after=settings.stale_after)
    poller = Poller(
        registry,
        _source(settings),
        interval=settings.poll_interval,
        policy=settings.failure_policy,
        max_backoff=settings.max_backoff,
    )
    return create_app(registry, poller), registry, poller


@app.command()
def serve(
    listen_address: Optional[str] = typer.Option(None, help="host:port, overrides LISTEN_ADDRESS"),
    test_mode: bool = typer.Option(False, "--test-mode", help="replay the fixture instead of nvidia-smi"),
    failure_policy: Optional[FailurePolicy] = typer.Option(None, help="what to do when nvidia-smi fails"),
):
    """Poll nvidia-smi and serve the values on /metrics."""
    try:
        settings = Settings.from_env()
        overrides = {}
        if listen_address:
            overrides["listen_address"] = listen_address
        if test_mode:
            overrides["test_mode"] = True
        if failure_policy is not None:
            overrides["failure_policy"] = failure_policy
        settings = settings.model_copy(update=overrides)
        host, port = settings.host_port()
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2)

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s  %(levelname)s %(message)s",
    )
    web_app, _, _ = build(settings)
    logging.info("Nvidia SMI exporter listening on %s", settings.listen_address)
    uvicorn.run(web_app, host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    app()          # `python -m nvidia_smi_exporter.cli --test-mode`
