# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
Composition root and process entry point.

Wires the API client, snapshot cache, refresh scheduler, Prometheus
collector and HTTP server together and runs them until SIGINT/SIGTERM.

Exit codes:
    0: graceful shutdown
    1: the server failed to start, or either the HTTP drain or the refresh
       loops missed the shutdown timeout
    2: invalid configuration
"""

import asyncio
import logging
import signal
import sys
from collections.abc import Sequence
from types import FrameType

import uvicorn
from fastapi import FastAPI
from prometheus_client import CollectorRegistry

from . import __version__
from .cache import SnapshotCache
from .client import MihomoClient
from .config import ExporterConfig, parse_args
from .exceptions import ConfigurationError
from .observability import MihomoCollector
from .scheduler import RefreshScheduler
from .server import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


class ExporterServer(uvicorn.Server):
    """
    uvicorn server tied to the refresh scheduler.

    The first SIGINT/SIGTERM sets the scheduler's stop event straight away,
    so the refresh loops and their in-flight API calls wind down while
    uvicorn is still draining HTTP connections. ``drain_timed_out`` records
    whether that drain overran ``timeout_graceful_shutdown``.
    """

    def __init__(
        self, config: uvicorn.Config, scheduler: RefreshScheduler | None = None
    ):
        super().__init__(config)
        self.scheduler = scheduler
        self.drain_timed_out = False

    def handle_exit(self, sig: int, frame: FrameType | None) -> None:
        if self.scheduler is not None:
            self.scheduler.request_stop()
        super().handle_exit(sig, frame)

    async def _wait_tasks_to_complete(self) -> None:
        # Cancelled by uvicorn when timeout_graceful_shutdown expires
        try:
            await super()._wait_tasks_to_complete()
        except asyncio.CancelledError:
            self.drain_timed_out = True
            logger.error(
                f"HTTP connections did not drain within "
                f"{self.config.timeout_graceful_shutdown}s"
            )
            raise


def build_server(config: ExporterConfig) -> tuple[ExporterServer, FastAPI]:
    """
    Construct every component; returns the server and the app it runs.

    Raises:
        ConfigurationError: If the API URL or metric prefix is invalid
    """
    client = MihomoClient(config.api_url, token=config.api_token)
    cache = SnapshotCache()
    scheduler = RefreshScheduler(client, cache, config.refresh_config())

    registry = CollectorRegistry()
    registry.register(MihomoCollector(cache, prefix=config.metric_prefix))

    app = create_app(
        registry,
        scheduler=scheduler,
        client=client,
        telemetry_path=config.telemetry_path,
    )
    server = ExporterServer(
        uvicorn.Config(
            app,
            host=config.host,
            port=config.port,
            log_level=config.log_level.lower(),
            timeout_graceful_shutdown=config.shutdown_timeout,
            lifespan="on",
        ),
        scheduler=scheduler,
    )
    return server, app


def _signal_after_shutdown(signum: int, frame: FrameType | None) -> None:
    # uvicorn re-raises the signal it handled once it has shut down
    logger.debug(f"{signal.Signals(signum).name} received after shutdown")


def main(argv: Sequence[str] | None = None) -> int:
    """Run the exporter; returns the process exit code."""
    try:
        config = parse_args(argv)
    except ConfigurationError as e:
        configure_logging("INFO")
        logger.error(f"Invalid configuration: {e}")
        return EXIT_CONFIG

    configure_logging(config.log_level)
    logger.info(f"Starting mihomo-exporter {__version__}...")
    logger.info(f"Listening on {config.host}:{config.port}")
    logger.info(f"Connecting to Mihomo API at {config.api_url}")

    try:
        server, app = build_server(config)
    except ConfigurationError as e:
        logger.error(f"Failed to create Mihomo client: {e}")
        return EXIT_CONFIG

    signal.signal(signal.SIGINT, _signal_after_shutdown)
    signal.signal(signal.SIGTERM, _signal_after_shutdown)

    try:
        server.run()
    except KeyboardInterrupt:
        pass

    if not server.started:
        logger.error("HTTP server failed to start")
        return EXIT_FAILURE

    if server.drain_timed_out:
        logger.error("HTTP server did not drain within the shutdown timeout")
        return EXIT_FAILURE

    if not app.state.clean_shutdown:
        logger.error("Refresh loops did not stop within the shutdown timeout")
        return EXIT_FAILURE

    logger.info("Exporter stopped.")
    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
