from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

import uvicorn

from git_manager.api import create_app
from git_manager.config import load_options
from git_manager.credentials import StaticCredentials, redact_url
from git_manager.errors import GitManagerError
from git_manager.reconciler import Reconciler
from git_manager.service import GitManagerService

__VERSION__ = "0.1.0"

_LOGGER = logging.getLogger(__name__)


async def main() -> None:
    options = load_options()
    log_level_map = {
        "trace": logging.DEBUG,
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
    }
    logging.getLogger().setLevel(log_level_map.get(options.log_level.lower(), logging.INFO))

    build_version = os.getenv("ADDON_BUILD_VERSION", "dev")
    _LOGGER.info(
        "ESPHome Git Manager starting | version=%s | build=%s | repo=%s | path=%s",
        __VERSION__,
        build_version,
        redact_url(options.repository_uri),
        options.local_path,
    )

    credentials = StaticCredentials.from_options(options)
    repository = await asyncio.to_thread(Reconciler(options, credentials).reconcile)
    service = GitManagerService(options, repository, credentials)

    server: uvicorn.Server | None = None
    if options.http_api_port > 0:
        config = uvicorn.Config(
            create_app(service), host="0.0.0.0", port=options.http_api_port, log_level="info"
        )
        server = uvicorn.Server(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _shutdown_signal() -> None:
        if server:
            server.should_exit = True
        loop.create_task(service.shutdown())
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _shutdown_signal)

    async def _run_service() -> None:
        try:
            await service.run()
        finally:
            # a failed iteration must take the HTTP server and the waiter down too
            if server:
                server.should_exit = True
            stop_event.set()

    async with asyncio.TaskGroup() as tg:
        tg.create_task(_run_service())
        if server:
            tg.create_task(server.serve())
        tg.create_task(stop_event.wait())


def run() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    exit_code = 0
    try:
        asyncio.run(main())
    except* GitManagerError as group:
        for exc in group.exceptions:
            _LOGGER.error("Fatal error: %s", exc, exc_info=exc)
        exit_code = 1
    return exit_code


if __name__ == "__main__":
    sys.exit(run())
