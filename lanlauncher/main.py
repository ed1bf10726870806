"""
LAN Party Launcher application entry point.

Starts mDNS discovery and the session controller, and serves the
read-only status API on the same event loop.
"""

import argparse
import asyncio
import logging
import signal
import sys

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from lanlauncher import __version__
from lanlauncher.api.routes import init_routes, router
from lanlauncher.api.websocket import ConnectionManager
from lanlauncher.config import LauncherConfig, load_config
from lanlauncher.discovery.service import ZeroconfDiscovery
from lanlauncher.errors import ConfigError, TransportError
from lanlauncher.session.controller import SessionController

logger = logging.getLogger(__name__)


def create_app(controller: SessionController, ws_manager: ConnectionManager) -> FastAPI:
    """Build the status API around a running controller."""
    init_routes(controller)

    app = FastAPI(title="LAN Party Launcher", version=__version__)
    app.include_router(router)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await ws_manager.connect(websocket)
        try:
            # Keep the connection alive; we don't expect client messages
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)

    return app


class Shutdown:
    """Holds the exit status and wakes the main task when it is time to stop."""

    def __init__(self) -> None:
        self.event = asyncio.Event()
        self.exit_code = 0

    def request(self, exit_code: int = 0) -> None:
        if self.event.is_set():
            return
        self.exit_code = exit_code
        self.event.set()


async def run(config: LauncherConfig) -> int:
    """Run the launcher until a signal or a fatal error. Returns the exit status."""
    loop = asyncio.get_running_loop()
    shutdown = Shutdown()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.request, 0)

    discovery = ZeroconfDiscovery()
    try:
        await discovery.start()
    except TransportError as e:
        logger.error(f"Cannot reach the discovery transport: {e}")
        return 1

    controller = SessionController(config, discovery)
    controller.on_fatal(lambda exc: shutdown.request(1))

    ws_manager = ConnectionManager(controller.snapshot)
    controller.on_event(ws_manager.handle_event)

    server: uvicorn.Server | None = None
    server_task: asyncio.Task | None = None

    def on_server_done(task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            shutdown.request(0)
        else:
            logger.error(f"Status API failed: {task.exception()}")
            shutdown.request(1)

    try:
        controller.start()

        if config.api_enabled:
            app = create_app(controller, ws_manager)
            server = uvicorn.Server(
                uvicorn.Config(app, host=config.api_host, port=config.api_port, log_level="info")
            )
            server_task = asyncio.create_task(server.serve())
            server_task.add_done_callback(on_server_done)

        logger.info(
            f"Launcher ready: game port {config.port}, "
            f"election wait {config.source_wait}s, can-host {config.can_host}"
        )
        await shutdown.event.wait()

    finally:
        logger.info("Shutting down launcher...")
        # Ctrl-C reaches the game too; its exit must not relaunch anything
        controller.begin_shutdown()
        if server is not None and server_task is not None:
            server.should_exit = True
            await asyncio.gather(server_task, return_exceptions=True)
        controller.stop()
        await controller.advertiser.drain()
        await discovery.stop()

    return shutdown.exit_code


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LAN party game launcher")
    parser.add_argument("-c", "--config", default=None, help="Config file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    try:
        return asyncio.run(run(config))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
