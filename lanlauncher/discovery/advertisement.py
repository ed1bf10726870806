"""
Local advertisement manager.

Owns the two records this node publishes: the candidate ("client") record
that is always up, and the host record that only exists while this node
is hosting a game.
"""

import asyncio
import logging
from typing import Callable

from lanlauncher.config import (
    CAN_HOST_KEY,
    CLIENT_SERVICE_TYPE,
    HOST_SERVICE_TYPE,
    WAD_KEY,
    LauncherConfig,
)
from lanlauncher.discovery.identity import alternative_service_name, default_service_name
from lanlauncher.errors import CollisionError

logger = logging.getLogger(__name__)


class LocalService:
    """One of our own discovery records and its publication state."""

    def __init__(
        self,
        record_type: str,
        port: int,
        properties: dict[str, str],
        name: str | None = None,
    ) -> None:
        self.record_type = record_type
        self.port = port
        self.properties = properties
        self.name = name
        self.handle = None
        # Orders publish/withdraw requests for this record
        self.lock = asyncio.Lock()

    @property
    def published(self) -> bool:
        return self.handle is not None

    def __repr__(self) -> str:
        return f"LocalService({self.record_type}, name={self.name!r}, published={self.published})"


class AdvertisementManager:
    """Keeps our client and host records in sync with the discovery layer."""

    def __init__(
        self,
        discovery,
        config: LauncherConfig,
        name_factory: Callable[[], str] = default_service_name,
    ) -> None:
        self._discovery = discovery
        self._name_factory = name_factory
        self._tasks: set[asyncio.Task] = set()
        self._on_fatal: Callable[[BaseException], None] | None = None

        self.client = LocalService(
            CLIENT_SERVICE_TYPE,
            config.port,
            {CAN_HOST_KEY: "1" if config.can_host else "0"},
        )
        self.host = LocalService(
            HOST_SERVICE_TYPE,
            config.port,
            {WAD_KEY: config.mp_wad},
        )

    def on_fatal(self, callback: Callable[[BaseException], None]) -> None:
        """Register the callback for unrecoverable publication errors."""
        self._on_fatal = callback

    async def publish(self, service: LocalService) -> None:
        """Publish a record, renaming on collision until a free name is found."""
        async with service.lock:
            if service.name is None:
                service.name = self._name_factory()
            if service.published:
                return

            while True:
                logger.info(f"Adding service '{service.name}'")
                try:
                    service.handle = await self._discovery.publish(
                        service.record_type, service.name, service.port, service.properties
                    )
                    return
                except CollisionError:
                    self.rename(service)

    def rename(self, service: LocalService) -> None:
        """Move a record to the next alternative name."""
        service.name = alternative_service_name(service.name)
        logger.warning(f"Service name collision, renaming service to '{service.name}'")

    async def withdraw(self, service: LocalService) -> None:
        """Take a record off the network. No-op if it is not published."""
        async with service.lock:
            if not service.published:
                return
            logger.info(f"Stopping service {service.name} {service.record_type}")
            handle, service.handle = service.handle, None
            await self._discovery.withdraw(handle)

    def request_publish(self, service: LocalService) -> asyncio.Task:
        """Schedule publish() from synchronous code."""
        return self._spawn(self.publish(service))

    def request_withdraw(self, service: LocalService) -> asyncio.Task:
        """Schedule withdraw() from synchronous code."""
        return self._spawn(self.withdraw(service))

    async def drain(self) -> None:
        """Wait for every scheduled publish/withdraw to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error(f"Advertisement update failed: {exc}", exc_info=exc)
        if self._on_fatal:
            self._on_fatal(exc)
