"""
mDNS discovery transport built on zeroconf.

Publishes, browses and resolves DNS-SD records on the LAN and hands the
results to the session controller as BrowseEvent / ResolvedService models.
"""

import asyncio
import logging
import socket
from typing import Callable

from zeroconf import (
    Error as ZeroconfError,
    IPVersion,
    NonUniqueNameException,
    ServiceInfo,
    ServiceStateChange,
    Zeroconf,
)
from zeroconf.asyncio import AsyncServiceBrowser, AsyncServiceInfo, AsyncZeroconf

from lanlauncher.config import DISCOVERY_DOMAIN, RESOLVE_TIMEOUT
from lanlauncher.discovery.models import (
    BrowseEvent,
    BrowseEventKind,
    ResolvedService,
    ServiceIdentity,
)
from lanlauncher.errors import CollisionError, ResolveError, TransportError

logger = logging.getLogger(__name__)

BrowseListener = Callable[[BrowseEvent], None]


def qualified_type(type_: str, domain: str = DISCOVERY_DOMAIN) -> str:
    """Fully qualify a record type, e.g. _x._udp becomes _x._udp.local."""
    return f"{type_}.{domain}."


def instance_name(fq_name: str, fq_type: str) -> str:
    """Strip the service type from a fully qualified instance name."""
    suffix = "." + fq_type
    if fq_name.endswith(suffix):
        return fq_name[: -len(suffix)]
    return fq_name


def local_addresses() -> list[str]:
    """Best-effort list of this host's LAN IPv4 addresses."""
    addresses: set[str] = set()
    try:
        _, _, ips = socket.gethostbyname_ex(socket.gethostname())
        addresses.update(ip for ip in ips if not ip.startswith("127."))
    except OSError as e:
        logger.debug(f"Error resolving local IPs: {e}")

    if not addresses:
        # Ask the kernel which source address it would use for mDNS traffic
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.connect(("224.0.0.251", 5353))
                addresses.add(sock.getsockname()[0])
        except OSError as e:
            logger.debug(f"Error finding outbound address: {e}")

    return sorted(addresses)


class ZeroconfDiscovery:
    """Discovery service backed by an AsyncZeroconf instance."""

    def __init__(self, resolve_timeout: float = RESOLVE_TIMEOUT) -> None:
        self._aiozc: AsyncZeroconf | None = None
        self._browsers: list[AsyncServiceBrowser] = []
        self._published: dict[str, ServiceInfo] = {}
        self._resolve_timeout = resolve_timeout
        self._loop: asyncio.AbstractEventLoop | None = None
        self._hostname = socket.gethostname().split(".")[0]

    def _client(self) -> AsyncZeroconf:
        if self._aiozc is None:
            raise TransportError("Discovery transport is not running")
        return self._aiozc

    @property
    def zeroconf(self) -> Zeroconf:
        return self._client().zeroconf

    async def start(self) -> None:
        """Open the mDNS sockets."""
        self._loop = asyncio.get_running_loop()
        try:
            self._aiozc = AsyncZeroconf(ip_version=IPVersion.V4Only)
        except (OSError, ZeroconfError) as e:
            raise TransportError(f"Cannot start mDNS responder: {e}") from e
        logger.info("Discovery transport started")

    async def stop(self) -> None:
        """Cancel browsers, withdraw every record and close the sockets."""
        if self._aiozc is None:
            return
        for browser in self._browsers:
            await browser.async_cancel()
        self._browsers.clear()
        await self._aiozc.async_unregister_all_services()
        self._published.clear()
        await self._aiozc.async_close()
        self._aiozc = None
        logger.info("Discovery transport stopped")

    async def publish(
        self, record_type: str, name: str, port: int, properties: dict[str, str]
    ) -> ServiceInfo:
        """Register a record. Raises CollisionError if the name is taken."""
        fq_type = qualified_type(record_type)
        info = ServiceInfo(
            fq_type,
            f"{name}.{fq_type}",
            port=port,
            properties=properties,
            server=f"{self._hostname}.{DISCOVERY_DOMAIN}.",
            parsed_addresses=local_addresses(),
        )
        # Known as ours before the first announcement goes out
        aiozc = self._client()
        key = info.name.lower()
        self._published[key] = info
        try:
            await (await aiozc.async_register_service(info))
        except NonUniqueNameException as e:
            del self._published[key]
            raise CollisionError(name) from e
        except (OSError, ZeroconfError) as e:
            del self._published[key]
            raise TransportError(f"Failed to add {record_type} service: {e}") from e

        logger.info(f"Service '{name}' successfully established")
        return info

    async def withdraw(self, handle: ServiceInfo) -> None:
        """Unregister a record returned by publish()."""
        if self._published.pop(handle.name.lower(), None) is None:
            return
        try:
            await (await self._client().async_unregister_service(handle))
        except (OSError, ZeroconfError) as e:
            raise TransportError(f"Failed to withdraw {handle.name}: {e}") from e

    def is_own(self, fq_name: str) -> bool:
        return fq_name.lower() in self._published

    def browse(self, record_type: str, listener: BrowseListener) -> None:
        """Watch a record type. The listener is always called on the event loop."""
        fq_type = qualified_type(record_type)

        def on_state_change(
            zeroconf: Zeroconf,
            service_type: str,
            name: str,
            state_change: ServiceStateChange,
        ) -> None:
            identity = ServiceIdentity(
                name=instance_name(name, fq_type),
                type=record_type,
                domain=DISCOVERY_DOMAIN,
            )
            if state_change is ServiceStateChange.Removed:
                kind = BrowseEventKind.REMOVED
            else:
                kind = BrowseEventKind.NEW
            logger.debug(f"(Browser) {kind.value}: service '{identity.name}' of type '{record_type}'")
            self._loop.call_soon_threadsafe(listener, BrowseEvent(kind=kind, identity=identity))

        try:
            browser = AsyncServiceBrowser(self.zeroconf, [fq_type], handlers=[on_state_change])
        except (OSError, ZeroconfError) as e:
            logger.warning(f"(Browser) {record_type}: {e}")
            listener(BrowseEvent(kind=BrowseEventKind.FAILURE, error=str(e)))
            return
        self._browsers.append(browser)

    async def resolve(self, identity: ServiceIdentity) -> ResolvedService:
        """Fetch host, port and TXT pairs for a browsed record."""
        fq_type = qualified_type(identity.type, identity.domain)
        fq_name = f"{identity.name}.{fq_type}"
        info = AsyncServiceInfo(fq_type, fq_name)
        try:
            found = await info.async_request(self.zeroconf, int(self._resolve_timeout * 1000))
        except (OSError, ZeroconfError) as e:
            raise ResolveError(f"Failed to resolve service '{identity.name}': {e}") from e
        if not found:
            raise ResolveError(
                f"Failed to resolve service '{identity.name}' of type "
                f"'{identity.type}' in domain '{identity.domain}': timed out"
            )

        txt = {}
        for key, value in info.properties.items():
            try:
                txt[key.decode("utf-8")] = value.decode("utf-8") if value is not None else ""
            except UnicodeDecodeError:
                logger.debug(f"Skipping undecodable TXT entry from {identity.name}")

        addresses = info.parsed_addresses(IPVersion.V4Only)
        return ResolvedService(
            identity=identity,
            hostname=(info.server or identity.name).rstrip("."),
            address=addresses[0] if addresses else None,
            port=info.port or 0,
            txt=txt,
            is_self=self.is_own(fq_name),
        )
