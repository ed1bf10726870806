"""Pydantic models for peer discovery."""

from enum import Enum

from pydantic import BaseModel

from lanlauncher.config import CAN_HOST_KEY, WAD_KEY

IF_UNSPEC = -1
PROTO_INET = "inet"


class ServiceIdentity(BaseModel):
    """The composite key a discovery record is known by."""
    name: str
    type: str
    domain: str
    interface: int = IF_UNSPEC
    protocol: str = PROTO_INET

    def matches(
        self,
        name: str,
        type_: str,
        domain: str,
        interface: int | None = None,
        protocol: str | None = None,
    ) -> bool:
        """Compare against a removal key; interface/protocol of None match anything."""
        if (self.name, self.type, self.domain) != (name, type_, domain):
            return False
        if interface is not None and interface != self.interface:
            return False
        if protocol is not None and protocol != self.protocol:
            return False
        return True


class ResolvedService(BaseModel):
    """Details of a browsed record after a successful resolve."""
    identity: ServiceIdentity
    hostname: str
    address: str | None = None
    port: int
    txt: dict[str, str] = {}
    is_self: bool = False


class RemotePeer(BaseModel):
    """A resolved candidate or host record seen on the LAN."""
    identity: ServiceIdentity
    hostname: str
    address: str | None = None
    port: int
    can_host: bool = False
    wad: str | None = None
    is_self: bool = False

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def connect_address(self) -> str:
        """Address to hand to the game when joining this peer."""
        return self.address or self.hostname

    @classmethod
    def from_resolved(cls, resolved: ResolvedService) -> "RemotePeer":
        return cls(
            identity=resolved.identity,
            hostname=resolved.hostname,
            address=resolved.address,
            port=resolved.port,
            can_host=resolved.txt.get(CAN_HOST_KEY) == "1",
            wad=resolved.txt.get(WAD_KEY),
            is_self=resolved.is_self,
        )


class BrowseEventKind(str, Enum):
    NEW = "new"
    REMOVED = "removed"
    FAILURE = "failure"


class BrowseEvent(BaseModel):
    """A single notification from a service browser."""
    kind: BrowseEventKind
    identity: ServiceIdentity | None = None
    error: str | None = None
