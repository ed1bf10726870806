"""
Remote peer registry.

Keeps every resolved candidate record in election order: host-capable
peers first, then ascending service name. Every node sorting the same
candidates this way picks the same first entry.
"""

import bisect
import logging
from typing import Callable

from lanlauncher.discovery.models import RemotePeer

logger = logging.getLogger(__name__)


def election_key(peer: RemotePeer) -> tuple[bool, str]:
    """Sort key for the election order."""
    return (not peer.can_host, peer.name)


class PeerRegistry:
    """Sorted collection of candidate peers, keyed by discovery identity.

    Only touched from the event loop thread, so there is no locking.
    """

    def __init__(self, on_change: Callable[[], None] | None = None) -> None:
        self._peers: list[RemotePeer] = []
        self._keys: list[tuple[bool, str]] = []
        self._on_change = on_change

    def __len__(self) -> int:
        return len(self._peers)

    def on_change(self, callback: Callable[[], None]) -> None:
        """Register the callback fired when a non-self peer comes or goes."""
        self._on_change = callback

    def _notify(self) -> None:
        if self._on_change:
            self._on_change()

    def _remove_at(self, index: int) -> RemotePeer:
        del self._keys[index]
        return self._peers.pop(index)

    def upsert(self, peer: RemotePeer) -> None:
        """Insert a peer at its sorted position, replacing any entry with the same identity."""
        for index in reversed(range(len(self._peers))):
            if self._peers[index].identity == peer.identity:
                old = self._remove_at(index)
                logger.info(f"Removing client {old.name}")

        logger.info(
            f"New client {peer.name} ({peer.hostname}) "
            f"can-host={peer.can_host} is-own={peer.is_self}"
        )
        key = election_key(peer)
        index = bisect.bisect_right(self._keys, key)
        self._keys.insert(index, key)
        self._peers.insert(index, peer)

        if not peer.is_self:
            self._notify()

    def remove_by_identity(
        self,
        name: str,
        type_: str,
        domain: str,
        interface: int | None = None,
        protocol: str | None = None,
    ) -> list[RemotePeer]:
        """Remove every entry matching the key. Returns what was removed."""
        removed = []
        for index in reversed(range(len(self._peers))):
            if self._peers[index].identity.matches(name, type_, domain, interface, protocol):
                peer = self._remove_at(index)
                logger.info(f"Removing client {peer.name}")
                removed.append(peer)

        if any(not peer.is_self for peer in removed):
            self._notify()
        removed.reverse()
        return removed

    def count_others(self) -> int:
        """Number of peers that are not this node."""
        return sum(1 for peer in self._peers if not peer.is_self)

    def best(self) -> RemotePeer | None:
        """The peer that should host, or None when empty."""
        return self._peers[0] if self._peers else None

    def peers(self) -> list[RemotePeer]:
        return list(self._peers)
