"""
Election timer and decision.

Candidate records churn while nodes start up, so the decision to host is
only taken after a quiet period with no changes from other peers.
"""

import asyncio
import logging
from typing import Callable

from lanlauncher.discovery.registry import PeerRegistry
from lanlauncher.session.models import ElectionDecision, ElectionOutcome

logger = logging.getLogger(__name__)


def decide(registry: PeerRegistry) -> ElectionDecision:
    """Work out what this node should do given the current candidates."""
    best = registry.best()

    if best is None or not best.can_host:
        return ElectionDecision(outcome=ElectionOutcome.SINGLE_PLAYER, best=best)

    if not best.is_self:
        # The winner is expected to publish a host record
        return ElectionDecision(outcome=ElectionOutcome.WAIT, best=best)

    others = registry.count_others()
    if others:
        return ElectionDecision(outcome=ElectionOutcome.HOST, best=best, player_count=others + 1)
    return ElectionDecision(outcome=ElectionOutcome.SINGLE_PLAYER, best=best)


class ElectionTimer:
    """Single-shot timer; restarting it replaces any pending expiry."""

    def __init__(self, quiet_period: float, on_expire: Callable[[], None]) -> None:
        self.quiet_period = quiet_period
        self._on_expire = on_expire
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def restart(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.quiet_period, self._fire)
        logger.debug(f"Election timer armed for {self.quiet_period}s")

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        logger.info("Discovery quiet, running election")
        self._on_expire()
