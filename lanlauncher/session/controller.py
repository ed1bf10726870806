"""
Session controller.

Turns discovery events into game sessions. Two signals drive it:

* the candidate list, which is debounced by the election timer and may
  make this node the host, and
* host records, which are authoritative and make this node a client
  immediately.

Whenever the game exits, or the host it joined goes away, the controller
falls back to single player so there is always a game running.
"""

import asyncio
import logging
from typing import Callable

from lanlauncher.config import CLIENT_SERVICE_TYPE, HOST_SERVICE_TYPE, LauncherConfig
from lanlauncher.discovery.advertisement import AdvertisementManager
from lanlauncher.discovery.models import (
    BrowseEvent,
    BrowseEventKind,
    RemotePeer,
    ResolvedService,
    ServiceIdentity,
)
from lanlauncher.discovery.registry import PeerRegistry
from lanlauncher.errors import LaunchError, LauncherError, ResolveError
from lanlauncher.session.commands import host_command, join_command, single_player_command
from lanlauncher.session.election import ElectionTimer, decide
from lanlauncher.session.models import (
    ElectionOutcome,
    SessionEvent,
    SessionEventKind,
    SessionInfo,
    SessionRole,
)
from lanlauncher.session.process import ProcessSupervisor

logger = logging.getLogger(__name__)


class SessionController:
    """Owns the session role and every piece of state the role depends on."""

    def __init__(
        self,
        config: LauncherConfig,
        discovery,
        advertiser: AdvertisementManager | None = None,
        supervisor: ProcessSupervisor | None = None,
    ) -> None:
        self.config = config
        self._discovery = discovery
        self.registry = PeerRegistry()
        self.advertiser = advertiser or AdvertisementManager(discovery, config)
        self.supervisor = supervisor or ProcessSupervisor(
            terminate_timeout=config.terminate_timeout
        )
        self.timer = ElectionTimer(config.source_wait, self.run_election)
        self.state = SessionInfo()

        self._event_callbacks: list = []  # async fn(event: SessionEvent)
        self._on_fatal: Callable[[BaseException], None] | None = None
        self._resolve_tasks: dict[tuple[str, str, str], asyncio.Task] = {}
        self.stopping = False

        self.registry.on_change(self.timer.restart)
        self.supervisor.on_exit(self.on_child_exit)
        self.advertiser.on_fatal(self._fatal)

    # --- Wiring ---

    def on_event(self, callback) -> None:
        """Register callback: async fn(event: SessionEvent)."""
        self._event_callbacks.append(callback)

    def on_fatal(self, callback: Callable[[BaseException], None]) -> None:
        """Register the callback that shuts the launcher down on fatal errors."""
        self._on_fatal = callback

    def _emit(self, kind: SessionEventKind, peer: RemotePeer | None = None) -> None:
        event = SessionEvent(event=kind, session=self.snapshot(), peer=peer)
        for cb in self._event_callbacks:
            asyncio.ensure_future(cb(event))

    def _fatal(self, exc: BaseException) -> None:
        logger.error(f"Fatal error: {exc}")
        if self._on_fatal is None:
            raise exc
        self._on_fatal(exc)

    def snapshot(self) -> SessionInfo:
        return self.state.model_copy(update={"election_pending": self.timer.pending})

    # --- Lifecycle ---

    def start(self) -> None:
        """Advertise ourselves, start browsing and get a game running."""
        self.advertiser.request_publish(self.advertiser.client)
        self._discovery.browse(CLIENT_SERVICE_TYPE, self.on_browse_event)
        self._discovery.browse(HOST_SERVICE_TYPE, self.on_browse_event)
        self.enter_single_player()

    def begin_shutdown(self) -> None:
        """Stop reacting to game exits and discovery; the launcher is going down."""
        self.stopping = True
        self.timer.cancel()
        for task in self._resolve_tasks.values():
            task.cancel()
        self._resolve_tasks.clear()

    def stop(self) -> None:
        self.begin_shutdown()
        self.supervisor.terminate()
        self.state.pid = None

    # --- Discovery events ---

    @staticmethod
    def _record_key(identity: ServiceIdentity) -> tuple[str, str, str]:
        return (identity.name, identity.type, identity.domain)

    def on_browse_event(self, event: BrowseEvent) -> None:
        if self.stopping:
            return
        if event.kind == BrowseEventKind.FAILURE:
            logger.warning(f"(Browser) {event.error}")
        elif event.kind == BrowseEventKind.NEW:
            self._start_resolve(event.identity)
        elif event.kind == BrowseEventKind.REMOVED:
            self.on_service_removed(event.identity)

    def _start_resolve(self, identity: ServiceIdentity) -> None:
        """Resolve a browsed record; a newer announcement supersedes a running resolve."""
        key = self._record_key(identity)
        self._cancel_resolve(key)
        task = asyncio.get_running_loop().create_task(self._resolve(identity))
        self._resolve_tasks[key] = task
        task.add_done_callback(lambda done: self._forget_resolve(key, done))

    def _cancel_resolve(self, key: tuple[str, str, str]) -> None:
        task = self._resolve_tasks.pop(key, None)
        if task is not None:
            logger.debug(f"Dropping pending resolve of {key[0]}")
            task.cancel()

    def _forget_resolve(self, key: tuple[str, str, str], task: asyncio.Task) -> None:
        if self._resolve_tasks.get(key) is task:
            del self._resolve_tasks[key]

    async def _resolve(self, identity: ServiceIdentity) -> None:
        try:
            resolved = await self._discovery.resolve(identity)
        except ResolveError as e:
            logger.warning(f"(Resolver) {e}")
            return
        self.on_service_resolved(resolved)

    def on_service_resolved(self, resolved: ResolvedService) -> None:
        peer = RemotePeer.from_resolved(resolved)
        record_type = peer.identity.type

        if record_type == CLIENT_SERVICE_TYPE:
            self.registry.upsert(peer)
            self._emit(SessionEventKind.PEER_DISCOVERED, peer)
        elif record_type == HOST_SERVICE_TYPE:
            if peer.is_self:
                return
            logger.info(f"Connecting to new host {peer.name} ({peer.hostname})")
            self.state.current_host = peer
            self._emit(SessionEventKind.HOST_CHANGED, peer)
            self.timer.cancel()
            self.enter_client()
        else:
            logger.debug(f"Ignoring record of unknown type {record_type}")

    def on_service_removed(self, identity: ServiceIdentity) -> None:
        # A resolve still in flight would re-add the record after it left
        self._cancel_resolve(self._record_key(identity))

        for peer in self.registry.remove_by_identity(identity.name, identity.type, identity.domain):
            self._emit(SessionEventKind.PEER_LOST, peer)

        host = self.state.current_host
        if host and host.identity.matches(identity.name, identity.type, identity.domain):
            logger.info(f"Host {host.name} went away")
            self.state.current_host = None
            self._emit(SessionEventKind.HOST_CHANGED)
            self.enter_single_player()
            self.timer.restart()

    # --- Election ---

    def run_election(self) -> None:
        """Act on the candidate list once discovery has been quiet."""
        decision = decide(self.registry)

        if decision.outcome == ElectionOutcome.HOST:
            logger.info(
                f"This is the best host. Hosting for {decision.player_count - 1} clients...."
            )
            self.enter_host(decision.player_count)
        elif decision.outcome == ElectionOutcome.WAIT:
            logger.info(f"Best host is {decision.best.hostname}")
        elif decision.best is None or not decision.best.can_host:
            logger.info("No suitable hosts")
            self.enter_single_player()
        else:
            logger.info("No peers found")
            self.enter_single_player()

    # --- Role transitions ---

    def _set_role(self, role: SessionRole) -> None:
        if role != self.state.role:
            logger.info(f"Session role {self.state.role.value} -> {role.value}")
        self.state.role = role
        self._emit(SessionEventKind.ROLE_CHANGED)

    def _spawn(self, argv: list[str]) -> bool:
        try:
            self.state.pid = self.supervisor.spawn(argv)
        except LaunchError as e:
            self.state.pid = None
            self._fatal(e)
            return False
        return True

    def enter_single_player(self) -> None:
        self.advertiser.request_withdraw(self.advertiser.host)
        if not self.state.single_player_running:
            logger.info("Launching single player game")
            if not self._spawn(single_player_command(self.config)):
                return
            self.state.single_player_running = True
            self.state.player_count = 1
        self._set_role(SessionRole.SINGLE_PLAYER)

    def enter_host(self, num_players: int) -> None:
        logger.info(f"Hosting game for {num_players} players")
        if not self._spawn(host_command(self.config, num_players)):
            return
        self.state.single_player_running = False
        self.state.player_count = num_players
        self._set_role(SessionRole.HOST)
        self.advertiser.request_publish(self.advertiser.host)

    def enter_client(self) -> None:
        host = self.state.current_host
        if host is None:
            raise LauncherError("No host to connect to")
        self.advertiser.request_withdraw(self.advertiser.host)
        logger.info(f"Connecting to host {host.connect_address}:{host.port}")
        if not self._spawn(join_command(self.config, host)):
            return
        self.state.single_player_running = False
        self.state.player_count = 1
        self._set_role(SessionRole.CLIENT)

    def on_child_exit(self, pid: int, returncode: int) -> None:
        """The tracked game exited; go back to single player."""
        self.state.pid = None
        self.state.single_player_running = False
        if self.stopping:
            logger.info(f"Game {pid} exited during shutdown")
            return
        self.enter_single_player()
