"""Pydantic models for the game session."""

from enum import Enum

from pydantic import BaseModel

from lanlauncher.discovery.models import RemotePeer


class SessionRole(str, Enum):
    """What this node is currently running."""
    IDLE = "idle"
    SINGLE_PLAYER = "single_player"
    HOST = "host"
    CLIENT = "client"


class ElectionOutcome(str, Enum):
    SINGLE_PLAYER = "single_player"
    WAIT = "wait"
    HOST = "host"


class ElectionDecision(BaseModel):
    """Result of one election round."""
    outcome: ElectionOutcome
    best: RemotePeer | None = None
    player_count: int = 1


class SessionInfo(BaseModel):
    """Snapshot of the session state, exposed through the status API."""
    role: SessionRole = SessionRole.IDLE
    pid: int | None = None
    player_count: int = 1
    current_host: RemotePeer | None = None
    single_player_running: bool = False
    election_pending: bool = False


class SessionEventKind(str, Enum):
    SNAPSHOT = "snapshot"
    ROLE_CHANGED = "role_changed"
    PEER_DISCOVERED = "peer_discovered"
    PEER_LOST = "peer_lost"
    HOST_CHANGED = "host_changed"


class SessionEvent(BaseModel):
    """A change pushed to status listeners, with the session state after it."""
    event: SessionEventKind
    session: SessionInfo
    peer: RemotePeer | None = None
