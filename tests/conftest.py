"""Shared fakes and helpers for the launcher tests."""

import pytest

from lanlauncher.config import CLIENT_SERVICE_TYPE, HOST_SERVICE_TYPE, LauncherConfig
from lanlauncher.discovery.advertisement import AdvertisementManager
from lanlauncher.discovery.models import RemotePeer, ResolvedService, ServiceIdentity
from lanlauncher.errors import CollisionError, LaunchError
from lanlauncher.session.controller import SessionController

SELF_NAME = "self-node"


class FakeDiscovery:
    """In-memory stand-in for the zeroconf transport."""

    def __init__(self):
        self.published = {}  # (type, name) -> properties
        self.taken = set()  # (type, name) pairs that collide
        self.listeners = {}
        self.resolutions = {}
        self.publish_error = None
        self.publish_calls = []

    async def publish(self, record_type, name, port, properties):
        self.publish_calls.append((record_type, name))
        if self.publish_error is not None:
            raise self.publish_error
        if (record_type, name) in self.taken:
            raise CollisionError(name)
        handle = (record_type, name)
        self.published[handle] = dict(properties)
        return handle

    async def withdraw(self, handle):
        self.published.pop(handle, None)

    def browse(self, record_type, listener):
        self.listeners[record_type] = listener

    async def resolve(self, identity):
        result = self.resolutions[(identity.type, identity.name)]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSupervisor:
    """Records launches instead of running processes."""

    def __init__(self):
        self.launched = []
        self.pid = None
        self.fail = False
        self.max_running = 0
        self._on_exit = None
        self._next_pid = 1000

    @property
    def running(self):
        return self.pid is not None

    def on_exit(self, callback):
        self._on_exit = callback

    def spawn(self, argv):
        self.terminate()
        if self.fail:
            raise LaunchError(f"Cannot spawn child process {argv[0]}")
        self._next_pid += 1
        self.pid = self._next_pid
        self.launched.append(list(argv))
        self.max_running = max(self.max_running, 1)
        return self.pid

    def terminate(self):
        self.pid = None

    def exit(self, returncode=0):
        """Simulate the tracked child exiting on its own."""
        pid, self.pid = self.pid, None
        self._on_exit(pid, returncode)


def identity(name, record_type=CLIENT_SERVICE_TYPE):
    return ServiceIdentity(name=name, type=record_type, domain="local")


def candidate(name, can_host=True, is_self=False):
    return ResolvedService(
        identity=identity(name),
        hostname=f"{name}.local",
        address=None,
        port=5029,
        txt={"can-host": "1" if can_host else "0"},
        is_self=is_self,
    )


def host_record(name, wad="freedm.wad", address="10.0.0.5", port=5029, is_self=False):
    return ResolvedService(
        identity=identity(name, HOST_SERVICE_TYPE),
        hostname=f"{name}.local",
        address=address,
        port=port,
        txt={"wad": wad},
        is_self=is_self,
    )


def peer(name, can_host=True, is_self=False):
    return RemotePeer.from_resolved(candidate(name, can_host=can_host, is_self=is_self))


@pytest.fixture
def config():
    return LauncherConfig(source_wait=0.05, zdoom="zdoom")


@pytest.fixture
def discovery():
    return FakeDiscovery()


@pytest.fixture
def supervisor():
    return FakeSupervisor()


@pytest.fixture
def fatal_errors():
    return []


@pytest.fixture
def controller(config, discovery, supervisor, fatal_errors):
    advertiser = AdvertisementManager(discovery, config, name_factory=lambda: SELF_NAME)
    ctrl = SessionController(config, discovery, advertiser=advertiser, supervisor=supervisor)
    ctrl.on_fatal(fatal_errors.append)
    return ctrl
