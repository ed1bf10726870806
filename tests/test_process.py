"""Tests for lanlauncher.session.process using real child processes."""

import asyncio
import sys

import pytest

from lanlauncher.errors import LaunchError
from lanlauncher.session.process import ProcessSupervisor

SLEEPER = [sys.executable, "-c", "import time; time.sleep(30)"]


def exiting_with(code):
    return [sys.executable, "-c", f"import sys; sys.exit({code})"]


async def wait_for(predicate, timeout=10.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.02)


class TestProcessSupervisor:
    """Spawn, replace and watch the game process."""

    @pytest.mark.asyncio
    async def test_reports_exit_status(self):
        exits = []
        supervisor = ProcessSupervisor(on_exit=lambda pid, rc: exits.append((pid, rc)))

        pid = supervisor.spawn(exiting_with(3))
        await wait_for(lambda: exits)

        assert exits == [(pid, 3)]
        assert not supervisor.running

    @pytest.mark.asyncio
    async def test_spawn_replaces_running_child(self):
        exits = []
        supervisor = ProcessSupervisor(on_exit=lambda pid, rc: exits.append((pid, rc)))

        supervisor.spawn(SLEEPER)
        first = supervisor._process
        second_pid = supervisor.spawn(exiting_with(0))

        # The old child is gone before the new one starts
        assert first.poll() is not None
        await wait_for(lambda: exits)
        await asyncio.sleep(0.1)

        assert exits == [(second_pid, 0)]

    @pytest.mark.asyncio
    async def test_terminate_is_silent(self):
        exits = []
        supervisor = ProcessSupervisor(on_exit=lambda pid, rc: exits.append((pid, rc)))

        supervisor.spawn(SLEEPER)
        process = supervisor._process
        supervisor.terminate()
        await asyncio.sleep(0.1)

        assert process.poll() is not None
        assert not supervisor.running
        assert supervisor.pid is None
        assert exits == []

    @pytest.mark.asyncio
    async def test_kills_child_ignoring_sigint(self):
        stubborn = [
            sys.executable, "-c",
            "import signal, time; signal.signal(signal.SIGINT, signal.SIG_IGN); "
            "print('ready', flush=True); time.sleep(30)",
        ]
        supervisor = ProcessSupervisor(terminate_timeout=0.2)

        supervisor.spawn(stubborn)
        process = supervisor._process
        await asyncio.sleep(0.5)
        supervisor.terminate()

        assert process.poll() is not None

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self):
        supervisor = ProcessSupervisor()

        with pytest.raises(LaunchError):
            supervisor.spawn(["/nonexistent/path/to/zdoom"])
        assert not supervisor.running

    def test_terminate_without_child(self):
        ProcessSupervisor().terminate()
