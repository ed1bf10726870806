"""
Game process supervisor.

Runs at most one game process at a time. Starting a new one stops the
old one first, and the exit of the current process is reported back to
the session controller.
"""

import asyncio
import logging
import signal
import subprocess
from typing import Callable

from lanlauncher.config import DEFAULT_TERMINATE_TIMEOUT
from lanlauncher.errors import LaunchError

logger = logging.getLogger(__name__)

ExitCallback = Callable[[int, int], None]  # (pid, returncode)


class ProcessSupervisor:
    """Starts, replaces and watches the single child game process."""

    def __init__(
        self,
        on_exit: ExitCallback | None = None,
        terminate_timeout: float = DEFAULT_TERMINATE_TIMEOUT,
    ) -> None:
        self._on_exit = on_exit
        self._terminate_timeout = terminate_timeout
        self._process: subprocess.Popen | None = None
        self._watch_task: asyncio.Task | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None

    def on_exit(self, callback: ExitCallback) -> None:
        self._on_exit = callback

    def spawn(self, argv: list[str]) -> int:
        """
        Replace the current child with a new process.

        Blocks until the previous child has exited. Raises LaunchError if
        the new process cannot be started.
        """
        self.terminate()

        logger.info("Launching " + " ".join(argv))
        try:
            process = subprocess.Popen(argv)
        except OSError as e:
            raise LaunchError(f"Cannot spawn child process {argv[0]}: {e}") from e

        logger.info(f"Child PID is {process.pid}")
        self._process = process
        self._watch_task = asyncio.get_running_loop().create_task(self._watch(process))
        return process.pid

    def terminate(self) -> None:
        """Interrupt the current child and wait for it to go away."""
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None

        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return

        logger.info(f"Stopping child {process.pid}")
        process.send_signal(signal.SIGINT)
        try:
            process.wait(timeout=self._terminate_timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Child {process.pid} ignored SIGINT, killing it")
            process.kill()
            process.wait()

    async def _watch(self, process: subprocess.Popen) -> None:
        returncode = await asyncio.to_thread(process.wait)
        logger.info(f"Child {process.pid} exited with {returncode}")
        if process is not self._process:
            return
        self._process = None
        self._watch_task = None
        if self._on_exit:
            self._on_exit(process.pid, returncode)
