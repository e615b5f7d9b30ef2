"""
Ownership of the language server child process.

The supervisor spawns the executable with three pipes, drains stderr into the
log, and watches for exit. An exit that happens before `terminate()` was
called is reported to the registered observers as unexpected.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Callable, List, Mapping, Optional, Sequence

from sourcekit_bridge.exceptions import SpawnError
from sourcekit_bridge.logger import setup_logger

logger = setup_logger(__name__)

ExitObserver = Callable[[Optional[int]], None]


@dataclass
class ProcessHandle:
    """The running child and its byte streams."""

    process: asyncio.subprocess.Process
    command: Sequence[str]

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def stdin(self) -> asyncio.StreamWriter:
        return self.process.stdin

    @property
    def stdout(self) -> asyncio.StreamReader:
        return self.process.stdout

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode


class ProcessSupervisor:
    def __init__(self) -> None:
        self._handle: Optional[ProcessHandle] = None
        self._observers: List[ExitObserver] = []
        self._terminating = False
        self._watch_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None

    @property
    def handle(self) -> Optional[ProcessHandle]:
        return self._handle

    @property
    def returncode(self) -> Optional[int]:
        return self._handle.returncode if self._handle else None

    @property
    def is_running(self) -> bool:
        return self._handle is not None and self._handle.returncode is None

    def add_exit_observer(self, observer: ExitObserver) -> None:
        """Register a callback invoked with the exit code on unexpected exit."""
        self._observers.append(observer)

    async def start(
        self,
        working_directory: str,
        executable: str,
        arguments: Sequence[str] = (),
        environment: Optional[Mapping[str, str]] = None,
    ) -> ProcessHandle:
        if self._handle is not None:
            raise SpawnError("Language server process already started")

        command = [executable, *arguments]
        env = os.environ.copy()
        if environment:
            env.update(environment)

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=working_directory,
                env=env,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise SpawnError(
                f"Language server executable '{executable}' could not be launched: {exc}"
            ) from exc
        except OSError as exc:
            raise SpawnError(f"Failed to start language server '{executable}': {exc}") from exc

        self._handle = ProcessHandle(process=process, command=command)
        self._terminating = False
        logger.info(
            "[LSP] Started language server pid={} command={} cwd={}",
            process.pid,
            command,
            working_directory,
        )
        self._stderr_task = asyncio.create_task(self._drain_stderr(process))
        self._watch_task = asyncio.create_task(self._watch(process))
        return self._handle

    async def _drain_stderr(self, process: asyncio.subprocess.Process) -> None:
        while True:
            line = await process.stderr.readline()
            if not line:
                return
            logger.debug("[LSP stderr] {}", line.decode("utf-8", errors="replace").rstrip())

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if self._terminating:
            logger.debug("[LSP] Language server exited with code {} after terminate", returncode)
            return
        logger.error("[LSP] Language server exited unexpectedly with code {}", returncode)
        for observer in list(self._observers):
            observer(returncode)

    async def terminate(self) -> None:
        """Kill the process. Safe to call repeatedly."""
        handle = self._handle
        if handle is None or self._terminating:
            return
        self._terminating = True

        process = handle.process
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()
        pending = {task for task in (self._stderr_task, self._watch_task) if task}
        if pending:
            await asyncio.wait(pending, timeout=1.0)
        logger.info("[LSP] Language server pid={} terminated", handle.pid)
