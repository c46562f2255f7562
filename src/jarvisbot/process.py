from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import signal
from collections.abc import Mapping
from dataclasses import dataclass

from .exceptions import SpawnError, StreamAcquisitionError

__all__ = ["DEFAULT_SHELL", "ShellProcess", "spawn_shell"]

DEFAULT_SHELL = "zsh"

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ShellProcess:
    """A spawned shell and the three pipes it was started with."""

    process: asyncio.subprocess.Process
    stdin: asyncio.StreamWriter
    stdout: asyncio.StreamReader
    stderr: asyncio.StreamReader

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> int | None:
        return self.process.returncode

    def _signal_group(self, sig: int) -> None:
        with contextlib.suppress(ProcessLookupError):
            os.killpg(self.pid, sig)

    async def terminate(self, timeout: float = 5.0) -> int:
        """Stop the shell and every job it started, then reap the shell.

        The shell leads its own session, so background jobs share its process
        group. The group gets SIGTERM first and SIGKILL once the shell has
        exited or ``timeout`` seconds have passed.
        """
        self._signal_group(signal.SIGTERM)
        try:
            code = await asyncio.wait_for(self.process.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Shell %d ignored SIGTERM, killing it", self.pid)
            self._signal_group(signal.SIGKILL)
            code = await self.process.wait()
        # jobs that outlived the shell would keep its pipes open
        self._signal_group(signal.SIGKILL)
        return code


async def spawn_shell(
    shell: str = DEFAULT_SHELL,
    *args: str,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
) -> ShellProcess:
    """Start ``shell`` in a new session with stdin, stdout and stderr redirected to pipes."""
    try:
        process = await asyncio.create_subprocess_exec(
            shell,
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            start_new_session=True,
        )
    except OSError as exc:
        raise SpawnError.from_os_error(shell, exc) from exc

    missing = next(
        (name for name in ("stdin", "stdout", "stderr") if getattr(process, name) is None),
        None,
    )
    if missing is not None:
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()
        raise StreamAcquisitionError(missing)

    assert process.stdin and process.stdout and process.stderr
    logger.info("Spawned %s (pid %d)", shell, process.pid)
    return ShellProcess(process, process.stdin, process.stdout, process.stderr)
