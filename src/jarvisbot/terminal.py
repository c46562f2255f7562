from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Mapping
from typing import Any, Protocol

from .channel import Receiver, Sender, open_channel
from .exceptions import QueueClosed
from .process import DEFAULT_SHELL, ShellProcess, spawn_shell

__all__ = ["READ_CHUNK_SIZE", "Terminal", "forward_input", "forward_output"]

READ_CHUNK_SIZE = 4096

logger = logging.getLogger(__name__)


class _ByteWriter(Protocol):
    def write(self, data: bytes) -> Any: ...

    async def drain(self) -> None: ...


class _ByteReader(Protocol):
    async def read(self, n: int = -1) -> bytes: ...


async def forward_input(writer: _ByteWriter, receiver: Receiver[str]) -> None:
    """Write every inbound line to ``writer``, newline-terminated, until the queue closes.

    A failed write is logged and the item dropped; the loop keeps listening.
    """
    async for line in receiver:
        try:
            writer.write(f"{line}\n".encode())
            await writer.drain()
        except (OSError, RuntimeError, UnicodeEncodeError) as exc:
            logger.warning("Failed to write to terminal stdin: %s", exc)
            continue
    logger.info("Terminal input closed")


async def forward_output(reader: _ByteReader, sender: Sender[bytes], name: str) -> None:
    """Push each chunk read from ``reader`` onto ``sender`` until the stream ends.

    Once the receiving end is gone chunks are discarded, but reading continues so
    the child never blocks on a full pipe.
    """
    logger.info("Starting %s reader", name)
    abandoned = False
    try:
        while True:
            try:
                chunk = await reader.read(READ_CHUNK_SIZE)
            except (OSError, ValueError) as exc:
                logger.error("Error reading from %s: %s", name, exc)
                break
            if not chunk:
                logger.info("%s reader finished", name)
                break
            logger.debug("Read %d bytes from %s", len(chunk), name)
            try:
                sender.send(chunk)
            except QueueClosed:
                if not abandoned:
                    logger.debug("Output receiver is closed, discarding %s output", name)
                    abandoned = True
    finally:
        sender.close()


async def _join(task: asyncio.Task[Any], timeout: float) -> None:
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if not done:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class Terminal:
    """A shell process wired to an inbound line queue and an outbound chunk queue.

    Use :meth:`open` to create one; it returns the terminal together with the
    receiving end of the outbound queue, which yields raw ``bytes`` chunks read
    from the shell's stdout and stderr in the order the reads completed.
    """

    def __init__(self, shell: ShellProcess, stdin_tx: Sender[str]) -> None:
        self._shell = shell
        self._stdin_tx = stdin_tx
        self._writer_task: asyncio.Task[None] | None = None
        self._reader_tasks: tuple[asyncio.Task[None], ...] = ()
        self._closed = False

    @classmethod
    async def open(
        cls,
        shell: str = DEFAULT_SHELL,
        *,
        cwd: str | None = None,
        env: Mapping[str, str] | None = None,
    ) -> tuple[Terminal, Receiver[bytes]]:
        """Spawn ``shell`` and start forwarding its streams.

        Raises :class:`~jarvisbot.exceptions.SpawnError` or
        :class:`~jarvisbot.exceptions.StreamAcquisitionError` when the shell
        cannot be started; no tasks are left behind in that case.
        """
        shell_process = await spawn_shell(shell, cwd=cwd, env=env)
        stdin_tx, stdin_rx = open_channel()
        stdout_tx, stdout_rx = open_channel()

        terminal = cls(shell_process, stdin_tx)
        terminal._writer_task = asyncio.create_task(
            forward_input(shell_process.stdin, stdin_rx), name="terminal-stdin"
        )
        terminal._reader_tasks = (
            asyncio.create_task(
                forward_output(shell_process.stdout, stdout_tx.clone(), "stdout"), name="terminal-stdout"
            ),
            asyncio.create_task(
                forward_output(shell_process.stderr, stdout_tx.clone(), "stderr"), name="terminal-stderr"
            ),
        )
        stdout_tx.close()
        return terminal, stdout_rx

    @property
    def pid(self) -> int:
        return self._shell.pid

    @property
    def returncode(self) -> int | None:
        return self._shell.returncode

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, text: str) -> None:
        """Queue ``text`` as one line of shell input. Never blocks, never raises."""
        try:
            self._stdin_tx.send(text)
        except QueueClosed as exc:
            logger.error("Failed to send input to terminal: %s", exc)

    async def wait_closed(self) -> None:
        """Wait until the shell has closed both of its output streams."""
        if self._reader_tasks:
            await asyncio.wait(self._reader_tasks)

    async def close(self, timeout: float = 5.0) -> None:
        """Flush pending input, stop the shell and wait for every forwarder to exit."""
        if self._closed:
            return
        self._closed = True
        self._stdin_tx.close()
        if self._writer_task is not None:
            await _join(self._writer_task, timeout)

        stdin = self._shell.stdin
        stdin.close()
        with contextlib.suppress(OSError):
            await stdin.wait_closed()

        code = await self._shell.terminate(timeout)
        logger.info("Shell %d exited with code %s", self._shell.pid, code)
        for task in self._reader_tasks:
            await _join(task, timeout)

    async def __aenter__(self) -> Terminal:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
