import asyncio
import logging

import pytest

from jarvisbot import READ_CHUNK_SIZE, QueueClosed, forward_input, forward_output, open_channel

# --------------------- Test Doubles -----------------------


class _RecordingWriter:
    """Collects every write; optionally fails the write or drain of selected items."""

    def __init__(self, fail_writes: int = 0, fail_drains: int = 0) -> None:
        self.writes: list[bytes] = []
        self.drained: list[int] = []
        self._fail_writes = fail_writes
        self._fail_drains = fail_drains

    def write(self, data: bytes) -> None:
        if self._fail_writes:
            self._fail_writes -= 1
            raise BrokenPipeError(32, "Broken pipe")
        self.writes.append(data)

    async def drain(self) -> None:
        if self._fail_drains:
            self._fail_drains -= 1
            raise ConnectionResetError("Connection lost")
        self.drained.append(len(self.writes))


class _FailingReader:
    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = list(chunks)
        self.reads = 0

    async def read(self, n: int = -1) -> bytes:
        self.reads += 1
        if self._chunks:
            return self._chunks.pop(0)
        raise OSError(5, "Input/output error")


def _reader_with(*chunks: bytes, eof: bool = True) -> asyncio.StreamReader:
    reader = asyncio.StreamReader()
    for chunk in chunks:
        reader.feed_data(chunk)
    if eof:
        reader.feed_eof()
    return reader


async def _drain(rx) -> list[bytes]:
    return [chunk async for chunk in rx]


# ------------------------ Input --------------------------


@pytest.mark.asyncio
async def test_input_lines_are_newline_terminated_in_order():
    writer = _RecordingWriter()
    tx, rx = open_channel()
    for line in ("echo a", "", "ls -la", "naïve"):
        tx.send(line)
    tx.close()

    await asyncio.wait_for(forward_input(writer, rx), timeout=1)

    assert writer.writes == [b"echo a\n", b"\n", b"ls -la\n", "naïve\n".encode()]
    assert b"".join(writer.writes) == "echo a\n\nls -la\nnaïve\n".encode()
    # every write is followed by its own drain
    assert writer.drained == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_input_failures_are_logged_and_loop_continues(caplog):
    writer = _RecordingWriter(fail_writes=1, fail_drains=1)
    tx, rx = open_channel()
    task = asyncio.create_task(forward_input(writer, rx))

    tx.send("first")
    tx.send("second")
    tx.send("third")
    await asyncio.sleep(0.01)

    assert not task.done()
    # "first" failed to write, "second" was written but failed to drain
    assert writer.writes == [b"second\n", b"third\n"]
    assert writer.drained == [2]
    failures = [r for r in caplog.records if "Failed to write to terminal stdin" in r.getMessage()]
    assert len(failures) == 2
    assert all(r.levelno == logging.WARNING for r in failures)

    tx.close()
    await asyncio.wait_for(task, timeout=1)


@pytest.mark.asyncio
async def test_input_forwarder_exits_when_queue_closes():
    writer = _RecordingWriter()
    tx, rx = open_channel()
    task = asyncio.create_task(forward_input(writer, rx))
    await asyncio.sleep(0.01)
    assert not task.done()

    tx.close()
    await asyncio.wait_for(task, timeout=1)
    assert writer.writes == []


# ------------------------ Output -------------------------


@pytest.mark.asyncio
async def test_each_read_becomes_one_identical_chunk():
    tx, rx = open_channel()
    payload = bytes(range(256)) * 20  # 5120 bytes, not valid UTF-8
    await forward_output(_reader_with(payload), tx, "stdout")

    chunks = await _drain(rx)
    assert [len(c) for c in chunks] == [READ_CHUNK_SIZE, len(payload) - READ_CHUNK_SIZE]
    assert b"".join(chunks) == payload


@pytest.mark.asyncio
async def test_end_of_stream_stops_forwarder_and_closes_sender():
    tx, rx = open_channel()
    reader = _reader_with(eof=False)
    task = asyncio.create_task(forward_output(reader, tx, "stderr"))

    reader.feed_data(b"warning: x\n")
    assert await asyncio.wait_for(rx.recv(), timeout=1) == b"warning: x\n"

    reader.feed_eof()
    await asyncio.wait_for(task, timeout=1)
    assert tx.closed
    with pytest.raises(QueueClosed):
        await rx.recv()


@pytest.mark.asyncio
async def test_read_error_ends_only_that_forwarder(caplog):
    tx, rx = open_channel()
    failing = _FailingReader([b"partial"])
    healthy = _reader_with(eof=False)

    broken_task = asyncio.create_task(forward_output(failing, tx.clone(), "stdout"))
    healthy_task = asyncio.create_task(forward_output(healthy, tx.clone(), "stderr"))
    tx.close()

    await asyncio.wait_for(broken_task, timeout=1)
    assert failing.reads == 2
    assert any(r.levelno == logging.ERROR and "Error reading from stdout" in r.getMessage() for r in caplog.records)

    assert not healthy_task.done()
    healthy.feed_data(b"still here")
    healthy.feed_eof()
    await asyncio.wait_for(healthy_task, timeout=1)

    assert await _drain(rx) == [b"partial", b"still here"]


@pytest.mark.asyncio
async def test_closed_receiver_does_not_stop_draining():
    tx, rx = open_channel()
    rx.close()
    reader = _reader_with(b"a" * 10_000)

    await asyncio.wait_for(forward_output(reader, tx, "stdout"), timeout=1)

    # the whole stream was consumed even though nobody listened
    assert reader.at_eof()


@pytest.mark.asyncio
async def test_two_streams_share_one_queue():
    tx, rx = open_channel()
    out = _reader_with(eof=False)
    err = _reader_with(eof=False)
    tasks = [
        asyncio.create_task(forward_output(out, tx.clone(), "stdout")),
        asyncio.create_task(forward_output(err, tx.clone(), "stderr")),
    ]
    tx.close()

    out.feed_data(b"1")
    assert await rx.recv() == b"1"
    err.feed_data(b"2")
    assert await rx.recv() == b"2"
    out.feed_data(b"3")
    assert await rx.recv() == b"3"

    out.feed_eof()
    await asyncio.sleep(0.01)
    # one producer is still alive, so the queue stays open
    pending = asyncio.create_task(rx.recv())
    await asyncio.sleep(0.01)
    assert not pending.done()

    err.feed_eof()
    await asyncio.gather(*tasks)
    with pytest.raises(QueueClosed):
        await asyncio.wait_for(pending, timeout=1)
