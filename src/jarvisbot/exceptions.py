from __future__ import annotations

__all__ = ["BridgeError", "QueueClosed", "RelayError", "SpawnError", "StreamAcquisitionError"]


class BridgeError(Exception):
    """Base class for failures that prevent a shell session from being opened."""


class SpawnError(BridgeError):
    """The shell executable is missing or the OS refused to create the process."""

    def __init__(self, shell: str, reason: str) -> None:
        super().__init__(f"Failed to spawn {shell!r}: {reason}")
        self.shell = shell
        self.reason = reason

    @classmethod
    def from_os_error(cls, shell: str, exc: OSError) -> SpawnError:
        reason = exc.strerror or str(exc)
        return cls(shell, reason)


class StreamAcquisitionError(BridgeError):
    """A standard stream handle was missing after the child was spawned."""

    def __init__(self, stream: str) -> None:
        super().__init__(f"{stream} is not available")
        self.stream = stream


class QueueClosed(Exception):
    """The other end of a queue is gone: no more senders, or no receiver."""


class RelayError(Exception):
    """A chat API call failed or returned an error envelope."""

    def __init__(self, method: str, reason: str) -> None:
        super().__init__(f"{method}: {reason}")
        self.method = method
        self.reason = reason
