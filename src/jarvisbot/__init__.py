from .channel import Receiver, Sender, open_channel
from .exceptions import BridgeError, QueueClosed, RelayError, SpawnError, StreamAcquisitionError
from .process import DEFAULT_SHELL, ShellProcess, spawn_shell
from .relay import TelegramRelay
from .terminal import READ_CHUNK_SIZE, Terminal, forward_input, forward_output

__all__ = [
    "DEFAULT_SHELL",
    "READ_CHUNK_SIZE",
    "BridgeError",
    "QueueClosed",
    "Receiver",
    "RelayError",
    "Sender",
    "ShellProcess",
    "SpawnError",
    "StreamAcquisitionError",
    "TelegramRelay",
    "Terminal",
    "forward_input",
    "forward_output",
    "open_channel",
    "spawn_shell",
]
