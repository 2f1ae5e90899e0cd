"""Command channels to build nodes."""

from .base import ChannelError, CommandResult, RemoteChannel
from .local import LocalChannel
from .ssh import SshChannel

__all__ = [
    "ChannelError",
    "CommandResult",
    "RemoteChannel",
    "LocalChannel",
    "SshChannel",
]
