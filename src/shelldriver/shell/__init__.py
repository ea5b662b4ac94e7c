"""Persistent shell module for shelldriver.

Spawns one long-lived interpreter, frames each command with a random
delimiter and a status echo, and reads the response back until the
delimiter appears.

Public API:
    CommandDriver -- Facade exposing start/execute/shutdown
    ShellSession -- Interpreter process and its two pipes
    CommandChannel -- Framing protocol over a ShellSession
    DelimiterGenerator -- Random end-of-response markers
"""

from shelldriver.shell.channel import (
    ChannelError,
    CommandChannel,
    DriverBusyError,
    ParseFailedError,
    ReadFailedError,
    ReadTimeoutError,
    ReceivedFrame,
    SendFailedError,
    SessionClosedError,
)
from shelldriver.shell.delimiter import DelimiterGenerator
from shelldriver.shell.driver import CommandDriver
from shelldriver.shell.session import ShellDriverError, ShellSession, SpawnError

__all__ = [
    "ChannelError",
    "CommandChannel",
    "CommandDriver",
    "DelimiterGenerator",
    "DriverBusyError",
    "ParseFailedError",
    "ReadFailedError",
    "ReadTimeoutError",
    "ReceivedFrame",
    "SendFailedError",
    "SessionClosedError",
    "ShellDriverError",
    "ShellSession",
    "SpawnError",
]
