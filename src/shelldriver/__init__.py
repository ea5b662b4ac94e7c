"""shelldriver -- Run commands in a persistent shell over plain pipes.

This package keeps one interactive interpreter alive and lets a caller
submit commands one at a time, getting back each command's combined
output and exit status. Responses are framed with a random delimiter
echoed by the shell after every command.
"""

from shelldriver.domain.models import CommandResult
from shelldriver.shell import (
    ChannelError,
    CommandDriver,
    ParseFailedError,
    ReadFailedError,
    ReadTimeoutError,
    SendFailedError,
    SessionClosedError,
    ShellDriverError,
    SpawnError,
)

__version__ = "0.1.0"

__all__ = [
    "ChannelError",
    "CommandDriver",
    "CommandResult",
    "ParseFailedError",
    "ReadFailedError",
    "ReadTimeoutError",
    "SendFailedError",
    "SessionClosedError",
    "ShellDriverError",
    "SpawnError",
]
