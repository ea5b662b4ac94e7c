"""Delimiter framing over the shell's unstructured byte streams.

The interpreter has no notion of message boundaries, so every command is
followed by a status echo that prints the command's exit status and a
freshly generated delimiter. The response is complete when the read
buffer ends with that delimiter line::

    <output>\\n<status>\\n<delimiter>\\n
"""

from __future__ import annotations

import logging
import re
import time
from typing import NamedTuple

from shelldriver.config.settings import POSIX_STATUS_ECHO
from shelldriver.domain.models import CommandRequest, CommandResult, ResultError
from shelldriver.shell.delimiter import DelimiterGenerator
from shelldriver.shell.session import ShellDriverError, ShellSession

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024

# Status reported when the stream closed and the child's exit code is unknown.
UNKNOWN_STATUS = -1

# Longest single wait before checking whether the shell is still alive.
LIVENESS_INTERVAL = 0.1

# Upper bound on output drained after the shell has exited.
_DRAIN_LIMIT = 1 << 20

_STATUS_TOKEN = re.compile(r"-?\d+")


class ReceivedFrame(NamedTuple):
    """Raw bytes read for one command.

    ``closed`` is True when the stream ended before the delimiter arrived
    and the trailer was synthesized.
    """

    raw: bytes
    closed: bool


class CommandChannel:
    """Frames commands to a ShellSession and reads back their responses."""

    def __init__(
        self,
        session: ShellSession,
        generator: DelimiterGenerator | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        read_timeout: float | None = None,
        status_echo: str = POSIX_STATUS_ECHO,
        reap_timeout: float = 1.0,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._session = session
        self._generator = generator or DelimiterGenerator()
        self._chunk_size = chunk_size
        self._read_timeout = read_timeout
        self._status_echo = status_echo
        self._reap_timeout = reap_timeout

    @property
    def session(self) -> ShellSession:
        return self._session

    @property
    def read_timeout(self) -> float | None:
        return self._read_timeout

    def frame(self, command: str, delimiter: str) -> bytes:
        """Build the bytes written to the shell for ``command``."""
        suffix = self._status_echo.format(delimiter=delimiter)
        return f"{command} 2>&1\n{suffix}\n".encode()

    def send(self, command: str, delimiter: str) -> None:
        """Write the framed command to the shell in full.

        Raises:
            SendFailedError: If the write fails or is short.
        """
        data = self.frame(command, delimiter)
        try:
            written = self._session.write(data)
        except OSError as e:
            raise SendFailedError(f"Failed to write to shell: {e}", command=command) from e
        if written != len(data):
            raise SendFailedError(
                f"Short write to shell ({written} of {len(data)} bytes)", command=command
            )

    def receive_until(self, delimiter_line: str) -> ReceivedFrame:
        """Read the shell's output until it ends with ``delimiter_line``.

        The readiness wait is cut into ``LIVENESS_INTERVAL`` slices; after
        every idle slice the shell is checked for exit, because processes
        it started may keep the pipe open long after it died. If the
        stream closes or the shell exits first, a trailer carrying the
        child's exit status (or -1) and the delimiter is appended so the
        frame still parses.

        Raises:
            ReadTimeoutError: If a read timeout is configured and the
                delimiter did not arrive in time.
        """
        marker = delimiter_line.encode()
        buffer = bytearray()
        deadline = None
        if self._read_timeout is not None:
            deadline = time.monotonic() + self._read_timeout

        while True:
            timeout = LIVENESS_INTERVAL
            if deadline is not None:
                timeout = min(timeout, max(0.0, deadline - time.monotonic()))
            if not self._session.wait_readable(timeout):
                if deadline is not None and time.monotonic() >= deadline:
                    raise ReadTimeoutError(
                        f"No delimiter after {self._read_timeout}s",
                        partial_output=buffer.decode("utf-8", errors="replace"),
                    )
                if self._session.reap(0) is None:
                    continue
                # Shell is gone but something it spawned holds the pipe open
                buffer += self._drain()
                if buffer.endswith(marker):
                    return ReceivedFrame(bytes(buffer), closed=False)
                return self._closed_frame(buffer, marker, "Shell exited")

            try:
                chunk = self._session.read(self._chunk_size)
            except OSError as e:
                logger.debug("Read from shell failed: %s", e)
                chunk = b""

            if not chunk:
                return self._closed_frame(buffer, marker, "Shell stream closed")

            buffer += chunk
            if buffer.endswith(marker):
                return ReceivedFrame(bytes(buffer), closed=False)

    def parse(self, raw: bytes, delimiter_line: str) -> tuple[str, int]:
        """Split a framed response into output text and exit status.

        Raises:
            ParseFailedError: If the trailer is missing or the status token
                is not an integer.
        """
        marker = delimiter_line.encode()
        if not raw.endswith(marker):
            raise ParseFailedError("Response does not end with the delimiter line", raw=raw)

        body = raw[: len(raw) - len(marker)]
        if not body.endswith(b"\n"):
            raise ParseFailedError("Status line is not newline terminated", raw=raw)
        body = body[:-1]

        head, newline, token = body.rpartition(b"\n")
        if not newline:
            raise ParseFailedError("Response has no status line separator", raw=raw)

        status_text = token.decode("utf-8", errors="replace").strip()
        if not _STATUS_TOKEN.fullmatch(status_text):
            raise ParseFailedError(f"Non-numeric exit status {status_text[:32]!r}", raw=raw)

        output = head.decode("utf-8", errors="replace")
        if output.endswith("\n"):
            output = output[:-1]
        return output, int(status_text)

    def exchange(self, command: str) -> CommandResult:
        """Run one command through the shell and return its result."""
        request = CommandRequest(command=command, delimiter=self._generator.generate())
        start_time = time.perf_counter()

        self.send(request.command, request.delimiter)
        logger.debug("Sent command %r (delimiter %s...)", command, request.delimiter[:8])

        try:
            frame = self.receive_until(request.delimiter_line)
        except ReadTimeoutError as e:
            e.command = command
            raise

        try:
            output, exit_status = self.parse(frame.raw, request.delimiter_line)
        except ParseFailedError as e:
            e.command = command
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        result = CommandResult(
            command=command,
            output=output,
            exit_status=exit_status,
            error=ResultError.READ_FAILED if frame.closed else None,
            duration_ms=duration_ms,
        )
        logger.debug("Command %r finished: %r in %.1fms", command, result, duration_ms)
        return result

    def _drain(self) -> bytes:
        """Read whatever is already buffered in the pipe without blocking."""
        drained = bytearray()
        while len(drained) < _DRAIN_LIMIT and self._session.wait_readable(0):
            try:
                chunk = self._session.read(self._chunk_size)
            except OSError as e:
                logger.debug("Read from shell failed: %s", e)
                break
            if not chunk:
                break
            drained += chunk
        return bytes(drained)

    def _closed_frame(self, buffer: bytearray, marker: bytes, reason: str) -> ReceivedFrame:
        status = self._closed_status()
        logger.warning("%s before delimiter (exit status %d)", reason, status)
        buffer += f"\n{status}\n".encode() + marker
        return ReceivedFrame(bytes(buffer), closed=True)

    def _closed_status(self) -> int:
        status = self._session.reap(self._reap_timeout)
        return UNKNOWN_STATUS if status is None else status


class ChannelError(ShellDriverError):
    """Raised when a command exchange with the shell fails."""

    def __init__(self, message: str, command: str | None = None, partial_output: str = "") -> None:
        super().__init__(message)
        self.command = command
        self.partial_output = partial_output


class SendFailedError(ChannelError):
    """The framed command could not be written to the shell."""


class ReadFailedError(ChannelError):
    """The shell's output stream closed before the delimiter arrived."""


class ReadTimeoutError(ChannelError):
    """The delimiter did not arrive within the configured read timeout."""


class ParseFailedError(ChannelError):
    """The response trailer could not be tokenized into a status."""

    def __init__(self, message: str, raw: bytes = b"", command: str | None = None) -> None:
        super().__init__(message, command=command)
        self.raw = raw


class SessionClosedError(ChannelError):
    """An exchange was attempted on a driver without a live session."""


class DriverBusyError(ChannelError):
    """A second command was submitted while one was still in flight."""
