"""Public facade: run commands one at a time in a persistent shell.

Example usage::

    with CommandDriver() as driver:
        driver.execute("cd /tmp")
        result = driver.execute("pwd")
        print(result.output, result.exit_status)
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from shelldriver.config.settings import Settings, load_settings
from shelldriver.domain.models import CommandResult, DriverState
from shelldriver.shell.channel import (
    CommandChannel,
    DriverBusyError,
    ParseFailedError,
    ReadTimeoutError,
    SendFailedError,
    SessionClosedError,
)
from shelldriver.shell.delimiter import DelimiterGenerator
from shelldriver.shell.session import ShellSession
from shelldriver.utils.logging import setup_logging

logger = logging.getLogger(__name__)


class CommandDriver:
    """Combines a ShellSession and a CommandChannel behind ``execute``.

    The driver is strictly sequential: each ``execute`` blocks until the
    response is framed, and a call made while another is in flight is
    rejected with DriverBusyError rather than queued.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        session: ShellSession | None = None,
        generator: DelimiterGenerator | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._session = session or ShellSession(
            shell_command=self._settings.shell.command,
            env=self._settings.shell.env,
        )
        self._generator = generator or DelimiterGenerator(
            length=self._settings.delimiter.length,
            alphabet=self._settings.delimiter.alphabet,
        )
        self._channel: CommandChannel | None = None
        self._state = DriverState.UNINITIALIZED
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, config_path: Path | str | None = None) -> CommandDriver:
        """Build a driver from a YAML configuration file.

        Also applies the file's ``logging`` section to the package logger.
        """
        settings = load_settings(config_path)
        setup_logging(settings.logging)
        return cls(settings)

    @property
    def state(self) -> DriverState:
        return self._state

    @property
    def session(self) -> ShellSession:
        return self._session

    def start(self) -> CommandDriver:
        """Spawn the shell. SpawnError propagates and leaves the driver unstarted."""
        if self._state is not DriverState.UNINITIALIZED:
            raise SessionClosedError(f"Driver cannot be started from state {self._state.value}")

        self._session.start()
        channel_config = self._settings.channel
        self._channel = CommandChannel(
            self._session,
            self._generator,
            chunk_size=channel_config.chunk_size,
            read_timeout=channel_config.read_timeout,
            status_echo=channel_config.status_echo,
            reap_timeout=self._settings.shell.reap_timeout,
        )
        self._state = DriverState.READY
        return self

    def execute(self, command: str) -> CommandResult:
        """Run ``command`` in the shell and return its output and exit status.

        Raises:
            SessionClosedError: The driver was never started or is shut down.
            DriverBusyError: Another command is still in flight.
            SendFailedError: The command could not be written.
            ParseFailedError: The response trailer was corrupt.
            ReadTimeoutError: The configured read timeout elapsed; the
                session is shut down because the stream is out of sync.
        """
        if not self._lock.acquire(blocking=False):
            raise DriverBusyError("A command is already executing", command=command)
        try:
            if self._state is DriverState.UNINITIALIZED:
                raise SessionClosedError("Driver has not been started", command=command)
            if self._state is DriverState.TERMINATED or self._channel is None:
                raise SessionClosedError("Driver has been shut down", command=command)

            self._state = DriverState.EXECUTING
            try:
                result = self._channel.exchange(command)
            except ReadTimeoutError:
                logger.warning("Command %r timed out, shutting the session down", command)
                self._shutdown_session()
                raise
            except (SendFailedError, ParseFailedError) as e:
                logger.warning("Command %r failed (%s), session may be unusable", command, e)
                self._state = DriverState.READY
                raise

            if result.degraded:
                logger.warning(
                    "Shell exited while running %r (status %d)", command, result.exit_status
                )
                self._shutdown_session()
            else:
                self._state = DriverState.READY
            return result
        finally:
            self._lock.release()

    def shutdown(self) -> None:
        """Terminate the shell. Safe to call more than once."""
        if self._state is DriverState.TERMINATED:
            return
        self._shutdown_session()

    def _shutdown_session(self) -> None:
        self._session.terminate()
        self._state = DriverState.TERMINATED

    def __enter__(self) -> CommandDriver:
        return self.start()

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.shutdown()
