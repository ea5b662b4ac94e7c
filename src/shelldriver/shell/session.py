"""Persistent shell session for the command driver.

Manages a long-running interpreter process connected through two plain
pipes: one the caller writes and the shell reads as stdin, one the shell
writes as both stdout and stderr and the caller reads.
"""

from __future__ import annotations

import logging
import os
import select
import signal
import time

from shelldriver.domain.models import SessionState

logger = logging.getLogger(__name__)

# Exit status of a child whose exec failed, as a shell reports "not found".
EXEC_FAILED_STATUS = 127

_REAP_POLL_INTERVAL = 0.01


class ShellSession:
    """Owns one interpreter subprocess and both ends of its pipes.

    Only the session touches the file descriptors; the command channel
    goes through ``write``, ``wait_readable`` and ``read``.
    """

    def __init__(
        self,
        shell_command: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self._shell_command = list(shell_command or ["/bin/bash"])
        self._env_overrides = dict(env or {})
        self._pid: int | None = None
        self._stdin_fd: int | None = None
        self._stdout_fd: int | None = None
        self._state = SessionState.STARTING
        self._started = False
        self._exit_status: int | None = None

    @property
    def pid(self) -> int | None:
        return self._pid

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_alive(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def exit_status(self) -> int | None:
        """Exit status once the child has been reaped, else None."""
        return self._exit_status

    @property
    def shell_command(self) -> list[str]:
        return list(self._shell_command)

    def start(self) -> ShellSession:
        """Spawn the interpreter with stdin, stdout and stderr wired to pipes.

        Raises:
            SpawnError: If the session was already started or the process
                could not be created.
        """
        if self._started:
            raise SpawnError("Session has already been started")

        env = os.environ.copy()
        env.update(self._env_overrides)

        try:
            to_child_r, to_child_w = os.pipe()
        except OSError as e:
            raise SpawnError(f"Failed to create pipes: {e}") from e
        try:
            from_child_r, from_child_w = os.pipe()
        except OSError as e:
            _close_quietly(to_child_r, to_child_w)
            raise SpawnError(f"Failed to create pipes: {e}") from e

        try:
            pid = os.fork()
        except OSError as e:
            _close_quietly(to_child_r, to_child_w, from_child_r, from_child_w)
            raise SpawnError(f"Failed to fork shell {self._shell_command[0]}: {e}") from e

        if pid == 0:
            # Child process: never return into the caller's code
            try:
                # Python ignores SIGPIPE and the disposition survives exec
                signal.signal(signal.SIGPIPE, signal.SIG_DFL)
                os.dup2(to_child_r, 0)
                os.dup2(from_child_w, 1)
                os.dup2(from_child_w, 2)
                for fd in (to_child_r, to_child_w, from_child_r, from_child_w):
                    if fd > 2:
                        os.close(fd)
                os.execvpe(self._shell_command[0], self._shell_command, env)
            finally:
                os._exit(EXEC_FAILED_STATUS)

        # Parent process
        os.close(to_child_r)
        os.close(from_child_w)
        self._pid = pid
        self._stdin_fd = to_child_w
        self._stdout_fd = from_child_r
        self._started = True
        self._state = SessionState.RUNNING
        logger.info("Started shell %s (pid=%d)", " ".join(self._shell_command), pid)
        return self

    def terminate(self) -> None:
        """Send SIGTERM to the shell and release both pipes.

        Does not wait for the process to exit; a single non-blocking reap
        is attempted and ``reap`` can be called later. Safe to call more
        than once.
        """
        if self._state is SessionState.TERMINATED:
            self._close_fds()
            return

        if self._pid is not None and self._exit_status is None:
            try:
                os.kill(self._pid, signal.SIGTERM)
            except ProcessLookupError:
                pass
            self._try_reap()

        self._close_fds()
        self._state = SessionState.TERMINATED
        logger.info("Shell terminated (pid=%s)", self._pid)

    def reap(self, timeout: float | None = 0.0) -> int | None:
        """Wait up to ``timeout`` seconds for the child to exit.

        Returns:
            The exit code for a normal exit, -1 if the child was killed by
            a signal, or None if it is still running. ``timeout=None``
            waits indefinitely.
        """
        if self._pid is None or self._exit_status is not None:
            return self._exit_status

        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            status = self._try_reap()
            if status is not None:
                return status
            if deadline is not None and time.monotonic() >= deadline:
                return None
            time.sleep(_REAP_POLL_INTERVAL)

    def write(self, data: bytes) -> int:
        """Write all of ``data`` to the shell's stdin.

        Raises:
            OSError: If the pipe is closed or the write fails (for example
                BrokenPipeError after the shell died).
        """
        if self._stdin_fd is None:
            raise BrokenPipeError("Shell input pipe is closed")
        view = memoryview(data)
        total = 0
        while total < len(view):
            written = os.write(self._stdin_fd, view[total:])
            if written <= 0:
                break
            total += written
        return total

    def wait_readable(self, timeout: float | None = None) -> bool:
        """Block until the shell's stdout has data or reached end of file."""
        if self._stdout_fd is None:
            return True
        ready, _, _ = select.select([self._stdout_fd], [], [], timeout)
        return bool(ready)

    def read(self, size: int) -> bytes:
        """Read at most ``size`` bytes; ``b""`` means the stream is closed."""
        if self._stdout_fd is None:
            return b""
        return os.read(self._stdout_fd, size)

    def _try_reap(self) -> int | None:
        if self._pid is None:
            return None
        try:
            pid, status = os.waitpid(self._pid, os.WNOHANG)
        except ChildProcessError:
            # Reaped elsewhere; the status is lost
            self._record_exit(-1)
            return -1
        if pid == 0:
            return None
        if os.WIFEXITED(status):
            self._record_exit(os.WEXITSTATUS(status))
        else:
            self._record_exit(-1)
        return self._exit_status

    def _record_exit(self, status: int) -> None:
        self._exit_status = status
        self._state = SessionState.TERMINATED
        logger.debug("Shell pid=%s exited with status %d", self._pid, status)

    def _close_fds(self) -> None:
        _close_quietly(self._stdin_fd, self._stdout_fd)
        self._stdin_fd = None
        self._stdout_fd = None

    def __enter__(self) -> ShellSession:
        return self.start()

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.terminate()


def _close_quietly(*fds: int | None) -> None:
    for fd in fds:
        if fd is None:
            continue
        try:
            os.close(fd)
        except OSError:
            pass


class ShellDriverError(Exception):
    """Base class for all shelldriver errors."""


class SpawnError(ShellDriverError):
    """Raised when the shell process cannot be created."""
