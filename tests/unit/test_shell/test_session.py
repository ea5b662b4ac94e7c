"""Tests for ShellSession process and pipe management."""

from __future__ import annotations

import os
import shutil
import signal
from unittest.mock import patch

import pytest

from shelldriver.domain.models import SessionState
from shelldriver.shell.session import EXEC_FAILED_STATUS, ShellSession, SpawnError

requires_bash = pytest.mark.skipif(shutil.which("bash") is None, reason="bash is not installed")


class TestShellSessionInit:
    def test_defaults(self) -> None:
        session = ShellSession()
        assert session.shell_command == ["/bin/bash"]
        assert session.state is SessionState.STARTING
        assert session.pid is None
        assert not session.is_alive

    def test_custom_command(self) -> None:
        session = ShellSession(shell_command=["/bin/sh", "-s"])
        assert session.shell_command == ["/bin/sh", "-s"]


class TestShellSessionStart:
    def test_fork_failure_raises_and_closes_pipes(self) -> None:
        session = ShellSession()
        closed: list[int] = []
        with patch("os.pipe", side_effect=[(10, 11), (12, 13)]), \
                patch("os.fork", side_effect=OSError("Resource temporarily unavailable")), \
                patch("os.close", side_effect=closed.append):
            with pytest.raises(SpawnError, match="Failed to fork"):
                session.start()
        assert sorted(closed) == [10, 11, 12, 13]
        assert session.pid is None
        assert session.state is SessionState.STARTING

    def test_pipe_failure_raises(self) -> None:
        session = ShellSession()
        with patch("os.pipe", side_effect=OSError("Too many open files")):
            with pytest.raises(SpawnError, match="pipes"):
                session.start()

    @requires_bash
    def test_start_twice_raises(self, bash_session: ShellSession) -> None:
        with pytest.raises(SpawnError, match="already"):
            bash_session.start()

    @requires_bash
    def test_running_after_start(self, bash_session: ShellSession) -> None:
        assert bash_session.is_alive
        assert bash_session.state is SessionState.RUNNING
        assert bash_session.pid is not None and bash_session.pid > 0


@requires_bash
class TestShellSessionIO:
    def test_round_trip(self, bash_session: ShellSession) -> None:
        bash_session.write(b"echo ping\n")
        assert bash_session.wait_readable(5.0)
        assert bash_session.read(1024) == b"ping\n"

    def test_stderr_shares_output_pipe(self, bash_session: ShellSession) -> None:
        bash_session.write(b"echo err >&2\n")
        assert bash_session.wait_readable(5.0)
        assert bash_session.read(1024) == b"err\n"

    def test_wait_readable_times_out_when_idle(self, bash_session: ShellSession) -> None:
        assert bash_session.wait_readable(0.05) is False

    def test_environment_override(self) -> None:
        session = ShellSession(shell_command=["bash"], env={"SHELLDRIVER_TEST_VAR": "xyz"})
        with session:
            session.write(b'echo "$SHELLDRIVER_TEST_VAR"\n')
            assert session.wait_readable(5.0)
            assert session.read(1024) == b"xyz\n"
        session.reap(2.0)

    def test_read_returns_empty_after_exit(self, bash_session: ShellSession) -> None:
        bash_session.write(b"exit 3\n")
        assert bash_session.wait_readable(5.0)
        assert bash_session.read(1024) == b""
        assert bash_session.reap(2.0) == 3
        assert bash_session.exit_status == 3
        assert bash_session.state is SessionState.TERMINATED


class TestShellSessionExecFailure:
    def test_missing_program_closes_stream(self) -> None:
        session = ShellSession(shell_command=["/nonexistent/shelldriver-shell"])
        session.start()
        try:
            assert session.wait_readable(5.0)
            assert session.read(1024) == b""
            assert session.reap(5.0) == EXEC_FAILED_STATUS
        finally:
            session.terminate()


@requires_bash
class TestShellSessionTerminate:
    def test_terminate_stops_process(self, bash_session: ShellSession) -> None:
        pid = bash_session.pid
        bash_session.terminate()
        assert bash_session.state is SessionState.TERMINATED
        assert bash_session.reap(5.0) == -1
        with pytest.raises(ChildProcessError):
            os.waitpid(pid, os.WNOHANG)

    def test_terminate_is_idempotent(self, bash_session: ShellSession) -> None:
        bash_session.terminate()
        bash_session.terminate()
        assert bash_session.state is SessionState.TERMINATED

    def test_terminate_after_external_kill(self, bash_session: ShellSession) -> None:
        os.kill(bash_session.pid, signal.SIGKILL)
        bash_session.reap(5.0)
        bash_session.terminate()
        assert bash_session.exit_status == -1

    def test_write_after_terminate_raises(self, bash_session: ShellSession) -> None:
        bash_session.terminate()
        with pytest.raises(BrokenPipeError):
            bash_session.write(b"echo hi\n")
        assert bash_session.read(10) == b""

    def test_terminate_before_start(self) -> None:
        session = ShellSession()
        session.terminate()
        assert session.state is SessionState.TERMINATED
