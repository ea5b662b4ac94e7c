"""Shared test fixtures for the shelldriver test suite.

Provides a scripted session stand-in for channel tests and real
bash-backed sessions and drivers for end-to-end tests.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterator
from unittest.mock import MagicMock

import pytest

from shelldriver.config.settings import Settings
from shelldriver.shell.delimiter import DelimiterGenerator
from shelldriver.shell.driver import CommandDriver
from shelldriver.shell.session import ShellSession

BASH = shutil.which("bash")


# ---------------------------------------------------------------------------
# Delimiter Fixtures
# ---------------------------------------------------------------------------


class FixedGenerator(DelimiterGenerator):
    """Generator returning a known delimiter so frames can be scripted."""

    def __init__(self, delimiter: str = "q" * 32) -> None:
        super().__init__(length=len(delimiter))
        self.delimiter = delimiter

    def generate(self) -> str:
        return self.delimiter


@pytest.fixture
def fixed_generator() -> FixedGenerator:
    return FixedGenerator()


# ---------------------------------------------------------------------------
# Session Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scripted_session() -> MagicMock:
    """A ShellSession stand-in whose reads are driven by ``chunks``.

    Append byte strings to ``mock.chunks``; each ``read`` pops one and an
    exhausted list reads as end of file.
    """
    mock = MagicMock(spec=ShellSession)
    mock.chunks = []
    mock.write.side_effect = lambda data: len(data)
    mock.wait_readable.return_value = True
    mock.read.side_effect = lambda size: mock.chunks.pop(0) if mock.chunks else b""
    mock.reap.return_value = None
    return mock


@pytest.fixture
def bash_session() -> Iterator[ShellSession]:
    if BASH is None:
        pytest.skip("bash is not installed")
    session = ShellSession(shell_command=[BASH])
    session.start()
    try:
        yield session
    finally:
        session.terminate()
        session.reap(2.0)


@pytest.fixture
def bash_settings() -> Settings:
    if BASH is None:
        pytest.skip("bash is not installed")
    return Settings(shell={"command": [BASH]}, channel={"read_timeout": 10.0})


@pytest.fixture
def driver(bash_settings: Settings) -> Iterator[CommandDriver]:
    drv = CommandDriver(bash_settings)
    drv.start()
    try:
        yield drv
    finally:
        drv.shutdown()
        drv.session.reap(2.0)
