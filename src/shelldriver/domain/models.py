"""Core domain models for shelldriver.

These models represent the values flowing through a command exchange:
the request written to the shell, the result handed back to the caller,
and the lifecycle states of the session and the driver.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionState(str, enum.Enum):
    """Lifecycle of the spawned interpreter process."""

    STARTING = "starting"
    RUNNING = "running"
    TERMINATED = "terminated"


class DriverState(str, enum.Enum):
    """Lifecycle of a CommandDriver instance."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    EXECUTING = "executing"
    TERMINATED = "terminated"


class ResultError(str, enum.Enum):
    """Marker attached to a result that could not be fully framed."""

    READ_FAILED = "read_failed"  # Stream closed before the delimiter arrived


# ---------------------------------------------------------------------------
# Exchange Models
# ---------------------------------------------------------------------------


class CommandRequest(BaseModel):
    """A single command submitted to the shell together with its delimiter."""

    model_config = ConfigDict(frozen=True)

    command: str = Field(description="Raw command text as given by the caller")
    delimiter: str = Field(min_length=1, description="Marker that terminates the response")

    @property
    def delimiter_line(self) -> str:
        return self.delimiter + "\n"


class CommandResult(BaseModel):
    """Outcome of one command exchange.

    ``output`` holds stdout and stderr interleaved as the shell wrote them,
    with the status line and delimiter removed.
    """

    model_config = ConfigDict(frozen=True)

    command: str = Field(description="The command that was executed")
    output: str = Field(default="", description="Captured stdout+stderr text")
    exit_status: int = Field(description="Exit status; -1 when it could not be recovered")
    error: ResultError | None = Field(
        default=None, description="Set when the response was synthesized after stream closure"
    )
    duration_ms: float = Field(default=0.0, ge=0)

    @property
    def ok(self) -> bool:
        """True if the command completed normally with exit status 0."""
        return self.error is None and self.exit_status == 0

    @property
    def degraded(self) -> bool:
        return self.error is not None

    def raise_for_error(self) -> CommandResult:
        """Raise ReadFailedError for a degraded result, otherwise return self."""
        if self.error is ResultError.READ_FAILED:
            from shelldriver.shell.channel import ReadFailedError

            raise ReadFailedError(
                "Shell stream closed before the command completed",
                command=self.command,
                partial_output=self.output,
            )
        return self

    def __repr__(self) -> str:
        if self.degraded:
            return f"<CommandResult {self.error.value}, exit={self.exit_status}>"
        lines = self.output.count("\n") + 1 if self.output else 0
        return f"<CommandResult exit={self.exit_status}, {lines} lines>"
