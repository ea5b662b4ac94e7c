"""Domain models for shelldriver.

This package contains the core data structures and enumerations used
throughout the system. All models use Pydantic v2 for validation.
"""

from shelldriver.domain.models import (
    CommandRequest,
    CommandResult,
    DriverState,
    ResultError,
    SessionState,
)

__all__ = [
    "CommandRequest",
    "CommandResult",
    "DriverState",
    "ResultError",
    "SessionState",
]
