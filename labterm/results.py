"""Command result value type and error taxonomy.

Every command run through the engine yields exactly one ``CommandResult``.
Failures are values, never exceptions: a handler that cannot do what was
asked returns a result with ``success=False`` and an ``ErrorKind``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


class ErrorKind(str, Enum):
    """Reasons a command can fail."""

    COMMAND_NOT_FOUND = "CommandNotFound"
    USAGE = "UsageError"
    LOOKUP_MISS = "SimulatedLookupMiss"
    NESTED_COMPOSITION = "NestedCompositionError"
    STATE = "StateError"
    PERMISSION_DENIED = "PermissionDenied"
    INTERNAL = "InternalError"


@dataclass(frozen=True)
class CommandResult:
    """Outcome of executing one command line (or one segment of it)."""

    success: bool
    output: str
    is_valid: bool = True
    points_awarded: int = 0
    keywords: Tuple[str, ...] = field(default_factory=tuple)
    execution_time: float = 0.0
    error_kind: Optional[ErrorKind] = None

    def with_points(self, points: int) -> "CommandResult":
        return replace(self, points_awarded=points)

    def with_output(self, output: str) -> "CommandResult":
        return replace(self, output=output)

    def timed(self, seconds: float) -> "CommandResult":
        return replace(self, execution_time=seconds)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict using the wire field names."""
        return {
            "success": self.success,
            "output": self.output,
            "isValid": self.is_valid,
            "pointsAwarded": self.points_awarded,
            "keywords": list(self.keywords),
            "executionTime": round(self.execution_time * 1000, 3),
            "errorKind": self.error_kind.value if self.error_kind else None,
        }


def ok(output: str, points: int = 0, keywords: Iterable[str] = ()) -> CommandResult:
    """Build a successful result."""
    return CommandResult(
        success=True,
        output=output,
        is_valid=True,
        points_awarded=points,
        keywords=tuple(keywords),
    )


def failure(
    output: str,
    kind: ErrorKind,
    is_valid: bool = True,
    keywords: Iterable[str] = (),
) -> CommandResult:
    """Build a failed result. Failures never award points."""
    return CommandResult(
        success=False,
        output=output,
        is_valid=is_valid,
        points_awarded=0,
        keywords=tuple(keywords),
        error_kind=kind,
    )


def usage(text: str) -> CommandResult:
    return failure(text, ErrorKind.USAGE, is_valid=False)


def lookup_miss(text: str) -> CommandResult:
    return failure(text, ErrorKind.LOOKUP_MISS, is_valid=False)


def permission_denied(text: str) -> CommandResult:
    return failure(text, ErrorKind.PERMISSION_DENIED)


def state_error(text: str) -> CommandResult:
    return failure(text, ErrorKind.STATE)


def not_found(name: str) -> CommandResult:
    return failure(
        f"Command not found: {name}\nType 'help' to see available commands.",
        ErrorKind.COMMAND_NOT_FOUND,
        is_valid=False,
    )
