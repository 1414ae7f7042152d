"""Exceptions for the sync engine."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


class SyncError(Exception):
    """Base exception for sync errors."""

    pass


@dataclass(frozen=True)
class MissingMapping:
    """One configured mapping that the project schema cannot satisfy.

    Attributes:
        field_name: Project field the mapping targets.
        ticket_value: Ticket-side value (e.g. "bug").
        option: Option label the ticket value maps to.
        available: Options the field actually offers (empty if the field is absent).
        field_exists: Whether the field exists on the project at all.
    """

    field_name: str
    ticket_value: str
    option: str
    available: tuple[str, ...] = ()
    field_exists: bool = True

    def describe(self) -> str:
        if not self.field_exists:
            return f"{self.ticket_value} -> {self.option}: field '{self.field_name}' not found"
        available = ", ".join(self.available) if self.available else "none"
        return (
            f"{self.ticket_value} -> {self.option}: no option '{self.option}' "
            f"in field '{self.field_name}' (available: {available})"
        )


class SchemaValidationError(SyncError):
    """Configured field mappings do not match the project schema.

    Raised before any mutation; aborts the run.
    """

    def __init__(self, missing: Sequence[MissingMapping]) -> None:
        self.missing = list(missing)
        lines = [m.describe() for m in self.missing]
        super().__init__("Project field mapping is invalid:\n  " + "\n  ".join(lines))


class MappingConflictError(SyncError):
    """A remote issue is owned by a different ticket."""

    pass


class MalformedReferenceError(SyncError):
    """A ticket's GitHub reference is not of the form ``gh-<number>``."""

    pass
