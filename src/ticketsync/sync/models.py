"""Data models for the sync engine."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class ActionKind(str, Enum):
    """What the orchestrator decided to do with a ticket."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    ERROR = "error"


@dataclass(frozen=True)
class SyncAction:
    """Per-ticket decision.

    Attributes:
        kind: Action kind.
        issue_number: Remote issue to update (UPDATE only).
        reason: Why the ticket is skipped or failed (SKIP/ERROR only).
    """

    kind: ActionKind
    issue_number: int | None = None
    reason: str | None = None

    @classmethod
    def create(cls) -> SyncAction:
        return cls(ActionKind.CREATE)

    @classmethod
    def update(cls, issue_number: int) -> SyncAction:
        return cls(ActionKind.UPDATE, issue_number=issue_number)

    @classmethod
    def skip(cls, reason: str) -> SyncAction:
        return cls(ActionKind.SKIP, reason=reason)

    @classmethod
    def error(cls, reason: str) -> SyncAction:
        return cls(ActionKind.ERROR, reason=reason)


@dataclass(frozen=True)
class FieldMapping:
    """Ticket value -> project option label table for one single-select field."""

    field_name: str
    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def option_for(self, ticket_value: str) -> str | None:
        return self.values.get(ticket_value)


@dataclass
class SyncEvent:
    """Outcome of one ticket in a run.

    Attributes:
        ticket_id: Ticket ID.
        title: Ticket title.
        action: Action that was taken (or planned).
        number: Remote issue number, when one is known.
        url: Remote issue URL, when one is known.
        changes: Field-level change notes ("Title updated", "Closed", ...).
        pending: Relationship links deferred to a later run.
        error: Error message for failed tickets.
    """

    ticket_id: str
    title: str
    action: SyncAction
    number: int | None = None
    url: str | None = None
    changes: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None or self.action.kind == ActionKind.ERROR

    @property
    def unchanged(self) -> bool:
        """An update that turned out to need no mutation."""
        return self.action.kind == ActionKind.UPDATE and not self.changes and not self.failed


@dataclass
class SyncReport:
    """Aggregated result of a run."""

    events: list[SyncEvent] = field(default_factory=list)
    cancelled: bool = False

    @property
    def created(self) -> int:
        return sum(1 for e in self.events if e.action.kind == ActionKind.CREATE and not e.failed)

    @property
    def updated(self) -> int:
        return sum(
            1
            for e in self.events
            if e.action.kind == ActionKind.UPDATE and e.changes and not e.failed
        )

    @property
    def unchanged(self) -> int:
        return sum(1 for e in self.events if e.unchanged)

    @property
    def skipped(self) -> int:
        return sum(1 for e in self.events if e.action.kind == ActionKind.SKIP)

    @property
    def failed(self) -> int:
        return sum(1 for e in self.events if e.failed)

    @property
    def pending(self) -> list[str]:
        return [note for e in self.events for note in e.pending]

    @property
    def has_failures(self) -> bool:
        return self.failed > 0
