"""Data models for ticket records."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

GITHUB_REF_PREFIX = "gh-"
GITHUB_REF_PATTERN = re.compile(r"^gh-([1-9][0-9]*)$")


class TicketStatus(str, Enum):
    """Lifecycle status of a ticket."""

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


class TicketType(str, Enum):
    """Kind of work a ticket describes."""

    BUG = "bug"
    FEATURE = "feature"
    TASK = "task"
    EPIC = "epic"
    CHORE = "chore"


def format_github_ref(number: int) -> str:
    """Render an issue number as an external reference (``gh-<number>``)."""
    return f"{GITHUB_REF_PREFIX}{number}"


@dataclass(frozen=True)
class TicketRecord:
    """A parsed ticket from the ticket store.

    Attributes:
        id: Ticket ID, unique within the store (e.g. "nw-5c46").
        title: Title from the first markdown heading.
        status: Ticket status.
        type: Ticket type.
        priority: Priority 0-4 (0 = highest).
        description: Body text before any Design/Acceptance section.
        design: Optional "## Design" section content.
        acceptance: Optional "## Acceptance Criteria" section content.
        tags: Tags synced as labels.
        deps: IDs of tickets this one depends on, in order.
        links: IDs of related tickets (symmetric, not synced).
        parent: Optional parent ticket ID.
        external_ref: Raw external reference (e.g. "gh-123").
        assignee: Assignee from frontmatter (carried, never synced).
        created: Creation timestamp from frontmatter.
        path: Source file, None for in-memory records.
    """

    id: str
    title: str
    status: TicketStatus = TicketStatus.OPEN
    type: TicketType = TicketType.TASK
    priority: int = 2
    description: str = ""
    design: str | None = None
    acceptance: str | None = None
    tags: tuple[str, ...] = ()
    deps: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    parent: str | None = None
    external_ref: str | None = None
    assignee: str | None = None
    created: str | None = None
    path: Path | None = field(default=None, compare=False)

    @property
    def has_external_ref(self) -> bool:
        """Whether the ticket carries a GitHub reference (well-formed or not)."""
        return bool(self.external_ref) and self.external_ref.startswith(GITHUB_REF_PREFIX)

    @property
    def reference_is_valid(self) -> bool:
        """Whether the GitHub reference matches the ``gh-<number>`` form."""
        return self.external_ref is not None and bool(GITHUB_REF_PATTERN.match(self.external_ref))

    @property
    def issue_number(self) -> int | None:
        """GitHub issue number, or None when unsynced or malformed."""
        if self.external_ref is None:
            return None
        match = GITHUB_REF_PATTERN.match(self.external_ref)
        return int(match.group(1)) if match else None

    def with_external_ref(self, external_ref: str) -> TicketRecord:
        """Return a copy carrying the given external reference."""
        return replace(self, external_ref=external_ref)
