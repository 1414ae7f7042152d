"""Text rendering of sync results for the CLI."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from ticketsync.sync.models import ActionKind, SyncAction, SyncEvent, SyncReport
from ticketsync.tickets.models import TicketRecord

ARROW = "→"


def format_event(event: SyncEvent) -> str:
    """Render one push result, e.g. ``CREATE  nw-5c46 → #123  Add login``."""
    kind = event.action.kind
    if event.failed:
        lines = [f"FAIL    {event.ticket_id}  {event.error or event.action.reason}"]
        if event.number is not None and kind == ActionKind.CREATE:
            lines.append(f"  └─ #{event.number} {event.url or ''}".rstrip())
        return "\n".join(lines)

    if kind == ActionKind.SKIP:
        return f"SKIP    {event.ticket_id}  ({event.action.reason})"

    if kind == ActionKind.CREATE:
        lines = [f"CREATE  {event.ticket_id} {ARROW} #{event.number}  {event.title}"]
        if event.url:
            lines.append(f"  └─ {event.url}")
    elif event.changes:
        lines = [f"UPDATE  {event.ticket_id} {ARROW} #{event.number}  {event.title}"]
    else:
        lines = [f"OK      {event.ticket_id} {ARROW} #{event.number}  (unchanged)"]

    lines.extend(f"  · {change}" for change in event.changes)
    lines.extend(f"  · pending: {note}" for note in event.pending)
    return "\n".join(lines)


def format_summary(report: SyncReport) -> str:
    """Render the closing summary of a push."""
    line = (
        f"Summary: {report.created} created, {report.updated} updated, "
        f"{report.unchanged} unchanged, {report.skipped} skipped, {report.failed} failed"
    )
    lines = [line]
    pending = report.pending
    if pending:
        lines.append(f"Pending links ({len(pending)}), run push again once parents are synced:")
        lines.extend(f"  {note}" for note in pending)
    if report.cancelled:
        lines.append("Cancelled: remaining tickets were not processed.")
    return "\n".join(lines)


@dataclass
class StatusSummary:
    """Tickets grouped by what a push would do with them."""

    unsynced: list[SyncEvent] = field(default_factory=list)
    synced: list[SyncEvent] = field(default_factory=list)
    modified: list[SyncEvent] = field(default_factory=list)
    conflicts: list[SyncEvent] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.unsynced) + len(self.synced) + len(self.modified) + len(self.conflicts)

    @classmethod
    def from_events(cls, events: Iterable[SyncEvent]) -> StatusSummary:
        """Group planned events (from ``SyncOrchestrator.plan``)."""
        summary = cls()
        for event in events:
            if event.action.kind == ActionKind.CREATE:
                summary.unsynced.append(event)
            elif event.failed or event.action.kind == ActionKind.SKIP:
                summary.conflicts.append(event)
            elif event.changes:
                summary.modified.append(event)
            else:
                summary.synced.append(event)
        return summary

    @classmethod
    def from_tickets(cls, tickets: Iterable[TicketRecord]) -> StatusSummary:
        """Group tickets by local state only, without asking GitHub."""
        summary = cls()
        for ticket in tickets:
            if not ticket.has_external_ref:
                action = SyncAction.create()
                summary.unsynced.append(SyncEvent(ticket.id, ticket.title, action))
            elif not ticket.reference_is_valid:
                reason = f"malformed external-ref '{ticket.external_ref}'"
                summary.conflicts.append(
                    SyncEvent(ticket.id, ticket.title, SyncAction.error(reason), error=reason)
                )
            else:
                action = SyncAction.update(ticket.issue_number)
                summary.synced.append(
                    SyncEvent(ticket.id, ticket.title, action, number=ticket.issue_number)
                )
        return summary


def _issue_line(event: SyncEvent, detail: str = "") -> str:
    number = f"#{event.number}" if event.number is not None else "#?"
    line = f"  {event.ticket_id:<12} {ARROW} {number:<6} {event.title}"
    return f"{line} ({detail})" if detail else line


def format_status(summary: StatusSummary, repo: str, quick: bool = False) -> str:
    """Render the ``status`` command output."""
    lines = [f"Repository: {repo}"]
    if quick:
        lines.append("(quick mode - GitHub state not checked)")
    lines.append("")
    lines.append(f"Tickets: {summary.total} total")
    lines.append(f"  Unsynced:  {len(summary.unsynced):>3}  (will create new issues)")
    lines.append(f"  Synced:    {len(summary.synced):>3}  (up to date)")
    if not quick:
        lines.append(f"  Modified:  {len(summary.modified):>3}  (will update)")
        lines.append(f"  Conflicts: {len(summary.conflicts):>3}  (skipped or failing)")
    elif summary.conflicts:
        lines.append(f"  Invalid:   {len(summary.conflicts):>3}  (malformed external-ref)")

    if summary.unsynced:
        lines.extend(["", "Unsynced:"])
        lines.extend(f"  {e.ticket_id:<12} {e.title}" for e in summary.unsynced)

    if summary.modified:
        lines.extend(["", "Modified:"])
        lines.extend(_issue_line(e, ", ".join(e.changes)) for e in summary.modified)

    if summary.conflicts:
        lines.extend(["", "Conflicts:"])
        lines.extend(_issue_line(e, e.error or e.action.reason or "") for e in summary.conflicts)

    if summary.synced and (quick or not summary.unsynced):
        lines.extend(["", "Synced:"])
        lines.extend(_issue_line(e) for e in summary.synced)

    return "\n".join(lines)
