"""Issue body rendering."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from ticketsync.sync.conflict import ownership_marker
from ticketsync.tickets.models import TicketRecord

SECTION_RULE = "---"
DESIGN_TITLE = "## Design"
ACCEPTANCE_TITLE = "## Acceptance Criteria"


def format_dependencies(deps: Sequence[str], issue_number_of: Callable[[str], int | None]) -> str | None:
    """Render the "Depends on" line, omitting dependencies that are not synced.

    Returns:
        The line, or None when no dependency has a remote issue yet.
    """
    refs = []
    for dep_id in deps:
        number = issue_number_of(dep_id)
        if number is not None:
            refs.append(f"#{number}")
    if not refs:
        return None
    return f"**Depends on:** {', '.join(refs)}"


def format_attribution(ticket_id: str) -> str:
    return f"<sub>Synced from ticket `{ticket_id}`</sub>"


def format_issue_body(
    ticket: TicketRecord,
    issue_number_of: Callable[[str], int | None] = lambda _: None,
) -> str:
    """Build the full issue body for a ticket.

    Layout: ownership marker, description, design and acceptance sections,
    dependency line, attribution footer.

    Args:
        ticket: Ticket to render.
        issue_number_of: Resolves a ticket ID to its issue number (None if unsynced).
    """
    parts = [ownership_marker(ticket.id)]
    if ticket.description:
        parts.append(ticket.description)
    if ticket.design:
        parts.append(f"{DESIGN_TITLE}\n\n{ticket.design}")
    if ticket.acceptance:
        parts.append(f"{ACCEPTANCE_TITLE}\n\n{ticket.acceptance}")

    body = "\n\n".join(parts)

    deps_line = format_dependencies(ticket.deps, issue_number_of)
    if deps_line:
        body += f"\n\n{SECTION_RULE}\n{deps_line}"

    body += f"\n\n{SECTION_RULE}\n{format_attribution(ticket.id)}"
    return body
