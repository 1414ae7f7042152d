"""Conflict Resolver - Decides whether a remote issue may be overwritten.

Ownership is asserted by a single HTML comment at the start of the issue
body, ``<!-- ticket:<id> -->``. Nothing else about the remote issue is
consulted.
"""

from __future__ import annotations

from ticketsync.github.models import IssueState, RemoteIssue
from ticketsync.sync.exceptions import MappingConflictError
from ticketsync.sync.models import SyncAction
from ticketsync.tickets.models import TicketRecord, TicketStatus, format_github_ref

MARKER_PREFIX = "<!-- ticket:"
MARKER_SUFFIX = " -->"

SKIP_REASON_UNMANAGED = "modified outside tool"


def ownership_marker(ticket_id: str) -> str:
    """Render the ownership marker for a ticket."""
    return f"{MARKER_PREFIX}{ticket_id}{MARKER_SUFFIX}"


def extract_ticket_marker(body: str | None) -> str | None:
    """Return the ticket ID of the first ownership marker in ``body``, if any."""
    if not body:
        return None
    start = body.find(MARKER_PREFIX)
    if start == -1:
        return None
    rest = body[start + len(MARKER_PREFIX) :]
    end = rest.find(MARKER_SUFFIX)
    if end == -1:
        return None
    ticket_id = rest[:end].strip()
    # A marker never spans lines
    if not ticket_id or "\n" in ticket_id:
        return None
    return ticket_id


def mapping_conflict_reason(number: int, owner_id: str) -> str:
    return f"mapping conflict: {format_github_ref(number)} is claimed by ticket {owner_id}"


def check_ownership(ticket: TicketRecord, remote: RemoteIssue) -> bool:
    """Whether ``ticket`` owns ``remote``.

    Returns:
        True when the marker names this ticket, False when there is no marker.

    Raises:
        MappingConflictError: If the marker names a different ticket.
    """
    owner_id = extract_ticket_marker(remote.body)
    if owner_id is None:
        return False
    if owner_id != ticket.id:
        raise MappingConflictError(mapping_conflict_reason(remote.number, owner_id))
    return True


def resolve_conflict(ticket: TicketRecord, remote: RemoteIssue) -> SyncAction:
    """Decide what to do with a ticket whose reference points at ``remote``."""
    try:
        owned = check_ownership(ticket, remote)
    except MappingConflictError as e:
        return SyncAction.error(str(e))
    if not owned:
        return SyncAction.skip(SKIP_REASON_UNMANAGED)
    return SyncAction.update(remote.number)


def desired_state(status: TicketStatus) -> IssueState:
    """Map a ticket status onto the remote issue state."""
    match status:
        case TicketStatus.OPEN | TicketStatus.IN_PROGRESS:
            return IssueState.OPEN
        case TicketStatus.CLOSED:
            return IssueState.CLOSED
