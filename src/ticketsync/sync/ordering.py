"""Referenced-before-dependent ordering of the working set."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ticketsync.tickets.models import TicketRecord

logger = logging.getLogger("ticketsync.sync.ordering")


def order_for_linkage(tickets: Sequence[TicketRecord]) -> list[TicketRecord]:
    """Order tickets so unsynced parents and dependencies come first.

    A single deferral pass: a ticket whose parent or any dependency is in
    the working set and has no issue yet is moved after the tickets that
    are not deferred. Relative order is otherwise kept. Deeper chains and
    cycles are not reordered further; their links end up pending.
    """
    in_set = {t.id: t for t in tickets}
    ready: list[TicketRecord] = []
    deferred: list[TicketRecord] = []

    for ticket in tickets:
        if any(_waits_on(ticket, in_set.get(ref)) for ref in _references(ticket)):
            deferred.append(ticket)
        else:
            ready.append(ticket)

    if deferred:
        logger.debug("Deferred %d ticket(s) until their references are created", len(deferred))
    return ready + deferred


def _references(ticket: TicketRecord) -> list[str]:
    refs = list(ticket.deps)
    if ticket.parent:
        refs.append(ticket.parent)
    return refs


def _waits_on(ticket: TicketRecord, referenced: TicketRecord | None) -> bool:
    return referenced is not None and referenced.id != ticket.id and referenced.issue_number is None
