"""Ticket store - Parses ticket files and writes back external references."""

from ticketsync.tickets.exceptions import (
    TicketError,
    TicketNotFoundError,
    TicketParseError,
    TicketWriteError,
)
from ticketsync.tickets.models import (
    TicketRecord,
    TicketStatus,
    TicketType,
    format_github_ref,
)
from ticketsync.tickets.parser import parse_ticket, parse_ticket_file
from ticketsync.tickets.store import TicketStore

__all__ = [
    "TicketError",
    "TicketNotFoundError",
    "TicketParseError",
    "TicketRecord",
    "TicketStatus",
    "TicketStore",
    "TicketType",
    "TicketWriteError",
    "format_github_ref",
    "parse_ticket",
    "parse_ticket_file",
]
