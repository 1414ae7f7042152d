"""Custom exceptions for the ticket store."""


class TicketError(Exception):
    """Base exception for ticket store errors."""


class TicketParseError(TicketError):
    """Ticket file could not be parsed into a record."""


class TicketNotFoundError(TicketError):
    """No ticket with the given ID exists in the store."""


class TicketWriteError(TicketError):
    """Ticket file could not be updated on disk."""
