"""TicketStore - Loads ticket files and persists external references."""

from __future__ import annotations

import logging
from pathlib import Path

from ticketsync.tickets.exceptions import (
    TicketNotFoundError,
    TicketParseError,
    TicketWriteError,
)
from ticketsync.tickets.models import TicketRecord
from ticketsync.tickets.parser import FRONTMATTER_FENCE, parse_ticket_file

logger = logging.getLogger("ticketsync.tickets")

EXTERNAL_REF_KEY = "external-ref"


class TicketStore:
    """File-backed ticket store rooted at a ``.tickets`` directory.

    The store is the source of truth. The only write it performs is the
    external-reference write-back requested by the sync orchestrator.
    """

    def __init__(self, tickets_dir: str | Path) -> None:
        """Initialize the store.

        Args:
            tickets_dir: Directory containing ``*.md`` ticket files.
        """
        self.tickets_dir = Path(tickets_dir)
        self._tickets: dict[str, TicketRecord] | None = None
        self.parse_errors: list[TicketParseError] = []

    def load_all(self) -> list[TicketRecord]:
        """Load every ticket in the directory, sorted by ID.

        Files that fail to parse are skipped, logged and kept in
        ``parse_errors`` for the caller to report.

        Returns:
            List of parsed tickets.

        Raises:
            TicketParseError: If the directory cannot be read.
        """
        if not self.tickets_dir.is_dir():
            raise TicketParseError(f"Ticket directory not found: {self.tickets_dir}")

        self.parse_errors = []
        tickets: dict[str, TicketRecord] = {}
        for path in sorted(self.tickets_dir.glob("*.md")):
            if path.name.startswith("."):
                continue
            try:
                ticket = parse_ticket_file(path)
            except TicketParseError as e:
                logger.warning("Skipping unparseable ticket %s: %s", path.name, e)
                self.parse_errors.append(e)
                continue
            if ticket.id in tickets:
                logger.warning(
                    "Duplicate ticket ID %s in %s (first seen in %s)",
                    ticket.id,
                    path.name,
                    tickets[ticket.id].path,
                )
                self.parse_errors.append(
                    TicketParseError(f"Duplicate ticket ID '{ticket.id}' in {path}")
                )
                continue
            tickets[ticket.id] = ticket

        self._tickets = dict(sorted(tickets.items()))
        logger.info("Loaded %d ticket(s) from %s", len(self._tickets), self.tickets_dir)
        return list(self._tickets.values())

    @property
    def tickets(self) -> dict[str, TicketRecord]:
        """All tickets keyed by ID, loading them on first access."""
        if self._tickets is None:
            self.load_all()
        assert self._tickets is not None
        return self._tickets

    def get(self, ticket_id: str) -> TicketRecord:
        """Get a ticket by ID.

        Raises:
            TicketNotFoundError: If no ticket has this ID.
        """
        try:
            return self.tickets[ticket_id]
        except KeyError:
            raise TicketNotFoundError(f"Ticket '{ticket_id}' not found") from None

    def select(self, ticket_ids: list[str] | None = None) -> list[TicketRecord]:
        """Select the working set for a run.

        Args:
            ticket_ids: Explicit IDs in the order to process them. None or
                empty selects every ticket in store order.

        Returns:
            Selected tickets.

        Raises:
            TicketNotFoundError: If any requested ID is unknown.
        """
        if not ticket_ids:
            return list(self.tickets.values())

        missing = [tid for tid in ticket_ids if tid not in self.tickets]
        if missing:
            raise TicketNotFoundError(f"Unknown ticket ID(s): {', '.join(missing)}")

        selected: list[TicketRecord] = []
        for tid in ticket_ids:
            ticket = self.tickets[tid]
            if ticket not in selected:
                selected.append(ticket)
        return selected

    def write_external_ref(self, ticket: TicketRecord, external_ref: str) -> TicketRecord:
        """Persist an external reference into the ticket's frontmatter.

        Only the ``external-ref`` line is touched: it is replaced when
        present, otherwise inserted before the closing fence.

        Args:
            ticket: Ticket to update.
            external_ref: New reference value (e.g. "gh-123").

        Returns:
            The updated ticket record.

        Raises:
            TicketWriteError: If the ticket has no file or it cannot be written.
        """
        if ticket.path is None:
            raise TicketWriteError(f"Ticket '{ticket.id}' has no backing file")

        try:
            # Bytes in and out so line endings survive untouched
            content = ticket.path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise TicketWriteError(f"Failed to read ticket {ticket.path}: {e}") from e

        new_content = set_frontmatter_value(content, EXTERNAL_REF_KEY, external_ref)

        try:
            ticket.path.write_bytes(new_content.encode("utf-8"))
        except OSError as e:
            raise TicketWriteError(f"Failed to write ticket {ticket.path}: {e}") from e

        updated = ticket.with_external_ref(external_ref)
        if self._tickets is not None:
            self._tickets[ticket.id] = updated
        logger.info("Wrote %s=%s to %s", EXTERNAL_REF_KEY, external_ref, ticket.path.name)
        return updated


def set_frontmatter_value(content: str, key: str, value: str) -> str:
    """Set a scalar key inside the frontmatter block, leaving the body untouched.

    Raises:
        TicketWriteError: If the content has no closed frontmatter block.
    """
    lines = content.splitlines(keepends=True)
    if not lines or lines[0].strip() != FRONTMATTER_FENCE:
        raise TicketWriteError("No frontmatter found")

    closing = next(
        (i for i in range(1, len(lines)) if lines[i].strip() == FRONTMATTER_FENCE),
        None,
    )
    if closing is None:
        raise TicketWriteError("Frontmatter is not closed")

    newline = _line_ending(lines[0])
    new_line = f"{key}: {value}"
    for i in range(1, closing):
        if lines[i].startswith(f"{key}:"):
            lines[i] = new_line + _line_ending(lines[i])
            break
    else:
        lines.insert(closing, new_line + newline)

    result = "".join(lines)
    return result if result.endswith(("\n", "\r")) else result + newline


def _line_ending(line: str) -> str:
    """The terminator of ``line``; ``\\n`` for an unterminated line."""
    return line[len(line.rstrip("\r\n")) :] or "\n"
