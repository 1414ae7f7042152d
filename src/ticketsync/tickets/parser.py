"""Parser for ticket markdown files.

A ticket file is YAML frontmatter between ``---`` fences followed by a
markdown body whose first ``# `` heading is the title::

    ---
    id: nw-5c46
    status: open
    type: task
    tags: [backend, auth]
    ---
    # Add login endpoint

    Description text.

    ## Design
    ...

    ## Acceptance Criteria
    ...

    ## Notes
    (never synced)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from ticketsync.tickets.exceptions import TicketParseError
from ticketsync.tickets.models import TicketRecord, TicketStatus, TicketType

FRONTMATTER_FENCE = "---"
DEFAULT_TITLE = "Untitled"

# Section headings that are split out of the description
DESIGN_HEADING = "## Design"
ACCEPTANCE_HEADING = "## Acceptance Criteria"
NOTES_HEADING = "## Notes"


def split_frontmatter(content: str) -> tuple[str, str]:
    """Split raw file content into frontmatter text and body text.

    Args:
        content: Full file content.

    Returns:
        Tuple of (frontmatter YAML, body markdown).

    Raises:
        TicketParseError: If the content has no closed frontmatter block.
    """
    lines = content.splitlines()
    if not lines or lines[0].strip() != FRONTMATTER_FENCE:
        raise TicketParseError("No frontmatter found")

    for idx in range(1, len(lines)):
        if lines[idx].strip() == FRONTMATTER_FENCE:
            return "\n".join(lines[1:idx]), "\n".join(lines[idx + 1 :])

    raise TicketParseError("Frontmatter is not closed")


def _as_str_list(value: Any, key: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise TicketParseError(f"'{key}' must be a list, got {type(value).__name__}")
    items: list[str] = []
    for item in value:
        text = str(item).strip()
        if text and text not in items:
            items.append(text)
    return tuple(items)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_priority(value: Any) -> int:
    if value is None:
        return 2
    if isinstance(value, bool) or not isinstance(value, int):
        raise TicketParseError(f"'priority' must be an integer 0-4, got {value!r}")
    if not 0 <= value <= 4:
        raise TicketParseError(f"'priority' must be between 0 and 4, got {value}")
    return value


def _split_body(body: str) -> tuple[str, str, str | None, str | None]:
    """Split the markdown body into title, description, design and acceptance."""
    title: str | None = None
    buckets: dict[str, list[str]] = {"description": [], "design": [], "acceptance": []}
    seen: set[str] = set()
    current: str | None = "description"

    for line in body.splitlines():
        if title is None and line.startswith("# "):
            title = line[2:].strip()
            continue

        stripped = line.rstrip()
        if stripped == DESIGN_HEADING:
            current = "design"
            seen.add(current)
            continue
        if stripped == ACCEPTANCE_HEADING:
            current = "acceptance"
            seen.add(current)
            continue
        if stripped == NOTES_HEADING:
            current = None
            continue
        if line.startswith("## "):
            # Any other section belongs with the description
            current = "description"

        if current is not None:
            buckets[current].append(line)

    description = "\n".join(buckets["description"]).strip()
    design = "\n".join(buckets["design"]).strip() if "design" in seen else None
    acceptance = "\n".join(buckets["acceptance"]).strip() if "acceptance" in seen else None
    return title or DEFAULT_TITLE, description, design or None, acceptance or None


def parse_ticket(content: str, path: Path | None = None) -> TicketRecord:
    """Parse ticket file content into a TicketRecord.

    Args:
        content: Full ticket file content.
        path: Source path, recorded on the ticket and used in error messages.

    Returns:
        Parsed ticket record.

    Raises:
        TicketParseError: If frontmatter is missing or invalid.
    """
    where = f" in {path}" if path else ""
    try:
        frontmatter_text, body = split_frontmatter(content)
    except TicketParseError as e:
        raise TicketParseError(f"{e}{where}") from e

    try:
        data = yaml.safe_load(frontmatter_text) or {}
    except yaml.YAMLError as e:
        raise TicketParseError(f"Invalid YAML frontmatter{where}: {e}") from e

    if not isinstance(data, dict):
        raise TicketParseError(f"Frontmatter must be a YAML mapping{where}")

    ticket_id = _optional_str(data.get("id"))
    if ticket_id is None:
        raise TicketParseError(f"Missing required field 'id'{where}")

    try:
        status = TicketStatus(str(data.get("status", TicketStatus.OPEN.value)))
        ticket_type = TicketType(str(data.get("type", TicketType.TASK.value)))
        priority = _parse_priority(data.get("priority"))
        tags = _as_str_list(data.get("tags"), "tags")
        deps = _as_str_list(data.get("deps"), "deps")
        links = _as_str_list(data.get("links"), "links")
    except ValueError as e:
        raise TicketParseError(f"Invalid frontmatter for ticket {ticket_id}{where}: {e}") from e

    title, description, design, acceptance = _split_body(body)

    return TicketRecord(
        id=ticket_id,
        title=title,
        status=status,
        type=ticket_type,
        priority=priority,
        description=description,
        design=design,
        acceptance=acceptance,
        tags=tags,
        deps=deps,
        links=links,
        parent=_optional_str(data.get("parent")),
        external_ref=_optional_str(data.get("external-ref")),
        assignee=_optional_str(data.get("assignee")),
        created=_optional_str(data.get("created")),
        path=path,
    )


def parse_ticket_file(path: Path | str) -> TicketRecord:
    """Read and parse a ticket file.

    Raises:
        TicketParseError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TicketParseError(f"Failed to read ticket {path}: {e}") from e
    return parse_ticket(content, path)
