"""Data models for the GitHub gateway."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class IssueState(str, Enum):
    """GitHub issue state."""

    OPEN = "OPEN"
    CLOSED = "CLOSED"


@dataclass(frozen=True)
class RemoteIssue:
    """Snapshot of a GitHub issue.

    Attributes:
        id: GraphQL node ID.
        number: Issue number within the repository.
        title: Issue title.
        body: Markdown body.
        state: Open/closed state.
        labels: Names of attached labels.
        url: Web URL.
        parent_number: Number of the parent issue when this is a sub-issue.
    """

    id: str
    number: int
    title: str
    body: str
    state: IssueState = IssueState.OPEN
    labels: frozenset[str] = frozenset()
    url: str = ""
    parent_number: int | None = None


@dataclass(frozen=True)
class ProjectHandle:
    """A resolved GitHub Project (v2)."""

    id: str
    title: str
    number: int


@dataclass(frozen=True)
class ProjectItem:
    """An issue's item on a project board.

    Attributes:
        id: Project item node ID.
        project: Project the item belongs to.
        field_values: Current single-select values, field name -> option label.
    """

    id: str
    project: ProjectHandle
    field_values: Mapping[str, str] = field(default_factory=dict)

    def value_of(self, field_name: str) -> str | None:
        """Current option label of a field (case-insensitive field lookup)."""
        wanted = field_name.lower()
        for name, value in self.field_values.items():
            if name.lower() == wanted:
                return value
        return None


class ProjectFieldSchema:
    """Immutable snapshot of a project's single-select fields and their options.

    Field names and option labels compare case-insensitively, but the
    original spelling is kept for display.
    """

    def __init__(self, fields: Mapping[str, Iterable[str]]) -> None:
        self._fields: Mapping[str, tuple[str, ...]] = MappingProxyType(
            {name: tuple(options) for name, options in fields.items()}
        )

    @property
    def fields(self) -> Mapping[str, tuple[str, ...]]:
        return self._fields

    def field_name(self, name: str) -> str | None:
        """Canonical spelling of a field name, or None if absent."""
        wanted = name.lower()
        return next((f for f in self._fields if f.lower() == wanted), None)

    def options(self, name: str) -> tuple[str, ...]:
        """Option labels of a field, empty when the field does not exist."""
        canonical = self.field_name(name)
        return self._fields[canonical] if canonical is not None else ()

    def has_option(self, name: str, option: str) -> bool:
        wanted = option.lower()
        return any(o.lower() == wanted for o in self.options(name))

    def __repr__(self) -> str:
        return f"ProjectFieldSchema({dict(self._fields)!r})"
