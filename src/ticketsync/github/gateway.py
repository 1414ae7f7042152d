"""RemoteGateway - The capability interface the sync engine uses to reach GitHub.

Every operation may raise ``TransportError``. Retrying is the transport's
business; callers never retry.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from ticketsync.github.models import (
    IssueState,
    ProjectFieldSchema,
    ProjectHandle,
    ProjectItem,
    RemoteIssue,
)


class RemoteGateway(Protocol):
    """Side-effecting operations on the remote issue tracker."""

    def get_repository_id(self) -> str:
        """Return the repository's opaque ID."""
        ...

    def fetch_issue(self, number: int) -> RemoteIssue:
        """Fetch an issue by number.

        Raises:
            IssueNotFoundError: If the issue does not exist.
        """
        ...

    def create_issue(self, title: str, body: str) -> RemoteIssue:
        """Create an issue and return it with its assigned number."""
        ...

    def update_issue(
        self,
        number: int,
        title: str | None = None,
        body: str | None = None,
        state: IssueState | None = None,
    ) -> RemoteIssue:
        """Apply only the provided fields to an issue."""
        ...

    def ensure_labels(self, number: int, names: Sequence[str]) -> list[str]:
        """Attach labels to an issue, creating missing ones when permitted.

        Returns:
            Names of the labels that were newly created.

        Raises:
            LabelNotFoundError: If a label is missing and creation is disabled.
        """
        ...

    def resolve_project(self, name_or_number: str) -> ProjectHandle:
        """Find a project by title or number.

        Raises:
            ProjectNotFoundError: If no project matches.
        """
        ...

    def fetch_project_fields(self, project: ProjectHandle) -> ProjectFieldSchema:
        """Fetch the project's single-select fields and options."""
        ...

    def add_item_to_project(self, project: ProjectHandle, number: int) -> ProjectItem:
        """Add an issue to a project. Safe to repeat."""
        ...

    def set_field_value(self, item: ProjectItem, field_name: str, option_value: str) -> None:
        """Set a single-select field on a project item."""
        ...

    def link_sub_issue(self, parent_number: int, child_number: int) -> None:
        """Make ``child_number`` a sub-issue of ``parent_number``. Safe to repeat."""
        ...
