"""Shared unit fixtures: an in-memory GitHub gateway and a ticket directory."""

from collections.abc import Callable, Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
import yaml

from ticketsync.config import GitHubConfig, LabelsConfig, MappingConfig, SyncConfig
from ticketsync.github import (
    IssueNotFoundError,
    IssueState,
    LabelNotFoundError,
    ProjectFieldSchema,
    ProjectHandle,
    ProjectItem,
    ProjectNotFoundError,
    RemoteIssue,
)
from ticketsync.tickets import TicketStore

MUTATIONS = {
    "create_issue",
    "update_issue",
    "ensure_labels",
    "add_item_to_project",
    "set_field_value",
    "link_sub_issue",
}


class FakeGateway:
    """RemoteGateway backed by dictionaries. Records every call."""

    def __init__(
        self,
        issues: Sequence[RemoteIssue] = (),
        fields: dict[str, list[str]] | None = None,
        labels: Sequence[str] = (),
        create_missing_labels: bool = True,
        first_number: int = 123,
    ) -> None:
        self.issues: dict[int, RemoteIssue] = {issue.number: issue for issue in issues}
        self.project = ProjectHandle(id="PVT_1", title="Roadmap", number=1)
        self.schema = ProjectFieldSchema(fields or {})
        self.repo_labels = set(labels)
        self.create_missing_labels = create_missing_labels
        self.item_values: dict[int, dict[str, str]] = {}
        self.next_number = first_number
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, Exception] = {}
        self.closed = False

    def close(self) -> None:
        self.closed = True

    @property
    def mutations(self) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] in MUTATIONS]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    def get_repository_id(self) -> str:
        self._record("get_repository_id")
        return "R_1"

    def fetch_issue(self, number: int) -> RemoteIssue:
        self._record("fetch_issue", number)
        if number not in self.issues:
            raise IssueNotFoundError(f"Issue #{number} not found")
        return self.issues[number]

    def create_issue(self, title: str, body: str) -> RemoteIssue:
        self._record("create_issue", title, body)
        number = self.next_number
        self.next_number += 1
        issue = RemoteIssue(
            id=f"I_{number}",
            number=number,
            title=title,
            body=body,
            url=f"https://github.com/owner/repo/issues/{number}",
        )
        self.issues[number] = issue
        return issue

    def update_issue(
        self,
        number: int,
        title: str | None = None,
        body: str | None = None,
        state: IssueState | None = None,
    ) -> RemoteIssue:
        changed = {
            key: value
            for key, value in (("title", title), ("body", body), ("state", state))
            if value is not None
        }
        self._record("update_issue", number, changed)
        self.issues[number] = replace(self.issues[number], **changed)
        return self.issues[number]

    def ensure_labels(self, number: int, names: Sequence[str]) -> list[str]:
        self._record("ensure_labels", number, tuple(names))
        missing = [name for name in names if name not in self.repo_labels]
        if missing and not self.create_missing_labels:
            raise LabelNotFoundError(f"Label(s) not found: {', '.join(missing)}")
        self.repo_labels.update(missing)
        issue = self.issues[number]
        self.issues[number] = replace(issue, labels=issue.labels | frozenset(names))
        return missing

    def resolve_project(self, name_or_number: str) -> ProjectHandle:
        self._record("resolve_project", name_or_number)
        if name_or_number not in (self.project.title, str(self.project.number)):
            raise ProjectNotFoundError(f"Project '{name_or_number}' not found")
        return self.project

    def fetch_project_fields(self, project: ProjectHandle) -> ProjectFieldSchema:
        self._record("fetch_project_fields", project.id)
        return self.schema

    def add_item_to_project(self, project: ProjectHandle, number: int) -> ProjectItem:
        self._record("add_item_to_project", number)
        values = self.item_values.setdefault(number, {})
        return ProjectItem(id=f"PVTI_{number}", project=project, field_values=dict(values))

    def set_field_value(self, item: ProjectItem, field_name: str, option_value: str) -> None:
        number = int(item.id.removeprefix("PVTI_"))
        self._record("set_field_value", number, field_name, option_value)
        self.item_values.setdefault(number, {})[field_name] = option_value

    def link_sub_issue(self, parent_number: int, child_number: int) -> None:
        self._record("link_sub_issue", parent_number, child_number)
        self.issues[child_number] = replace(self.issues[child_number], parent_number=parent_number)


TicketWriter = Callable[..., Path]


@pytest.fixture
def tickets_dir(tmp_path: Path) -> Path:
    directory = tmp_path / ".tickets"
    directory.mkdir()
    return directory


@pytest.fixture
def add_ticket(tickets_dir: Path) -> TicketWriter:
    """Write a ticket file: ``add_ticket("nw-1", title="T", tags=["a"], body="...")``."""

    def write(ticket_id: str, title: str = "Ticket title", body: str = "", **frontmatter: Any) -> Path:
        data = {"id": ticket_id, "status": "open", "type": "task"}
        data.update({key.replace("_", "-"): value for key, value in frontmatter.items()})
        path = tickets_dir / f"{ticket_id}.md"
        path.write_text(f"---\n{yaml.safe_dump(data, sort_keys=False)}---\n# {title}\n\n{body}\n")
        return path

    return write


@pytest.fixture
def store(tickets_dir: Path) -> TicketStore:
    return TicketStore(tickets_dir)


def _make_config(
    project: str | None = None,
    type_mapping: dict[str, str] | None = None,
    status_field: str | None = None,
    status_mapping: dict[str, str] | None = None,
    sync_tags: bool = True,
) -> SyncConfig:
    return SyncConfig(
        github=GitHubConfig(repo="owner/repo", project=project),
        mapping=MappingConfig(
            type=type_mapping or {},
            status_field=status_field,
            status=status_mapping or {},
        ),
        labels=LabelsConfig(sync_tags=sync_tags),
    )


@pytest.fixture
def make_config() -> Callable[..., SyncConfig]:
    """Factory for SyncConfig with mapping and label options."""
    return _make_config


@pytest.fixture
def config() -> SyncConfig:
    return _make_config()


@pytest.fixture
def make_gateway() -> Callable[..., FakeGateway]:
    """Factory for FakeGateway."""
    return FakeGateway
