"""GitHubGateway - RemoteGateway implementation over the GitHub GraphQL API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ticketsync.github.client import GraphQLClient
from ticketsync.github.exceptions import (
    GitHubError,
    IssueNotFoundError,
    LabelNotFoundError,
    ProjectNotFoundError,
    TransportError,
)
from ticketsync.github.models import (
    IssueState,
    ProjectFieldSchema,
    ProjectHandle,
    ProjectItem,
    RemoteIssue,
)

logger = logging.getLogger("ticketsync.github")

ISSUE_FIELDS = """
    id
    number
    title
    body
    state
    url
    labels(first: 100) {
        nodes {
            name
        }
    }
    parent {
        number
    }
"""

ITEM_FIELDS = """
    id
    fieldValues(first: 50) {
        nodes {
            ... on ProjectV2ItemFieldSingleSelectValue {
                name
                field {
                    ... on ProjectV2SingleSelectField {
                        name
                    }
                }
            }
        }
    }
"""

PROJECT_LIST_FIELDS = """
    projectsV2(first: 50) {
        nodes {
            id
            title
            number
        }
    }
"""

# Error fragments GitHub returns when a sub-issue link already exists
ALREADY_LINKED_MARKERS = (
    "already a sub-issue",
    "is already a child",
    "already has this sub-issue",
    "duplicate sub-issues",
)


class GitHubGateway:
    """Remote gateway for one GitHub repository.

    Issue node IDs, labels and project field IDs are cached for the
    lifetime of the instance, which is one sync run.
    """

    def __init__(
        self,
        repo: str,
        client: GraphQLClient,
        create_missing_labels: bool = True,
        assignee: str | None = None,
    ) -> None:
        """Initialize the gateway.

        Args:
            repo: GitHub repo in "owner/repo" format
            client: GraphQL transport
            create_missing_labels: Create labels that do not exist yet
            assignee: Login assigned to every created issue
        """
        self.repo = repo
        self.owner, self.repo_name = repo.split("/")
        self.client = client
        self.create_missing_labels = create_missing_labels
        self.assignee = assignee
        self._repository_id: str | None = None
        self._assignee_id: str | None = None
        self._issue_ids: dict[int, str] = {}
        self._labels: dict[str, tuple[str, str]] | None = None  # lower name -> (id, name)
        # project id -> lower field name -> (field id, {lower option: option id})
        self._fields: dict[str, dict[str, tuple[str, dict[str, str]]]] = {}

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self.client.close()

    # ------------------------------------------------------------------
    # Repository and issues
    # ------------------------------------------------------------------

    def get_repository_id(self) -> str:
        """Get the repository node ID."""
        if self._repository_id is None:
            query = """
            query($owner: String!, $name: String!) {
                repository(owner: $owner, name: $name) {
                    id
                }
            }
            """
            data = self.client.execute(query, {"owner": self.owner, "name": self.repo_name})
            repository = data.get("repository")
            if not repository:
                raise GitHubError(f"Repository {self.repo} not found")
            self._repository_id = str(repository["id"])
        return self._repository_id

    def fetch_issue(self, number: int) -> RemoteIssue:
        """Get an issue by number.

        Raises:
            IssueNotFoundError: If the issue doesn't exist
        """
        query = f"""
        query($owner: String!, $name: String!, $number: Int!) {{
            repository(owner: $owner, name: $name) {{
                issue(number: $number) {{
                    {ISSUE_FIELDS}
                }}
            }}
        }}
        """
        try:
            data = self.client.execute(
                query,
                {"owner": self.owner, "name": self.repo_name, "number": number},
            )
        except TransportError as e:
            if e.has_error_type("NOT_FOUND"):
                raise IssueNotFoundError(f"Issue #{number} not found in {self.repo}") from e
            raise

        issue = (data.get("repository") or {}).get("issue")
        if not issue:
            raise IssueNotFoundError(f"Issue #{number} not found in {self.repo}")
        return self._to_issue(issue)

    def create_issue(self, title: str, body: str) -> RemoteIssue:
        """Create an issue, assigning the configured assignee if any."""
        mutation = f"""
        mutation($input: CreateIssueInput!) {{
            createIssue(input: $input) {{
                issue {{
                    {ISSUE_FIELDS}
                }}
            }}
        }}
        """
        issue_input: dict[str, Any] = {
            "repositoryId": self.get_repository_id(),
            "title": title,
            "body": body,
        }
        if self.assignee:
            issue_input["assigneeIds"] = [self._get_assignee_id()]

        data = self.client.execute(mutation, {"input": issue_input})
        issue = (data.get("createIssue") or {}).get("issue")
        if not issue:
            raise TransportError(f"GitHub did not return the created issue '{title}'")

        created = self._to_issue(issue)
        logger.info("Created issue #%d: %s", created.number, title)
        return created

    def update_issue(
        self,
        number: int,
        title: str | None = None,
        body: str | None = None,
        state: IssueState | None = None,
    ) -> RemoteIssue:
        """Apply only the provided fields to an issue."""
        if title is None and body is None and state is None:
            return self.fetch_issue(number)

        issue_id = self._issue_node_id(number)
        result: dict[str, Any] | None = None

        if title is not None or body is not None:
            mutation = f"""
            mutation($input: UpdateIssueInput!) {{
                updateIssue(input: $input) {{
                    issue {{
                        {ISSUE_FIELDS}
                    }}
                }}
            }}
            """
            update_input: dict[str, Any] = {"id": issue_id}
            if title is not None:
                update_input["title"] = title
            if body is not None:
                update_input["body"] = body
            data = self.client.execute(mutation, {"input": update_input})
            result = (data.get("updateIssue") or {}).get("issue")

        if state is not None:
            operation = "closeIssue" if state == IssueState.CLOSED else "reopenIssue"
            input_type = "CloseIssueInput" if state == IssueState.CLOSED else "ReopenIssueInput"
            mutation = f"""
            mutation($input: {input_type}!) {{
                {operation}(input: $input) {{
                    issue {{
                        {ISSUE_FIELDS}
                    }}
                }}
            }}
            """
            data = self.client.execute(mutation, {"input": {"issueId": issue_id}})
            result = (data.get(operation) or {}).get("issue")

        logger.info("Updated issue #%d", number)
        if not result:
            return self.fetch_issue(number)
        return self._to_issue(result)

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    def ensure_labels(self, number: int, names: Sequence[str]) -> list[str]:
        """Attach labels to an issue, creating missing ones when permitted.

        Returns:
            Names of labels that had to be created

        Raises:
            LabelNotFoundError: If labels are missing and creation is disabled
        """
        if not names:
            return []

        labels = self._load_labels()
        missing = [name for name in names if name.lower() not in labels]
        if missing and not self.create_missing_labels:
            raise LabelNotFoundError(
                f"Label(s) not found in {self.repo}: {', '.join(missing)} "
                "(label creation is disabled)"
            )

        created = []
        for name in missing:
            labels[name.lower()] = (self._create_label(name), name)
            created.append(name)

        mutation = """
        mutation($input: AddLabelsToLabelableInput!) {
            addLabelsToLabelable(input: $input) {
                clientMutationId
            }
        }
        """
        self.client.execute(
            mutation,
            {
                "input": {
                    "labelableId": self._issue_node_id(number),
                    "labelIds": [labels[name.lower()][0] for name in names],
                }
            },
        )
        logger.info("Attached label(s) %s to issue #%d", ", ".join(names), number)
        return created

    def _load_labels(self) -> dict[str, tuple[str, str]]:
        if self._labels is None:
            query = """
            query($owner: String!, $name: String!) {
                repository(owner: $owner, name: $name) {
                    labels(first: 100) {
                        nodes {
                            id
                            name
                        }
                    }
                }
            }
            """
            data = self.client.execute(query, {"owner": self.owner, "name": self.repo_name})
            nodes = ((data.get("repository") or {}).get("labels") or {}).get("nodes") or []
            self._labels = {node["name"].lower(): (node["id"], node["name"]) for node in nodes}
        return self._labels

    def _create_label(self, name: str) -> str:
        mutation = """
        mutation($input: CreateLabelInput!) {
            createLabel(input: $input) {
                label {
                    id
                    name
                }
            }
        }
        """
        data = self.client.execute(
            mutation,
            {
                "input": {
                    "repositoryId": self.get_repository_id(),
                    "name": name,
                    "color": generate_label_color(name),
                }
            },
        )
        label = (data.get("createLabel") or {}).get("label")
        if not label:
            raise TransportError(f"Failed to create label '{name}'")
        logger.info("Created label %s", name)
        return str(label["id"])

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def resolve_project(self, name_or_number: str) -> ProjectHandle:
        """Find a project by title or number.

        Searches repository projects first, then the owner's (organization
        or user) projects.

        Raises:
            ProjectNotFoundError: If no project matches
        """
        query = f"""
        query($owner: String!, $name: String!) {{
            repository(owner: $owner, name: $name) {{
                {PROJECT_LIST_FIELDS}
                owner {{
                    __typename
                }}
            }}
        }}
        """
        data = self.client.execute(query, {"owner": self.owner, "name": self.repo_name})
        repository = data.get("repository") or {}
        nodes = (repository.get("projectsV2") or {}).get("nodes") or []
        project = find_matching_project(nodes, name_or_number)
        if project is not None:
            return project

        owner_kind = (repository.get("owner") or {}).get("__typename")
        owner_field = "organization" if owner_kind == "Organization" else "user"
        query = f"""
        query($login: String!) {{
            {owner_field}(login: $login) {{
                {PROJECT_LIST_FIELDS}
            }}
        }}
        """
        data = self.client.execute(query, {"login": self.owner})
        nodes = ((data.get(owner_field) or {}).get("projectsV2") or {}).get("nodes") or []
        project = find_matching_project(nodes, name_or_number)
        if project is None:
            raise ProjectNotFoundError(
                f"Project '{name_or_number}' not found for repo {self.repo} "
                f"or {owner_field} {self.owner}"
            )
        return project

    def fetch_project_fields(self, project: ProjectHandle) -> ProjectFieldSchema:
        """Fetch the project's single-select fields and their options."""
        query = """
        query($projectId: ID!) {
            node(id: $projectId) {
                ... on ProjectV2 {
                    fields(first: 50) {
                        nodes {
                            ... on ProjectV2SingleSelectField {
                                id
                                name
                                options {
                                    id
                                    name
                                }
                            }
                        }
                    }
                }
            }
        }
        """
        data = self.client.execute(query, {"projectId": project.id})
        nodes = ((data.get("node") or {}).get("fields") or {}).get("nodes") or []

        cache: dict[str, tuple[str, dict[str, str]]] = {}
        schema: dict[str, list[str]] = {}
        for node in nodes:
            # Non single-select fields come back as empty objects
            if not node or "options" not in node:
                continue
            options = node.get("options") or []
            cache[node["name"].lower()] = (
                node["id"],
                {opt["name"].lower(): opt["id"] for opt in options},
            )
            schema[node["name"]] = [opt["name"] for opt in options]

        self._fields[project.id] = cache
        logger.debug("Project %s has single-select fields: %s", project.title, list(schema))
        return ProjectFieldSchema(schema)

    def add_item_to_project(self, project: ProjectHandle, number: int) -> ProjectItem:
        """Add an issue to a project, returning its item with current values.

        GitHub returns the existing item when the issue is already present.
        """
        mutation = f"""
        mutation($input: AddProjectV2ItemByIdInput!) {{
            addProjectV2ItemById(input: $input) {{
                item {{
                    {ITEM_FIELDS}
                }}
            }}
        }}
        """
        data = self.client.execute(
            mutation,
            {"input": {"projectId": project.id, "contentId": self._issue_node_id(number)}},
        )
        item = (data.get("addProjectV2ItemById") or {}).get("item")
        if not item:
            raise TransportError(f"Failed to add issue #{number} to project {project.title}")

        values: dict[str, str] = {}
        for node in (item.get("fieldValues") or {}).get("nodes") or []:
            field_name = ((node or {}).get("field") or {}).get("name")
            if field_name and node.get("name"):
                values[field_name] = node["name"]
        return ProjectItem(id=str(item["id"]), project=project, field_values=values)

    def set_field_value(self, item: ProjectItem, field_name: str, option_value: str) -> None:
        """Set a single-select field value on a project item."""
        if item.project.id not in self._fields:
            self.fetch_project_fields(item.project)

        field = self._fields[item.project.id].get(field_name.lower())
        if field is None:
            raise GitHubError(f"Field '{field_name}' not found in project {item.project.title}")
        field_id, options = field
        option_id = options.get(option_value.lower())
        if option_id is None:
            raise GitHubError(
                f"Option '{option_value}' not found in field '{field_name}'. "
                f"Available: {sorted(options)}"
            )

        # Same mutation the project board uses when moving a card
        mutation = """
        mutation($projectId: ID!, $itemId: ID!, $fieldId: ID!, $optionId: String!) {
            updateProjectV2ItemFieldValue(
                input: {
                    projectId: $projectId
                    itemId: $itemId
                    fieldId: $fieldId
                    value: { singleSelectOptionId: $optionId }
                }
            ) {
                projectV2Item {
                    id
                }
            }
        }
        """
        self.client.execute(
            mutation,
            {
                "projectId": item.project.id,
                "itemId": item.id,
                "fieldId": field_id,
                "optionId": option_id,
            },
        )
        logger.info("Set %s=%s on project item %s", field_name, option_value, item.id)

    # ------------------------------------------------------------------
    # Sub-issues
    # ------------------------------------------------------------------

    def link_sub_issue(self, parent_number: int, child_number: int) -> None:
        """Make ``child_number`` a sub-issue of ``parent_number``.

        An existing link is treated as success. A child that currently has
        a different parent is moved.
        """
        mutation = """
        mutation($input: AddSubIssueInput!) {
            addSubIssue(input: $input) {
                subIssue {
                    id
                }
            }
        }
        """
        variables = {
            "input": {
                "issueId": self._issue_node_id(parent_number),
                "subIssueId": self._issue_node_id(child_number),
                "replaceParent": True,
            }
        }
        try:
            self.client.execute(mutation, variables)
        except TransportError as e:
            message = str(e).lower()
            if any(marker in message for marker in ALREADY_LINKED_MARKERS):
                logger.debug("#%d already a sub-issue of #%d", child_number, parent_number)
                return
            raise
        logger.info("Linked #%d as sub-issue of #%d", child_number, parent_number)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _issue_node_id(self, number: int) -> str:
        """Get (and cache) the node ID of an issue."""
        if number not in self._issue_ids:
            query = """
            query($owner: String!, $name: String!, $number: Int!) {
                repository(owner: $owner, name: $name) {
                    issue(number: $number) {
                        id
                    }
                }
            }
            """
            try:
                data = self.client.execute(
                    query,
                    {"owner": self.owner, "name": self.repo_name, "number": number},
                )
            except TransportError as e:
                if e.has_error_type("NOT_FOUND"):
                    raise IssueNotFoundError(f"Issue #{number} not found in {self.repo}") from e
                raise
            issue = (data.get("repository") or {}).get("issue")
            if not issue:
                raise IssueNotFoundError(f"Issue #{number} not found in {self.repo}")
            self._issue_ids[number] = str(issue["id"])
        return self._issue_ids[number]

    def _get_assignee_id(self) -> str:
        if self._assignee_id is None:
            query = """
            query($login: String!) {
                user(login: $login) {
                    id
                }
            }
            """
            data = self.client.execute(query, {"login": self.assignee})
            user = data.get("user")
            if not user:
                raise GitHubError(f"GitHub user '{self.assignee}' not found")
            self._assignee_id = str(user["id"])
        return self._assignee_id

    def _to_issue(self, data: dict[str, Any]) -> RemoteIssue:
        """Build a RemoteIssue from GraphQL issue fields and cache its node ID."""
        number = int(data["number"])
        self._issue_ids[number] = str(data["id"])
        label_nodes = (data.get("labels") or {}).get("nodes") or []
        parent = data.get("parent") or {}
        return RemoteIssue(
            id=str(data["id"]),
            number=number,
            title=data.get("title") or "",
            body=data.get("body") or "",
            state=IssueState(data.get("state") or IssueState.OPEN.value),
            labels=frozenset(label["name"] for label in label_nodes),
            url=data.get("url") or "",
            parent_number=int(parent["number"]) if parent.get("number") else None,
        )


def find_matching_project(nodes: list[dict[str, Any]], name_or_number: str) -> ProjectHandle | None:
    """Pick a project by number (preferred when numeric) or case-insensitive title."""
    projects = [
        ProjectHandle(id=str(n["id"]), title=str(n["title"]), number=int(n["number"]))
        for n in nodes
        if n
    ]

    wanted = name_or_number.strip()
    if wanted.isdigit():
        number = int(wanted)
        for project in projects:
            if project.number == number:
                return project

    lowered = wanted.lower()
    return next((p for p in projects if p.title.lower() == lowered), None)


def generate_label_color(name: str) -> str:
    """Generate a stable, muted hex colour for a label name."""
    value = 0
    for byte in name.encode("utf-8"):
        value = ((value + byte) * 31) & 0xFFFFFFFF

    red = ((value >> 16) & 0xFF) % 180 + 40
    green = ((value >> 8) & 0xFF) % 180 + 40
    blue = (value & 0xFF) % 180 + 40
    return f"{red:02x}{green:02x}{blue:02x}"
