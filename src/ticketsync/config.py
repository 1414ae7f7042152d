"""Configuration loading for ticketsync.

Configuration lives in ``sync.yaml`` inside the ``.tickets`` directory. The
directory is taken from ``TICKETS_DIR`` when set, otherwise found by
walking up from the working directory.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ticketsync.sync.models import FieldMapping
from ticketsync.tickets.models import TicketStatus, TicketType

TICKETS_DIR_NAME = ".tickets"
CONFIG_FILE_NAME = "sync.yaml"
TICKETS_DIR_ENV = "TICKETS_DIR"

REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

# Written by `ticketsync init`
DEFAULT_TYPE_MAPPING = {
    "bug": "Bug",
    "feature": "Feature",
    "task": "Task",
    "epic": "Epic",
    "chore": "Chore",
}


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


@dataclass
class GitHubConfig:
    """Target repository and project."""

    repo: str
    project: str | None = None
    assignee: str | None = None

    @property
    def owner(self) -> str:
        return self.repo.split("/")[0]

    @property
    def name(self) -> str:
        return self.repo.split("/")[1]


@dataclass
class MappingConfig:
    """Ticket value -> project field option mappings."""

    type_field: str = "Type"
    type: dict[str, str] = field(default_factory=dict)
    status_field: str | None = None
    status: dict[str, str] = field(default_factory=dict)

    def type_mapping(self) -> FieldMapping | None:
        return FieldMapping(self.type_field, self.type) if self.type else None

    def status_mapping(self) -> FieldMapping | None:
        if not (self.status_field and self.status):
            return None
        return FieldMapping(self.status_field, self.status)

    def field_mappings(self) -> list[FieldMapping]:
        """The mappings to validate and apply, type first."""
        return [m for m in (self.type_mapping(), self.status_mapping()) if m is not None]


@dataclass
class LabelsConfig:
    """Label sync behaviour."""

    sync_tags: bool = True
    create_missing: bool = True


@dataclass
class SyncConfig:
    """ticketsync configuration."""

    github: GitHubConfig
    mapping: MappingConfig = field(default_factory=MappingConfig)
    labels: LabelsConfig = field(default_factory=LabelsConfig)
    tickets_dir: Path = field(default_factory=Path)

    @property
    def project(self) -> str | None:
        return self.github.project

    @classmethod
    def from_dict(cls, data: dict[str, Any], tickets_dir: Path) -> SyncConfig:
        """Create config from dictionary.

        Args:
            data: Configuration dictionary from YAML.
            tickets_dir: Ticket directory containing the config file.

        Returns:
            Parsed configuration object.

        Raises:
            ConfigError: If required fields are missing or values are invalid.
        """
        github_data = _section(data, "github")
        repo = github_data.get("repo")
        if not repo:
            raise ConfigError("Missing required field: github.repo")
        repo = str(repo).strip()
        if not REPO_PATTERN.match(repo):
            raise ConfigError(f"github.repo must be in 'owner/repo' format, got '{repo}'")

        github = GitHubConfig(
            repo=repo,
            project=_optional(github_data.get("project")),
            assignee=_optional(github_data.get("assignee")),
        )

        mapping_data = _section(data, "mapping")
        status_field = mapping_data.get("status_field")
        mapping = MappingConfig(
            type_field=str(mapping_data.get("type_field", "Type")),
            type=_value_map(mapping_data.get("type"), "mapping.type", TicketType),
            status_field=str(status_field) if status_field else None,
            status=_value_map(mapping_data.get("status"), "mapping.status", TicketStatus),
        )
        if mapping.status and not mapping.status_field:
            raise ConfigError("mapping.status requires mapping.status_field")

        labels_data = _section(data, "labels")
        labels = LabelsConfig(
            sync_tags=_flag(labels_data, "sync_tags", True),
            create_missing=_flag(labels_data, "create_missing", True),
        )

        return cls(github=github, mapping=mapping, labels=labels, tickets_dir=tickets_dir)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the YAML layout read by ``from_dict``."""
        github: dict[str, Any] = {"repo": self.github.repo}
        if self.github.project:
            github["project"] = self.github.project
        if self.github.assignee:
            github["assignee"] = self.github.assignee

        mapping: dict[str, Any] = {"type_field": self.mapping.type_field}
        if self.mapping.type:
            mapping["type"] = dict(self.mapping.type)
        if self.mapping.status_field:
            mapping["status_field"] = self.mapping.status_field
            mapping["status"] = dict(self.mapping.status)

        return {
            "github": github,
            "mapping": mapping,
            "labels": {
                "sync_tags": self.labels.sync_tags,
                "create_missing": self.labels.create_missing,
            },
        }


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _optional(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _flag(data: dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"labels.{key} must be true or false, got {value!r}")
    return value


def _value_map(value: Any, key: str, enum_type: type[TicketType] | type[TicketStatus]) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    valid = {member.value for member in enum_type}
    result: dict[str, str] = {}
    for ticket_value, option in value.items():
        ticket_value = str(ticket_value)
        if ticket_value not in valid:
            raise ConfigError(
                f"Unknown value '{ticket_value}' in {key} (expected one of: {', '.join(sorted(valid))})"
            )
        result[ticket_value] = str(option)
    return result


def load_config(config_path: Path | str) -> SyncConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to sync.yaml.

    Returns:
        Parsed configuration object.

    Raises:
        ConfigError: If file doesn't exist or is invalid.
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}\nRun 'ticketsync init' to create one."
        )

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a YAML mapping, got {type(data).__name__}")

    return SyncConfig.from_dict(data, config_path.parent)


def save_config(config: SyncConfig, config_path: Path | str) -> None:
    """Write configuration as YAML."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, sort_keys=False)


def find_tickets_dir(start_path: Path | str | None = None) -> Path:
    """Find the ``.tickets`` directory.

    ``TICKETS_DIR`` wins when set; otherwise walk up the directory tree.

    Raises:
        ConfigError: If no ticket directory is found.
    """
    env_dir = os.environ.get(TICKETS_DIR_ENV)
    if env_dir:
        path = Path(env_dir)
        if not path.is_dir():
            raise ConfigError(f"{TICKETS_DIR_ENV} points to a missing directory: {path}")
        return path

    start_path = Path.cwd() if start_path is None else Path(start_path)
    current = start_path.resolve()

    while True:
        candidate = current / TICKETS_DIR_NAME
        if candidate.is_dir():
            return candidate
        if current == current.parent:
            break
        current = current.parent

    raise ConfigError(f"No {TICKETS_DIR_NAME} directory found in {start_path} or any parent directory")
