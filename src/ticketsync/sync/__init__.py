"""Sync engine - Plans and executes the push of tickets onto GitHub Issues."""

from ticketsync.sync.body import format_dependencies, format_issue_body
from ticketsync.sync.conflict import (
    SKIP_REASON_UNMANAGED,
    check_ownership,
    desired_state,
    extract_ticket_marker,
    ownership_marker,
    resolve_conflict,
)
from ticketsync.sync.exceptions import (
    MalformedReferenceError,
    MappingConflictError,
    MissingMapping,
    SchemaValidationError,
    SyncError,
)
from ticketsync.sync.models import ActionKind, FieldMapping, SyncAction, SyncEvent, SyncReport
from ticketsync.sync.orchestrator import SyncOrchestrator, reference_number
from ticketsync.sync.ordering import order_for_linkage
from ticketsync.sync.schema import find_missing_mappings, validate_field_mappings

__all__ = [
    "SKIP_REASON_UNMANAGED",
    "ActionKind",
    "FieldMapping",
    "MalformedReferenceError",
    "MappingConflictError",
    "MissingMapping",
    "SchemaValidationError",
    "SyncAction",
    "SyncError",
    "SyncEvent",
    "SyncOrchestrator",
    "SyncReport",
    "check_ownership",
    "desired_state",
    "extract_ticket_marker",
    "find_missing_mappings",
    "format_dependencies",
    "format_issue_body",
    "order_for_linkage",
    "ownership_marker",
    "reference_number",
    "resolve_conflict",
    "validate_field_mappings",
]
