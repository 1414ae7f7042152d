"""Sync Orchestrator - Drives one push of tickets onto GitHub Issues."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ticketsync.github.exceptions import ConnectionLostError, GitHubError
from ticketsync.github.models import IssueState, ProjectFieldSchema, ProjectHandle, RemoteIssue
from ticketsync.sync.body import format_issue_body
from ticketsync.sync.conflict import desired_state, resolve_conflict
from ticketsync.sync.exceptions import MalformedReferenceError
from ticketsync.sync.models import ActionKind, SyncAction, SyncEvent, SyncReport
from ticketsync.sync.ordering import order_for_linkage
from ticketsync.sync.schema import validate_field_mappings
from ticketsync.tickets.exceptions import TicketError
from ticketsync.tickets.models import TicketRecord, format_github_ref

if TYPE_CHECKING:
    from ticketsync.config import SyncConfig
    from ticketsync.github.gateway import RemoteGateway
    from ticketsync.tickets.store import TicketStore

logger = logging.getLogger("ticketsync.sync")

EventCallback = Callable[[SyncEvent], None]


@dataclass(frozen=True)
class IssueDiff:
    """Fields of a remote issue that differ from what the ticket wants.

    None means "already as desired".
    """

    title: str | None
    body: str | None
    state: IssueState | None
    missing_labels: tuple[str, ...]
    parent_number: int | None

    @property
    def touches_issue(self) -> bool:
        return self.title is not None or self.body is not None or self.state is not None

    def issue_notes(self) -> list[str]:
        """Notes for the title/body/state part of the diff."""
        notes = []
        if self.title is not None:
            notes.append("Title updated")
        if self.body is not None:
            notes.append("Body updated")
        if self.state == IssueState.CLOSED:
            notes.append("Closed")
        elif self.state == IssueState.OPEN:
            notes.append("Reopened")
        return notes

    def notes(self) -> list[str]:
        notes = self.issue_notes()
        if self.missing_labels:
            notes.append(f"Labels added: {', '.join(self.missing_labels)}")
        if self.parent_number is not None:
            notes.append(f"Linked as sub-issue of #{self.parent_number}")
        return notes


class SyncOrchestrator:
    """Pushes tickets onto GitHub, one ticket at a time.

    The orchestrator:
    - Validates project field mappings once, before any mutation
    - Plans an action per ticket (create/update/skip/error)
    - Creates or updates issues, labels, project fields and sub-issue links
    - Requests external-ref write-back from the ticket store
    - Emits one SyncEvent per ticket

    Per-ticket failures are collected into events. Schema validation
    failures, setup failures and loss of connectivity abort the run.
    """

    def __init__(
        self,
        gateway: RemoteGateway,
        store: TicketStore,
        config: SyncConfig,
        on_event: EventCallback | None = None,
    ) -> None:
        """Initialize the SyncOrchestrator.

        Args:
            gateway: Remote gateway used for every GitHub call.
            store: Ticket store; source of tickets and target of write-back.
            config: Sync configuration.
            on_event: Called with each SyncEvent as its ticket completes.
        """
        self.gateway = gateway
        self.store = store
        self.config = config
        self.on_event = on_event
        self._cancel = threading.Event()
        self._project: ProjectHandle | None = None
        self._schema: ProjectFieldSchema | None = None

    def request_cancel(self) -> None:
        """Stop the run at the next ticket boundary."""
        logger.info("Cancellation requested")
        self._cancel.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, ticket_ids: list[str] | None = None) -> SyncReport:
        """Push the working set.

        Args:
            ticket_ids: Explicit subset, processed in the order given.
                None pushes every ticket in store order.

        Returns:
            SyncReport with one event per processed ticket.

        Raises:
            TicketNotFoundError: If a requested ticket does not exist.
            SchemaValidationError: If field mappings don't match the project.
            ConnectionLostError: If GitHub becomes unreachable.
            GitHubError: If run setup (repository/project lookup) fails.
        """
        working_set = self.store.select(ticket_ids)
        logger.info("Starting sync of %d ticket(s) to %s", len(working_set), self.config.github.repo)

        self._prepare()

        report = SyncReport()
        for ticket in order_for_linkage(working_set):
            if self._cancel.is_set():
                logger.warning("Sync cancelled; %d ticket(s) not started", len(working_set) - len(report.events))
                report.cancelled = True
                break

            event = self.sync_ticket(ticket)
            report.events.append(event)
            if self.on_event is not None:
                self.on_event(event)

        logger.info(
            "Sync finished: %d created, %d updated, %d unchanged, %d skipped, %d failed",
            report.created,
            report.updated,
            report.unchanged,
            report.skipped,
            report.failed,
        )
        return report

    def _prepare(self) -> None:
        """Resolve the repository and validate project mappings."""
        self.gateway.get_repository_id()

        if not self.config.project:
            return

        self._project = self.gateway.resolve_project(self.config.project)
        self._schema = self.gateway.fetch_project_fields(self._project)
        validate_field_mappings(self._schema, self.config.mapping.field_mappings())
        logger.info("Using project %s (#%d)", self._project.title, self._project.number)

    def sync_ticket(self, ticket: TicketRecord) -> SyncEvent:
        """Plan and execute one ticket.

        Raises:
            ConnectionLostError: If GitHub becomes unreachable.
        """
        action, remote = self._plan(ticket)
        event = SyncEvent(ticket_id=ticket.id, title=ticket.title, action=action)
        if remote is not None:
            event.number = remote.number
            event.url = remote.url

        try:
            match action.kind:
                case ActionKind.CREATE:
                    self._create(ticket, event)
                case ActionKind.UPDATE:
                    assert remote is not None
                    self._update(ticket, remote, event)
                case ActionKind.SKIP:
                    logger.info("Skipping %s: %s", ticket.id, action.reason)
                case ActionKind.ERROR:
                    logger.error("Cannot sync %s: %s", ticket.id, action.reason)
                    event.error = action.reason
        except ConnectionLostError:
            raise
        except (GitHubError, TicketError) as e:
            logger.error("Failed to sync %s: %s", ticket.id, e)
            event.error = str(e)

        return event

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, ticket_ids: list[str] | None = None) -> list[SyncEvent]:
        """Compute what a push would do, without mutating anything.

        Project field values are not compared since reading them requires
        adding the issue to the project.
        """
        events = []
        for ticket in order_for_linkage(self.store.select(ticket_ids)):
            action, remote = self._plan(ticket)
            event = SyncEvent(ticket_id=ticket.id, title=ticket.title, action=action)
            if action.kind == ActionKind.ERROR:
                event.error = action.reason
            if remote is not None:
                event.number = remote.number
                event.url = remote.url
                if action.kind == ActionKind.UPDATE:
                    event.changes = self._diff(ticket, remote).notes()
            events.append(event)
        return events

    def plan_ticket(self, ticket: TicketRecord) -> SyncAction:
        """Compute the action for one ticket. Reads, never writes."""
        return self._plan(ticket)[0]

    def _plan(self, ticket: TicketRecord) -> tuple[SyncAction, RemoteIssue | None]:
        if not ticket.has_external_ref:
            return SyncAction.create(), None

        try:
            number = reference_number(ticket)
            remote = self.gateway.fetch_issue(number)
        except ConnectionLostError:
            raise
        except (MalformedReferenceError, GitHubError) as e:
            return SyncAction.error(str(e)), None

        return resolve_conflict(ticket, remote), remote

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _create(self, ticket: TicketRecord, event: SyncEvent) -> None:
        body = format_issue_body(ticket, self._issue_number_of)
        issue = self.gateway.create_issue(ticket.title, body)
        event.number = issue.number
        event.url = issue.url

        external_ref = format_github_ref(issue.number)
        try:
            self.store.write_external_ref(ticket, external_ref)
        except TicketError as e:
            logger.error("Created #%d for %s but write-back failed: %s", issue.number, ticket.id, e)
            event.error = f"Created #{issue.number} but failed to write external-ref: {e}"
            return

        if desired_state(ticket.status) != issue.state:
            issue = self.gateway.update_issue(issue.number, state=desired_state(ticket.status))
            event.changes.append("Closed" if issue.state == IssueState.CLOSED else "Reopened")

        self._apply_labels(ticket, issue, event)
        self._apply_project_fields(ticket, issue.number, event)
        self._link_parent(ticket, issue, event)

    def _update(self, ticket: TicketRecord, remote: RemoteIssue, event: SyncEvent) -> None:
        diff = self._diff(ticket, remote)

        if diff.touches_issue:
            self.gateway.update_issue(
                remote.number,
                title=diff.title,
                body=diff.body,
                state=diff.state,
            )
            event.changes.extend(diff.issue_notes())

        self._apply_labels(ticket, remote, event)
        self._apply_project_fields(ticket, remote.number, event)
        self._link_parent(ticket, remote, event)

        if event.changes:
            logger.info("Updated #%d from %s: %s", remote.number, ticket.id, ", ".join(event.changes))
        else:
            logger.debug("#%d already matches %s", remote.number, ticket.id)

    def _diff(self, ticket: TicketRecord, remote: RemoteIssue) -> IssueDiff:
        body = format_issue_body(ticket, self._issue_number_of)
        state = desired_state(ticket.status)
        parent_number = self._parent_number(ticket)
        return IssueDiff(
            title=ticket.title if ticket.title != remote.title else None,
            body=body if body != remote.body else None,
            state=state if state != remote.state else None,
            missing_labels=self._missing_labels(ticket, remote),
            parent_number=(
                parent_number
                if parent_number is not None
                and parent_number != remote.number
                and parent_number != remote.parent_number
                else None
            ),
        )

    def _missing_labels(self, ticket: TicketRecord, remote: RemoteIssue) -> tuple[str, ...]:
        if not self.config.labels.sync_tags:
            return ()
        present = {label.lower() for label in remote.labels}
        return tuple(tag for tag in ticket.tags if tag.lower() not in present)

    def _apply_labels(self, ticket: TicketRecord, remote: RemoteIssue, event: SyncEvent) -> None:
        missing = self._missing_labels(ticket, remote)
        if not missing:
            return
        created = self.gateway.ensure_labels(remote.number, list(missing))
        if created:
            logger.info("Created label(s) %s", ", ".join(created))
        event.changes.append(f"Labels added: {', '.join(missing)}")

    def _field_values(self, ticket: TicketRecord) -> list[tuple[str, str]]:
        """(field name, option) pairs the ticket maps to."""
        mapping = self.config.mapping
        values = []
        for field_mapping, ticket_value in (
            (mapping.type_mapping(), ticket.type.value),
            (mapping.status_mapping(), ticket.status.value),
        ):
            if field_mapping is None:
                continue
            option = field_mapping.option_for(ticket_value)
            if option:
                values.append((field_mapping.field_name, option))
        return values

    def _apply_project_fields(self, ticket: TicketRecord, number: int, event: SyncEvent) -> None:
        if self._project is None:
            return

        item = self.gateway.add_item_to_project(self._project, number)
        for field_name, option in self._field_values(ticket):
            current = item.value_of(field_name)
            if current is not None and current.lower() == option.lower():
                continue
            self.gateway.set_field_value(item, field_name, option)
            event.changes.append(f"{field_name} set to {option}")

    def _link_parent(self, ticket: TicketRecord, remote: RemoteIssue, event: SyncEvent) -> None:
        if not ticket.parent:
            return

        parent_number = self._parent_number(ticket)
        if parent_number is None:
            if ticket.parent in self.store.tickets:
                note = f"{ticket.id} -> parent {ticket.parent}: parent not synced yet"
            else:
                note = f"{ticket.id} -> parent {ticket.parent}: parent ticket not found"
            logger.info("Pending sub-issue link: %s", note)
            event.pending.append(note)
            return

        if parent_number == remote.number:
            logger.warning("Ticket %s resolves to its own parent issue #%d", ticket.id, parent_number)
            return
        if remote.parent_number == parent_number:
            return

        self.gateway.link_sub_issue(parent_number, remote.number)
        event.changes.append(f"Linked as sub-issue of #{parent_number}")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _issue_number_of(self, ticket_id: str) -> int | None:
        """Issue number of any ticket in the store, including ones created this run."""
        ticket = self.store.tickets.get(ticket_id)
        return ticket.issue_number if ticket is not None else None

    def _parent_number(self, ticket: TicketRecord) -> int | None:
        return self._issue_number_of(ticket.parent) if ticket.parent else None


def reference_number(ticket: TicketRecord) -> int:
    """Issue number from a ticket's GitHub reference.

    Raises:
        MalformedReferenceError: If the reference is not ``gh-<number>``.
    """
    number = ticket.issue_number
    if number is None:
        raise MalformedReferenceError(
            f"malformed external-ref '{ticket.external_ref}' (expected gh-<number>)"
        )
    return number
