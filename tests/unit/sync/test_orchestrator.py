"""Unit tests for SyncOrchestrator, driven by an in-memory gateway."""

from dataclasses import replace
from pathlib import Path

import pytest

from ticketsync.github import (
    ConnectionLostError,
    IssueState,
    ProjectNotFoundError,
    RemoteIssue,
    TransportError,
)
from ticketsync.sync import (
    ActionKind,
    SchemaValidationError,
    SyncAction,
    SyncEvent,
    SyncOrchestrator,
    format_issue_body,
)
from ticketsync.tickets import TicketStatus, TicketStore, TicketWriteError, parse_ticket_file


def owned_issue(number: int, ticket_id: str, title: str = "Ticket title", **kwargs) -> RemoteIssue:
    """Remote issue whose body carries the ticket's ownership marker."""
    body = kwargs.pop("body", f"<!-- ticket:{ticket_id} -->\n\nold body")
    return RemoteIssue(id=f"I_{number}", number=number, title=title, body=body, **kwargs)


def in_sync_issue(store: TicketStore, ticket_id: str, number: int, **kwargs) -> RemoteIssue:
    """Remote issue that already matches the ticket exactly."""
    ticket = store.get(ticket_id)
    body = format_issue_body(
        ticket, lambda tid: store.tickets[tid].issue_number if tid in store.tickets else None
    )
    return RemoteIssue(
        id=f"I_{number}",
        number=number,
        title=ticket.title,
        body=body,
        labels=frozenset(ticket.tags),
        **kwargs,
    )


@pytest.mark.unit
class TestConflictGate:
    """Action selection for tickets with a reference."""

    def test_matching_marker_updates(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="gh-10")
        gateway = make_gateway([owned_issue(10, "nw-1")])

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].action == SyncAction.update(10)

    def test_missing_marker_skips_without_mutation(
        self, add_ticket, store, config, make_gateway
    ) -> None:
        add_ticket("nw-1", external_ref="gh-10", tags=["x"])
        gateway = make_gateway([owned_issue(10, "nw-1", body="Rewritten by a human")])

        report = SyncOrchestrator(gateway, store, config).run()

        event = report.events[0]
        assert event.action.kind == ActionKind.SKIP
        assert event.action.reason == "modified outside tool"
        assert gateway.mutations == []
        assert report.skipped == 1

    def test_foreign_marker_is_error_without_mutation(
        self, add_ticket, store, config, make_gateway
    ) -> None:
        add_ticket("nw-1", external_ref="gh-10")
        gateway = make_gateway([owned_issue(10, "nw-2")])

        report = SyncOrchestrator(gateway, store, config).run()

        event = report.events[0]
        assert event.action.kind == ActionKind.ERROR
        assert "mapping conflict" in event.error
        assert gateway.mutations == []
        assert report.has_failures

    def test_malformed_reference_is_error(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="gh-abc")
        gateway = make_gateway()

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].action.kind == ActionKind.ERROR
        assert "malformed" in report.events[0].error
        assert gateway.mutations == []

    def test_foreign_tracker_reference_creates(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="jira-12")
        gateway = make_gateway()

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].action.kind == ActionKind.CREATE

    def test_missing_remote_issue_is_error(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="gh-404")
        gateway = make_gateway()

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].action.kind == ActionKind.ERROR
        assert "#404" in report.events[0].error


@pytest.mark.unit
class TestScenarios:
    """End-to-end runs over small ticket sets."""

    def test_create_new_ticket(self, add_ticket, store, tickets_dir, config, make_gateway) -> None:
        path = add_ticket("nw-5c46", title="Add login", body="Users log in.", tags=["auth"])
        gateway = make_gateway(first_number=123)

        report = SyncOrchestrator(gateway, store, config).run()

        event = report.events[0]
        assert event.action.kind == ActionKind.CREATE
        assert event.number == 123
        assert event.url.endswith("/issues/123")

        name, title, body = gateway.calls[1]
        assert (name, title) == ("create_issue", "Add login")
        assert body.startswith("<!-- ticket:nw-5c46 -->\n\nUsers log in.")
        assert body.endswith("<sub>Synced from ticket `nw-5c46`</sub>")

        assert parse_ticket_file(path).external_ref == "gh-123"
        assert ("ensure_labels", 123, ("auth",)) in gateway.calls
        assert report.created == 1

    def test_child_linked_after_parent_created(
        self, add_ticket, store, config, make_gateway
    ) -> None:
        add_ticket("nw-5c46", title="Parent")
        add_ticket("nw-5c47", title="Child", parent="nw-5c46")
        gateway = make_gateway(first_number=123)

        report = SyncOrchestrator(gateway, store, config).run(["nw-5c47", "nw-5c46"])

        assert [e.ticket_id for e in report.events] == ["nw-5c46", "nw-5c47"]
        assert [call for call in gateway.calls if call[0] == "link_sub_issue"] == [
            ("link_sub_issue", 123, 124)
        ]
        assert report.events[1].pending == []

    def test_title_only_update(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-5c40", title="New title", external_ref="gh-120")
        remote = in_sync_issue(store, "nw-5c40", 120)
        gateway = make_gateway([replace(remote, title="Old title")])

        report = SyncOrchestrator(gateway, store, config).run()

        assert gateway.mutations == [("update_issue", 120, {"title": "New title"})]
        assert report.events[0].changes == ["Title updated"]
        assert report.updated == 1

    def test_unmanaged_issue_skipped(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-5c35", external_ref="gh-115")
        gateway = make_gateway([RemoteIssue(id="I_115", number=115, title="x", body="Hand written")])

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].action.reason == "modified outside tool"
        assert gateway.mutations == []

    def test_second_run_is_noop(self, add_ticket, store, tickets_dir, config, make_gateway) -> None:
        add_ticket("nw-1", title="Parent", tags=["a", "b"])
        add_ticket("nw-2", title="Child", parent="nw-1", deps=["nw-1"], status="closed")
        gateway = make_gateway()
        SyncOrchestrator(gateway, store, config).run()

        gateway.calls.clear()
        report = SyncOrchestrator(gateway, TicketStore(tickets_dir), config).run()

        assert gateway.mutations == []
        assert report.unchanged == 2

    def test_dependency_created_first_so_second_run_is_noop(
        self, add_ticket, store, tickets_dir, config, make_gateway
    ) -> None:
        add_ticket("nw-1", title="Dependent", deps=["nw-2"])
        add_ticket("nw-2", title="Dependency")
        gateway = make_gateway(first_number=123)

        first = SyncOrchestrator(gateway, store, config).run()

        assert [e.ticket_id for e in first.events] == ["nw-2", "nw-1"]
        body = next(call[2] for call in gateway.calls if call[:2] == ("create_issue", "Dependent"))
        assert "**Depends on:** #123\n" in body

        gateway.calls.clear()
        SyncOrchestrator(gateway, TicketStore(tickets_dir), config).run()

        assert gateway.mutations == []


@pytest.mark.unit
class TestUpdate:
    """Field-level update behaviour."""

    def test_state_change_only(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="gh-5", status="closed")
        gateway = make_gateway([in_sync_issue(store, "nw-1", 5)])

        report = SyncOrchestrator(gateway, store, config).run()

        assert gateway.mutations == [("update_issue", 5, {"state": IssueState.CLOSED})]
        assert report.events[0].changes == ["Closed"]

    def test_in_progress_reopens(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="gh-5", status="in_progress")
        remote = in_sync_issue(store, "nw-1", 5, state=IssueState.CLOSED)
        gateway = make_gateway([remote])

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].changes == ["Reopened"]

    def test_only_missing_labels_added(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="gh-5", tags=["api", "Backend"])
        remote = in_sync_issue(store, "nw-1", 5)
        gateway = make_gateway([replace(remote, labels=frozenset({"backend"}))])

        SyncOrchestrator(gateway, store, config).run()

        assert gateway.mutations == [("ensure_labels", 5, ("api",))]

    def test_label_sync_disabled(self, add_ticket, store, make_config, make_gateway) -> None:
        add_ticket("nw-1", tags=["api"])
        gateway = make_gateway()

        SyncOrchestrator(gateway, store, make_config(sync_tags=False)).run()

        assert not any(call[0] == "ensure_labels" for call in gateway.calls)

    def test_reparented_issue_relinked(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-p", external_ref="gh-1")
        add_ticket("nw-c", external_ref="gh-2", parent="nw-p")
        gateway = make_gateway(
            [in_sync_issue(store, "nw-p", 1), in_sync_issue(store, "nw-c", 2, parent_number=9)]
        )

        SyncOrchestrator(gateway, store, config).run()

        assert gateway.mutations == [("link_sub_issue", 1, 2)]


@pytest.mark.unit
class TestCreate:
    """Create path details."""

    def test_dependency_line_uses_synced_deps(
        self, add_ticket, store, config, make_gateway
    ) -> None:
        add_ticket("nw-a", external_ref="gh-45")
        add_ticket("nw-b")
        add_ticket("nw-c", deps=["nw-a", "nw-b"])
        gateway = make_gateway([in_sync_issue(store, "nw-a", 45)])

        SyncOrchestrator(gateway, store, config).run(["nw-c"])

        body = next(call[2] for call in gateway.calls if call[0] == "create_issue")
        assert "**Depends on:** #45\n" in body

    def test_closed_ticket_created_closed(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", status="closed")
        gateway = make_gateway(first_number=7)

        report = SyncOrchestrator(gateway, store, config).run()

        assert ("update_issue", 7, {"state": IssueState.CLOSED}) in gateway.mutations
        assert report.events[0].changes == ["Closed"]

    def test_write_back_failure_reported(
        self, add_ticket, store, config, make_gateway, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        add_ticket("nw-1", tags=["x"])
        gateway = make_gateway(first_number=50)

        def fail(*args, **kwargs):
            raise TicketWriteError("disk full")

        monkeypatch.setattr(store, "write_external_ref", fail)
        report = SyncOrchestrator(gateway, store, config).run()

        event = report.events[0]
        assert event.failed
        assert "Created #50" in event.error
        assert "disk full" in event.error
        assert [call[0] for call in gateway.mutations] == ["create_issue"]

    def test_pending_when_parent_unknown(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", parent="nw-missing")
        gateway = make_gateway()

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].error is None
        assert "parent ticket not found" in report.events[0].pending[0]
        assert not any(call[0] == "link_sub_issue" for call in gateway.calls)

    def test_pending_when_parent_outside_working_set(
        self, add_ticket, store, config, make_gateway
    ) -> None:
        add_ticket("nw-parent")
        add_ticket("nw-child", parent="nw-parent")
        gateway = make_gateway()

        report = SyncOrchestrator(gateway, store, config).run(["nw-child"])

        assert report.pending == ["nw-child -> parent nw-parent: parent not synced yet"]
        assert len(report.events) == 1

    def test_cycle_is_pending_not_fatal(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-a", parent="nw-b")
        add_ticket("nw-b", parent="nw-a")
        gateway = make_gateway()

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.created == 2
        assert len(report.pending) == 1
        assert sum(1 for call in gateway.calls if call[0] == "link_sub_issue") == 1


@pytest.mark.unit
class TestProject:
    """Project resolution, schema validation and field values."""

    FIELDS = {"Type": ["Bug", "Task"], "Status": ["Todo", "Done"]}

    def test_no_project_skips_validation(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1")
        gateway = make_gateway()

        SyncOrchestrator(gateway, store, config).run()

        names = [call[0] for call in gateway.calls]
        assert "resolve_project" not in names
        assert "fetch_project_fields" not in names
        assert "add_item_to_project" not in names

    def test_invalid_mapping_aborts_before_mutation(
        self, add_ticket, store, make_config, make_gateway
    ) -> None:
        add_ticket("nw-1")
        gateway = make_gateway(fields=self.FIELDS)
        config = make_config(project="Roadmap", type_mapping={"task": "Task", "epic": "Epic"})

        with pytest.raises(SchemaValidationError, match="Epic"):
            SyncOrchestrator(gateway, store, config).run()

        assert gateway.mutations == []

    def test_project_lookup_failure_aborts(
        self, add_ticket, store, make_config, make_gateway
    ) -> None:
        add_ticket("nw-1")
        gateway = make_gateway()

        with pytest.raises(ProjectNotFoundError):
            SyncOrchestrator(gateway, store, make_config(project="Nope")).run()
        assert gateway.mutations == []

    def test_create_sets_mapped_fields(self, add_ticket, store, make_config, make_gateway) -> None:
        add_ticket("nw-1", type="bug")
        gateway = make_gateway(fields=self.FIELDS, first_number=3)
        config = make_config(
            project="Roadmap",
            type_mapping={"bug": "Bug", "task": "Task"},
            status_field="Status",
            status_mapping={"open": "Todo", "closed": "Done"},
        )

        report = SyncOrchestrator(gateway, store, config).run()

        assert ("add_item_to_project", 3) in gateway.calls
        assert ("set_field_value", 3, "Type", "Bug") in gateway.calls
        assert ("set_field_value", 3, "Status", "Todo") in gateway.calls
        assert "Type set to Bug" in report.events[0].changes

    def test_update_skips_matching_field_values(
        self, add_ticket, store, make_config, make_gateway
    ) -> None:
        add_ticket("nw-1", type="bug", external_ref="gh-3")
        gateway = make_gateway([in_sync_issue(store, "nw-1", 3)], fields=self.FIELDS)
        gateway.item_values[3] = {"Type": "bug"}
        config = make_config(project="Roadmap", type_mapping={"bug": "Bug"})

        report = SyncOrchestrator(gateway, store, config).run()

        assert not any(call[0] == "set_field_value" for call in gateway.calls)
        assert report.unchanged == 1


@pytest.mark.unit
class TestErrorsAndControl:
    """Per-ticket errors, fatal errors, events and cancellation."""

    def test_transport_error_isolated_to_ticket(
        self, add_ticket, store, config, make_gateway
    ) -> None:
        add_ticket("nw-1", tags=["x"])
        add_ticket("nw-2")
        gateway = make_gateway()
        gateway.failures["ensure_labels"] = TransportError("label API down")

        report = SyncOrchestrator(gateway, store, config).run()

        assert report.events[0].error == "label API down"
        assert report.events[1].error is None
        assert report.created == 1
        assert report.failed == 1

    def test_connection_loss_aborts_run(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1")
        gateway = make_gateway()
        gateway.failures["create_issue"] = ConnectionLostError("network unreachable")

        with pytest.raises(ConnectionLostError):
            SyncOrchestrator(gateway, store, config).run()

    def test_repository_resolved_once(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1")
        add_ticket("nw-2")
        gateway = make_gateway()

        SyncOrchestrator(gateway, store, config).run()

        assert [call[0] for call in gateway.calls].count("get_repository_id") == 1
        assert gateway.calls[0] == ("get_repository_id",)

    def test_events_emitted_in_order(self, add_ticket, store, config, make_gateway) -> None:
        for tid in ("nw-1", "nw-2", "nw-3"):
            add_ticket(tid)
        seen: list[SyncEvent] = []

        report = SyncOrchestrator(make_gateway(), store, config, on_event=seen.append).run()

        assert [e.ticket_id for e in seen] == ["nw-1", "nw-2", "nw-3"]
        assert seen == report.events

    def test_cancel_stops_at_ticket_boundary(
        self, add_ticket, store, config, make_gateway
    ) -> None:
        for tid in ("nw-1", "nw-2", "nw-3"):
            add_ticket(tid)
        gateway = make_gateway()
        orchestrator = SyncOrchestrator(gateway, store, config)
        orchestrator.on_event = lambda event: orchestrator.request_cancel()

        report = orchestrator.run()

        assert report.cancelled
        assert [e.ticket_id for e in report.events] == ["nw-1"]
        assert sum(1 for call in gateway.calls if call[0] == "create_issue") == 1


@pytest.mark.unit
class TestPlan:
    """Tests for plan and plan_ticket."""

    def test_plan_has_no_mutations(self, add_ticket, store, tickets_dir: Path, config, make_gateway) -> None:
        add_ticket("nw-1")
        add_ticket("nw-2", title="New", external_ref="gh-2", tags=["x"])
        remote = in_sync_issue(store, "nw-2", 2)
        gateway = make_gateway([replace(remote, title="Old", labels=frozenset())])

        events = SyncOrchestrator(gateway, store, config).plan()

        assert gateway.mutations == []
        assert events[0].action.kind == ActionKind.CREATE
        assert events[1].changes == ["Title updated", "Labels added: x"]
        assert parse_ticket_file(tickets_dir / "nw-1.md").external_ref is None

    def test_plan_ticket(self, add_ticket, store, config, make_gateway) -> None:
        add_ticket("nw-1", external_ref="gh-8", status="closed")
        gateway = make_gateway([owned_issue(8, "nw-1")])
        orchestrator = SyncOrchestrator(gateway, store, config)

        assert orchestrator.plan_ticket(store.get("nw-1")) == SyncAction.update(8)
        assert store.get("nw-1").status == TicketStatus.CLOSED
