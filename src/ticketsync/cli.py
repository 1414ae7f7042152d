"""CLI entry point for ticketsync.

Commands:
- push: create or update GitHub issues from tickets
- status: show what a push would do
- init: write .tickets/sync.yaml
"""

from __future__ import annotations

import signal
import subprocess
import sys
from pathlib import Path
from types import FrameType

import click

from ticketsync.config import (
    CONFIG_FILE_NAME,
    DEFAULT_TYPE_MAPPING,
    REPO_PATTERN,
    TICKETS_DIR_NAME,
    ConfigError,
    GitHubConfig,
    MappingConfig,
    SyncConfig,
    find_tickets_dir,
    load_config,
    save_config,
)
from ticketsync.github import GitHubGateway, GraphQLClient, get_github_token
from ticketsync.github.exceptions import GitHubError
from ticketsync.logging import get_logger, setup_logging
from ticketsync.report import StatusSummary, format_event, format_status, format_summary
from ticketsync.sync import SyncError, SyncOrchestrator
from ticketsync.tickets import TicketError, TicketRecord, TicketStore

logger = get_logger("cli")


def build_gateway(config: SyncConfig, token: str) -> GitHubGateway:
    """Create the GitHub gateway for a run."""
    return GitHubGateway(
        repo=config.github.repo,
        client=GraphQLClient(token),
        create_missing_labels=config.labels.create_missing,
        assignee=config.github.assignee,
    )


def detect_github_repo() -> str | None:
    """Detect "owner/repo" from the git remote ``origin``, if it points at GitHub."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, FileNotFoundError):
        return None
    return parse_github_remote(result.stdout.strip())


def parse_github_remote(url: str) -> str | None:
    """Extract "owner/repo" from an SSH or HTTPS GitHub remote URL."""
    for prefix in ("git@github.com:", "https://github.com/", "ssh://git@github.com/"):
        if url.startswith(prefix):
            repo = url[len(prefix) :].rstrip("/").removesuffix(".git")
            return repo if REPO_PATTERN.match(repo) else None
    return None


def _load(ids: tuple[str, ...] = ()) -> tuple[SyncConfig, TicketStore, list[TicketRecord]]:
    """Load config and tickets, exiting with a message on failure."""
    try:
        tickets_dir = find_tickets_dir()
        config = load_config(tickets_dir / CONFIG_FILE_NAME)
        store = TicketStore(tickets_dir)
        tickets = store.load_all()
        if ids:
            tickets = store.select(list(ids))
    except (ConfigError, TicketError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for error in store.parse_errors:
        click.echo(f"Warning: {error}", err=True)
    return config, store, tickets


def _token() -> str:
    try:
        return get_github_token()
    except GitHubError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(package_name="ticketsync")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """ticketsync - push .tickets to GitHub Issues."""
    setup_logging(level="DEBUG" if verbose else None)


@main.command()
@click.argument("ids", nargs=-1)
def push(ids: tuple[str, ...]) -> None:
    """Sync tickets to GitHub Issues.

    Pushes every ticket, or only IDS in the order given.
    """
    config, store, tickets = _load(ids)
    if not tickets:
        click.echo(f"No tickets found in {store.tickets_dir}")
        return

    token = _token()
    gateway = build_gateway(config, token)
    orchestrator = SyncOrchestrator(
        gateway, store, config, on_event=lambda event: click.echo(format_event(event))
    )

    def handle_interrupt(signum: int, frame: FrameType | None) -> None:
        if orchestrator.cancel_requested:
            signal.default_int_handler(signum, frame)
        click.echo("\nStopping after the current ticket (Ctrl-C again to abort)...", err=True)
        orchestrator.request_cancel()

    click.echo(f"Syncing {len(tickets)} ticket(s) to {config.github.repo}...\n")
    previous_handler = signal.signal(signal.SIGINT, handle_interrupt)
    try:
        report = orchestrator.run(list(ids) or None)
    except (SyncError, GitHubError, TicketError) as e:
        logger.error("Sync aborted: %s", e)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        gateway.close()

    click.echo()
    click.echo(format_summary(report))
    if report.has_failures:
        sys.exit(1)


@main.command()
@click.option("-q", "--quick", is_flag=True, help="Skip GitHub fetch, just show local state")
def status(quick: bool) -> None:
    """Show sync status of tickets."""
    config, store, tickets = _load()
    if not tickets:
        click.echo(f"No tickets found in {store.tickets_dir}")
        return

    if quick or not any(t.has_external_ref for t in tickets):
        summary = StatusSummary.from_tickets(tickets)
    else:
        gateway = build_gateway(config, _token())
        try:
            events = SyncOrchestrator(gateway, store, config).plan()
        except (GitHubError, TicketError) as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        finally:
            gateway.close()
        summary = StatusSummary.from_events(events)

    click.echo(format_status(summary, config.github.repo, quick=quick))


@main.command()
@click.option("-r", "--repo", help="GitHub repository (owner/repo)")
@click.option("-p", "--project", help="GitHub Project name or number")
@click.option("-a", "--assignee", help="Assign created issues to this user")
@click.option("-f", "--force", is_flag=True, help="Overwrite existing config")
def init(repo: str | None, project: str | None, assignee: str | None, force: bool) -> None:
    """Create .tickets/sync.yaml."""
    tickets_dir = Path(TICKETS_DIR_NAME)
    config_path = tickets_dir / CONFIG_FILE_NAME

    if config_path.exists() and not force:
        click.echo(
            f"Error: Configuration already exists: {config_path}\nUse --force to overwrite.",
            err=True,
        )
        sys.exit(1)

    if repo is None:
        repo = detect_github_repo()
        if repo is not None:
            click.echo(f"Detected repository: {repo}")
        else:
            repo = click.prompt("GitHub repository (owner/repo)").strip()

    if not REPO_PATTERN.match(repo):
        click.echo("Error: Invalid repository format. Expected 'owner/repo'", err=True)
        sys.exit(1)

    interactive = sys.stdin.isatty()
    if project is None and interactive:
        project = click.prompt(
            "GitHub Project name (optional, press Enter to skip)", default="", show_default=False
        )
    if assignee is None and interactive:
        assignee = click.prompt(
            "Default assignee (optional, press Enter to skip)", default="", show_default=False
        )

    if not tickets_dir.exists():
        tickets_dir.mkdir()
        click.echo(f"Created {tickets_dir}/")

    config = SyncConfig(
        github=GitHubConfig(repo=repo, project=project or None, assignee=assignee or None),
        mapping=MappingConfig(type=dict(DEFAULT_TYPE_MAPPING)),
        tickets_dir=tickets_dir,
    )
    save_config(config, config_path)
    click.echo(f"Created {config_path}")


if __name__ == "__main__":
    main()
