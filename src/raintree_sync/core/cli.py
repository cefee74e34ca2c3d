"""Command line interface for Raintree sync."""

import sys
import json
import logging
from typing import List, Optional

import click

from .config import setup_logging, load_environment, SyncSettings
from ..connectors import CONNECTOR_REGISTRY, create_gateway_from_env
from ..engine.sync import SyncEngine
from ..exceptions import ConfigurationError, SalesforceAPIError
from ..models.records import ObservedRecord, RecordKind
from ..models.sync import SyncPassReport, SyncResult, SyncStatus
from ..services.store import create_mapping_store

KIND_CHOICES = [kind.value for kind in RecordKind]
SIDE_CHOICES = list(CONNECTOR_REGISTRY.keys())


def _fail(prefix: str, error: Exception) -> None:
    click.echo(f"{prefix}: {error}", err=True)
    sys.exit(1)


@click.group()
@click.option('--log-level', default='INFO', envvar='LOG_LEVEL',
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']), help='Set the logging level')
@click.option('--env-file', type=click.Path(exists=True), help='Path to .env file')
def cli(log_level: str, env_file: Optional[str]) -> None:
    """Partner <-> Raintree Salesforce Sync Tool."""
    setup_logging(log_level)
    load_environment(env_file)


@cli.command()
@click.option('--kind', type=click.Choice(KIND_CHOICES + ['all']), default='all',
              help='Record kind to sync (default: all)')
@click.option('--dry-run', is_flag=True, help='Show what would be synced without making changes')
@click.option('--output', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
def sync(kind: str, dry_run: bool, output: str) -> None:
    """Run a bi-directional sync pass and save the updated mappings."""
    try:
        settings = SyncSettings.from_env()
        partner = create_gateway_from_env('partner', settings)
        raintree = create_gateway_from_env('raintree', settings)
        store = create_mapping_store(settings)
        engine = SyncEngine(max_workers=settings.max_workers)

        if kind == 'all':
            run = engine.run_all(partner, raintree, {k: store.get(k) for k in RecordKind}, dry_run=dry_run)
            reports = [run.opportunities, run.leads]
        else:
            record_kind = RecordKind(kind)
            reports = [engine.run_sync_pass(record_kind, partner, raintree, store.get(record_kind),
                                            dry_run=dry_run)]

        if not dry_run:
            for report in reports:
                if report.status == SyncStatus.COMPLETED:
                    processed = {result.record_id for result in report.results}
                    store.put_many(report.kind, {pid: m for pid, m in report.updated_mappings.items()
                                                 if pid in processed})

        if output == 'json':
            click.echo(json.dumps([report.to_response() for report in reports], indent=2))
        else:
            for report in reports:
                _display_report(report)

    except ConfigurationError as e:
        _fail("Configuration Error", e)
    except SalesforceAPIError as e:
        _fail("Salesforce API Error", e)
    except Exception as e:
        logging.exception("Unexpected error occurred")
        _fail("Unexpected error", e)


@cli.command()
@click.argument('kind', type=click.Choice(KIND_CHOICES))
def show_mappings(kind: str) -> None:
    """Show stored mappings for a record kind."""
    try:
        store = create_mapping_store()
        mappings = store.get(RecordKind(kind))

        if not mappings:
            click.echo(f"No {kind} mappings stored.")
            return

        click.echo(f"{'Partner ID':<20} {'Raintree ID':<20} {'Partner Modified':<27} "
                   f"{'Raintree Modified':<27} {'Source':<10}")
        click.echo("-" * 108)
        for mapping in mappings.values():
            click.echo(f"{mapping.partner_id:<20} {mapping.raintree_id:<20} "
                       f"{mapping.partner_last_modified.isoformat():<27} "
                       f"{mapping.raintree_last_modified.isoformat():<27} "
                       f"{mapping.last_sync_source.value:<10}")
        click.echo(f"\nTotal mappings: {len(mappings)}")

    except ConfigurationError as e:
        _fail("Configuration Error", e)
    except Exception as e:
        logging.exception("Unexpected error occurred")
        _fail("Unexpected error", e)


@cli.command()
@click.argument('side', type=click.Choice(SIDE_CHOICES))
@click.argument('kind', type=click.Choice(KIND_CHOICES))
@click.argument('record_id')
def get_record(side: str, kind: str, record_id: str) -> None:
    """Fetch a single record from one side."""
    try:
        gateway = create_gateway_from_env(side)
        record = gateway.fetch_by_id(RecordKind(kind), record_id)

        if record is None:
            click.echo(f"No {kind} found in {side} with ID: {record_id}")
            return

        click.echo(json.dumps(record.model_dump(mode="json"), indent=2))

    except ConfigurationError as e:
        _fail("Configuration Error", e)
    except SalesforceAPIError as e:
        _fail("Salesforce API Error", e)
    except Exception as e:
        logging.exception("Unexpected error occurred")
        _fail("Unexpected error", e)


@cli.command()
@click.argument('side', type=click.Choice(SIDE_CHOICES))
@click.argument('kind', type=click.Choice(KIND_CHOICES))
@click.option('--limit', type=int, default=20, help='Number of records to list (default: 20)')
def recent(side: str, kind: str, limit: int) -> None:
    """List the most recently created records on one side."""
    try:
        gateway = create_gateway_from_env(side)
        _display_records(gateway.fetch_recent(RecordKind(kind), limit=limit))

    except ConfigurationError as e:
        _fail("Configuration Error", e)
    except SalesforceAPIError as e:
        _fail("Salesforce API Error", e)
    except Exception as e:
        logging.exception("Unexpected error occurred")
        _fail("Unexpected error", e)


@cli.command()
@click.argument('side', type=click.Choice(SIDE_CHOICES))
def test_connection(side: str) -> None:
    """Test connection to one side's Salesforce org."""
    try:
        gateway = create_gateway_from_env(side)
        if gateway.test_connection():
            click.echo(f"Successfully connected to {side} Salesforce")
        else:
            click.echo(f"Could not connect to {side} Salesforce", err=True)
            sys.exit(1)

    except ConfigurationError as e:
        _fail("Configuration Error", e)


@cli.command()
@click.option('--host', default='0.0.0.0', help='Bind address')
@click.option('--port', type=int, default=8000, envvar='PORT', help='Port to listen on')
def serve(host: str, port: int) -> None:
    """Run the HTTP API."""
    import uvicorn
    from ..api.app import create_app

    uvicorn.run(create_app(), host=host, port=port)


def _display_records(records: List[ObservedRecord]) -> None:
    """Display records in a table format."""
    if not records:
        click.echo("No records found.")
        return

    click.echo(f"{'ID':<20} {'Name':<40} {'Last Modified':<27}")
    click.echo("-" * 90)
    for record in records:
        click.echo(f"{record.id:<20} {record.display_name[:40]:<40} {record.last_modified_date.isoformat():<27}")
    click.echo(f"\nTotal records: {len(records)}")


def _display_result(result: SyncResult) -> None:
    status = "OK" if result.success else "FAILED"
    direction = result.direction.value
    if result.winner:
        direction = f"{direction} ({result.winner.value} won)"
    line = f"{result.record_id:<20} {result.record_name[:30]:<30} {direction:<32} {status}"
    if result.error_message:
        line += f" | {result.error_message}"
    click.echo(line)


def _display_report(report: SyncPassReport) -> None:
    """Display one pass's results and summary."""
    title = f"{report.kind.value.capitalize()} sync pass"
    if report.dry_run:
        title += " (dry run)"
    click.echo(f"\n{title}")

    if report.status == SyncStatus.SKIPPED:
        click.echo("Skipped: a pass for this kind is already running.")
        return

    click.echo("-" * 100)
    for result in report.results:
        _display_result(result)

    summary = report.summary
    click.echo("-" * 100)
    click.echo(f"Total: {summary.total}  Synced: {summary.synced}  Failed: {summary.failed}  "
               f"Conflicts: {summary.conflicts}  Unresolved: {len(report.unresolved)}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
