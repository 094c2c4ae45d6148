"""
Order queue commands for the CLI interface.

This module implements the order queue workflow commands:
- list: Show queued order lines
- advance: Move one line along pending -> listed -> archived
- generate-picklist: Show the pick list and mark pending lines as listed
- archive: Archive every listed line
- remap: Re-resolve unresolved lines after catalog mappings were added
"""

import logging

import click

from cli.context import pass_context
from cli.commands.intake_commands import machine_output_on_stdout, show_pick_list
from cli.exceptions import CLIError
from cli.formatters import print_success, print_info, print_warning, format_table, format_json
from database.models import (
    WORKFLOW_STATUSES, DatabaseError, InvalidStatusTransitionError, ValidationError
)
from parsing.identifiers import IdentifierResolver
from parsing.ingestion import IngestionPipeline, remap_unresolved_entries
from parsing.profiles import supported_platforms


logger = logging.getLogger(__name__)


@click.group(name='queue')
def queue_group():
    """Order queue workflow commands."""
    pass


@queue_group.command(name='list')
@click.option('--status', '-s', type=click.Choice(WORKFLOW_STATUSES), multiple=True,
              help='Only show lines in this status (repeatable)')
@click.option('--platform', '-p', type=click.Choice(supported_platforms()), help='Only show this marketplace')
@click.option('--unresolved', is_flag=True, help='Only show lines without a canonical SKU')
@click.option('--file-ref', type=str, help='Only show lines from this document')
@click.option('--limit', '-l', type=click.IntRange(min=1), help='Maximum number of lines')
@click.option('--format', '-f', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@pass_context
def list_entries(ctx, status, platform, unresolved, file_ref, limit, output_format):
    """
    List queued order lines in ingestion order.

    Examples:
        order-intake queue list --status pending
        order-intake queue list --unresolved --platform flipkart
    """
    try:
        entries = ctx.get_db_manager().list_order_entries(
            statuses=list(status) or None,
            platform=platform,
            unresolved_only=unresolved,
            source_file_ref=file_ref,
            limit=limit
        )

        if output_format == 'json':
            click.echo(format_json([entry.to_dict() for entry in entries]))
            return

        if not entries:
            print_info("No order lines found.")
            return

        click.echo(format_table([
            {
                'ID': entry.id,
                'Platform': entry.platform,
                'Order': entry.order_id,
                'Identifier': entry.marketplace_identifier,
                'SKU': entry.canonical_sku or '',
                'Display SKU': entry.display_sku or '',
                'Qty': entry.quantity,
                'Qty Source': entry.quantity_source,
                'Status': entry.workflow_status,
                'File': entry.source_file_ref or ''
            }
            for entry in entries
        ]))
        print_info(f"Found {len(entries)} order line(s)")

    except (ValidationError, DatabaseError) as e:
        raise CLIError(f"Database error: {e}")


@queue_group.command()
@click.argument('entry_id', type=int)
@click.argument('status', type=click.Choice(WORKFLOW_STATUSES))
@pass_context
def advance(ctx, entry_id, status):
    """
    Move one order line to a later workflow status.

    Examples:
        order-intake queue advance 12 listed
    """
    try:
        entry = ctx.get_db_manager().transition_order_entry(entry_id, status)
        print_success(f"Order line {entry.id} is now {entry.workflow_status}")
    except InvalidStatusTransitionError as e:
        raise CLIError(str(e), exit_code=2)
    except (ValidationError, DatabaseError) as e:
        raise CLIError(f"Database error: {e}")


@queue_group.command(name='generate-picklist')
@click.option('--platform', '-p', type=click.Choice(supported_platforms()), help='Only this marketplace')
@click.option('--format', '-f', 'output_format', type=click.Choice(['table', 'csv', 'json']),
              default='table', help='Output format')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write to a file instead of stdout')
@pass_context
def generate_picklist(ctx, platform, output_format, output):
    """
    Produce the pick list and mark every pending line as listed.

    Examples:
        order-intake queue generate-picklist --format csv --output picklist.csv
    """
    try:
        db_manager = ctx.get_db_manager()
        aggregates = IngestionPipeline(db_manager).generate_pick_list(platform)
        to_stderr = machine_output_on_stdout(output_format, output)
        if not aggregates:
            print_info("Order queue has no pending or listed lines.", err=to_stderr)
            return

        show_pick_list(aggregates, output_format, output)
        moved = db_manager.mark_pending_as_listed(platform)
        print_success(f"Marked {moved} pending line(s) as listed", err=to_stderr)

        unresolved = [a for a in aggregates if not a.is_resolved]
        if unresolved:
            print_warning(f"{len(unresolved)} pick list line(s) have no catalog SKU", err=to_stderr)
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@queue_group.command()
@click.option('--platform', '-p', type=click.Choice(supported_platforms()), help='Only this marketplace')
@pass_context
def archive(ctx, platform):
    """
    Archive every listed order line.

    Archived lines no longer block re-ingestion of the same order line.
    """
    try:
        count = ctx.get_db_manager().archive_listed_entries(platform)
        print_success(f"Archived {count} order line(s)")
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@queue_group.command()
@click.option('--file-ref', type=str, help='Only re-resolve lines from this document')
@pass_context
def remap(ctx, file_ref):
    """
    Re-resolve unresolved order lines against the catalog.

    Run after adding products or aliases. Matching stays exact.
    """
    try:
        db_manager = ctx.get_db_manager()
        count = remap_unresolved_entries(db_manager, IdentifierResolver(db_manager), file_ref)
        remaining = db_manager.get_queue_stats()['unresolved']
        print_success(f"Resolved {count} order line(s)")
        if remaining:
            print_info(f"{remaining} line(s) still unresolved")
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")
