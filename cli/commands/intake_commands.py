"""
Document intake commands for the CLI interface.

This module implements the commands that read marketplace documents:
- parse: Parse a document and show its rows without touching the order queue
- ingest: Parse, resolve and queue the order lines of one or more documents
- picklist: Show the aggregated pick list of the live order queue
"""

import logging
import sys
import threading
from dataclasses import replace
from pathlib import Path

import click

from cli.context import pass_context
from cli.exceptions import CLIError, ProcessingError
from cli.formatters import (
    print_success, print_warning, print_error, print_info,
    format_table, format_json, write_csv, display_summary, render_rich_table
)
from database.models import DatabaseError
from parsing.diagnostics import export_diagnostics, summarize
from parsing.document_parser import OrderDocumentParser
from parsing.exceptions import DocumentProcessingError
from parsing.ingestion import IngestionPipeline
from parsing.integration import OrderIntakeIntegrator
from parsing.profiles import get_profile, supported_platforms
from parsing.settings import load_parser_settings


logger = logging.getLogger(__name__)

PLATFORM_CHOICE = click.Choice(supported_platforms())


def resolve_platform(db_manager, platform):
    """Use the given platform or fall back to the configured default."""
    if platform:
        return platform
    platform = db_manager.get_config_value('default_platform', 'myntra')
    if platform not in supported_platforms():
        raise CLIError(f"Configured default platform '{platform}' is not supported")
    return platform


@click.command(name='parse')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--platform', '-p', type=PLATFORM_CHOICE, help='Marketplace the document comes from')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write page diagnostics as JSON')
@click.option('--format', '-f', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format for parsed rows')
@pass_context
def parse(ctx, file, platform, output, output_format):
    """
    Parse a document and show the order rows found.

    Nothing is written to the order queue.

    Examples:
        order-intake parse picklist.pdf --platform myntra
        order-intake parse label.pdf -p flipkart --output label_diagnostics.json
    """
    try:
        db_manager = ctx.get_db_manager()
        platform = resolve_platform(db_manager, platform)
        parser = OrderDocumentParser(get_profile(platform), load_parser_settings(db_manager))

        result = parser.parse_file(file)

        if output:
            export_diagnostics(result, output)
            print_success(f"Diagnostics written to {output}", err=output_format == 'json')

        rows = [row.to_dict() for row in result.rows]
        if output_format == 'json':
            click.echo(format_json(rows))
        else:
            if rows:
                click.echo(format_table(rows, headers=[
                    'page_number', 'order_id', 'marketplace_identifier', 'description',
                    'quantity', 'quantity_source', 'quantity_confidence'
                ]))
            else:
                print_warning("No order rows found")
            display_summary("Parse Summary", summarize(result))

        for error in result.errors:
            print_error(error)

    except DocumentProcessingError as e:
        raise ProcessingError(str(e))
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


@click.command(name='ingest')
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--platform', '-p', type=PLATFORM_CHOICE, help='Marketplace the documents come from')
@click.option('--debug-dir', type=click.Path(file_okay=False), help='Directory for per-document diagnostics')
@click.option('--workers', '-w', type=click.IntRange(min=1), help='Page worker threads (overrides max_workers)')
@pass_context
def ingest(ctx, files, platform, debug_dir, workers):
    """
    Parse documents and queue their order lines.

    Lines already queued (same order id, identifier and platform) are skipped.
    Identifiers without an exact catalog match are queued as unresolved.

    Examples:
        order-intake ingest labels/*.pdf --platform flipkart
        order-intake ingest picklist.pdf -p myntra --debug-dir ./debug
    """
    try:
        db_manager = ctx.get_db_manager()
        platform = resolve_platform(db_manager, platform)

        settings = load_parser_settings(db_manager)
        if workers:
            settings = replace(settings, max_workers=workers)

        integrator = OrderIntakeIntegrator(db_manager, platform, settings=settings)
        cancel_event = threading.Event()
        try:
            batch = integrator.process_batch([Path(f) for f in files], debug_dir, cancel_event)
        except KeyboardInterrupt:
            cancel_event.set()
            raise

        rows = []
        for item in batch.files:
            data = item.to_dict()
            rows.append({
                'File': item.file_ref,
                'Rows': data.get('rows', 0),
                'Inserted': data.get('inserted', 0),
                'Duplicates': data.get('duplicates_skipped', 0),
                'Unresolved': data.get('unresolved_count', 0),
                'Page Errors': len(data.get('page_errors', [])),
                'Status': 'failed' if item.error else 'ok'
            })
        click.echo(format_table(rows))

        for item in batch.files:
            if item.error:
                print_error(f"{item.file_ref}: {item.error}")
            elif item.parse_result is not None:
                for error in item.parse_result.errors:
                    print_warning(f"{item.file_ref}: {error}")

        totals = batch.totals()
        display_summary("Ingestion Summary", totals)
        if totals['unresolved_count']:
            print_info(
                f"{totals['unresolved_count']} line(s) need a catalog mapping; "
                "see 'order-intake queue list --unresolved'"
            )
        if batch.failed_files and len(batch.failed_files) == len(batch.files):
            raise ProcessingError("No documents could be processed")
        print_success(f"Ingested {totals['inserted']} order line(s)")

    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")


def pick_list_rows(aggregates):
    return [
        {
            'sku': aggregate.canonical_sku or aggregate.display_sku or aggregate.bucket_key,
            'resolved': aggregate.is_resolved,
            'description': aggregate.description or '',
            'platform': aggregate.platform,
            'quantity': aggregate.total_quantity,
            'orders': len(aggregate.contributing_order_ids)
        }
        for aggregate in aggregates
    ]


def machine_output_on_stdout(output_format, output=None) -> bool:
    """Whether CSV or JSON output goes to stdout rather than a file."""
    return output_format != 'table' and not output


def show_pick_list(aggregates, output_format, output=None):
    """Print or write a pick list in the requested format."""
    rows = pick_list_rows(aggregates)
    if output_format == 'json':
        text = format_json([aggregate.to_dict() for aggregate in aggregates])
        if output:
            Path(output).write_text(text, encoding='utf-8')
        else:
            click.echo(text)
    elif output_format == 'csv':
        write_csv(rows, output or sys.stdout, headers=list(rows[0].keys()) if rows else None)
    else:
        render_rich_table(
            "Pick List",
            ['SKU', 'Resolved', 'Description', 'Platform', 'Quantity', 'Orders'],
            [[r['sku'], r['resolved'], r['description'], r['platform'], r['quantity'], r['orders']]
             for r in rows]
        )
    if output:
        print_success(f"Pick list written to {output}")


@click.command(name='picklist')
@click.option('--platform', '-p', type=PLATFORM_CHOICE, help='Only include this marketplace')
@click.option('--format', '-f', 'output_format', type=click.Choice(['table', 'csv', 'json']),
              default='table', help='Output format')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Write to a file instead of stdout')
@pass_context
def picklist(ctx, platform, output_format, output):
    """
    Show the aggregated pick list of pending and listed order lines.

    Each order contributes its quantity once per SKU. Unresolved lines are
    listed individually.

    Examples:
        order-intake picklist
        order-intake picklist --format csv --output picklist.csv
    """
    try:
        aggregates = IngestionPipeline(ctx.get_db_manager()).generate_pick_list(platform)
        if not aggregates:
            print_info("Order queue has no pending or listed lines.",
                       err=machine_output_on_stdout(output_format, output))
            return
        show_pick_list(aggregates, output_format, output)
    except DatabaseError as e:
        raise CLIError(f"Database error: {e}")
