"""
Main CLI entry point for the Marketplace Order Intake System.

This module provides the main command-line interface with command groups
and global options for the order intake system.
"""

import sys
import logging

import click

from database.models import DatabaseError
from cli.context import CLIContext, pass_context
from cli.version import get_version, get_version_info
from cli.commands import (
    intake_commands,
    queue_commands,
    catalog_commands,
    config_commands
)
from cli.exceptions import CLIError
from cli.formatters import setup_logging, display_summary, format_json


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-essential output')
@click.option('--database', type=click.Path(dir_okay=False), envvar='ORDER_INTAKE_DB',
              default="order_intake.db", help='Specify custom database path')
@click.version_option(version=get_version(), prog_name="order-intake")
@click.pass_context
def cli(ctx, verbose, quiet, database):
    """
    Marketplace Order Intake System - CLI Tool

    Reads marketplace shipment documents (Flipkart labels, Myntra picklists,
    Amazon invoices), queues their order lines against the product catalog and
    produces pick lists.

    Examples:
        # Queue the lines of a batch of shipping labels
        order-intake ingest labels/*.pdf --platform flipkart

        # Map an unknown marketplace SKU and re-resolve the queue
        order-intake catalog add-alias flipkart TSB-0042-M TSHIRT-BLK-M
        order-intake queue remap

        # Produce the pick list
        order-intake queue generate-picklist
    """
    cli_ctx = CLIContext()
    cli_ctx.verbose = verbose
    cli_ctx.quiet = quiet
    cli_ctx.database_path = database
    ctx.obj = cli_ctx

    setup_logging(verbose, quiet)


cli.add_command(intake_commands.parse)
cli.add_command(intake_commands.ingest)
cli.add_command(intake_commands.picklist)
cli.add_command(queue_commands.queue_group)
cli.add_command(catalog_commands.catalog_group)
cli.add_command(config_commands.config_group)


@cli.command()
@click.option('--format', '-f', 'output_format', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
@pass_context
def status(ctx, output_format):
    """Display order queue and database status."""
    status_info = dict(get_version_info())
    status_info['database_path'] = str(ctx.database_path)

    try:
        db_stats = ctx.get_db_manager().get_database_stats()
        status_info.update({
            'database_status': 'Connected',
            'database_version': db_stats.get('database_version', 'unknown'),
            'database_size_kb': round(db_stats.get('database_size_bytes', 0) / 1024, 1),
            'products': db_stats.get('total_products', 0),
            'active_products': db_stats.get('active_products', 0),
            'sku_aliases': db_stats.get('sku_aliases', 0),
            'pending_lines': db_stats.get('queue_pending', 0),
            'listed_lines': db_stats.get('queue_listed', 0),
            'archived_lines': db_stats.get('queue_archived', 0),
            'unresolved_lines': db_stats.get('queue_unresolved', 0)
        })
    except DatabaseError as e:
        status_info['database_status'] = f'Error: {e}'

    if output_format == 'json':
        click.echo(format_json(status_info))
    else:
        display_summary("System Status", status_info)


def main():
    """Main entry point for the CLI application."""
    try:
        cli(standalone_mode=False)
    except click.exceptions.Abort:
        click.echo("\nOperation cancelled by user.", err=True)
        sys.exit(1)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except CLIError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)
    except DatabaseError as e:
        click.echo(f"Database Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nOperation cancelled by user.", err=True)
        sys.exit(1)
    except Exception as e:
        logger = logging.getLogger(__name__)
        logger.exception("Unexpected error occurred")
        click.echo(f"Unexpected error: {e}", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()
