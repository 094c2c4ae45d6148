"""
Output helpers shared by the CLI commands.

Tables go through tabulate (plain listings) or rich (pick lists); JSON reuses
the diagnostics serializer so enums, sets and timestamps print the same way
everywhere. Logging for the whole process is configured here as well.
"""

import csv
import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union

import click
from rich.console import Console
from rich.table import Table
from tabulate import tabulate

from parsing.diagnostics import json_serializer


CELL_WIDTH = 50


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure root logging for a CLI run.

    Args:
        verbose: Log at DEBUG, including pdfminer chatter
        quiet: Only log warnings and errors
    """
    level = logging.WARNING if quiet else logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # pdfminer logs every font and object it touches
    if not verbose:
        for name in ('pdfminer', 'pdfplumber'):
            logging.getLogger(name).setLevel(logging.WARNING)


def display_value(value: Any) -> str:
    """Render one cell value for terminal output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, Enum):
        return str(value.value)
    text = str(value)
    if isinstance(value, str) and len(text) > CELL_WIDTH:
        return text[:CELL_WIDTH - 3] + "..."
    return text


def format_table(data: List[Dict[str, Any]], headers: Optional[List[str]] = None,
                 tablefmt: str = "grid") -> str:
    """
    Render a list of row dicts with tabulate.

    Args:
        data: Rows keyed by column name
        headers: Columns to show, defaults to the keys of the first row
        tablefmt: tabulate style

    Returns:
        The rendered table, or a placeholder line when there are no rows
    """
    if not data:
        return "No data to display."
    headers = headers or list(data[0].keys())
    return tabulate([[display_value(row.get(h)) for h in headers] for row in data],
                    headers=headers, tablefmt=tablefmt)


def _cli_json_default(obj: Any) -> Any:
    if hasattr(obj, 'to_dict'):
        return obj.to_dict()
    return json_serializer(obj)


def format_json(data: Any, indent: int = 2) -> str:
    return json.dumps(data, indent=indent, default=_cli_json_default, ensure_ascii=False)


def _csv_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, set, tuple)):
        return ";".join(str(v) for v in sorted(value, key=str))
    return str(value)


def write_csv(data: List[Dict[str, Any]], output: Union[str, Path, TextIO],
              headers: Optional[List[str]] = None) -> None:
    """
    Write row dicts as CSV to a path or an open text stream.

    Nothing is written for an empty row list.
    """
    if not data:
        return
    headers = headers or list(data[0].keys())

    def _write(stream: TextIO) -> None:
        writer = csv.DictWriter(stream, fieldnames=headers)
        writer.writeheader()
        for row in data:
            writer.writerow({h: _csv_cell(row.get(h)) for h in headers})

    if isinstance(output, (str, Path)):
        with open(output, 'w', newline='', encoding='utf-8') as f:
            _write(f)
    else:
        _write(output)


def render_rich_table(title: str, columns: List[str], rows: List[List[Any]],
                      console: Optional[Console] = None) -> None:
    """
    Print a rich table.

    The first column is highlighted; numeric cells are right aligned.
    """
    console = console or Console()
    table = Table(title=title, show_header=True, header_style="bold magenta")
    for index, column in enumerate(columns):
        numeric = bool(rows) and all(isinstance(row[index], int) for row in rows)
        table.add_column(column, style="cyan" if index == 0 else "white",
                         justify="right" if numeric else "left")
    for row in rows:
        table.add_row(*[display_value(value) for value in row])
    console.print(table)


def print_success(message: str, err: bool = False) -> None:
    click.echo(click.style(f"✓ {message}", fg='green'), err=err)


def print_warning(message: str, err: bool = False) -> None:
    click.echo(click.style(f"⚠ Warning: {message}", fg='yellow'), err=err)


def print_error(message: str) -> None:
    click.echo(click.style(f"✗ Error: {message}", fg='red'), err=True)


def print_info(message: str, err: bool = False) -> None:
    click.echo(click.style(f"ℹ {message}", fg='blue'), err=err)


def display_summary(title: str, stats: Dict[str, Any]) -> None:
    """Print a titled block of 'Key: value' lines, one per statistic."""
    click.echo(f"\n{title}\n{'=' * len(title)}")
    for key, value in stats.items():
        click.echo(f"  {key.replace('_', ' ').title()}: {display_value(value)}")
