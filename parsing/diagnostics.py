"""
Diagnostic export for parsed documents.

The export carries each page's intermediate state (raw text, detected header,
column bands, parsed rows, rejected cells, structural miss and page error) so
a misparsed layout can be debugged from the file alone.
"""

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Union

from .models import DocumentParseResult


logger = logging.getLogger(__name__)


def json_serializer(obj: Any) -> Any:
    """Serialize values the json module does not handle natively."""
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def diagnostics_to_json(result: DocumentParseResult, indent: int = 2) -> str:
    return json.dumps(result.to_dict(), indent=indent, default=json_serializer)


def export_diagnostics(result: DocumentParseResult, output_path: Union[str, Path]) -> Path:
    """
    Write a document's diagnostics to a JSON file.

    Args:
        result: Parse result to export
        output_path: File to write; parent directories are created

    Returns:
        Path of the written file
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(diagnostics_to_json(result), encoding='utf-8')
    logger.info(f"Diagnostics for {result.document_ref[:12]} written to {output_path}")
    return output_path


def summarize(result: DocumentParseResult) -> Dict[str, Any]:
    """Page-level summary used by the CLI."""
    misses: Dict[str, int] = {}
    for page in result.pages:
        if page.structural_miss:
            misses[page.structural_miss.value] = misses.get(page.structural_miss.value, 0) + 1

    rows = result.rows
    return {
        'document_ref': result.document_ref,
        'platform': result.platform,
        'pages': result.page_count,
        'rows': len(rows),
        'rejected_cells': sum(len(page.rejected_cells) for page in result.pages),
        'dropped_rows': sum(1 for page in result.pages for cell in page.rejected_cells if cell.row_dropped),
        'ocr_pages': sum(1 for page in result.pages if page.ocr_invoked),
        'structural_misses': misses,
        'low_confidence_quantities': sum(1 for row in rows if row.quantity.confidence.value == 'low'),
        'page_errors': len(result.errors),
        'cancelled': result.cancelled
    }
