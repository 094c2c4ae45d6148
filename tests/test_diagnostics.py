"""
Tests for diagnostic export.
"""

import json
from datetime import datetime
from pathlib import Path

import pytest

from parsing.diagnostics import diagnostics_to_json, export_diagnostics, json_serializer, summarize
from parsing.models import (
    CellRejection, DocumentFormat, DocumentParseResult, PageDiagnostics, ParsedRow,
    QuantityConfidence, QuantityResult, QuantitySource, SemanticKey, StructuralMiss
)


def sample_result():
    row = ParsedRow(
        order_id='OD123456789012345678',
        marketplace_identifier='TSB-0042-M',
        description='Black T-Shirt',
        quantity=QuantityResult(1, QuantitySource.DEFAULT_GUESS, QuantityConfidence.LOW),
        raw_line_text='TSB-0042-M Black T-Shirt',
        page_number=1
    )
    return DocumentParseResult(
        document_ref='abc123def456abc123def456',
        platform='flipkart',
        pages=[
            PageDiagnostics(
                page_number=1,
                raw_text='TSB-0042-M Black T-Shirt',
                document_format=DocumentFormat.DELIMITED_TABLE,
                rows=[row],
                rejected_cells=[CellRejection(1, SemanticKey.IDENTIFIER_PRIMARY, 'AWB123456',
                                              'blacklisted:AWB', 'AWB123456 x', row_dropped=True)]
            ),
            PageDiagnostics(page_number=2, structural_miss=StructuralMiss.NO_HEADER, ocr_invoked=True),
            PageDiagnostics(page_number=3, page_error='Text layer failed'),
        ],
        errors=['Page 3: Text layer failed']
    )


class TestDiagnostics:
    """Test diagnostics serialization and export."""

    def test_json_contains_intermediate_state(self):
        data = json.loads(diagnostics_to_json(sample_result()))

        assert data['page_count'] == 3
        assert data['row_count'] == 1
        first = data['pages'][0]
        assert first['document_format'] == 'delimited_table'
        assert first['rows'][0]['quantity_source'] == 'default_guess'
        assert first['rejected_cells'][0]['row_dropped'] is True
        assert data['pages'][1]['structural_miss'] == 'no_header'
        assert data['pages'][2]['page_error'] == 'Text layer failed'

    def test_export_creates_directories(self, tmp_path):
        target = tmp_path / "debug" / "nested" / "labels_diagnostics.json"

        written = export_diagnostics(sample_result(), target)

        assert written == target
        assert json.loads(target.read_text(encoding='utf-8'))['platform'] == 'flipkart'

    def test_summarize(self):
        summary = summarize(sample_result())

        assert summary['pages'] == 3
        assert summary['rows'] == 1
        assert summary['rejected_cells'] == 1
        assert summary['dropped_rows'] == 1
        assert summary['ocr_pages'] == 1
        assert summary['structural_misses'] == {'no_header': 1}
        assert summary['low_confidence_quantities'] == 1
        assert summary['page_errors'] == 1
        assert summary['cancelled'] is False

    def test_json_serializer(self):
        assert json_serializer(QuantitySource.OCR) == 'ocr'
        assert json_serializer(datetime(2024, 1, 2, 3, 4, 5)) == '2024-01-02T03:04:05'
        assert json_serializer({'b', 'a'}) == ['a', 'b']
        assert json_serializer(Path('x/y')) == str(Path('x/y'))
        with pytest.raises(TypeError):
            json_serializer(object())
