"""
Unit tests for the per-format row extraction strategies.

Lines and column bands are built by hand so each test pins down exactly which
tokens fall into which cell.
"""

from dataclasses import replace

import pytest

from parsing.clustering import cluster_lines
from parsing.models import (
    ColumnBand, QuantityConfidence, QuantitySource, RowSource, SemanticKey, Token
)
from parsing.profiles import AMAZON_PROFILE, FLIPKART_PROFILE, MYNTRA_PROFILE
from parsing.strategies import (
    ExtractionContext, assemble_code_cell, assemble_text_cell, extract_rows,
    extract_rows_from_text, placeholder_order_id, split_cells
)


DOCUMENT_REF = "0123456789abcdef0123456789abcdef01234567"


def tok(text, x, y):
    return Token(text=text, x=x, y=y, width=len(text) * 5.0, height=8.0)


class TestCellAssembly:
    """Test cell assembly helpers."""

    def test_code_cell_drops_whitespace_pipes_and_commas(self):
        tokens = [tok("TSB-", 10, 0), tok("0042", 30, 0), tok("|", 50, 0), tok("-M,", 60, 0)]

        assert assemble_code_cell(tokens) == "TSB-0042-M"

    def test_text_cell_collapses_spaces(self):
        tokens = [tok("Black ", 10, 0), tok(" T-Shirt", 40, 0)]

        assert assemble_text_cell(tokens) == "Black T-Shirt"

    def test_split_cells_at_separators(self):
        tokens = [tok("A1", 0, 0), tok("|", 10, 0), tok("Black", 20, 0), tok("Shirt", 40, 0),
                  tok("||", 60, 0), tok("2", 70, 0)]

        cells = split_cells(tokens)

        assert [[t.text for t in cell] for cell in cells] == [["A1"], ["Black", "Shirt"], ["2"]]

    def test_split_without_separators_gives_one_cell_per_token(self):
        tokens = [tok("A1", 0, 0), tok("Black", 20, 0)]

        assert len(split_cells(tokens)) == 2

    def test_placeholder_order_id_is_deterministic(self):
        first = placeholder_order_id("flipkart", DOCUMENT_REF, 3)

        assert first == "FLIPKART-0123456789ab-P3"
        assert first == placeholder_order_id("flipkart", DOCUMENT_REF, 3)


class TestDelimitedExtraction:
    """Test the delimited table strategy on Flipkart-style label tables."""

    def setup_method(self):
        self.bands = [
            ColumnBand(SemanticKey.IDENTIFIER_PRIMARY, 20, 0, 150),
            ColumnBand(SemanticKey.DESCRIPTION, 200, 150, 400),
            ColumnBand(SemanticKey.QUANTITY, 420, 400, 480),
        ]
        self.context = ExtractionContext(
            profile=FLIPKART_PROFILE,
            page_number=1,
            document_ref=DOCUMENT_REF,
            page_order_id="OD123456789012345678"
        )

    def _lines(self, tokens):
        return cluster_lines(tokens)

    def test_row_with_separators(self):
        lines = self._lines([
            tok("TSB-0042-M", 20, 100), tok("|", 140, 100), tok("Black", 160, 100),
            tok("T-Shirt", 200, 100), tok("|", 390, 100), tok("2", 420, 100),
        ])

        result = extract_rows(lines, self.bands, self.context)

        assert len(result.rows) == 1
        row = result.rows[0]
        assert row.marketplace_identifier == "TSB-0042-M"
        assert row.description == "Black T-Shirt"
        assert row.quantity.value == 2
        assert row.quantity.source == QuantitySource.COLUMN
        assert row.quantity.confidence == QuantityConfidence.HIGH
        assert row.order_id == "OD123456789012345678"
        assert row.source == RowSource.TEXT_LAYER
        assert row.page_number == 1

    def test_continuation_line_joins_previous_row(self):
        lines = self._lines([
            tok("TSB-0042-M", 20, 100), tok("|", 140, 100), tok("Black", 160, 100),
            tok("T-Shirt", 200, 100), tok("|", 390, 100), tok("2", 420, 100),
            tok("Cotton", 160, 112), tok("Round", 200, 112), tok("Neck", 240, 112),
        ])

        result = extract_rows(lines, self.bands, self.context)

        assert len(result.rows) == 1
        assert result.rows[0].description == "Black T-Shirt Cotton Round Neck"

    def test_lines_without_separators_degrade_to_token_cells(self):
        lines = self._lines([tok("TSB-0042-M", 20, 100), tok("Black", 160, 100), tok("2", 420, 100)])

        result = extract_rows(lines, self.bands, self.context)

        assert len(result.rows) == 1
        assert result.rows[0].description == "Black"
        assert result.rows[0].quantity.value == 2

    def test_explicit_qty_label_in_quantity_column(self):
        lines = self._lines([
            tok("TSB-0042-M", 20, 100), tok("Black", 160, 100), tok("T-Shirt", 200, 100),
            tok("Qty:", 410, 100), tok("3", 440, 100),
        ])

        result = extract_rows(lines, self.bands, self.context)

        row = result.rows[0]
        assert row.quantity.value == 3
        assert row.quantity.source == QuantitySource.EXPLICIT_LABEL
        assert row.quantity.confidence == QuantityConfidence.HIGH
        assert "Qty" not in row.description

    def test_rejected_identifier_drops_row_and_is_reported(self):
        lines = self._lines([
            tok("TSB-0042-M", 20, 100), tok("|", 140, 100), tok("Black", 160, 100),
            tok("|", 390, 100), tok("2", 420, 100),
            tok("AWB12345678", 20, 130), tok("|", 140, 130), tok("Blue", 160, 130),
            tok("|", 390, 130), tok("1", 420, 130),
            tok("TOTAL", 160, 150), tok("3", 420, 150),
            tok("TAX", 20, 180), tok("INVOICE", 60, 180),
            tok("XYZ-9999-L", 20, 200), tok("Ignored", 160, 200),
        ])

        result = extract_rows(lines, self.bands, self.context)

        assert [row.marketplace_identifier for row in result.rows] == ["TSB-0042-M"]
        assert len(result.rejected_cells) == 1
        rejection = result.rejected_cells[0]
        assert rejection.value == "AWB12345678"
        assert rejection.reason == "blacklisted:AWB"
        assert rejection.semantic_key == SemanticKey.IDENTIFIER_PRIMARY
        assert rejection.row_dropped is True
        assert result.stopped_at == "TAX INVOICE"

    def test_identifier_without_digit_is_rejected(self):
        lines = self._lines([tok("ABCDEFGH", 20, 100), tok("Shirt", 160, 100)])

        result = extract_rows(lines, self.bands, self.context)

        assert result.rows == []
        assert result.rejected_cells[0].reason == "no_digit"

    def test_placeholder_order_id_without_page_order_id(self):
        context = ExtractionContext(profile=FLIPKART_PROFILE, page_number=2, document_ref=DOCUMENT_REF)
        lines = self._lines([tok("TSB-0042-M", 20, 100), tok("2", 420, 100)])

        result = extract_rows(lines, self.bands, context)

        assert result.rows[0].order_id == "FLIPKART-0123456789ab-P2"


class TestPositionalExtraction:
    """Test the positional band strategy on Myntra-style picklists."""

    def setup_method(self):
        self.bands = [
            ColumnBand(SemanticKey.IDENTIFIER_SECONDARY, 50, 0, 100),
            ColumnBand(SemanticKey.IDENTIFIER_PRIMARY, 150, 100, 250),
            ColumnBand(SemanticKey.QUANTITY, 280, 250, 320),
            ColumnBand(SemanticKey.DESCRIPTION, 380, 320, 480),
        ]
        self.context = ExtractionContext(profile=MYNTRA_PROFILE, page_number=1, document_ref=DOCUMENT_REF)

    def _table(self, primary_a="TSHIRT-BLK-M"):
        return cluster_lines([
            tok("12345678", 20, 200), tok(primary_a, 120, 200), tok("2", 270, 200),
            tok("Black", 330, 200), tok("Cotton", 370, 200),
            tok("T-Shirt", 330, 212), tok("Medium", 380, 212),
            tok("87654321", 20, 240), tok("JEANS-BLU-32", 120, 240), tok("1", 270, 240),
            tok("Blue", 330, 240), tok("Denim", 370, 240),
        ])

    def test_rows_with_wrapped_description(self):
        result = extract_rows(self._table(), self.bands, self.context)

        assert len(result.rows) == 2
        first, second = result.rows

        assert first.marketplace_identifier == "TSHIRT-BLK-M"
        assert first.secondary_identifier == "12345678"
        assert first.description == "Black Cotton T-Shirt Medium"
        assert first.quantity.value == 2
        assert first.quantity.source == QuantitySource.COLUMN
        assert first.order_id == "MYNTRA-12345678"

        assert second.marketplace_identifier == "JEANS-BLU-32"
        assert second.description == "Blue Denim"
        assert second.quantity.value == 1
        assert second.order_id == "MYNTRA-87654321"

    def test_wrapped_line_is_not_a_row(self):
        result = extract_rows(self._table(), self.bands, self.context)

        assert all("Medium" not in row.marketplace_identifier for row in result.rows)
        assert "T-Shirt Medium" in result.rows[0].raw_line_text

    def test_rejected_primary_drops_row(self):
        result = extract_rows(self._table(primary_a="seller"), self.bands, self.context)

        assert [row.marketplace_identifier for row in result.rows] == ["JEANS-BLU-32"]
        assert len(result.rejected_cells) == 1
        assert result.rejected_cells[0].reason == "shape"
        assert result.rejected_cells[0].row_dropped is True

    def test_secondary_fallback_when_profile_allows_it(self):
        context = ExtractionContext(
            profile=replace(MYNTRA_PROFILE, secondary_identifier_fallback=True),
            page_number=1, document_ref=DOCUMENT_REF
        )

        result = extract_rows(self._table(primary_a="seller"), self.bands, context)

        first = result.rows[0]
        assert first.marketplace_identifier == "12345678"
        assert first.secondary_identifier is None
        assert result.rejected_cells[0].row_dropped is False

    def test_wrapped_seller_sku_merges_into_one_identifier(self):
        lines = cluster_lines([
            tok("12345678", 20, 200), tok("TSHIRT-BLK-", 120, 200), tok("2", 270, 200),
            tok("Black", 330, 200), tok("Cotton", 370, 200),
            tok("XL", 120, 212), tok("T-Shirt", 330, 212),
            tok("87654321", 20, 240), tok("JEANS-BLU-32", 120, 240), tok("1", 270, 240),
            tok("Blue", 330, 240), tok("Denim", 370, 240),
        ])

        result = extract_rows(lines, self.bands, self.context)

        assert [row.marketplace_identifier for row in result.rows] == ["TSHIRT-BLK-XL", "JEANS-BLU-32"]
        assert result.rows[0].description == "Black Cotton T-Shirt"
        assert result.rows[0].quantity.value == 2
        assert result.rejected_cells == []

    @pytest.mark.parametrize("spacing,next_row_y", [(12, 240), (16, 240), (20, 250)])
    def test_wrapped_description_at_line_spacing(self, spacing, next_row_y):
        lines = cluster_lines([
            tok("12345678", 20, 200), tok("TSHIRT-BLK-M", 120, 200), tok("2", 270, 200),
            tok("Black", 330, 200), tok("Cotton", 370, 200),
            tok("T-Shirt", 330, 200 + spacing), tok("Medium", 380, 200 + spacing),
            tok("87654321", 20, next_row_y), tok("JEANS-BLU-32", 120, next_row_y), tok("1", 270, next_row_y),
            tok("Blue", 330, next_row_y), tok("Denim", 370, next_row_y),
        ])

        result = extract_rows(lines, self.bands, self.context)

        assert [row.description for row in result.rows] == ["Black Cotton T-Shirt Medium", "Blue Denim"]

    def test_tightly_spaced_rows_stay_separate(self):
        lines = cluster_lines([
            tok("12345678", 20, 200), tok("TSHIRT-BLK-M", 120, 200), tok("2", 270, 200),
            tok("Black", 330, 200), tok("Cotton", 370, 200),
            tok("87654321", 20, 216), tok("JEANS-BLU-32", 120, 216), tok("1", 270, 216),
            tok("Blue", 330, 216), tok("Denim", 370, 216),
        ])

        result = extract_rows(lines, self.bands, self.context)

        assert [row.marketplace_identifier for row in result.rows] == ["TSHIRT-BLK-M", "JEANS-BLU-32"]
        assert [row.description for row in result.rows] == ["Black Cotton", "Blue Denim"]
        assert [row.quantity.value for row in result.rows] == [2, 1]

    def test_total_line_is_skipped(self):
        lines = cluster_lines([
            tok("12345678", 20, 200), tok("TSHIRT-BLK-M", 120, 200), tok("2", 270, 200),
            tok("Total", 20, 260), tok("2", 270, 260),
        ])

        result = extract_rows(lines, self.bands, self.context)

        assert len(result.rows) == 1
        assert result.rows[0].quantity.value == 2

    def test_extraction_is_deterministic(self):
        first = extract_rows(self._table(), self.bands, self.context)
        second = extract_rows(self._table(), self.bands, self.context)

        assert [row.to_dict() for row in first.rows] == [row.to_dict() for row in second.rows]


class TestAnchorExtraction:
    """Test the anchor line strategy on Amazon-style invoices."""

    def test_text_layer_rows_use_seller_sku(self):
        lines = cluster_lines([
            tok("Cotton", 20, 100), tok("Kurta", 60, 100), tok("B0ABCDE123", 100, 100),
            tok("(KURTA-RED-L)", 180, 100), tok("2", 400, 100),
        ])
        bands = [ColumnBand(SemanticKey.QUANTITY, 410, 380, 440)]
        context = ExtractionContext(
            profile=AMAZON_PROFILE, page_number=1, document_ref=DOCUMENT_REF,
            page_order_id="171-1234567-1234567"
        )

        result = extract_rows(lines, bands, context)

        row = result.rows[0]
        assert row.marketplace_identifier == "KURTA-RED-L"
        assert row.secondary_identifier == "B0ABCDE123"
        assert row.description == "Cotton Kurta 2"
        assert row.quantity.value == 2
        assert row.quantity.source == QuantitySource.COLUMN
        assert row.order_id == "171-1234567-1234567"

    def test_ocr_text_rows(self):
        text = "\n".join([
            "Order Number: 171-1234567-1234567",
            "Description Qty",
            "Cotton Kurta B0ABCDE123 ( KURTA-RED-L ) Qty: 2",
            "Blue Jeans B0XYZ98765",
            "3 Units",
            "TOTAL 5",
            "Gift Card B0GIFT0001",
        ])
        context = ExtractionContext(
            profile=AMAZON_PROFILE, page_number=1, document_ref=DOCUMENT_REF,
            page_order_id="171-1234567-1234567", page_has_tokens=False
        )

        result = extract_rows_from_text(text, context)

        assert len(result.rows) == 2
        kurta, jeans = result.rows
        assert kurta.marketplace_identifier == "KURTA-RED-L"
        assert kurta.description == "Cotton Kurta"
        assert kurta.quantity.value == 2
        assert kurta.quantity.source == QuantitySource.OCR
        assert kurta.source == RowSource.OCR
        assert jeans.marketplace_identifier == "B0XYZ98765"
        assert jeans.secondary_identifier is None
        assert jeans.quantity.value == 3
        assert result.stopped_at == "TOTAL 5"

    def test_malformed_seller_sku_keeps_asin(self):
        context = ExtractionContext(profile=AMAZON_PROFILE, page_number=1, document_ref=DOCUMENT_REF,
                                    page_has_tokens=False)

        result = extract_rows_from_text("Shirt B0ABCDE123 (SKU-1__ok) x", context)

        assert result.rows[0].marketplace_identifier == "B0ABCDE123"
        assert result.rows[0].order_id == "AMAZON-0123456789ab-P1"

    def test_plain_text_needs_anchor_layout(self):
        context = ExtractionContext(profile=MYNTRA_PROFILE, page_number=1, document_ref=DOCUMENT_REF)

        with pytest.raises(ValueError):
            extract_rows_from_text("anything", context)
