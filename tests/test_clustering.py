"""
Unit tests for line clustering, header detection and column band derivation.
"""

import pytest

from parsing.clustering import band_for, cluster_lines, derive_column_bands, find_header_line
from parsing.models import ColumnBand, Line, SemanticKey, Token


def tok(text, x, y, width=None, height=8.0):
    return Token(text=text, x=x, y=y, width=width if width is not None else len(text) * 5.0, height=height)


class TestClusterLines:
    """Test greedy first-fit line clustering."""

    def test_groups_tokens_by_vertical_proximity(self):
        tokens = [tok("Black", 60, 100), tok("SKU-1", 10, 102), tok("Next", 10, 120)]

        lines = cluster_lines(tokens, y_tolerance=5)

        assert [line.text for line in lines] == ["SKU-1 Black", "Next"]

    def test_lines_are_ordered_top_to_bottom(self):
        tokens = [tok("bottom", 10, 300), tok("top", 10, 50), tok("middle", 10, 150)]

        lines = cluster_lines(tokens)

        assert [line.text for line in lines] == ["top", "middle", "bottom"]

    def test_first_fit_not_nearest_fit(self):
        # 104 is within tolerance of both anchors and joins the one created first
        tokens = [tok("a", 10, 100), tok("b", 10, 108), tok("c", 50, 104)]

        lines = cluster_lines(tokens, y_tolerance=5)

        assert [line.text for line in lines] == ["a c", "b"]

    def test_result_depends_on_input_order(self):
        tokens = [tok("b", 10, 108), tok("a", 10, 100), tok("c", 50, 104)]

        lines = cluster_lines(tokens, y_tolerance=5)

        assert [line.text for line in lines] == ["a", "b c"]

    def test_anchor_is_first_token_center(self):
        lines = cluster_lines([tok("x", 0, 100), tok("y", 20, 104)], y_tolerance=5)

        assert len(lines) == 1
        assert lines[0].anchor_y == pytest.approx(104.0)

    def test_tokens_beyond_tolerance_start_new_line(self):
        lines = cluster_lines([tok("x", 0, 100), tok("y", 0, 106)], y_tolerance=5)

        assert len(lines) == 2

    def test_blank_tokens_are_ignored(self):
        lines = cluster_lines([tok("  ", 0, 100), tok("real", 10, 100)])

        assert [line.text for line in lines] == ["real"]

    def test_identical_input_gives_identical_output(self):
        tokens = [tok(f"w{i}", (i * 37) % 200, 100 + (i * 13) % 40) for i in range(30)]

        assert cluster_lines(tokens) == cluster_lines(list(tokens))

    def test_empty_input(self):
        assert cluster_lines([]) == []


class TestFindHeaderLine:
    """Test header line detection."""

    def setup_method(self):
        self.lines = cluster_lines([
            tok("Order", 10, 20), tok("Id:", 50, 20),
            tok("SKU", 10, 60), tok("Description", 100, 60), tok("QTY", 300, 60),
            tok("TSB-0042-M", 10, 80),
        ])

    def test_finds_first_line_with_vocabulary(self):
        assert find_header_line(self.lines, ("sku", "qty")) == 1

    def test_matching_is_case_insensitive(self):
        assert find_header_line(self.lines, ("description",)) == 1

    def test_returns_none_without_vocabulary_match(self):
        assert find_header_line(self.lines, ("seller sku code",)) is None

    def test_search_limit(self):
        assert find_header_line(self.lines, ("sku",), search_limit=1) is None
        assert find_header_line(self.lines, ("sku",), search_limit=2) == 1


class TestDeriveColumnBands:
    """Test column band derivation from header keywords."""

    def _header(self, *tokens):
        return Line(tokens=tuple(tokens), anchor_y=60.0)

    def test_bands_split_at_midpoints(self):
        header = self._header(tok("SKU", 20, 60), tok("Description", 160, 60), tok("QTY", 400, 60))
        groups = {
            SemanticKey.IDENTIFIER_PRIMARY: ("sku",),
            SemanticKey.DESCRIPTION: ("description",),
            SemanticKey.QUANTITY: ("qty",),
        }

        bands = derive_column_bands(header, groups, edge_margin=40)

        assert [band.semantic_key for band in bands] == [
            SemanticKey.IDENTIFIER_PRIMARY, SemanticKey.DESCRIPTION, SemanticKey.QUANTITY
        ]
        assert bands[0].min_x == pytest.approx(-20)
        assert bands[0].max_x == pytest.approx(90)
        assert bands[1].min_x == pytest.approx(90)
        assert bands[1].max_x == pytest.approx(280)
        assert bands[2].min_x == pytest.approx(280)
        assert bands[2].max_x == pytest.approx(440)

    def test_bands_do_not_overlap(self):
        header = self._header(tok("SKU", 20, 60), tok("Description", 160, 60), tok("QTY", 400, 60))
        groups = {
            SemanticKey.IDENTIFIER_PRIMARY: ("sku",),
            SemanticKey.DESCRIPTION: ("description",),
            SemanticKey.QUANTITY: ("qty",),
        }

        bands = derive_column_bands(header, groups)

        for left, right in zip(bands, bands[1:]):
            assert left.max_x == right.min_x
        assert band_for(90, bands).semantic_key == SemanticKey.DESCRIPTION

    def test_multi_word_phrase_center_is_mean_of_tokens(self):
        header = self._header(
            tok("Myntra", 50, 60), tok("SKU", 80, 60),
            tok("Seller", 200, 60), tok("SKU", 230, 60), tok("Code", 260, 60)
        )
        groups = {
            SemanticKey.IDENTIFIER_SECONDARY: ("myntra sku",),
            SemanticKey.IDENTIFIER_PRIMARY: ("seller sku code", "seller sku"),
        }

        bands = derive_column_bands(header, groups)

        centers = {band.semantic_key: band.center_x for band in bands}
        assert centers[SemanticKey.IDENTIFIER_SECONDARY] == pytest.approx(65)
        assert centers[SemanticKey.IDENTIFIER_PRIMARY] == pytest.approx(230)

    def test_longer_phrases_claim_tokens_first(self):
        header = self._header(
            tok("Seller", 50, 60), tok("SKU", 80, 60), tok("Code", 110, 60),
            tok("Style", 250, 60), tok("SKU", 280, 60)
        )
        groups = {
            SemanticKey.IDENTIFIER_SECONDARY: ("sku",),
            SemanticKey.IDENTIFIER_PRIMARY: ("seller sku code",),
        }

        bands = derive_column_bands(header, groups)

        centers = {band.semantic_key: band.center_x for band in bands}
        assert centers[SemanticKey.IDENTIFIER_PRIMARY] == pytest.approx(80)
        assert centers[SemanticKey.IDENTIFIER_SECONDARY] == pytest.approx(280)

    def test_header_punctuation_is_ignored(self):
        header = self._header(tok("SKU:", 20, 60), tok("Qty.", 200, 60))
        groups = {SemanticKey.IDENTIFIER_PRIMARY: ("sku",), SemanticKey.QUANTITY: ("qty",)}

        bands = derive_column_bands(header, groups)

        assert len(bands) == 2

    def test_no_keyword_match_gives_no_bands(self):
        header = self._header(tok("SKUs", 20, 60), tok("listed", 60, 60))

        assert derive_column_bands(header, {SemanticKey.IDENTIFIER_PRIMARY: ("sku",)}) == []


class TestBandFor:
    """Test band lookup."""

    def test_bands_are_half_open(self):
        bands = [
            ColumnBand(SemanticKey.IDENTIFIER_PRIMARY, 50, 0, 100),
            ColumnBand(SemanticKey.QUANTITY, 150, 100, 200),
        ]

        assert band_for(0, bands).semantic_key == SemanticKey.IDENTIFIER_PRIMARY
        assert band_for(100, bands).semantic_key == SemanticKey.QUANTITY
        assert band_for(200, bands) is None
        assert band_for(-1, bands) is None
