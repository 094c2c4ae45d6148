"""
Row extraction strategies.

Each marketplace layout is handled by one of a closed set of strategies chosen
by the profile's DocumentFormat:

- DELIMITED_TABLE: lines carry explicit separators; cells are split at them and
  placed in the band holding their first token.
- POSITIONAL_BAND: no separators; rows are vertical bands around each
  identifier line and cells are whatever falls inside a row band and a
  column band, plus wrapped text just below the row.
- ANCHOR_LINE: rows start at a marketplace identifier pattern; works on the
  text layer and on OCR text.

All strategies share the same cell assembly, identifier validation, quantity
resolution and order id rules.
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .clustering import band_for
from .models import (
    CellRejection, ColumnBand, DocumentFormat, Line, ParsedRow, RowSource,
    SemanticKey, Token
)
from .profiles import CODE_CELL_NOISE, MarketplaceProfile
from .quantity import RowContext, resolve_quantity, text_window
from .settings import ParserSettings


logger = logging.getLogger(__name__)

_QUANTITY_LABEL_IN_TEXT = re.compile(r'\b(?:Qty|Quantity)\.?[:\s]*-?\d+\b', re.IGNORECASE)

# A positioned token remembers which line it came from for reading order
CellToken = Tuple[int, Token]


@dataclass(frozen=True)
class ExtractionContext:
    """Page-level facts every strategy needs."""
    profile: MarketplaceProfile
    page_number: int
    document_ref: str
    page_order_id: Optional[str] = None
    settings: ParserSettings = field(default_factory=ParserSettings)
    page_has_tokens: bool = True


@dataclass
class RowExtraction:
    """Rows found on a page plus the cells rejected along the way."""
    rows: List[ParsedRow] = field(default_factory=list)
    rejected_cells: List[CellRejection] = field(default_factory=list)
    stopped_at: Optional[str] = None


def assemble_code_cell(tokens: Sequence[Token]) -> str:
    """Join identifier tokens without separators and drop whitespace, pipes and commas."""
    return CODE_CELL_NOISE.sub('', ''.join(token.text for token in tokens))


def assemble_text_cell(tokens: Sequence[Token]) -> str:
    """Join free-text tokens with single spaces."""
    return ' '.join(' '.join(token.text for token in tokens).split())


def reading_order(cell_tokens: Sequence[CellToken]) -> List[Token]:
    """Sort tokens top to bottom by line, then left to right."""
    return [token for _, token in sorted(cell_tokens, key=lambda item: (item[0], item[1].x))]


def placeholder_order_id(platform: str, document_ref: str, page_number: int) -> str:
    """Deterministic order id for pages that print none."""
    return f"{platform.upper()}-{document_ref[:12]}-P{page_number}"


def _clean_description(text: str) -> str:
    return ' '.join(_QUANTITY_LABEL_IN_TEXT.sub('', text).replace('|', ' ').split())


def _check_identifier(cell_tokens: Sequence[CellToken], key: SemanticKey, raw_text: str,
                      context: ExtractionContext) -> Tuple[Optional[str], Optional[CellRejection]]:
    if not cell_tokens:
        return None, None
    value = assemble_code_cell(reading_order(cell_tokens))
    reason = context.profile.identifier_rejection(value)
    if reason is None:
        return value, None
    return None, CellRejection(
        page_number=context.page_number,
        semantic_key=key,
        value=value,
        reason=reason,
        raw_line_text=raw_text
    )


def _resolve_order_id(secondary: Optional[str], context: ExtractionContext) -> str:
    profile = context.profile
    if profile.order_id_prefix and secondary:
        return f"{profile.order_id_prefix}-{secondary}"
    if context.page_order_id:
        return context.page_order_id
    return placeholder_order_id(profile.platform, context.document_ref, context.page_number)


def _build_row(cells: Dict[SemanticKey, List[CellToken]], raw_text: str,
               context: ExtractionContext, result: RowExtraction) -> Optional[ParsedRow]:
    """
    Turn assembled cells into a ParsedRow.

    A rejected identifier cell is treated as empty. The secondary identifier
    only stands in for the primary one when the row has no primary cell at
    all, or when the profile allows the fallback. A row left without an
    identifier is dropped and its rejections are flagged accordingly.
    """
    primary, primary_rejection = _check_identifier(
        cells.get(SemanticKey.IDENTIFIER_PRIMARY, []), SemanticKey.IDENTIFIER_PRIMARY, raw_text, context
    )
    secondary, secondary_rejection = _check_identifier(
        cells.get(SemanticKey.IDENTIFIER_SECONDARY, []), SemanticKey.IDENTIFIER_SECONDARY, raw_text, context
    )
    identifier = primary
    if identifier is None and (
            SemanticKey.IDENTIFIER_PRIMARY not in cells or context.profile.secondary_identifier_fallback):
        identifier = secondary

    for rejection in (primary_rejection, secondary_rejection):
        if rejection is not None:
            result.rejected_cells.append(replace(rejection, row_dropped=identifier is None))
            logger.debug(
                f"Page {context.page_number}: rejected {rejection.semantic_key.value} "
                f"cell '{rejection.value}' ({rejection.reason})"
            )

    if identifier is None:
        logger.warning(f"Page {context.page_number}: dropped row without a usable identifier: {raw_text}")
        return None

    description_tokens = reading_order(cells.get(SemanticKey.DESCRIPTION, []))
    quantity_tokens = reading_order(cells.get(SemanticKey.QUANTITY, []))
    identifier_tokens = reading_order(
        cells.get(SemanticKey.IDENTIFIER_PRIMARY if primary else SemanticKey.IDENTIFIER_SECONDARY, [])
    )
    anchor = identifier_tokens[0].text if identifier_tokens else identifier

    quantity = resolve_quantity(RowContext(
        line_text=raw_text,
        quantity_cell_text=assemble_text_cell(quantity_tokens) if quantity_tokens else None,
        window_text=text_window(raw_text, anchor, context.settings.proximity_window_words),
        page_has_tokens=context.page_has_tokens
    ))

    return ParsedRow(
        order_id=_resolve_order_id(secondary, context),
        marketplace_identifier=identifier,
        secondary_identifier=secondary if primary else None,
        description=_clean_description(assemble_text_cell(description_tokens)),
        quantity=quantity,
        raw_line_text=raw_text,
        page_number=context.page_number,
        source=RowSource.TEXT_LAYER
    )


class _PendingRow:
    """Cells of a delimited row still collecting continuation lines."""

    def __init__(self, cells: Dict[SemanticKey, List[CellToken]], text: str):
        self.cells = cells
        self.texts = [text]

    def absorb(self, cells: Dict[SemanticKey, List[CellToken]], text: str) -> None:
        for key, tokens in cells.items():
            self.cells.setdefault(key, []).extend(tokens)
        self.texts.append(text)

    @property
    def raw_text(self) -> str:
        return ' '.join(self.texts)


def _is_separator(text: str) -> bool:
    stripped = text.strip()
    return bool(stripped) and set(stripped) <= {'|'}


def split_cells(tokens: Sequence[Token]) -> List[List[Token]]:
    """
    Split a line into cells at separator tokens.

    Lines without any separator degrade to one cell per token.
    """
    if not any(_is_separator(token.text) for token in tokens):
        return [[token] for token in tokens]

    cells: List[List[Token]] = []
    current: List[Token] = []
    for token in tokens:
        if _is_separator(token.text):
            if current:
                cells.append(current)
                current = []
            continue
        current.append(token)
    if current:
        cells.append(current)
    return cells


def _has_band(bands: Sequence[ColumnBand], key: SemanticKey) -> bool:
    return any(band.semantic_key == key for band in bands)


def _extract_delimited(lines: Sequence[Line], bands: Sequence[ColumnBand],
                       context: ExtractionContext) -> RowExtraction:
    profile = context.profile
    result = RowExtraction()
    has_primary = _has_band(bands, SemanticKey.IDENTIFIER_PRIMARY)
    pending: Optional[_PendingRow] = None

    for line_index, line in enumerate(lines):
        text = line.text
        if profile.is_stop_line(text):
            result.stopped_at = text
            break
        if profile.is_skip_line(text):
            continue

        cells: Dict[SemanticKey, List[CellToken]] = {}
        for cell in split_cells(line.tokens):
            band = band_for(cell[0].x, bands)
            if band is not None:
                cells.setdefault(band.semantic_key, []).extend((line_index, token) for token in cell)

        if has_primary and SemanticKey.IDENTIFIER_PRIMARY not in cells:
            # Continuation of the previous row, never a row of its own
            if pending is not None:
                pending.absorb(cells, text)
            continue

        if pending is not None:
            row = _build_row(pending.cells, pending.raw_text, context, result)
            if row:
                result.rows.append(row)
        pending = _PendingRow(cells, text)

    if pending is not None:
        row = _build_row(pending.cells, pending.raw_text, context, result)
        if row:
            result.rows.append(row)

    return result


def _line_in_band(line: Line, band: ColumnBand) -> bool:
    return any(band.contains(token.x) for token in line.tokens)


def _extract_positional(lines: Sequence[Line], bands: Sequence[ColumnBand],
                        context: ExtractionContext) -> RowExtraction:
    """
    Band rows around identifier lines and collect each cell by geometry.

    A line holding only a primary-identifier fragment (no secondary identifier
    or quantity while the layout has those columns) may be the wrapped tail of
    the row above. Its tokens are open to that row's wrap reach, and it only
    becomes a row of its own if nothing above claimed its identifier tokens.
    """
    profile = context.profile
    settings = context.settings
    result = RowExtraction()

    usable: List[Line] = []
    for line in lines:
        if profile.is_stop_line(line.text):
            result.stopped_at = line.text
            break
        if not profile.is_skip_line(line.text):
            usable.append(line)
    if not usable:
        return result

    primary_band = next((b for b in bands if b.semantic_key == SemanticKey.IDENTIFIER_PRIMARY), None)
    anchoring_bands = [
        b for b in bands
        if b.semantic_key in (SemanticKey.IDENTIFIER_SECONDARY, SemanticKey.QUANTITY)
    ]
    if primary_band is None:
        row_starts = list(range(len(usable)))
    else:
        row_starts = [index for index, line in enumerate(usable) if _line_in_band(line, primary_band)]
    firm_starts = {
        index for index in row_starts
        if primary_band is None or not anchoring_bands
        or any(_line_in_band(usable[index], band) for band in anchoring_bands)
    }

    centers = [line.anchor_y for line in usable]
    epsilon = settings.row_band_epsilon
    last = len(usable) - 1
    claimed = set()

    for i in row_starts:
        if i not in firm_starts:
            fragment = [
                (i, k) for k, token in enumerate(usable[i].tokens) if primary_band.contains(token.x)
            ]
            if all(key in claimed for key in fragment):
                # Wrapped identifier of the row above
                continue

        top = (centers[i - 1] + centers[i]) / 2 if i > 0 else centers[i] - settings.row_edge_extension
        bottom = (centers[i] + centers[i + 1]) / 2 if i < last else centers[i] + settings.row_edge_extension

        cells: Dict[SemanticKey, List[CellToken]] = {}
        contributing = {i}

        for band in bands:
            in_band = []
            wrapped = []
            reach = bottom
            for j, line in enumerate(usable):
                for k, token in enumerate(line.tokens):
                    if (j, k) in claimed or not band.contains(token.x):
                        continue
                    if top - epsilon <= token.center_y <= bottom + epsilon:
                        in_band.append((j, k, token))
                        reach = max(reach, token.center_y)

            for j, line in enumerate(usable):
                # Lines that firmly start their own row never wrap into this one
                if j in firm_starts and j != i:
                    continue
                for k, token in enumerate(line.tokens):
                    if (j, k) in claimed or not band.contains(token.x):
                        continue
                    if bottom + epsilon < token.center_y <= reach + settings.wrap_tolerance:
                        wrapped.append((j, k, token))

            members = in_band + wrapped
            if members:
                claimed.update((j, k) for j, k, _ in members)
                contributing.update(j for j, _, _ in members)
                cells[band.semantic_key] = [(j, token) for j, _, token in members]

        raw_text = ' '.join(usable[j].text for j in sorted(contributing))
        row = _build_row(cells, raw_text, context, result)
        if row:
            result.rows.append(row)

    return result


@dataclass(frozen=True)
class _AnchorLine:
    text: str
    quantity_cell_text: Optional[str] = None


def _anchor_rows(entries: Sequence[_AnchorLine], context: ExtractionContext,
                 source: RowSource) -> RowExtraction:
    profile = context.profile
    result = RowExtraction()
    groups: List[List[_AnchorLine]] = []

    for entry in entries:
        if profile.is_stop_line(entry.text):
            result.stopped_at = entry.text
            break
        if profile.is_skip_line(entry.text):
            continue
        if profile.anchor_pattern.search(entry.text):
            groups.append([entry])
        elif groups:
            groups[-1].append(entry)

    for group in groups:
        row_text = ' '.join(' '.join(entry.text for entry in group).split())
        anchor = profile.anchor_pattern.search(row_text)
        anchor_value = anchor.group(0)

        identifier = anchor_value
        secondary = None
        removed = [anchor_value]
        if profile.anchor_identifier_pattern is not None:
            start = max(0, anchor.start() - 100)
            nearby = profile.anchor_identifier_pattern.search(row_text[start:anchor.end() + 100])
            if nearby:
                candidate = nearby.group(1)
                removed.append(nearby.group(0))
                reason = profile.identifier_rejection(candidate)
                if reason is None:
                    identifier, secondary = candidate, anchor_value
                else:
                    result.rejected_cells.append(CellRejection(
                        page_number=context.page_number,
                        semantic_key=SemanticKey.IDENTIFIER_PRIMARY,
                        value=candidate,
                        reason=reason,
                        raw_line_text=row_text
                    ))

        quantity_cells = [entry.quantity_cell_text for entry in group if entry.quantity_cell_text]
        if source == RowSource.OCR:
            row_context = RowContext(ocr_text=row_text, page_has_tokens=context.page_has_tokens)
        else:
            row_context = RowContext(
                line_text=row_text,
                quantity_cell_text=' '.join(quantity_cells) if quantity_cells else None,
                window_text=text_window(row_text, anchor_value, context.settings.proximity_window_words),
                page_has_tokens=context.page_has_tokens
            )

        description = row_text
        for fragment in removed:
            description = description.replace(fragment, ' ')

        result.rows.append(ParsedRow(
            order_id=_resolve_order_id(None, context),
            marketplace_identifier=identifier,
            secondary_identifier=secondary,
            description=_clean_description(description),
            quantity=resolve_quantity(row_context),
            raw_line_text=row_text,
            page_number=context.page_number,
            source=source
        ))

    return result


def _extract_anchor_lines(lines: Sequence[Line], bands: Sequence[ColumnBand],
                          context: ExtractionContext) -> RowExtraction:
    quantity_band = next((b for b in bands if b.semantic_key == SemanticKey.QUANTITY), None)
    entries = []
    for line in lines:
        quantity_text = None
        if quantity_band is not None:
            quantity_text = assemble_text_cell(
                [token for token in line.tokens if quantity_band.contains(token.x)]
            ) or None
        entries.append(_AnchorLine(text=line.text, quantity_cell_text=quantity_text))
    return _anchor_rows(entries, context, RowSource.TEXT_LAYER)


_STRATEGIES: Dict[DocumentFormat, Callable[[Sequence[Line], Sequence[ColumnBand], ExtractionContext], RowExtraction]] = {
    DocumentFormat.DELIMITED_TABLE: _extract_delimited,
    DocumentFormat.POSITIONAL_BAND: _extract_positional,
    DocumentFormat.ANCHOR_LINE: _extract_anchor_lines,
}


def extract_rows(lines: Sequence[Line], bands: Sequence[ColumnBand],
                 context: ExtractionContext) -> RowExtraction:
    """
    Extract order rows from the lines below a page's header.

    Args:
        lines: Lines after the header, top to bottom
        bands: Column bands derived from the header
        context: Page facts and the marketplace profile

    Returns:
        RowExtraction with rows in reading order
    """
    strategy = _STRATEGIES[context.profile.document_format]
    return strategy(lines, bands, context)


def extract_rows_from_text(text: str, context: ExtractionContext) -> RowExtraction:
    """
    Extract rows from plain OCR text.

    Only anchor-line layouts can be recovered without token positions.

    Raises:
        ValueError: If the profile's layout needs token geometry
    """
    if context.profile.document_format != DocumentFormat.ANCHOR_LINE:
        raise ValueError(
            f"{context.profile.document_format.value} layouts cannot be parsed from plain text"
        )
    entries = [_AnchorLine(text=line) for line in text.splitlines() if line.strip()]
    return _anchor_rows(entries, context, RowSource.OCR)
