"""
Line and column clustering for positioned page text.

Tokens are grouped into visual lines by vertical proximity, a header line is
located by vocabulary, and named column bands are derived from the horizontal
positions of the header keywords.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from .models import ColumnBand, Line, SemanticKey, Token


logger = logging.getLogger(__name__)

DEFAULT_LINE_Y_TOLERANCE = 5.0

# Outermost bands extend this far past their header keyword. Tunable through
# the header_band_margin setting; the value is a heuristic, not derived.
DEFAULT_HEADER_BAND_MARGIN = 40.0

_EDGE_PUNCTUATION = re.compile(r'^[^a-z0-9]+|[^a-z0-9]+$')


def cluster_lines(tokens: Sequence[Token], y_tolerance: float = DEFAULT_LINE_Y_TOLERANCE) -> List[Line]:
    """
    Group tokens into visual lines.

    Greedy single pass in input order: each token joins the first existing line
    (in creation order) whose anchor y-center is within ``y_tolerance`` of the
    token's y-center, otherwise it starts a new line and becomes its anchor.
    This is first-fit, not nearest-fit, so the result depends on token order
    and is identical for identical input.

    Args:
        tokens: Tokens in the order the text layer produced them
        y_tolerance: Maximum distance from a line's anchor

    Returns:
        Lines ordered top to bottom, tokens within a line left to right
    """
    groups: List[Tuple[float, List[Token]]] = []

    for token in tokens:
        if not token.text.strip():
            continue
        center_y = token.center_y
        for anchor_y, members in groups:
            if abs(anchor_y - center_y) <= y_tolerance:
                members.append(token)
                break
        else:
            groups.append((center_y, [token]))

    # sorted() is stable, so equal anchors keep creation order
    ordered = sorted(groups, key=lambda group: group[0])
    return [
        Line(tokens=tuple(sorted(members, key=lambda t: t.x)), anchor_y=anchor_y)
        for anchor_y, members in ordered
    ]


def find_header_line(lines: Sequence[Line], vocabulary: Sequence[str],
                     search_limit: Optional[int] = None) -> Optional[int]:
    """
    Return the index of the first line containing a known header phrase.

    The search is top to bottom and stops at the first match.

    Args:
        lines: Lines ordered top to bottom
        vocabulary: Lowercase header phrases for the marketplace
        search_limit: Only consider this many lines from the top

    Returns:
        Index into ``lines`` or None when no header is present
    """
    candidates = lines if search_limit is None else lines[:search_limit]
    for index, line in enumerate(candidates):
        text = line.text.lower()
        if any(phrase in text for phrase in vocabulary):
            return index
    return None


def _normalize_word(text: str) -> str:
    return _EDGE_PUNCTUATION.sub('', text.lower())


def derive_column_bands(header_line: Line,
                        keyword_groups: Dict[SemanticKey, Sequence[str]],
                        edge_margin: float = DEFAULT_HEADER_BAND_MARGIN) -> List[ColumnBand]:
    """
    Derive non-overlapping column bands from a header line.

    Each semantic key's phrases are matched against consecutive header tokens.
    Longer phrases claim their tokens first so that "seller sku code" is not
    split up by a shorter "sku" phrase of another key. The band center is the
    mean x of the matched tokens. Boundaries between adjacent bands are the
    midpoints of their centers; the first band starts ``edge_margin`` before
    its center and the last ends ``edge_margin`` after its center.

    Args:
        header_line: Detected header line
        keyword_groups: Header phrases per semantic key
        edge_margin: Extension of the outermost bands

    Returns:
        Bands ordered left to right (empty when no keyword matched)
    """
    words = [_normalize_word(token.text) for token in header_line.tokens]

    phrases = [
        (key, phrase.lower().split())
        for key, group in keyword_groups.items()
        for phrase in group
    ]
    phrases.sort(key=lambda item: -len(item[1]))

    claimed = set()
    centers: Dict[SemanticKey, float] = {}

    for key, phrase_words in phrases:
        if key in centers or not phrase_words:
            continue
        width = len(phrase_words)
        for start in range(len(words) - width + 1):
            span = range(start, start + width)
            if any(index in claimed for index in span):
                continue
            if words[start:start + width] == phrase_words:
                claimed.update(span)
                matched = [header_line.tokens[index] for index in span]
                centers[key] = sum(token.x for token in matched) / len(matched)
                break

    ordered = sorted(centers.items(), key=lambda item: item[1])
    bands = []
    for index, (key, center) in enumerate(ordered):
        if index == 0:
            min_x = center - edge_margin
        else:
            min_x = (ordered[index - 1][1] + center) / 2
        if index == len(ordered) - 1:
            max_x = center + edge_margin
        else:
            max_x = (center + ordered[index + 1][1]) / 2
        bands.append(ColumnBand(semantic_key=key, center_x=center, min_x=min_x, max_x=max_x))

    logger.debug(f"Derived {len(bands)} column bands from header '{header_line.text}'")
    return bands


def band_for(x: float, bands: Sequence[ColumnBand]) -> Optional[ColumnBand]:
    """Return the band containing ``x``, if any."""
    for band in bands:
        if band.contains(x):
            return band
    return None
