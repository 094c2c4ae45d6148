"""
Quantity resolution with provenance.

Quantities are resolved through a fixed fallback chain. Each step either
produces a positive integer or hands over to the next one; the result always
records which step answered and how much the answer can be trusted.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import QuantityConfidence, QuantityResult, QuantitySource


LABEL_PATTERNS = (
    re.compile(r'\bQty\.?[:\s]*(-?\d+)\b', re.IGNORECASE),
    re.compile(r'\bQuantity[:\s]*(-?\d+)\b', re.IGNORECASE),
)

_FIRST_INTEGER = re.compile(r'-?\d+')
_SMALL_INTEGER = re.compile(r'^\d{1,2}$')

PROXIMITY_MIN = 1
PROXIMITY_MAX = 99


@dataclass(frozen=True)
class RowContext:
    """
    Text surrounding one row, as seen by the quantity resolver.

    Attributes:
        line_text: The row's own text
        quantity_cell_text: Assembled text of the quantity column, if the layout has one
        window_text: Bounded text around the row's identifier
        ocr_text: OCR text for the row, when the row came from OCR
        page_has_tokens: Whether the text layer produced tokens for the page
    """
    line_text: str = ''
    quantity_cell_text: Optional[str] = None
    window_text: str = ''
    ocr_text: Optional[str] = None
    page_has_tokens: bool = True


def _positive(values: Iterable[int]) -> Optional[int]:
    for value in values:
        if value > 0:
            return value
    return None


def _from_label(text: str) -> Optional[int]:
    for pattern in LABEL_PATTERNS:
        value = _positive(int(match.group(1)) for match in pattern.finditer(text))
        if value is not None:
            return value
    return None


def _from_column(cell_text: str) -> Optional[int]:
    match = _FIRST_INTEGER.search(cell_text)
    if not match:
        return None
    value = int(match.group(0))
    return value if value > 0 else None


def _from_proximity(text: str) -> Optional[int]:
    # Last small standalone integer wins
    for word in reversed(text.split()):
        if _SMALL_INTEGER.match(word):
            value = int(word)
            if PROXIMITY_MIN <= value <= PROXIMITY_MAX:
                return value
    return None


def resolve_quantity(context: RowContext) -> QuantityResult:
    """
    Resolve a row's quantity.

    Steps, first success wins:
        1. explicit "Qty"/"Quantity" label in the row text (high)
        2. first integer in the quantity column cell (high)
        3. last integer 1-99 in the text window around the row (medium)
        4. OCR text, only for pages without a text layer (low)
        5. a default of 1 (low)

    Zero and negative values are never accepted; the chain moves on instead.

    Args:
        context: Text around the row

    Returns:
        QuantityResult with a positive value
    """
    value = _from_label(context.line_text) if context.line_text else None
    if value is not None:
        return QuantityResult(value, QuantitySource.EXPLICIT_LABEL, QuantityConfidence.HIGH)

    if context.quantity_cell_text:
        value = _from_column(context.quantity_cell_text)
        if value is not None:
            return QuantityResult(value, QuantitySource.COLUMN, QuantityConfidence.HIGH)

    if context.window_text:
        value = _from_proximity(context.window_text)
        if value is not None:
            return QuantityResult(value, QuantitySource.PROXIMITY, QuantityConfidence.MEDIUM)

    if context.ocr_text and not context.page_has_tokens:
        value = _from_label(context.ocr_text)
        if value is None:
            value = _from_proximity(context.ocr_text)
        if value is not None:
            return QuantityResult(value, QuantitySource.OCR, QuantityConfidence.LOW)

    return QuantityResult(1, QuantitySource.DEFAULT_GUESS, QuantityConfidence.LOW)


def text_window(text: str, anchor: Optional[str], radius: int) -> str:
    """
    Return up to ``radius`` words on each side of the first word containing ``anchor``.

    Without an anchor, or when it does not occur, the first ``2 * radius + 1``
    words are returned so the window stays bounded.
    """
    words = text.split()
    if not words:
        return ''

    position = None
    if anchor:
        for index, word in enumerate(words):
            if anchor in word:
                position = index
                break

    if position is None:
        return ' '.join(words[:2 * radius + 1])

    start = max(0, position - radius)
    return ' '.join(words[start:position + radius + 1])
