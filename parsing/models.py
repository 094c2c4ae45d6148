"""
Data models for positional text and extracted order lines.

This module defines the structures passed between the parsing stages: tokens and
pages from the text layer, lines and column bands from the clusterer, parsed rows
from the row extractors, and the per-page diagnostics returned alongside them.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any, Tuple


class SemanticKey(str, Enum):
    """Meaning of a column band."""
    IDENTIFIER_PRIMARY = 'identifier_primary'
    IDENTIFIER_SECONDARY = 'identifier_secondary'
    DESCRIPTION = 'description'
    QUANTITY = 'quantity'


class QuantitySource(str, Enum):
    EXPLICIT_LABEL = 'explicit_label'
    COLUMN = 'column'
    PROXIMITY = 'proximity'
    OCR = 'ocr'
    DEFAULT_GUESS = 'default_guess'


class QuantityConfidence(str, Enum):
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'


class RowSource(str, Enum):
    TEXT_LAYER = 'text_layer'
    OCR = 'ocr'


class DocumentFormat(str, Enum):
    """Discriminator selecting the row extraction strategy."""
    DELIMITED_TABLE = 'delimited_table'
    POSITIONAL_BAND = 'positional_band'
    ANCHOR_LINE = 'anchor_line'


class StructuralMiss(str, Enum):
    """Reasons a page produced no rows without failing."""
    NO_HEADER = 'no_header'
    NO_COLUMN_BANDS = 'no_column_bands'
    NO_IDENTIFIER_COLUMN = 'no_identifier_column'
    NO_TEXT_LAYER = 'no_text_layer'


@dataclass(frozen=True)
class Token:
    """
    A single positioned text fragment from a page's text layer.

    Coordinates are page units with y growing downward from the top edge.
    """
    text: str
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'x': self.x,
            'y': self.y,
            'width': self.width,
            'height': self.height
        }


@dataclass
class Page:
    """
    One page of a document as delivered by the text layer.

    Attributes:
        page_number: 1-indexed page number
        raw_text: Plain text of the page
        tokens: Positioned tokens in the order the text layer produced them
        ocr_text: Text recognised by the OCR collaborator, if it ran
        extraction_error: Set when the text layer failed on this page
    """
    page_number: int
    raw_text: str = ''
    tokens: List[Token] = field(default_factory=list)
    ocr_text: Optional[str] = None
    extraction_error: Optional[str] = None

    @property
    def has_text_layer(self) -> bool:
        return bool(self.tokens)


@dataclass(frozen=True)
class Line:
    """Tokens sharing a vertical band, ordered left to right."""
    tokens: Tuple[Token, ...]
    anchor_y: float

    @property
    def text(self) -> str:
        return ' '.join(token.text for token in self.tokens)

    def to_dict(self) -> Dict[str, Any]:
        return {'anchor_y': self.anchor_y, 'text': self.text}


@dataclass(frozen=True)
class ColumnBand:
    """
    Horizontal range of a page associated with one semantic column.

    Bands are half-open on the right so neighbouring bands never share an x.
    """
    semantic_key: SemanticKey
    center_x: float
    min_x: float
    max_x: float

    def contains(self, x: float) -> bool:
        return self.min_x <= x < self.max_x

    def to_dict(self) -> Dict[str, Any]:
        return {
            'semantic_key': self.semantic_key.value,
            'center_x': self.center_x,
            'min_x': self.min_x,
            'max_x': self.max_x
        }


@dataclass(frozen=True)
class QuantityResult:
    """A quantity together with where it came from and how far to trust it."""
    value: int
    source: QuantitySource
    confidence: QuantityConfidence

    def __post_init__(self):
        if not isinstance(self.value, int) or isinstance(self.value, bool) or self.value <= 0:
            raise ValueError(f"Quantity must be a positive integer, got {self.value!r}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'value': self.value,
            'source': self.source.value,
            'confidence': self.confidence.value
        }


@dataclass(frozen=True)
class ParsedRow:
    """
    One order line recovered from a document.

    Attributes:
        order_id: Marketplace order the line belongs to
        marketplace_identifier: Validated identifier exactly as printed
        description: Free-text description (may be empty)
        quantity: Quantity with provenance
        raw_line_text: Text of the source line(s) for review
        page_number: Page the row was found on
        source: Whether the row came from the text layer or OCR text
        secondary_identifier: Validated secondary identifier, if the format has one
    """
    order_id: str
    marketplace_identifier: str
    description: str
    quantity: QuantityResult
    raw_line_text: str
    page_number: int
    source: RowSource = RowSource.TEXT_LAYER
    secondary_identifier: Optional[str] = None

    @property
    def quantity_source(self) -> QuantitySource:
        return self.quantity.source

    @property
    def quantity_confidence(self) -> QuantityConfidence:
        return self.quantity.confidence

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id': self.order_id,
            'marketplace_identifier': self.marketplace_identifier,
            'secondary_identifier': self.secondary_identifier,
            'description': self.description,
            'quantity': self.quantity.value,
            'quantity_source': self.quantity.source.value,
            'quantity_confidence': self.quantity.confidence.value,
            'raw_line_text': self.raw_line_text,
            'page_number': self.page_number,
            'source': self.source.value
        }


@dataclass(frozen=True)
class HeaderInfo:
    """Header line detected on a page."""
    line_index: int
    text: str
    anchor_y: float

    def to_dict(self) -> Dict[str, Any]:
        return {'line_index': self.line_index, 'text': self.text, 'anchor_y': self.anchor_y}


@dataclass(frozen=True)
class CellRejection:
    """An assembled cell that failed its shape check and was treated as empty."""
    page_number: int
    semantic_key: SemanticKey
    value: str
    reason: str
    raw_line_text: str
    row_dropped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'page_number': self.page_number,
            'semantic_key': self.semantic_key.value,
            'value': self.value,
            'reason': self.reason,
            'raw_line_text': self.raw_line_text,
            'row_dropped': self.row_dropped
        }


@dataclass
class PageDiagnostics:
    """
    Everything the parser learned about one page.

    Returned as a value rather than attached to the page so that a page can be
    re-parsed and compared without side effects.
    """
    page_number: int
    raw_text: str = ''
    ocr_text: Optional[str] = None
    ocr_invoked: bool = False
    document_format: Optional[DocumentFormat] = None
    order_id: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    header: Optional[HeaderInfo] = None
    bands: List[ColumnBand] = field(default_factory=list)
    rows: List[ParsedRow] = field(default_factory=list)
    rejected_cells: List[CellRejection] = field(default_factory=list)
    structural_miss: Optional[StructuralMiss] = None
    stopped_at: Optional[str] = None
    page_error: Optional[str] = None
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            'page_number': self.page_number,
            'raw_text': self.raw_text,
            'ocr_text': self.ocr_text,
            'ocr_invoked': self.ocr_invoked,
            'document_format': self.document_format.value if self.document_format else None,
            'order_id': self.order_id,
            'metadata': dict(self.metadata),
            'header': self.header.to_dict() if self.header else None,
            'bands': [band.to_dict() for band in self.bands],
            'rows': [row.to_dict() for row in self.rows],
            'rejected_cells': [cell.to_dict() for cell in self.rejected_cells],
            'structural_miss': self.structural_miss.value if self.structural_miss else None,
            'stopped_at': self.stopped_at,
            'page_error': self.page_error,
            'cancelled': self.cancelled
        }


@dataclass
class DocumentParseResult:
    """
    Parse outcome for one document, pages in page-number order.

    Attributes:
        document_ref: Stable reference to the document content
        platform: Marketplace profile used
        pages: Diagnostics per page
        errors: Page and document level failures, as messages
    """
    document_ref: str
    platform: str
    pages: List[PageDiagnostics] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def rows(self) -> List[ParsedRow]:
        return [row for page in self.pages for row in page.rows]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def cancelled(self) -> bool:
        return any(page.cancelled for page in self.pages)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'document_ref': self.document_ref,
            'platform': self.platform,
            'page_count': self.page_count,
            'row_count': len(self.rows),
            'cancelled': self.cancelled,
            'errors': list(self.errors),
            'pages': [page.to_dict() for page in self.pages]
        }
