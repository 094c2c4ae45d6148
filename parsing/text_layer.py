"""
Text layer extraction.

The parser never decodes documents itself; it asks a TextLayerProvider for each
page's plain text and positioned tokens. PdfplumberTextLayer is the provider
used for PDF shipment documents.
"""

import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional, Union

import pdfplumber

from .exceptions import DocumentReadabilityError, TextExtractionError
from .models import Page, Token


DocumentSource = Union[str, Path, bytes]


class TextLayerProvider(ABC):
    """Collaborator returning raw text and positioned tokens per page."""

    @abstractmethod
    def page_count(self, source: DocumentSource) -> int:
        """Return the number of pages in the document."""

    @abstractmethod
    def extract_page(self, source: DocumentSource, page_index: int) -> Page:
        """Return one page, ``page_index`` being 0-based."""

    def extract_pages(self, source: DocumentSource) -> List[Page]:
        """Return every page of the document in order."""
        return [self.extract_page(source, index) for index in range(self.page_count(source))]


class PdfplumberTextLayer(TextLayerProvider):
    """
    Text layer backed by pdfplumber.

    Tokens are pdfplumber words: ``x`` is the word's left edge and ``y`` its top
    edge, both in PDF points from the top-left corner of the page.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, x_tolerance: float = 3,
                 y_tolerance: float = 3):
        """
        Initialize the text layer.

        Args:
            logger: Optional logger instance
            x_tolerance: pdfplumber horizontal tolerance for joining characters into words
            y_tolerance: pdfplumber vertical tolerance for joining characters into words
        """
        self.logger = logger or logging.getLogger(__name__)
        self.x_tolerance = x_tolerance
        self.y_tolerance = y_tolerance

    def _open(self, source: DocumentSource):
        if isinstance(source, bytes):
            return pdfplumber.open(io.BytesIO(source))
        return pdfplumber.open(source)

    def _validate_readability(self, source: DocumentSource) -> None:
        """
        Validate that the document exists and can be opened.

        Pages without a text layer are allowed; they are OCR candidates.

        Raises:
            DocumentReadabilityError: If the document cannot be read
        """
        if isinstance(source, bytes):
            ref = '<bytes>'
            if not source:
                raise DocumentReadabilityError("Document is empty", document_ref=ref)
        else:
            path = Path(source)
            ref = str(path)
            if not path.exists():
                raise DocumentReadabilityError(f"Document not found: {path}", document_ref=ref)
            if not path.is_file():
                raise DocumentReadabilityError(f"Path is not a file: {path}", document_ref=ref)

    def page_count(self, source: DocumentSource) -> int:
        self._validate_readability(source)
        try:
            with self._open(source) as pdf:
                count = len(pdf.pages)
        except Exception as e:
            raise DocumentReadabilityError(
                f"Error opening document: {e}", document_ref=self._ref(source), original_error=e
            )
        if count == 0:
            raise DocumentReadabilityError("Document contains no pages", document_ref=self._ref(source))
        return count

    def extract_page(self, source: DocumentSource, page_index: int) -> Page:
        """
        Extract a single page.

        Raises:
            DocumentReadabilityError: If the document cannot be opened
            TextExtractionError: If ``page_index`` is out of range
        """
        self._validate_readability(source)
        try:
            with self._open(source) as pdf:
                if not 0 <= page_index < len(pdf.pages):
                    raise TextExtractionError(
                        f"Page index {page_index} out of range",
                        document_ref=self._ref(source),
                        page_number=page_index + 1
                    )
                return self._read_page(pdf.pages[page_index], page_index + 1)
        except TextExtractionError:
            raise
        except Exception as e:
            raise DocumentReadabilityError(
                f"Error opening document: {e}", document_ref=self._ref(source), original_error=e
            )

    def extract_pages(self, source: DocumentSource) -> List[Page]:
        """
        Extract every page with a single open document handle.

        A page whose text layer fails is returned with ``extraction_error`` set
        instead of failing the document.

        Raises:
            DocumentReadabilityError: If the document cannot be opened or has no pages
        """
        self._validate_readability(source)
        try:
            with self._open(source) as pdf:
                if len(pdf.pages) == 0:
                    raise DocumentReadabilityError(
                        "Document contains no pages", document_ref=self._ref(source)
                    )
                self.logger.info(f"Document opened, found {len(pdf.pages)} pages")
                return [
                    self._read_page(page, page_number)
                    for page_number, page in enumerate(pdf.pages, 1)
                ]
        except DocumentReadabilityError:
            raise
        except Exception as e:
            raise DocumentReadabilityError(
                f"Error opening document: {e}", document_ref=self._ref(source), original_error=e
            )

    def _read_page(self, pdf_page, page_number: int) -> Page:
        try:
            words = pdf_page.extract_words(x_tolerance=self.x_tolerance, y_tolerance=self.y_tolerance)
            raw_text = pdf_page.extract_text() or ''
        except Exception as e:
            self.logger.error(f"Failed to extract text from page {page_number}: {e}")
            return Page(page_number=page_number, extraction_error=str(e))

        tokens = [
            Token(
                text=word['text'],
                x=float(word['x0']),
                y=float(word['top']),
                width=float(word['x1']) - float(word['x0']),
                height=float(word['bottom']) - float(word['top'])
            )
            for word in words
            if word.get('text', '').strip()
        ]
        self.logger.debug(f"Page {page_number}: {len(tokens)} tokens, {len(raw_text)} characters")
        return Page(page_number=page_number, raw_text=raw_text, tokens=tokens)

    @staticmethod
    def _ref(source: DocumentSource) -> str:
        return '<bytes>' if isinstance(source, bytes) else str(source)
