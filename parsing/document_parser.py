"""
Document parsing: from pages of positioned text to parsed order rows.

OrderDocumentParser runs the per-page pipeline (OCR check, line clustering,
header and column band detection, row extraction) and fans pages out over a
thread pool. Every page yields a PageDiagnostics value; layout problems and
page failures are recorded there instead of aborting the document.
"""

import hashlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .clustering import cluster_lines, derive_column_bands, find_header_line
from .exceptions import TextExtractionError
from .models import (
    DocumentFormat, DocumentParseResult, HeaderInfo, Page, PageDiagnostics, SemanticKey,
    StructuralMiss
)
from .ocr import OCRProvider, needs_ocr
from .profiles import MarketplaceProfile
from .settings import ParserSettings
from .strategies import ExtractionContext, extract_rows, extract_rows_from_text
from .text_layer import PdfplumberTextLayer, TextLayerProvider


_IDENTIFIER_KEYS = (SemanticKey.IDENTIFIER_PRIMARY, SemanticKey.IDENTIFIER_SECONDARY)


def document_ref_for(data: bytes) -> str:
    """Stable reference to document content."""
    return hashlib.sha1(data).hexdigest()


class OrderDocumentParser:
    """
    Parses marketplace shipment documents into order rows.

    The parser holds no per-document state, so one instance can parse several
    documents, and pages of one document are parsed concurrently.
    """

    def __init__(self, profile: MarketplaceProfile, settings: Optional[ParserSettings] = None,
                 text_layer: Optional[TextLayerProvider] = None,
                 ocr_provider: Optional[OCRProvider] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the parser.

        Args:
            profile: Marketplace profile describing the document layout
            settings: Parser tolerances and worker sizing
            text_layer: Text layer collaborator, pdfplumber by default
            ocr_provider: Optional OCR collaborator for pages without usable text
            logger: Optional logger instance
        """
        self.profile = profile
        self.settings = settings or ParserSettings()
        self.logger = logger or logging.getLogger(__name__)
        self.text_layer = text_layer or PdfplumberTextLayer(logger=self.logger)
        self.ocr_provider = ocr_provider

    def parse_file(self, path: Union[str, Path],
                   cancel_event: Optional[threading.Event] = None) -> DocumentParseResult:
        """
        Parse a document from disk.

        Raises:
            DocumentReadabilityError: If the document cannot be opened
        """
        path = Path(path)
        pages = self.text_layer.extract_pages(path)
        document_ref = document_ref_for(path.read_bytes())
        self.logger.info(f"Parsing {path.name} ({len(pages)} pages) as {self.profile.platform}")
        return self.parse_pages(pages, document_ref, cancel_event)

    def parse_bytes(self, data: bytes,
                    cancel_event: Optional[threading.Event] = None) -> DocumentParseResult:
        """Parse a document held in memory."""
        pages = self.text_layer.extract_pages(data)
        return self.parse_pages(pages, document_ref_for(data), cancel_event)

    def parse_pages(self, pages: Sequence[Page], document_ref: str,
                    cancel_event: Optional[threading.Event] = None) -> DocumentParseResult:
        """
        Parse already extracted pages.

        Pages are processed on a bounded thread pool and reassembled in page
        number order. When ``cancel_event`` is set, pages that have not started
        are reported as cancelled.

        Args:
            pages: Pages from the text layer
            document_ref: Reference used for diagnostics and placeholder order ids
            cancel_event: Optional event checked before each page

        Returns:
            DocumentParseResult with one PageDiagnostics per page
        """
        result = DocumentParseResult(document_ref=document_ref, platform=self.profile.platform)
        if not pages:
            return result

        workers = max(1, min(self.settings.worker_count, len(pages)))
        diagnostics: List[PageDiagnostics] = []

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(self._parse_page_guarded, page, document_ref, cancel_event)
                for page in pages
            ]
            for future in as_completed(futures):
                diagnostics.append(future.result())

        result.pages = sorted(diagnostics, key=lambda diag: diag.page_number)
        result.errors = [
            f"Page {diag.page_number}: {diag.page_error}" for diag in result.pages if diag.page_error
        ]

        self.logger.info(
            f"Parsed document {document_ref[:12]}: {len(result.rows)} rows from "
            f"{result.page_count} pages, {len(result.errors)} page errors"
        )
        return result

    def _parse_page_guarded(self, page: Page, document_ref: str,
                            cancel_event: Optional[threading.Event]) -> PageDiagnostics:
        if cancel_event is not None and cancel_event.is_set():
            self.logger.info(f"Page {page.page_number} skipped: parse cancelled")
            return PageDiagnostics(
                page_number=page.page_number,
                raw_text=page.raw_text,
                document_format=self.profile.document_format,
                cancelled=True
            )

        try:
            return self.parse_page(page, document_ref)
        except Exception as e:
            self.logger.error(f"Page {page.page_number} failed: {e}")
            return PageDiagnostics(
                page_number=page.page_number,
                raw_text=page.raw_text,
                document_format=self.profile.document_format,
                page_error=str(e)
            )

    def parse_page(self, page: Page, document_ref: str) -> PageDiagnostics:
        """
        Parse one page.

        Args:
            page: Page from the text layer
            document_ref: Reference of the document the page belongs to

        Returns:
            PageDiagnostics holding the rows and everything learned on the way

        Raises:
            TextExtractionError: If the text layer failed on this page
        """
        profile = self.profile
        settings = self.settings

        if page.extraction_error:
            raise TextExtractionError(
                f"Text layer failed: {page.extraction_error}",
                document_ref=document_ref,
                page_number=page.page_number
            )

        diag = PageDiagnostics(
            page_number=page.page_number,
            raw_text=page.raw_text,
            document_format=profile.document_format
        )

        ocr_text = page.ocr_text
        if ocr_text is None and self.ocr_provider is not None and needs_ocr(page, profile):
            self.logger.info(f"Page {page.page_number}: no usable text layer, running OCR")
            ocr_text = self.ocr_provider.recognize(page)
            diag.ocr_invoked = True
        diag.ocr_text = ocr_text

        if not page.has_text_layer:
            return self._parse_ocr_text(diag, ocr_text, document_ref)

        lines = cluster_lines(page.tokens, settings.line_y_tolerance)
        page_text = page.raw_text or '\n'.join(line.text for line in lines)
        diag.order_id = profile.find_order_id(page_text)
        diag.metadata = profile.extract_metadata(page_text)

        header_index = find_header_line(lines, profile.header_vocabulary, profile.header_search_limit)
        bands = []
        if header_index is not None:
            header_line = lines[header_index]
            diag.header = HeaderInfo(header_index, header_line.text, header_line.anchor_y)
            bands = derive_column_bands(header_line, profile.keyword_groups, settings.header_band_margin)
            diag.bands = bands

        if profile.has_header_table:
            if header_index is None:
                return self._structural_miss(diag, StructuralMiss.NO_HEADER)
            if not bands:
                return self._structural_miss(diag, StructuralMiss.NO_COLUMN_BANDS)
            if not any(band.semantic_key in _IDENTIFIER_KEYS for band in bands):
                return self._structural_miss(diag, StructuralMiss.NO_IDENTIFIER_COLUMN)
            body = lines[header_index + 1:]
        else:
            body = lines

        context = ExtractionContext(
            profile=profile,
            page_number=page.page_number,
            document_ref=document_ref,
            page_order_id=diag.order_id,
            settings=settings,
            page_has_tokens=True
        )
        extraction = extract_rows(body, bands, context)
        diag.rows = extraction.rows
        diag.rejected_cells = extraction.rejected_cells
        diag.stopped_at = extraction.stopped_at

        self.logger.debug(
            f"Page {page.page_number}: {len(lines)} lines, {len(bands)} bands, "
            f"{len(diag.rows)} rows, {len(diag.rejected_cells)} rejected cells"
        )
        return diag

    def _parse_ocr_text(self, diag: PageDiagnostics, ocr_text: Optional[str],
                        document_ref: str) -> PageDiagnostics:
        if not ocr_text or self.profile.document_format != DocumentFormat.ANCHOR_LINE:
            return self._structural_miss(diag, StructuralMiss.NO_TEXT_LAYER)

        diag.order_id = self.profile.find_order_id(ocr_text)
        diag.metadata = self.profile.extract_metadata(ocr_text)
        context = ExtractionContext(
            profile=self.profile,
            page_number=diag.page_number,
            document_ref=document_ref,
            page_order_id=diag.order_id,
            settings=self.settings,
            page_has_tokens=False
        )
        extraction = extract_rows_from_text(ocr_text, context)
        diag.rows = extraction.rows
        diag.rejected_cells = extraction.rejected_cells
        diag.stopped_at = extraction.stopped_at
        self.logger.info(f"Page {diag.page_number}: {len(diag.rows)} rows recovered from OCR text")
        return diag

    def _structural_miss(self, diag: PageDiagnostics, reason: StructuralMiss) -> PageDiagnostics:
        diag.structural_miss = reason
        self.logger.warning(f"Page {diag.page_number}: no rows ({reason.value})")
        return diag
