"""
Integration utilities connecting document parsing with the order queue.

OrderIntakeIntegrator runs the full intake of a document: parse, resolve
identifiers, ingest into the order queue and optionally write diagnostics.
"""

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from database.database import DatabaseManager
from .diagnostics import export_diagnostics
from .document_parser import OrderDocumentParser
from .identifiers import IdentifierResolver
from .ingestion import IngestionPipeline, IngestionResult
from .models import DocumentParseResult
from .ocr import OCRProvider
from .profiles import get_profile
from .settings import ParserSettings, load_parser_settings
from .text_layer import TextLayerProvider


@dataclass
class FileIntakeResult:
    """Outcome of taking in one document."""
    file_ref: str
    parse_result: Optional[DocumentParseResult] = None
    ingestion: Optional[IngestionResult] = None
    diagnostics_path: Optional[Path] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'file_ref': self.file_ref,
            'error': self.error,
            'diagnostics_path': str(self.diagnostics_path) if self.diagnostics_path else None
        }
        if self.parse_result is not None:
            data['pages'] = self.parse_result.page_count
            data['rows'] = len(self.parse_result.rows)
            data['page_errors'] = list(self.parse_result.errors)
        if self.ingestion is not None:
            data.update(self.ingestion.to_dict())
        return data


@dataclass
class BatchIntakeResult:
    files: List[FileIntakeResult] = field(default_factory=list)

    @property
    def failed_files(self) -> List[FileIntakeResult]:
        return [f for f in self.files if not f.succeeded]

    def totals(self) -> Dict[str, int]:
        totals = {
            'files': len(self.files),
            'failed_files': len(self.failed_files),
            'rows': 0,
            'inserted': 0,
            'duplicates_skipped': 0,
            'unresolved_count': 0,
            'page_errors': 0
        }
        for item in self.files:
            if item.parse_result is not None:
                totals['rows'] += len(item.parse_result.rows)
                totals['page_errors'] += len(item.parse_result.errors)
            if item.ingestion is not None:
                totals['inserted'] += item.ingestion.inserted
                totals['duplicates_skipped'] += item.ingestion.duplicates_skipped
                totals['unresolved_count'] += item.ingestion.unresolved_count
        return totals


class OrderIntakeIntegrator:
    """
    Takes marketplace documents into the order queue.

    Files in a batch are handled one after another; each file's pages are
    parsed concurrently by the document parser. A failing file is recorded and
    the batch continues.
    """

    def __init__(self, db_manager: DatabaseManager, platform: str,
                 settings: Optional[ParserSettings] = None,
                 text_layer: Optional[TextLayerProvider] = None,
                 ocr_provider: Optional[OCRProvider] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize the integrator.

        Args:
            db_manager: Database manager for catalog and order queue
            platform: Marketplace the documents come from
            settings: Parser settings, loaded from configuration when omitted
            text_layer: Text layer collaborator
            ocr_provider: Optional OCR collaborator
            logger: Optional logger instance

        Raises:
            UnknownDocumentFormatError: If the platform has no profile
        """
        self.logger = logger or logging.getLogger(__name__)
        self.db_manager = db_manager
        self.profile = get_profile(platform)
        self.settings = settings or load_parser_settings(db_manager)
        self.parser = OrderDocumentParser(
            self.profile, self.settings, text_layer=text_layer,
            ocr_provider=ocr_provider, logger=self.logger
        )
        self.resolver = IdentifierResolver(db_manager, logger=self.logger)
        self.pipeline = IngestionPipeline(db_manager, logger=self.logger)

    def ingest_parse_result(self, parse_result: DocumentParseResult, file_ref: str) -> IngestionResult:
        """Resolve and ingest the rows of an already parsed document."""
        rows = parse_result.rows
        resolutions = self.resolver.resolve_rows(rows, self.profile.platform)
        return self.pipeline.ingest(
            rows, resolutions, file_ref, self.profile.platform,
            display_identifier_fallback=self.profile.display_identifier_fallback
        )

    def process_file(self, path: Union[str, Path], debug_dir: Optional[Union[str, Path]] = None,
                     cancel_event: Optional[threading.Event] = None) -> FileIntakeResult:
        """
        Parse, resolve and ingest one document.

        Errors are captured on the result rather than raised.

        Args:
            path: Document to take in
            debug_dir: Directory for the diagnostics JSON, if wanted
            cancel_event: Optional event cancelling remaining pages

        Returns:
            FileIntakeResult for the document
        """
        path = Path(path)
        result = FileIntakeResult(file_ref=path.name)
        self.logger.info(f"Processing {path}")

        try:
            result.parse_result = self.parser.parse_file(path, cancel_event)
            if debug_dir is not None:
                result.diagnostics_path = export_diagnostics(
                    result.parse_result, Path(debug_dir) / f"{path.stem}_diagnostics.json"
                )
            result.ingestion = self.ingest_parse_result(result.parse_result, result.file_ref)
        except Exception as e:
            self.logger.error(f"Failed to process {path}: {e}")
            result.error = str(e)

        return result

    def process_batch(self, paths: Sequence[Union[str, Path]],
                      debug_dir: Optional[Union[str, Path]] = None,
                      cancel_event: Optional[threading.Event] = None) -> BatchIntakeResult:
        """Take in several documents; failures do not stop the batch."""
        batch = BatchIntakeResult()
        for path in paths:
            if cancel_event is not None and cancel_event.is_set():
                self.logger.info("Batch cancelled")
                break
            batch.files.append(self.process_file(path, debug_dir, cancel_event))

        totals = batch.totals()
        self.logger.info(
            f"Batch complete: {totals['files']} files, {totals['failed_files']} failed, "
            f"{totals['inserted']} inserted, {totals['duplicates_skipped']} duplicates skipped"
        )
        if batch.failed_files:
            self.logger.warning("Failed files:")
            for item in batch.failed_files:
                self.logger.warning(f"  {item.file_ref}: {item.error}")
        return batch
