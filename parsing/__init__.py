"""
Document parsing module for the Marketplace Order Intake System.

This module turns marketplace shipment documents into order queue entries:
text layer extraction, line and column clustering, per-format row extraction,
quantity and identifier resolution, ingestion and pick list aggregation.
"""

from .document_parser import OrderDocumentParser
from .models import (
    Token, Page, Line, ColumnBand, QuantityResult, ParsedRow, PageDiagnostics,
    DocumentParseResult, DocumentFormat, SemanticKey, StructuralMiss
)
from .exceptions import (
    DocumentProcessingError,
    DocumentReadabilityError,
    TextExtractionError,
    UnknownDocumentFormatError
)
from .identifiers import IdentifierResolver, Resolved, Unresolved
from .ingestion import IngestionPipeline, IngestionResult, PickListAggregate, build_pick_list
from .integration import OrderIntakeIntegrator
from .profiles import get_profile, supported_platforms

__all__ = [
    'OrderDocumentParser',
    'Token',
    'Page',
    'Line',
    'ColumnBand',
    'QuantityResult',
    'ParsedRow',
    'PageDiagnostics',
    'DocumentParseResult',
    'DocumentFormat',
    'SemanticKey',
    'StructuralMiss',
    'DocumentProcessingError',
    'DocumentReadabilityError',
    'TextExtractionError',
    'UnknownDocumentFormatError',
    'IdentifierResolver',
    'Resolved',
    'Unresolved',
    'IngestionPipeline',
    'IngestionResult',
    'PickListAggregate',
    'build_pick_list',
    'OrderIntakeIntegrator',
    'get_profile',
    'supported_platforms'
]
