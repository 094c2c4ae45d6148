"""
Custom exceptions for order document parsing.

This module defines the exception classes raised while reading marketplace
documents. Layout problems (no header, no column bands) are not exceptions:
they are reported as structural misses on the page diagnostics.
"""

from typing import Optional, Dict, Any


class DocumentProcessingError(Exception):
    """Base exception for all document processing errors."""

    def __init__(self, message: str, document_ref: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.document_ref = document_ref
        self.details = details or {}

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.document_ref:
            base_msg = f"{base_msg} (document: {self.document_ref})"
        return base_msg


class DocumentReadabilityError(DocumentProcessingError):
    """Raised when a document cannot be opened or contains no pages."""

    def __init__(self, message: str, document_ref: Optional[str] = None,
                 original_error: Optional[Exception] = None):
        super().__init__(message, document_ref)
        self.original_error = original_error
        if original_error:
            self.details['original_error'] = str(original_error)
            self.details['error_type'] = type(original_error).__name__


class TextExtractionError(DocumentProcessingError):
    """Raised when the text layer of a page cannot be extracted."""

    def __init__(self, message: str, document_ref: Optional[str] = None,
                 page_number: Optional[int] = None):
        super().__init__(message, document_ref)
        self.page_number = page_number
        if page_number is not None:
            self.details['page_number'] = page_number


class UnknownDocumentFormatError(DocumentProcessingError):
    """Raised when no marketplace profile exists for a platform."""

    def __init__(self, platform: str):
        super().__init__(f"No document profile registered for platform '{platform}'")
        self.platform = platform
        self.details['platform'] = platform
