"""
OCR collaborator interface.

No OCR engine ships with the system. Callers that have one wrap it in an
OCRProvider; the parser only consults it for pages whose text layer carries no
usable signal.
"""

import re
from abc import ABC, abstractmethod

from .models import Page
from .profiles import MarketplaceProfile


_QUANTITY_MENTION = re.compile(r'\b(?:qty|quantity)\b', re.IGNORECASE)


class OCRProvider(ABC):
    """Recognises the text of a page that has no usable text layer."""

    @abstractmethod
    def recognize(self, page: Page) -> str:
        """Return the plain text of ``page``."""


def needs_ocr(page: Page, profile: MarketplaceProfile) -> bool:
    """
    Decide whether a page should be sent to OCR.

    True when the page has no tokens at all, or when its text carries no
    header phrase, no identifier-shaped token and no quantity mention for the
    profile.
    """
    if not page.has_text_layer:
        return True

    text = ' '.join(token.text for token in page.tokens)
    lowered = text.lower()
    if any(phrase in lowered for phrase in profile.header_vocabulary):
        return False
    if profile.anchor_pattern is not None and profile.anchor_pattern.search(text):
        return False
    if any(profile.identifier_rejection(token.text) is None for token in page.tokens):
        return False
    if _QUANTITY_MENTION.search(text):
        return False
    return True
