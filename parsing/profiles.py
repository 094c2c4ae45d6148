"""
Marketplace document profiles.

A profile declares everything that differs between marketplaces: which row
extraction strategy applies, the header vocabulary, identifier shape rules,
where the order id comes from, and which lines end or are excluded from the
item table. Adding a marketplace means adding a profile, not a code path.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Sequence, Tuple

from .exceptions import UnknownDocumentFormatError
from .models import DocumentFormat, SemanticKey


STRICT_IDENTIFIER_PATTERN = re.compile(r'^[A-Z0-9\-]{6,}$')

# Characters stripped from code cells after joining
CODE_CELL_NOISE = re.compile(r'[\s|,]+')


@dataclass(frozen=True)
class MarketplaceProfile:
    """
    Parsing rules for one marketplace's shipment documents.

    Attributes:
        platform: Marketplace name used throughout the order queue
        document_format: Row extraction strategy
        header_vocabulary: Lowercase phrases identifying the header line
        keyword_groups: Header phrases per semantic column
        header_search_limit: Only this many lines from the top may hold the header
        identifier_pattern: Shape an identifier cell must match exactly
        identifier_requires_digit: Reject identifiers with no digit
        identifier_blacklist: Prefixes of codes that look like identifiers but are not
        stop_patterns: A matching line ends the item table on that page
        skip_patterns: Matching lines are ignored
        order_id_patterns: Page-level order id patterns, first group is the id
        order_id_prefix: When set, each row's order id is the prefix joined to
            its secondary identifier
        anchor_pattern: Identifier anchoring a row for anchor-line documents
        anchor_identifier_pattern: Seller identifier printed near the anchor
        metadata_patterns: Page-level fields kept in diagnostics
        display_identifier_fallback: Show the marketplace identifier in place of an
            unresolved canonical SKU
        secondary_identifier_fallback: Use the secondary identifier as the row's
            marketplace identifier when the primary cell is rejected.
    """
    platform: str
    document_format: DocumentFormat
    header_vocabulary: Tuple[str, ...]
    keyword_groups: Dict[SemanticKey, Tuple[str, ...]] = field(default_factory=dict)
    header_search_limit: Optional[int] = None
    identifier_pattern: Pattern = STRICT_IDENTIFIER_PATTERN
    identifier_requires_digit: bool = False
    identifier_blacklist: Tuple[str, ...] = ()
    stop_patterns: Tuple[Pattern, ...] = ()
    skip_patterns: Tuple[Pattern, ...] = ()
    order_id_patterns: Tuple[Pattern, ...] = ()
    order_id_prefix: Optional[str] = None
    anchor_pattern: Optional[Pattern] = None
    anchor_identifier_pattern: Optional[Pattern] = None
    metadata_patterns: Dict[str, Pattern] = field(default_factory=dict)
    display_identifier_fallback: bool = False
    secondary_identifier_fallback: bool = False

    def identifier_rejection(self, value: str) -> Optional[str]:
        """
        Check an assembled identifier against the profile's shape rules.

        The value is compared as-is; no case folding is applied.

        Returns:
            A rejection reason, or None if the identifier is acceptable
        """
        if not value:
            return 'empty'
        if not self.identifier_pattern.match(value):
            return 'shape'
        if self.identifier_requires_digit and not any(ch.isdigit() for ch in value):
            return 'no_digit'
        for fragment in self.identifier_blacklist:
            if value.startswith(fragment):
                return f'blacklisted:{fragment}'
        return None

    def find_order_id(self, text: str) -> Optional[str]:
        """Return the first page-level order id found in ``text``."""
        for pattern in self.order_id_patterns:
            match = pattern.search(text)
            if match:
                return match.group(1) if pattern.groups else match.group(0)
        return None

    def extract_metadata(self, text: str) -> Dict[str, str]:
        metadata = {}
        for name, pattern in self.metadata_patterns.items():
            match = pattern.search(text)
            if match:
                metadata[name] = match.group(1) if pattern.groups else match.group(0)
        return metadata

    def is_stop_line(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.stop_patterns)

    def is_skip_line(self, text: str) -> bool:
        return any(pattern.search(text) for pattern in self.skip_patterns)

    @property
    def has_header_table(self) -> bool:
        """Whether rows can only be found below a header line."""
        return self.document_format != DocumentFormat.ANCHOR_LINE


FLIPKART_PROFILE = MarketplaceProfile(
    platform='flipkart',
    document_format=DocumentFormat.DELIMITED_TABLE,
    header_vocabulary=('sku id', 'sku', 'product', 'description', 'qty', 'quantity'),
    keyword_groups={
        SemanticKey.IDENTIFIER_PRIMARY: ('seller sku', 'sku id', 'sku'),
        SemanticKey.DESCRIPTION: ('description', 'product'),
        SemanticKey.QUANTITY: ('qty', 'quantity'),
    },
    header_search_limit=15,
    identifier_requires_digit=True,
    identifier_blacklist=('AWB', 'WB', 'FMPC', 'FMPP', 'ORDER', 'NOT', 'PRINTED', 'RESALE', 'INVOICE'),
    stop_patterns=(
        re.compile(r'TAX\s+INVOICE|INVOICE\s+DETAILS|Invoice\s+Date|Billing\s+Address', re.IGNORECASE),
    ),
    skip_patterns=(
        re.compile(r'SKU\s*ID|Handling\s+Fee|TOTAL|Shipped\s+by|IMEI|Sr\.?\s*No', re.IGNORECASE),
    ),
    order_id_patterns=(
        re.compile(r'Order\s*Id[:\s]+(OD\d{15,})', re.IGNORECASE),
        re.compile(r'(OD\d{15,})'),
    ),
    metadata_patterns={
        'invoice_number': re.compile(r'Invoice\s*No[:\s]+([A-Z0-9]+)', re.IGNORECASE),
        'invoice_date': re.compile(r'Invoice\s*Date[:\s]+(\d{1,2}-\d{1,2}-\d{4})', re.IGNORECASE),
        'tracking_id': re.compile(r'AWB\s*No\.?\s*(?:\(N\))?[:\s]+([A-Z0-9]+)', re.IGNORECASE),
        'payment_type': re.compile(r'(COD|Cash\s+on\s+Delivery|Prepaid)', re.IGNORECASE),
    },
    display_identifier_fallback=True,
)

MYNTRA_PROFILE = MarketplaceProfile(
    platform='myntra',
    document_format=DocumentFormat.POSITIONAL_BAND,
    header_vocabulary=('seller sku code', 'seller sku'),
    keyword_groups={
        SemanticKey.IDENTIFIER_SECONDARY: ('myntra sku', 'style id'),
        SemanticKey.IDENTIFIER_PRIMARY: ('seller sku code', 'seller sku'),
        SemanticKey.QUANTITY: ('quantity', 'qty'),
        SemanticKey.DESCRIPTION: ('product description', 'description'),
    },
    skip_patterns=(
        re.compile(r'^\s*(grand\s+)?total\b', re.IGNORECASE),
    ),
    order_id_prefix='MYNTRA',
)

AMAZON_PROFILE = MarketplaceProfile(
    platform='amazon',
    document_format=DocumentFormat.ANCHOR_LINE,
    header_vocabulary=('description', 'qty', 'quantity'),
    keyword_groups={
        SemanticKey.DESCRIPTION: ('description',),
        SemanticKey.QUANTITY: ('qty', 'quantity'),
    },
    identifier_pattern=re.compile(r'^[A-Z0-9][A-Z0-9\-_]{4,}$'),
    stop_patterns=(
        re.compile(r'^\s*TOTAL\b', re.IGNORECASE),
    ),
    order_id_patterns=(
        re.compile(r'Order\s*(?:Number|ID)[:\s]*(\d{3}-\d{7}-\d{7})', re.IGNORECASE),
        re.compile(r'(\d{3}-\d{7}-\d{7})'),
    ),
    anchor_pattern=re.compile(r'\bB0[A-Z0-9]{8}\b'),
    anchor_identifier_pattern=re.compile(r'\(\s*([A-Z0-9][A-Z0-9\-_]{4,})\s*\)'),
    metadata_patterns={
        'invoice_number': re.compile(r'Invoice\s*Number[:\s]*([A-Z0-9\-]+)', re.IGNORECASE),
        'order_date': re.compile(r'Order\s*Date[:\s]*(\d{1,2}[./-]\d{1,2}[./-]\d{4})', re.IGNORECASE),
    },
)

PROFILES: Dict[str, MarketplaceProfile] = {
    profile.platform: profile
    for profile in (FLIPKART_PROFILE, MYNTRA_PROFILE, AMAZON_PROFILE)
}


def get_profile(platform: str) -> MarketplaceProfile:
    """
    Look up the profile for a marketplace.

    Raises:
        UnknownDocumentFormatError: If the platform has no profile
    """
    try:
        return PROFILES[platform]
    except KeyError:
        raise UnknownDocumentFormatError(platform)


def supported_platforms() -> Sequence[str]:
    return sorted(PROFILES)
