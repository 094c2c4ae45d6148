"""
Strict identifier resolution against the catalog.

A marketplace identifier resolves only through an exact string match, first
against the platform's alias table and then against the product table's master
SKU and barcode columns. There is deliberately no normalisation: a near miss
is Unresolved and waits for a manual mapping.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from .models import ParsedRow


@dataclass(frozen=True)
class Resolved:
    """Identifier matched a catalog product."""
    canonical_sku: str
    product_ref: int
    matched_via: str

    @property
    def is_resolved(self) -> bool:
        return True


@dataclass(frozen=True)
class Unresolved:
    """Identifier has no exact match and needs manual mapping."""
    marketplace_identifier: str
    platform: str

    @property
    def is_resolved(self) -> bool:
        return False


ResolvedIdentifier = Union[Resolved, Unresolved]


class IdentifierResolver:
    """
    Resolves marketplace identifiers to canonical catalog SKUs.

    Lookup order, first exact match wins:
        1. alias table keyed by (platform, alias_value)
        2. active product by master SKU
        3. active product by barcode
    """

    def __init__(self, db_manager, logger: Optional[logging.Logger] = None):
        """
        Initialize the resolver.

        Args:
            db_manager: DatabaseManager providing the catalog lookups
            logger: Optional logger instance
        """
        self.db_manager = db_manager
        self.logger = logger or logging.getLogger(__name__)

    def resolve(self, marketplace_identifier: str, platform: str) -> ResolvedIdentifier:
        """
        Resolve one identifier for a platform.

        Args:
            marketplace_identifier: Identifier exactly as parsed
            platform: Marketplace the identifier came from

        Returns:
            Resolved on an exact match, otherwise Unresolved
        """
        if not marketplace_identifier:
            return Unresolved(marketplace_identifier or '', platform)

        alias = self.db_manager.find_alias(platform, marketplace_identifier)
        if alias is not None:
            product = self.db_manager.get_product_by_id(alias.product_id)
            self.logger.debug(f"Resolved {marketplace_identifier} via {platform} alias to {product.master_sku}")
            return Resolved(product.master_sku, product.id, 'alias')

        product = self.db_manager.find_product_by_master_sku(marketplace_identifier)
        if product is not None:
            return Resolved(product.master_sku, product.id, 'master_sku')

        product = self.db_manager.find_product_by_barcode(marketplace_identifier)
        if product is not None:
            return Resolved(product.master_sku, product.id, 'barcode')

        self.logger.info(f"Unresolved {platform} identifier: {marketplace_identifier}")
        return Unresolved(marketplace_identifier, platform)

    def resolve_rows(self, rows: Sequence[ParsedRow], platform: str) -> List[ResolvedIdentifier]:
        """Resolve every row's identifier, looking each distinct value up once."""
        cache: Dict[str, ResolvedIdentifier] = {}
        results = []
        for row in rows:
            identifier = row.marketplace_identifier
            if identifier not in cache:
                cache[identifier] = self.resolve(identifier, platform)
            results.append(cache[identifier])
        return results
