"""
Ingestion of parsed rows into the order queue, and pick list derivation.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from database.models import ACTIVE_STATUSES, OrderQueueEntry
from .identifiers import IdentifierResolver, Resolved, ResolvedIdentifier
from .models import ParsedRow


UNRESOLVED_BUCKET_PREFIX = 'UNRESOLVED:'


@dataclass
class IngestionResult:
    """
    Outcome of ingesting one document's rows.

    Attributes:
        inserted: New order queue entries
        duplicates_skipped: Rows whose dedup key already had a live entry
        unresolved_count: Inserted entries without a canonical SKU
        entries: The inserted entries, in row order
    """
    inserted: int = 0
    duplicates_skipped: int = 0
    unresolved_count: int = 0
    entries: List[OrderQueueEntry] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'inserted': self.inserted,
            'duplicates_skipped': self.duplicates_skipped,
            'unresolved_count': self.unresolved_count
        }


@dataclass
class PickListAggregate:
    """One pick list line: a canonical SKU, or a single unresolved entry."""
    bucket_key: str
    canonical_sku: Optional[str]
    description: Optional[str]
    platform: str
    display_sku: Optional[str] = None
    total_quantity: int = 0
    contributing_order_ids: Set[str] = field(default_factory=set)

    @property
    def is_resolved(self) -> bool:
        return self.canonical_sku is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bucket_key': self.bucket_key,
            'canonical_sku': self.canonical_sku,
            'display_sku': self.display_sku,
            'description': self.description,
            'platform': self.platform,
            'total_quantity': self.total_quantity,
            'order_count': len(self.contributing_order_ids),
            'order_ids': sorted(self.contributing_order_ids)
        }


def bucket_key_for(entry: OrderQueueEntry) -> str:
    """
    Aggregation key of an entry.

    Unresolved entries get a key of their own so they are never merged with
    each other; the display SKU plays no part.
    """
    if entry.canonical_sku is not None:
        return entry.canonical_sku
    return f"{UNRESOLVED_BUCKET_PREFIX}{entry.id}"


def build_pick_list(entries: Sequence[OrderQueueEntry]) -> List[PickListAggregate]:
    """
    Aggregate live order queue entries into pick list lines.

    Only pending and listed entries take part. Within a bucket each order id
    contributes its quantity once, even if the same order line was captured
    more than once.

    Args:
        entries: Order queue entries in ingestion order

    Returns:
        Aggregates in order of first appearance
    """
    buckets: Dict[str, PickListAggregate] = {}

    for entry in entries:
        if entry.workflow_status not in ACTIVE_STATUSES:
            continue

        key = bucket_key_for(entry)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = PickListAggregate(
                bucket_key=key,
                canonical_sku=entry.canonical_sku,
                description=entry.description,
                platform=entry.platform,
                display_sku=entry.display_sku
            )
            buckets[key] = bucket

        if entry.order_id in bucket.contributing_order_ids:
            continue
        bucket.contributing_order_ids.add(entry.order_id)
        bucket.total_quantity += entry.quantity
        if not bucket.description and entry.description:
            bucket.description = entry.description

    return list(buckets.values())


class IngestionPipeline:
    """Writes parsed rows to the order queue with duplicate suppression."""

    def __init__(self, db_manager, logger: Optional[logging.Logger] = None):
        self.db_manager = db_manager
        self.logger = logger or logging.getLogger(__name__)

    def ingest(self, rows: Sequence[ParsedRow], resolved_identifiers: Sequence[ResolvedIdentifier],
               file_ref: str, platform: str, display_identifier_fallback: bool = False) -> IngestionResult:
        """
        Insert one order queue entry per parsed row.

        Duplicate detection is done by the storage layer's unique index, so the
        first writer of a dedup key wins even across concurrent ingestions.
        Unresolved rows are inserted with no canonical SKU.

        Args:
            rows: Parsed rows of one document
            resolved_identifiers: Resolution per row, same order as ``rows``
            file_ref: Reference recorded on each entry
            platform: Marketplace the rows came from
            display_identifier_fallback: Show the marketplace identifier as
                display SKU for unresolved rows

        Returns:
            IngestionResult with counts and inserted entries

        Raises:
            ValueError: If rows and resolutions differ in length
            DatabaseError: If the order queue cannot be written
        """
        if len(rows) != len(resolved_identifiers):
            raise ValueError(
                f"Got {len(rows)} rows but {len(resolved_identifiers)} resolved identifiers"
            )

        result = IngestionResult()

        for row, resolution in zip(rows, resolved_identifiers):
            if isinstance(resolution, Resolved):
                canonical_sku = resolution.canonical_sku
                product_ref = resolution.product_ref
                display_sku = canonical_sku
            else:
                canonical_sku = None
                product_ref = None
                display_sku = row.marketplace_identifier if display_identifier_fallback else None

            entry = OrderQueueEntry(
                platform=platform,
                order_id=row.order_id,
                marketplace_identifier=row.marketplace_identifier,
                quantity=row.quantity.value,
                description=row.description or None,
                canonical_sku=canonical_sku,
                product_ref=product_ref,
                display_sku=display_sku,
                source_file_ref=file_ref,
                page_number=row.page_number,
                quantity_source=row.quantity_source.value,
                quantity_confidence=row.quantity_confidence.value
            )

            if self.db_manager.insert_order_entry(entry):
                result.inserted += 1
                result.entries.append(entry)
                if canonical_sku is None:
                    result.unresolved_count += 1
            else:
                result.duplicates_skipped += 1

        self.logger.info(
            f"Ingested {file_ref}: {result.inserted} inserted, "
            f"{result.duplicates_skipped} duplicates skipped, {result.unresolved_count} unresolved"
        )
        return result

    def generate_pick_list(self, platform: Optional[str] = None) -> List[PickListAggregate]:
        """Aggregate every live entry in the queue, optionally for one platform."""
        entries = self.db_manager.list_order_entries(statuses=list(ACTIVE_STATUSES), platform=platform)
        return build_pick_list(entries)


def remap_unresolved_entries(db_manager, resolver: IdentifierResolver,
                             file_ref: Optional[str] = None) -> int:
    """
    Re-run exact resolution on live unresolved entries.

    Used after manual mappings have been added to the catalog. Entries that
    still do not match stay unresolved.

    Args:
        db_manager: Database manager instance
        resolver: Resolver to use
        file_ref: Only consider entries from this document

    Returns:
        Number of entries that became resolved
    """
    entries = db_manager.list_order_entries(
        statuses=list(ACTIVE_STATUSES), unresolved_only=True, source_file_ref=file_ref
    )
    updated = 0
    for entry in entries:
        resolution = resolver.resolve(entry.marketplace_identifier, entry.platform)
        if isinstance(resolution, Resolved):
            if db_manager.update_entry_resolution(entry.id, resolution.canonical_sku, resolution.product_ref):
                updated += 1
    logging.getLogger(__name__).info(f"Remapped {updated} of {len(entries)} unresolved entries")
    return updated
