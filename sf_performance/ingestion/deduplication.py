"""
Deduplication Filter

Keeps the first record for each order id that is neither already
persisted nor seen earlier in the same batch. Records with a blank order
id are skipped too.
"""

from dataclasses import dataclass, field
from typing import AbstractSet, Iterable, List

import structlog

from sf_performance.domain import OrderRecord

logger = structlog.get_logger(__name__)


@dataclass
class DeduplicationResult:
    """Unseen records plus skip counts by reason"""
    records: List[OrderRecord] = field(default_factory=list)
    skipped_existing: int = 0
    skipped_in_batch: int = 0
    skipped_blank: int = 0

    @property
    def skipped(self) -> int:
        return self.skipped_existing + self.skipped_in_batch + self.skipped_blank


def order_key(record: OrderRecord) -> str:
    """Identity used for uniqueness checks"""
    return str(record.order_id or "").strip()


def deduplicate(
    batch: Iterable[OrderRecord],
    existing_ids: AbstractSet[str] = frozenset(),
) -> DeduplicationResult:
    """
    Filter a parsed batch down to records with unseen order ids.

    Args:
        batch: Newly parsed records, in file order
        existing_ids: Order ids already in the store (empty under full replace)

    Returns:
        DeduplicationResult where len(records) + skipped == len(batch)
    """
    result = DeduplicationResult()
    seen = set()

    for record in batch:
        key = order_key(record)
        if not key:
            result.skipped_blank += 1
            continue
        if key in existing_ids:
            result.skipped_existing += 1
            logger.debug("Skipping order already stored", order_id=key)
            continue
        if key in seen:
            result.skipped_in_batch += 1
            logger.debug("Skipping duplicate order in upload", order_id=key)
            continue
        seen.add(key)
        result.records.append(record)

    if result.skipped:
        logger.info(
            "Deduplication skipped records",
            kept=len(result.records),
            existing=result.skipped_existing,
            in_batch=result.skipped_in_batch,
            blank=result.skipped_blank,
        )
    return result
