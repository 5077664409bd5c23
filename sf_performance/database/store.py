"""
Order Store

Persistence boundary for sales orders. The store never commits: callers
run it inside one session transaction (see get_db), so a replace either
fully lands or leaves the previous dataset in place.
"""

from typing import Iterable, List, Set, Tuple

import structlog
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sf_performance.database.models import SalesOrder
from sf_performance.domain import OrderRecord
from sf_performance.exceptions import ConflictError, StoreError

logger = structlog.get_logger(__name__)

INSERT_CHUNK_SIZE = 5000


class OrderStore:
    """
    Sales-order persistence operations.

    Example:
        async with get_db() as db:
            store = OrderStore(db)
            await store.replace_all(records)
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _bulk_insert(self, records: List[OrderRecord]) -> int:
        for i in range(0, len(records), INSERT_CHUNK_SIZE):
            chunk = records[i:i + INSERT_CHUNK_SIZE]
            await self.session.execute(insert(SalesOrder), [r.to_dict() for r in chunk])
        return len(records)

    async def replace_all(self, records: Iterable[OrderRecord]) -> int:
        """
        Delete every stored order and insert the batch.

        Raises:
            StoreError: If the delete or insert fails
        """
        records = list(records)
        try:
            result = await self.session.execute(delete(SalesOrder))
            inserted = await self._bulk_insert(records)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Replace of sales orders failed", error=str(e))
            raise StoreError("replace", e) from e

        logger.info("Sales orders replaced", deleted=result.rowcount, inserted=inserted)
        return inserted

    async def existing_order_ids(self) -> Set[str]:
        """Order ids currently stored"""
        try:
            result = await self.session.execute(select(SalesOrder.order_id))
        except SQLAlchemyError as e:
            raise StoreError("read", e) from e
        return set(result.scalars().all())

    async def read_all(self) -> List[OrderRecord]:
        """Snapshot of all stored orders, oldest first"""
        try:
            result = await self.session.execute(
                select(SalesOrder).order_by(SalesOrder.order_date, SalesOrder.order_id)
            )
        except SQLAlchemyError as e:
            logger.error("Read of sales orders failed", error=str(e))
            raise StoreError("read", e) from e
        return [row.to_record() for row in result.scalars().all()]

    async def _insert_one(self, record: OrderRecord) -> None:
        try:
            async with self.session.begin_nested():
                self.session.add(SalesOrder.from_record(record))
        except IntegrityError as e:
            raise ConflictError(record.order_id) from e

    async def insert_new(self, records: Iterable[OrderRecord]) -> Tuple[int, int]:
        """
        Insert records one by one, skipping order ids that already exist.

        Each insert runs in its own savepoint so a conflict only discards
        that record.

        Returns:
            (inserted, conflicts)
        """
        inserted = 0
        conflicts = 0
        try:
            for record in records:
                try:
                    await self._insert_one(record)
                    inserted += 1
                except ConflictError as e:
                    conflicts += 1
                    logger.warning("Order id conflict, record skipped", order_id=e.order_id)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Merge of sales orders failed", error=str(e))
            raise StoreError("insert", e) from e

        logger.info("Sales orders merged", inserted=inserted, conflicts=conflicts)
        return inserted, conflicts
