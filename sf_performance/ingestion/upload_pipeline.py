"""
Upload Pipeline

Ingests one uploaded sales spreadsheet into the order store:

1. Check the upload (present, allowed extension, size limit)
2. Parse rows into OrderRecords, rejecting rows without a valid date
3. Run data quality checks on the parsed sheet; a sheet whose rows all
   lack a valid date is refused
4. Deduplicate by order id
5. Persist in a single transaction

Two persistence modes:
- REPLACE (default): every upload is the full dataset. Deduplication runs
  within the batch only and the store is truncated and reloaded atomically.
- MERGE: deduplicate against the ids stored before the upload and insert
  only new orders.

Uploads are serialised so readers never observe a half-replaced store.
"""

import asyncio
import hashlib
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

import polars as pl
import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from sf_performance.analytics.aggregator import records_to_frame
from sf_performance.config import get_settings
from sf_performance.config.settings import UploadSettings
from sf_performance.database.connection import get_db
from sf_performance.database.store import OrderStore
from sf_performance.exceptions import ValidationError
from sf_performance.ingestion.deduplication import deduplicate
from sf_performance.ingestion.spreadsheet_parser import ParseResult, parse_spreadsheet
from sf_performance.quality.validators import (
    DataValidator,
    ValidationSeverity,
    ValidationStatus,
    create_sales_orders_validator,
)

logger = structlog.get_logger(__name__)

MAX_REPORTED_REJECTIONS = 50


class IngestionMode(str, Enum):
    """How an upload is applied to the store"""
    REPLACE = "replace"
    MERGE = "merge"


class LoadStatus(str, Enum):
    """Upload outcome"""
    COMPLETED = "completed"
    PARTIAL = "partial"  # Some rows rejected


class RowRejection(BaseModel):
    row_number: int
    reason: str


class IngestionResult(BaseModel):
    """Result of an upload"""
    filename: Optional[str] = None
    mode: IngestionMode
    status: LoadStatus
    total_records: int = 0
    new_records: int = 0
    skipped_records: int = 0
    rejected_rows: int = 0
    rejections: List[RowRejection] = []
    missing_columns: List[str] = []
    quality_status: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0
    file_hash: Optional[str] = None


def sheet_frame(parsed: ParseResult) -> pl.DataFrame:
    """
    One row per data row of the sheet.

    Rejected rows keep their order id and agent code with a null
    order_date, so quality rules see the file as uploaded.
    """
    frame = records_to_frame(parsed.records)
    if not parsed.rejected:
        return frame
    rejected = pl.DataFrame(
        {
            "order_id": [r.order_id for r in parsed.rejected],
            "agent_code": [r.agent_code for r in parsed.rejected],
            "order_date": [None] * len(parsed.rejected),
        },
        schema={"order_id": pl.Utf8, "agent_code": pl.Utf8, "order_date": pl.Date},
    )
    return pl.concat([frame, rejected], how="diagonal")


SessionProvider = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class UploadPipeline:
    """
    Spreadsheet-to-store ingestion.

    One instance should be shared by every upload in the process; its lock
    is what serialises uploads.

    Example:
        pipeline = UploadPipeline()
        result = await pipeline.ingest(content, "sales.xlsx")
    """

    def __init__(
        self,
        session_provider: SessionProvider = get_db,
        upload_settings: Optional[UploadSettings] = None,
        validator_factory: Callable[[], DataValidator] = create_sales_orders_validator,
    ):
        self.session_provider = session_provider
        self.upload_settings = upload_settings or get_settings().upload
        self.validator_factory = validator_factory
        self._lock = asyncio.Lock()

    def _check_upload(self, content: Optional[bytes], filename: Optional[str]) -> None:
        if content is None:
            raise ValidationError("No spreadsheet file was uploaded")
        if not content:
            raise ValidationError("Uploaded file is empty")

        suffix = Path(filename or "").suffix.lower()
        allowed = [ext.lower() for ext in self.upload_settings.allowed_extensions]
        if filename and suffix not in allowed:
            raise ValidationError(
                f"Invalid file type '{suffix or filename}'. Allowed: {', '.join(allowed)}"
            )

        limit = self.upload_settings.max_file_size_bytes
        if len(content) > limit:
            raise ValidationError(f"File is larger than the {limit} byte limit")

    async def ingest(
        self,
        content: Optional[bytes],
        filename: Optional[str] = None,
        mode: IngestionMode = IngestionMode.REPLACE,
    ) -> IngestionResult:
        """
        Ingest one spreadsheet.

        Args:
            content: Raw file bytes
            filename: Original file name, used to pick the reader
            mode: REPLACE the dataset or MERGE into it

        Returns:
            IngestionResult with inserted / skipped / rejected counts

        Raises:
            ValidationError: Bad upload, missing required columns or no dated
                row; nothing is written
            StoreError: Persistence failed; the previous dataset is kept
        """
        started_at = datetime.now(timezone.utc)
        logger.info("Starting upload ingestion", filename=filename, mode=mode.value)

        self._check_upload(content, filename)
        file_hash = hashlib.md5(content).hexdigest()

        # openpyxl is CPU-bound; keep the event loop serving reads
        parsed = await asyncio.to_thread(parse_spreadsheet, content, filename)

        quality = self.validator_factory().validate(sheet_frame(parsed))
        if quality.status == ValidationStatus.FAILED:
            errors = [c for c in quality.failures if c.severity == ValidationSeverity.ERROR]
            messages = "; ".join(c.message for c in errors or quality.failures)
            raise ValidationError(f"Uploaded data failed validation: {messages}")

        async with self._lock:
            async with self.session_provider() as session:
                store = OrderStore(session)
                if mode == IngestionMode.MERGE:
                    existing = await store.existing_order_ids()
                    dedup = deduplicate(parsed.records, existing)
                    inserted, conflicts = await store.insert_new(dedup.records)
                else:
                    dedup = deduplicate(parsed.records)
                    inserted = await store.replace_all(dedup.records)
                    conflicts = 0

        completed_at = datetime.now(timezone.utc)
        result = IngestionResult(
            filename=filename,
            mode=mode,
            status=LoadStatus.PARTIAL if parsed.rejected else LoadStatus.COMPLETED,
            total_records=len(parsed.records),
            new_records=inserted,
            skipped_records=dedup.skipped + conflicts,
            rejected_rows=len(parsed.rejected),
            rejections=[
                RowRejection(row_number=r.row_number, reason=r.reason)
                for r in parsed.rejected[:MAX_REPORTED_REJECTIONS]
            ],
            missing_columns=parsed.missing_columns,
            quality_status=quality.status.value,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=(completed_at - started_at).total_seconds(),
            file_hash=file_hash,
        )

        logger.info(
            "Upload ingestion completed",
            filename=filename,
            new_records=result.new_records,
            skipped=result.skipped_records,
            rejected=result.rejected_rows,
            duration_seconds=result.duration_seconds,
        )
        return result
