"""
Spreadsheet Parser

Turns an uploaded sales-order spreadsheet into OrderRecords.

Supports:
- Excel workbooks (.xlsx / .xlsm), first worksheet only
- CSV files, every column read as text

Row 1 is the header row. Header names are resolved to column positions
once per file; the resulting ColumnMapping is then applied to every data
row, so columns may appear in any order.
"""

import codecs
import io
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import openpyxl
import pandas as pd
import polars as pl
import structlog

from sf_performance.domain import OrderRecord
from sf_performance.exceptions import ValidationError

logger = structlog.get_logger(__name__)

# Spreadsheet header -> OrderRecord field
HEADER_FIELDS: Dict[str, str] = {
    "Nama SF": "agent_name",
    "Kode SF": "agent_code",
    "Nama TL": "team_leader_name",
    "Kode TL": "team_leader_code",
    "Agency": "agency",
    "Area": "area",
    "Regional": "regional",
    "Branch": "branch",
    "Wilayah Operational Kerja": "work_area",
    "New Order ID": "order_id",
    "Tanggal PS": "order_date",
}

REQUIRED_HEADERS = ["Kode SF", "Tanggal PS"]

EXCEL_EPOCH = pd.Timestamp("1899-12-30")


class SheetFormat(str, Enum):
    """Supported upload formats"""
    XLSX = "xlsx"
    CSV = "csv"


@dataclass
class ColumnMapping:
    """Field name -> column index, resolved once from the header row"""
    positions: Dict[str, Optional[int]]

    @classmethod
    def from_headers(cls, headers: Sequence[Any]) -> "ColumnMapping":
        # Exact, case- and whitespace-sensitive match; first occurrence wins
        index: Dict[str, int] = {}
        for position, name in enumerate(headers):
            if isinstance(name, str) and name not in index:
                index[name] = position
        return cls({field_name: index.get(header) for header, field_name in HEADER_FIELDS.items()})

    def missing(self, headers: Sequence[str]) -> List[str]:
        return [h for h in headers if self.positions[HEADER_FIELDS[h]] is None]

    def value(self, row: Sequence[Any], field_name: str) -> Any:
        position = self.positions[field_name]
        if position is None or position >= len(row):
            return None
        return row[position]


@dataclass
class RejectedRow:
    """A data row that could not become an OrderRecord"""
    row_number: int
    reason: str
    order_id: Optional[str] = None
    agent_code: Optional[str] = None


@dataclass
class ParseResult:
    """Records parsed from one spreadsheet"""
    records: List[OrderRecord] = field(default_factory=list)
    rejected: List[RejectedRow] = field(default_factory=list)
    missing_columns: List[str] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.records) + len(self.rejected)


def detect_format(filename: Optional[str], content: bytes) -> SheetFormat:
    """Pick a reader from the file extension, falling back to content sniffing"""
    suffix = Path(filename or "").suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        return SheetFormat.XLSX
    if suffix == ".csv":
        return SheetFormat.CSV
    if suffix == ".xls":
        raise ValidationError("Legacy .xls workbooks are not supported, save the file as .xlsx")
    # xlsx files are zip archives
    if content[:2] == b"PK":
        return SheetFormat.XLSX
    return SheetFormat.CSV


def cell_text(value: Any) -> Optional[str]:
    """Normalise a cell to stripped text; empty cells become None"""
    if value is None:
        return None
    if isinstance(value, float):
        if value != value:  # NaN
            return None
        if value.is_integer():
            # Numeric codes come back from Excel as floats
            return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    text = str(value).strip()
    return text or None


def normalise_date(value: Any) -> Optional[date]:
    """
    Convert a cell to a calendar date.

    Native dates and datetimes are truncated to the day, numbers are Excel
    serial dates (1899-12-30 epoch), text is parsed by pandas. Returns None
    for empty or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return (EXCEL_EPOCH + pd.Timedelta(days=int(value))).date()
        except (ValueError, OverflowError):
            return None

    text = str(value).strip()
    if not text:
        return None
    # pandas also reads words such as "today" and "now"
    if not any(ch.isdigit() for ch in text):
        return None
    if text.replace(".", "", 1).isdigit():
        return normalise_date(float(text))
    try:
        timestamp = pd.Timestamp(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(timestamp):
        return None
    return timestamp.date()


def _read_xlsx_rows(content: bytes) -> List[List[Any]]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except Exception as e:
        raise ValidationError(f"File is not a readable Excel workbook: {e}") from e
    try:
        worksheet = workbook.worksheets[0]
        return [list(row) for row in worksheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_csv_rows(content: bytes) -> List[List[Any]]:
    if content.startswith(codecs.BOM_UTF8):
        content = content[len(codecs.BOM_UTF8):]
    try:
        df = pl.read_csv(
            io.BytesIO(content),
            has_header=False,
            infer_schema_length=0,
            truncate_ragged_lines=True,
        )
    except pl.exceptions.NoDataError:
        return []
    except Exception as e:
        raise ValidationError(f"File is not a readable CSV file: {e}") from e
    return [list(row) for row in df.iter_rows()]


def _is_blank(row: Sequence[Any]) -> bool:
    return all(cell_text(cell) is None for cell in row)


def parse_rows(
    rows: List[List[Any]],
    required_headers: Sequence[str] = REQUIRED_HEADERS,
) -> ParseResult:
    """
    Map raw rows (header first) to OrderRecords.

    Args:
        rows: Sheet rows, row 0 is the header row
        required_headers: Headers whose absence rejects the whole file

    Raises:
        ValidationError: If any required header is missing
    """
    # Untouched worksheets can report a single empty row
    if all(_is_blank(row) for row in rows):
        return ParseResult()

    mapping = ColumnMapping.from_headers(rows[0])
    missing_columns = mapping.missing(list(HEADER_FIELDS))

    missing_required = mapping.missing(required_headers)
    if missing_required:
        raise ValidationError(
            f"Missing required column(s): {', '.join(missing_required)}",
            missing_columns=missing_required,
        )

    result = ParseResult(missing_columns=missing_columns)
    if missing_columns:
        logger.warning("Optional columns missing", columns=missing_columns)

    for offset, row in enumerate(rows[1:], start=2):
        if _is_blank(row):
            continue

        raw_date = mapping.value(row, "order_date")
        order_date = normalise_date(raw_date)
        if order_date is None:
            reason = "missing order date" if cell_text(raw_date) is None else f"malformed order date: {raw_date!r}"
            result.rejected.append(RejectedRow(
                row_number=offset,
                reason=reason,
                order_id=cell_text(mapping.value(row, "order_id")),
                agent_code=cell_text(mapping.value(row, "agent_code")),
            ))
            logger.debug("Row rejected", row=offset, reason=reason)
            continue

        values = {
            field_name: cell_text(mapping.value(row, field_name))
            for field_name in HEADER_FIELDS.values()
            if field_name != "order_date"
        }
        # Blank order ids are kept here and skipped by the deduplication filter
        values["order_id"] = values["order_id"] or ""
        result.records.append(OrderRecord(order_date=order_date, **values))

    logger.info(
        "Spreadsheet parsed",
        records=len(result.records),
        rejected=len(result.rejected),
    )
    return result


def parse_spreadsheet(
    content: bytes,
    filename: Optional[str] = None,
    required_headers: Sequence[str] = REQUIRED_HEADERS,
) -> ParseResult:
    """
    Parse raw spreadsheet bytes into OrderRecords.

    An empty sheet (or a header row with no data rows) gives an empty
    result, not an error. Pass required_headers=() to use the file purely as
    a record source: absent columns then yield None on every record.
    """
    sheet_format = detect_format(filename, content)
    if sheet_format == SheetFormat.XLSX:
        rows = _read_xlsx_rows(content)
    else:
        rows = _read_csv_rows(content)
    return parse_rows(rows, required_headers)
