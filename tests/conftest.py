"""
Test Suite Configuration
"""
import io
from datetime import date
from typing import Any, Callable, List, Sequence

import openpyxl
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from sf_performance.config import Settings
from sf_performance.database.connection import close_database, init_database
from sf_performance.domain import OrderRecord
from sf_performance.ingestion.upload_pipeline import UploadPipeline

TEST_DATABASE_URL = "sqlite+aiosqlite://"

SHEET_HEADERS = [
    "Nama SF",
    "Kode SF",
    "Nama TL",
    "Kode TL",
    "Agency",
    "Area",
    "Regional",
    "Branch",
    "Wilayah Operational Kerja",
    "New Order ID",
    "Tanggal PS",
]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
    )


@pytest.fixture
def make_record() -> Callable[..., OrderRecord]:
    """Factory for OrderRecords with sensible organisation defaults"""
    def factory(order_id: str, agent_code: str, order_date: date, **overrides: Any) -> OrderRecord:
        values = {
            "agent_name": f"Agent {agent_code}",
            "team_leader_code": "TL01",
            "team_leader_name": "Leader One",
            "agency": "Agency A",
            "area": "Area 1",
            "regional": "Jabar",
            "branch": "Bandung",
            "work_area": "WOK Bandung",
        }
        values.update(overrides)
        return OrderRecord(order_id=order_id, order_date=order_date, agent_code=agent_code, **values)

    return factory


def _sheet_row(
    agent_code: str,
    order_id: str,
    order_date: Any,
    regional: str = "Jabar",
    team_leader_code: str = "TL01",
) -> List[Any]:
    """One data row laid out as SHEET_HEADERS"""
    return [
        f"Agent {agent_code}",
        agent_code,
        "Leader One",
        team_leader_code,
        "Agency A",
        "Area 1",
        regional,
        "Bandung",
        "WOK Bandung",
        order_id,
        order_date,
    ]


def _build_xlsx(rows: Sequence[Sequence[Any]], headers: Sequence[str] = SHEET_HEADERS) -> bytes:
    """Build an in-memory workbook with a header row"""
    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    if headers:
        worksheet.append(list(headers))
    for row in rows:
        worksheet.append(list(row))

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _build_csv(rows: Sequence[Sequence[Any]], headers: Sequence[str] = SHEET_HEADERS) -> bytes:
    """Build CSV bytes with a header row"""
    lines = [",".join(headers)]
    for row in rows:
        lines.append(",".join("" if value is None else str(value) for value in row))
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest_asyncio.fixture
async def database():
    """Initialise an in-memory order store for one test"""
    engine = await init_database(TEST_DATABASE_URL)
    yield engine
    await close_database()


@pytest_asyncio.fixture
async def pipeline(database) -> UploadPipeline:
    """Upload pipeline bound to the in-memory store"""
    return UploadPipeline()


@pytest_asyncio.fixture
async def client(database):
    """HTTP client against the API, backed by the in-memory store"""
    from sf_performance.main import create_app

    app = create_app()
    app.state.upload_pipeline = UploadPipeline()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def sheet_row() -> Callable[..., List[Any]]:
    return _sheet_row


@pytest.fixture
def build_xlsx() -> Callable[..., bytes]:
    return _build_xlsx


@pytest.fixture
def build_csv() -> Callable[..., bytes]:
    return _build_csv
