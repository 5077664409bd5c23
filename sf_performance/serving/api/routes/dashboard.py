"""
Dashboard API Endpoints

Upload of sales spreadsheets and the per-agent performance tables,
metrics and rollups behind the dashboard.
"""

from datetime import date, datetime, timezone
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile
from pydantic import BaseModel
import structlog

from sf_performance.analytics.aggregator import (
    AccessScope,
    PerformanceFilters,
    compute_agent_metrics,
    dashboard_stats,
    filter_options,
    monthly_performance,
    monthly_totals,
    productivity_distribution,
    summarize_agents,
    tier_distribution,
)
from sf_performance.config import get_settings
from sf_performance.domain import OrderRecord
from sf_performance.ingestion.upload_pipeline import IngestionMode, UploadPipeline
from sf_performance.serving.api.dependencies import (
    get_filters,
    get_pipeline,
    get_records,
    get_scope,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


class Envelope(BaseModel):
    """Standard response wrapper"""
    success: bool = True
    msg: Optional[str] = None
    data: Any = None
    timestamp: datetime


def _envelope(data: Any, msg: Optional[str] = None) -> Envelope:
    return Envelope(data=data, msg=msg, timestamp=datetime.now(timezone.utc))


def _active_ceiling() -> int:
    return get_settings().classification.active_ceiling


# =============================================================================
# UPLOAD
# =============================================================================

@router.post("/upload", response_model=Envelope)
async def upload_sales_data(
    sales_data: Optional[UploadFile] = File(default=None),
    mode: IngestionMode = Query(IngestionMode.REPLACE),
    pipeline: UploadPipeline = Depends(get_pipeline),
) -> Envelope:
    """
    Upload a sales spreadsheet (.xlsx or .csv, first sheet, header row first).

    Replaces the stored dataset by default; `mode=merge` keeps existing
    orders and adds only new order ids.
    """
    content = await sales_data.read() if sales_data is not None else None
    filename = sales_data.filename if sales_data is not None else None

    result = await pipeline.ingest(content, filename, mode)
    return _envelope(result, msg=f"Uploaded {result.new_records} new records")


# =============================================================================
# PERFORMANCE
# =============================================================================

@router.get("/overall", response_model=Envelope)
async def get_overall_performance(
    filters: PerformanceFilters = Depends(get_filters),
    scope: AccessScope = Depends(get_scope),
    records: List[OrderRecord] = Depends(get_records),
) -> Envelope:
    """Order totals, tier and productivity level per agent"""
    summaries = summarize_agents(records, filters, scope, _active_ceiling())
    return _envelope(summaries)


@router.get("/overall/monthly", response_model=Envelope)
async def get_monthly_performance(
    filters: PerformanceFilters = Depends(get_filters),
    scope: AccessScope = Depends(get_scope),
    records: List[OrderRecord] = Depends(get_records),
) -> Envelope:
    """Per-agent performance for one calendar month (default: current month)"""
    report = monthly_performance(
        records,
        month=filters.month,
        year=filters.year,
        filters=filters,
        scope=scope,
        active_ceiling=_active_ceiling(),
    )
    return _envelope(report)


@router.get("/overall/monthly/total", response_model=Envelope)
async def get_monthly_totals(
    filters: PerformanceFilters = Depends(get_filters),
    scope: AccessScope = Depends(get_scope),
    records: List[OrderRecord] = Depends(get_records),
) -> Envelope:
    """Total orders per month for a year (default: current year)"""
    return _envelope(monthly_totals(records, filters.year, filters, scope))


@router.get("/metrics", response_model=Envelope)
async def get_metrics(
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    filters: PerformanceFilters = Depends(get_filters),
    scope: AccessScope = Depends(get_scope),
    records: List[OrderRecord] = Depends(get_records),
) -> Envelope:
    """WoW / MoM / QoQ / YoY per agent, anchored to endDate (default: today)"""
    performance = compute_agent_metrics(
        records,
        as_of=end_date,
        filters=filters,
        scope=scope,
        active_ceiling=_active_ceiling(),
    )
    return _envelope(performance)


@router.get("/distribution", response_model=Envelope)
async def get_distribution(
    filters: PerformanceFilters = Depends(get_filters),
    scope: AccessScope = Depends(get_scope),
    records: List[OrderRecord] = Depends(get_records),
) -> Envelope:
    """Agents per tier and per productivity level"""
    summaries = summarize_agents(records, filters, scope, _active_ceiling())
    return _envelope({
        "tier": tier_distribution(summaries),
        "productivity": productivity_distribution(summaries),
    })


@router.get("/stats", response_model=Envelope)
async def get_stats(
    filters: PerformanceFilters = Depends(get_filters),
    scope: AccessScope = Depends(get_scope),
    records: List[OrderRecord] = Depends(get_records),
) -> Envelope:
    """Headline statistics cards"""
    summaries = summarize_agents(records, filters, scope, _active_ceiling())
    return _envelope(dashboard_stats(summaries))


@router.get("/filters", response_model=Envelope)
async def get_filter_options(
    scope: AccessScope = Depends(get_scope),
    records: List[OrderRecord] = Depends(get_records),
) -> Envelope:
    """Values available to the filter controls"""
    return _envelope(filter_options(records, scope))
