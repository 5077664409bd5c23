"""
Performance Aggregator

Groups a snapshot of order records by agent code and produces the
summary tables the dashboard consumes. Every call builds its own frame
from the records it is given; nothing is retained between calls.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import polars as pl
import structlog
from pydantic import BaseModel, Field, model_validator

from sf_performance.analytics.classifier import (
    TIER_ORDER,
    classify_productivity,
    classify_tier,
)
from sf_performance.analytics.metrics import compute_metrics
from sf_performance.analytics.windows import DateWindow, month_window
from sf_performance.domain import (
    AgentPerformance,
    AgentSummary,
    OrderRecord,
    ProductivityLevel,
    Tier,
)

logger = structlog.get_logger(__name__)

RECORD_SCHEMA = {
    "order_id": pl.Utf8,
    "order_date": pl.Date,
    "agent_code": pl.Utf8,
    "agent_name": pl.Utf8,
    "team_leader_name": pl.Utf8,
    "team_leader_code": pl.Utf8,
    "agency": pl.Utf8,
    "area": pl.Utf8,
    "regional": pl.Utf8,
    "branch": pl.Utf8,
    "work_area": pl.Utf8,
}

# Descriptive columns reported per agent, taken from the agent's earliest order
AGENT_ATTRIBUTES = [
    "agent_name",
    "team_leader_code",
    "team_leader_name",
    "agency",
    "area",
    "regional",
    "branch",
    "work_area",
]


# =============================================================================
# QUERY MODELS
# =============================================================================

class Role(str, Enum):
    """Dashboard viewer roles"""
    ADMIN = "admin"
    LEADER = "leader"
    SALES = "sales"


class AccessScope(BaseModel):
    """Which agents a viewer may see"""
    role: Role = Role.ADMIN
    code: Optional[str] = None

    @model_validator(mode="after")
    def require_code(self) -> "AccessScope":
        if self.role != Role.ADMIN and not self.code:
            raise ValueError(f"Role '{self.role.value}' requires a user code")
        return self


class PerformanceFilters(BaseModel):
    """Conjunctive equality filters for dashboard queries"""
    regional: Optional[str] = None
    branch: Optional[str] = None
    work_area: Optional[str] = None
    tier: Optional[Tier] = None
    productivity: Optional[ProductivityLevel] = None
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=1900, le=9999)

    def period(self, today: Optional[date] = None) -> Optional[DateWindow]:
        """Date range selected by month/year, or None when neither is set"""
        if self.month is None and self.year is None:
            return None
        year = self.year or (today or date.today()).year
        if self.month is None:
            return DateWindow(date(year, 1, 1), date(year, 12, 31))
        return month_window(year, self.month)


class MonthlyPerformance(BaseModel):
    """Agent summaries for one calendar month"""
    month: int
    year: int
    agents: List[AgentSummary]
    total_orders: int


class MonthlyTotal(BaseModel):
    month: int
    total_orders: int


class CategoryShare(BaseModel):
    """Count of agents in one tier or productivity level"""
    category: str
    count: int
    percentage: str


class DashboardStats(BaseModel):
    total_agents: int
    total_orders: int
    average_orders: str
    top_performer: Optional[AgentSummary] = None


class FilterOptions(BaseModel):
    regional: List[str]
    branch: List[str]
    work_area: List[str]
    tier: List[str]


# =============================================================================
# FRAME HELPERS
# =============================================================================

def records_to_frame(records: Iterable[OrderRecord]) -> pl.DataFrame:
    """Build a frame with a fixed schema; empty input gives an empty frame"""
    return pl.DataFrame([record.to_dict() for record in records], schema=RECORD_SCHEMA)


def filter_records(
    frame: pl.DataFrame,
    filters: Optional[PerformanceFilters] = None,
    scope: Optional[AccessScope] = None,
    include_period: bool = True,
) -> pl.DataFrame:
    """Apply record-level filters and the viewer's scope"""
    filters = filters or PerformanceFilters()
    conditions = []

    for column in ("regional", "branch", "work_area"):
        value = getattr(filters, column)
        if value is not None:
            conditions.append(pl.col(column) == value)

    period = filters.period() if include_period else None
    if period is not None:
        conditions.append(pl.col("order_date").is_between(period.start, period.end))

    if scope is not None and scope.role == Role.LEADER:
        conditions.append(pl.col("team_leader_code") == scope.code)
    elif scope is not None and scope.role == Role.SALES:
        conditions.append(pl.col("agent_code") == scope.code)

    if not conditions:
        return frame

    combined = conditions[0]
    for cond in conditions[1:]:
        combined = combined & cond
    return frame.filter(combined)


def _group_by_agent(frame: pl.DataFrame) -> pl.DataFrame:
    """One row per agent code: total, earliest attributes and all order dates"""
    return (
        frame.filter(pl.col("agent_code").is_not_null())
        .sort(["order_date", "order_id"])
        .group_by("agent_code", maintain_order=True)
        .agg(
            [pl.len().alias("total_order_count")]
            + [pl.col(column).drop_nulls().first().alias(column) for column in AGENT_ATTRIBUTES]
            + [pl.col("order_date").alias("order_dates")]
        )
    )


def _summaries_with_dates(
    frame: pl.DataFrame,
    filters: Optional[PerformanceFilters],
    active_ceiling: Optional[int],
) -> List[Tuple[AgentSummary, List[date]]]:
    results = []
    for row in _group_by_agent(frame).iter_rows(named=True):
        total = row["total_order_count"]
        summary = AgentSummary(
            agent_code=row["agent_code"],
            total_order_count=total,
            tier=classify_tier(total),
            productivity_level=classify_productivity(total, active_ceiling),
            **{column: row[column] for column in AGENT_ATTRIBUTES},
        )
        if filters is not None:
            if filters.tier is not None and summary.tier != filters.tier:
                continue
            if filters.productivity is not None and summary.productivity_level != filters.productivity:
                continue
        results.append((summary, row["order_dates"]))

    results.sort(key=lambda item: (-item[0].total_order_count, item[0].agent_code))
    return results


def _share(count: int, total: int) -> str:
    if total == 0:
        return "0.0"
    value = Decimal(count) * 100 / Decimal(total)
    return str(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


# =============================================================================
# QUERIES
# =============================================================================

def summarize_agents(
    records: Iterable[OrderRecord],
    filters: Optional[PerformanceFilters] = None,
    scope: Optional[AccessScope] = None,
    active_ceiling: Optional[int] = None,
) -> List[AgentSummary]:
    """
    Group records by agent code and classify each agent.

    Records without an agent code are not counted. Output is ordered by
    total orders (descending) then agent code.
    """
    frame = filter_records(records_to_frame(records), filters, scope)
    summaries = [summary for summary, _ in _summaries_with_dates(frame, filters, active_ceiling)]

    logger.info("Agents summarized", agents=len(summaries), records=frame.height)
    return summaries


def compute_agent_metrics(
    records: Iterable[OrderRecord],
    as_of: Optional[date] = None,
    filters: Optional[PerformanceFilters] = None,
    scope: Optional[AccessScope] = None,
    active_ceiling: Optional[int] = None,
) -> List[AgentPerformance]:
    """
    Summaries joined with period-over-period metrics per agent.

    Month/year filters do not apply here; the windows are anchored to as_of
    (default today) and orders after it are ignored.
    """
    as_of = as_of or date.today()
    frame = filter_records(records_to_frame(records), filters, scope, include_period=False)
    frame = frame.filter(pl.col("order_date") <= as_of)

    results = []
    for summary, order_dates in _summaries_with_dates(frame, filters, active_ceiling):
        metrics = compute_metrics(summary.agent_code, order_dates, as_of)
        results.append(AgentPerformance(**summary.model_dump(), metrics=metrics))

    logger.info("Agent metrics computed", agents=len(results), as_of=str(as_of))
    return results


def monthly_performance(
    records: Iterable[OrderRecord],
    month: Optional[int] = None,
    year: Optional[int] = None,
    filters: Optional[PerformanceFilters] = None,
    scope: Optional[AccessScope] = None,
    active_ceiling: Optional[int] = None,
) -> MonthlyPerformance:
    """Summaries for a single calendar month (default: the current one)"""
    today = date.today()
    month = month or today.month
    year = year or today.year

    base = filters or PerformanceFilters()
    month_filters = base.model_copy(update={"month": month, "year": year})
    agents = summarize_agents(records, month_filters, scope, active_ceiling)

    return MonthlyPerformance(
        month=month,
        year=year,
        agents=agents,
        total_orders=sum(agent.total_order_count for agent in agents),
    )


def monthly_totals(
    records: Iterable[OrderRecord],
    year: Optional[int] = None,
    filters: Optional[PerformanceFilters] = None,
    scope: Optional[AccessScope] = None,
) -> List[MonthlyTotal]:
    """Order count per calendar month of a year; all twelve months present"""
    year = year or date.today().year
    base = filters or PerformanceFilters()
    frame = filter_records(
        records_to_frame(records),
        base.model_copy(update={"month": None, "year": year}),
        scope,
    )

    counts: Dict[int, int] = {}
    if frame.height:
        grouped = frame.group_by(pl.col("order_date").dt.month().alias("month")).agg(pl.len().alias("total"))
        counts = {row["month"]: row["total"] for row in grouped.iter_rows(named=True)}

    return [MonthlyTotal(month=m, total_orders=counts.get(m, 0)) for m in range(1, 13)]


def _distribution(values: List[str], categories: List[str]) -> List[CategoryShare]:
    total = len(values)
    shares = []
    for category in categories:
        count = values.count(category)
        shares.append(CategoryShare(category=category, count=count, percentage=_share(count, total)))
    return shares


def tier_distribution(summaries: List[AgentSummary]) -> List[CategoryShare]:
    """Agents per tier, in tier order, with one-decimal percentages"""
    return _distribution(
        [s.tier.value for s in summaries],
        [tier.value for tier in TIER_ORDER],
    )


def productivity_distribution(summaries: List[AgentSummary]) -> List[CategoryShare]:
    """Agents per productivity level"""
    return _distribution(
        [s.productivity_level.value for s in summaries],
        [level.value for level in ProductivityLevel],
    )


def dashboard_stats(summaries: List[AgentSummary]) -> DashboardStats:
    """Headline numbers for the statistics cards"""
    total_agents = len(summaries)
    total_orders = sum(s.total_order_count for s in summaries)

    if total_agents:
        average = (Decimal(total_orders) / Decimal(total_agents)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )
        top = min(summaries, key=lambda s: (-s.total_order_count, s.agent_code))
    else:
        average = Decimal("0.00")
        top = None

    return DashboardStats(
        total_agents=total_agents,
        total_orders=total_orders,
        average_orders=str(average),
        top_performer=top,
    )


def filter_options(
    records: Iterable[OrderRecord],
    scope: Optional[AccessScope] = None,
) -> FilterOptions:
    """Distinct values available for the dashboard filter controls"""
    frame = filter_records(records_to_frame(records), scope=scope)

    def distinct(column: str) -> List[str]:
        return sorted(frame.get_column(column).drop_nulls().unique().to_list())

    return FilterOptions(
        regional=distinct("regional"),
        branch=distinct("branch"),
        work_area=distinct("work_area"),
        tier=[tier.value for tier in TIER_ORDER],
    )
