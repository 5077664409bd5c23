"""
Metrics Engine

Week / month / quarter / year-over-year percentage change in an agent's
order count. Each metric compares the count in a current window with the
count in the immediately preceding equivalent window.

Results are strings, as served to the dashboard:
- "0.00" when both windows are empty
- "N/A" when only the previous window is empty (change from zero is undefined)
- otherwise ((current - previous) / previous) * 100, rounded half-up to two decimals
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

import structlog

from sf_performance.analytics.windows import (
    WindowPair,
    month_windows,
    quarter_windows,
    week_windows,
    year_windows,
)
from sf_performance.domain import AgentMetrics
from sf_performance.exceptions import ComputationError

logger = structlog.get_logger(__name__)

NOT_AVAILABLE = "N/A"
NO_CHANGE = "0.00"

_CENT = Decimal("0.01")


def percentage_change(current: int, previous: int) -> str:
    """Format the change between two window counts"""
    if previous == 0:
        return NOT_AVAILABLE if current > 0 else NO_CHANGE

    change = (Decimal(current - previous) / Decimal(previous)) * 100
    return str(change.quantize(_CENT, rounding=ROUND_HALF_UP))


def coerce_order_date(value: Any) -> date:
    """
    Interpret a stored order date.

    Raises:
        ComputationError: If the value is not a date or ISO date string
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            raise ComputationError(value)
    raise ComputationError(value)


def count_in_windows(dates: List[date], windows: WindowPair) -> Dict[str, int]:
    current, previous = windows
    return {
        "current": sum(1 for d in dates if d in current),
        "previous": sum(1 for d in dates if d in previous),
    }


def compute_metrics(
    agent_code: str,
    order_dates: Iterable[Any],
    as_of: Optional[date] = None,
) -> AgentMetrics:
    """
    Compute the four period-over-period deltas for one agent.

    Args:
        agent_code: Agent the dates belong to
        order_dates: The agent's order dates (any order)
        as_of: Reference date, defaults to today. Orders dated after it are ignored.

    Returns:
        AgentMetrics for the agent

    Unparseable dates are excluded from every window; the remaining orders
    are still counted.
    """
    as_of = as_of or date.today()

    dates: List[date] = []
    for value in order_dates:
        try:
            order_date = coerce_order_date(value)
        except ComputationError as e:
            logger.warning("Excluding order from metrics", agent_code=agent_code, error=str(e))
            continue
        if order_date <= as_of:
            dates.append(order_date)

    deltas = {}
    for name, windows in (
        ("week_over_week", week_windows(as_of)),
        ("month_over_month", month_windows(as_of)),
        ("quarter_over_quarter", quarter_windows(as_of)),
        ("year_over_year", year_windows(as_of)),
    ):
        counts = count_in_windows(dates, windows)
        deltas[name] = percentage_change(counts["current"], counts["previous"])

    return AgentMetrics(agent_code=agent_code, **deltas)
