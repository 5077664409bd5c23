"""
Domain Types

OrderRecord is one normalized spreadsheet row. Everything else here is
derived on request and never persisted.
"""

from dataclasses import dataclass, fields
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class Tier(str, Enum):
    """Order-volume tier, lowest first"""
    BLACK = "Black"
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"
    PLATINUM = "Platinum"
    DIAMOND = "Diamond"


class ProductivityLevel(str, Enum):
    """Coarse productivity level, independent of tier"""
    NON_PRODUCTIVE = "Non-Productive"
    ACTIVE = "Active"
    PRODUCTIVE = "Productive"


@dataclass(frozen=True)
class OrderRecord:
    """One completed sales order (PS)"""
    order_id: str
    order_date: date
    agent_code: Optional[str] = None
    agent_name: Optional[str] = None
    team_leader_name: Optional[str] = None
    team_leader_code: Optional[str] = None
    agency: Optional[str] = None
    area: Optional[str] = None
    regional: Optional[str] = None
    branch: Optional[str] = None
    work_area: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


ORDER_RECORD_FIELDS = [f.name for f in fields(OrderRecord)]


class AgentSummary(BaseModel):
    """Per-agent order total with its classification"""
    agent_code: str
    agent_name: Optional[str] = None
    team_leader_code: Optional[str] = None
    team_leader_name: Optional[str] = None
    agency: Optional[str] = None
    area: Optional[str] = None
    regional: Optional[str] = None
    branch: Optional[str] = None
    work_area: Optional[str] = None
    total_order_count: int
    tier: Tier
    productivity_level: ProductivityLevel


class AgentMetrics(BaseModel):
    """Period-over-period deltas: a two-decimal percentage, "0.00" or "N/A" """
    agent_code: str
    week_over_week: str
    month_over_month: str
    quarter_over_quarter: str
    year_over_year: str


class AgentPerformance(AgentSummary):
    """Summary joined with metrics by agent code"""
    metrics: AgentMetrics
