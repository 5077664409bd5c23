"""
Performance Analytics Module
"""
from .aggregator import (
    AccessScope,
    PerformanceFilters,
    Role,
    compute_agent_metrics,
    summarize_agents,
)
from .classifier import classify_productivity, classify_tier
from .metrics import compute_metrics

__all__ = [
    "AccessScope",
    "PerformanceFilters",
    "Role",
    "compute_agent_metrics",
    "summarize_agents",
    "classify_productivity",
    "classify_tier",
    "compute_metrics",
]
