"""
Tier Classifier

Maps an agent's total order count to a tier and a productivity level.
Both are pure functions of the count and their boundaries differ:
an agent with 10 orders is Silver and Active, one with 13 is Gold and
Productive.
"""

from typing import List, Optional, Tuple

from sf_performance.config import get_settings
from sf_performance.domain import ProductivityLevel, Tier

# Inclusive upper bound per tier, ascending; the last tier is open-ended.
TIER_CEILINGS: List[Tuple[Tier, Optional[int]]] = [
    (Tier.BLACK, 1),
    (Tier.BRONZE, 5),
    (Tier.SILVER, 10),
    (Tier.GOLD, 20),
    (Tier.PLATINUM, 50),
    (Tier.DIAMOND, None),
]

TIER_ORDER: List[Tier] = [tier for tier, _ in TIER_CEILINGS]


def classify_tier(total_order_count: int) -> Tier:
    """
    Classify an order count into one of the six tiers.

    Ranges are inclusive and evaluated in ascending order, first match wins:
    0-1 Black, 2-5 Bronze, 6-10 Silver, 11-20 Gold, 21-50 Platinum, 51+ Diamond.

    Raises:
        ValueError: If the count is negative
    """
    if total_order_count < 0:
        raise ValueError(f"Order count cannot be negative: {total_order_count}")

    for tier, ceiling in TIER_CEILINGS:
        if ceiling is None or total_order_count <= ceiling:
            return tier
    # TIER_CEILINGS ends with an open range
    raise AssertionError("unreachable")


def classify_productivity(
    total_order_count: int,
    active_ceiling: Optional[int] = None,
) -> ProductivityLevel:
    """
    Classify an order count into a productivity level.

    0 orders is Non-Productive, 1..active_ceiling is Active, anything above is
    Productive. The ceiling defaults to the configured policy (12).
    """
    if total_order_count < 0:
        raise ValueError(f"Order count cannot be negative: {total_order_count}")

    if active_ceiling is None:
        active_ceiling = get_settings().classification.active_ceiling

    if total_order_count == 0:
        return ProductivityLevel.NON_PRODUCTIVE
    if total_order_count <= active_ceiling:
        return ProductivityLevel.ACTIVE
    return ProductivityLevel.PRODUCTIVE
