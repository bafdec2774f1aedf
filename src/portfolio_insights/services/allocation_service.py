"""Allocation computations.

Group holdings by a categorical attribute (sector, market-cap band) and
compute each category's value and share of the total portfolio value.
"""
from __future__ import annotations

from typing import Callable, Dict, List, Sequence, Union
import logging
import math

import pandas as pd

from portfolio_insights.data_models.allocation import AllocationBreakdown, AllocationSlice
from portfolio_insights.data_models.holding import Holding
from portfolio_insights.errors import EmptyPortfolioError

logger = logging.getLogger(__name__)

GroupBy = Union[str, Callable[[Holding], str]]

GROUP_BY_ATTRIBUTES = {
    "sector": "sector",
    "market_cap": "market_cap",
    "marketCap": "market_cap",
}


def _resolve_key(group_by: GroupBy) -> Callable[[Holding], str]:
    if callable(group_by):
        return group_by
    attr = GROUP_BY_ATTRIBUTES.get(group_by)
    if attr is None:
        raise ValueError(
            f"Unknown grouping {group_by!r}; expected one of {sorted(GROUP_BY_ATTRIBUTES)} or a callable"
        )
    return lambda h: getattr(h, attr)


def allocation_percentage(value: float, total: float) -> float:
    """Share of `total` as a percentage with one decimal, halves rounded up."""
    return math.floor(value / total * 1000 + 0.5) / 10


def compute_allocation(holdings: Sequence[Holding], group_by: GroupBy) -> Dict[str, AllocationSlice]:
    """Compute value and percentage share per category.

    Behaviour:
    - Category labels are whatever `group_by` yields for the input holdings,
      in first-seen order; categories without holdings never appear.
    - `percentage` is one decimal place, relative to the summed `value` of
      all holdings (computed once per call).
    - An empty list, or a non-positive total value, raises
      `EmptyPortfolioError` instead of emitting NaN/Infinity.
    """
    key = _resolve_key(group_by)

    if not holdings:
        raise EmptyPortfolioError("allocation")

    total = float(sum(h.value for h in holdings))
    if total <= 0.0:
        raise EmptyPortfolioError("allocation (total portfolio value is zero)")

    sums: Dict[str, float] = {}
    for h in holdings:
        label = key(h)
        sums[label] = sums.get(label, 0.0) + float(h.value)

    allocation = {
        label: AllocationSlice(value=value, percentage=allocation_percentage(value, total))
        for label, value in sums.items()
    }

    pct_total = sum(s.percentage for s in allocation.values())
    if abs(pct_total - 100.0) > 0.5:
        logger.warning(
            "Allocation percentages sum to %.1f across %d categories; expected ~100",
            pct_total,
            len(allocation),
        )
    return allocation


def compute_allocation_breakdown(holdings: Sequence[Holding]) -> AllocationBreakdown:
    """Sector and market-cap allocation in one payload."""
    return AllocationBreakdown(
        by_sector=compute_allocation(holdings, "sector"),
        by_market_cap=compute_allocation(holdings, "market_cap"),
    )


def allocation_to_frame(allocation: Dict[str, AllocationSlice]) -> pd.DataFrame:
    """Tabulate an allocation mapping, largest category first."""
    records: List[dict] = [
        {"category": label, "value": s.value, "percentage": s.percentage}
        for label, s in allocation.items()
    ]
    df = pd.DataFrame.from_records(records, columns=["category", "value", "percentage"])
    return df.sort_values("value", ascending=False, kind="stable").reset_index(drop=True)
