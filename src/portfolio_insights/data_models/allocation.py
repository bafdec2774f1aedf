from __future__ import annotations

from typing import Dict
from pydantic import BaseModel, Field


class AllocationSlice(BaseModel):
    """Value held in one category and its share of the portfolio.

    `percentage` is expressed 0-100 with one decimal place.
    """

    value: float
    percentage: float


class AllocationBreakdown(BaseModel):
    """Sector and market-cap allocation of the same holdings list."""

    by_sector: Dict[str, AllocationSlice] = Field(default_factory=dict)
    by_market_cap: Dict[str, AllocationSlice] = Field(default_factory=dict)
