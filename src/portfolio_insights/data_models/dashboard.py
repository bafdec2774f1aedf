from __future__ import annotations

from datetime import date
from typing import Dict, Optional
from pydantic import BaseModel, Field

from portfolio_insights.data_models.allocation import AllocationBreakdown
from portfolio_insights.data_models.holdings_view import HoldingsView
from portfolio_insights.data_models.performance import PerformanceView
from portfolio_insights.data_models.portfolio_summary import PortfolioSummary


class SectionError(BaseModel):
    """Typed failure of one dashboard section, rendered as a degraded card."""

    error_type: str
    message: str


class DashboardPayload(BaseModel):
    """Every view the dashboard renders, computed from one repository read.

    A section is None exactly when `errors` holds an entry under its name.
    """

    as_of: date

    allocation: Optional[AllocationBreakdown] = None
    performance: Optional[PerformanceView] = None
    summary: Optional[PortfolioSummary] = None
    holdings: Optional[HoldingsView] = None

    # "computed" or "stored"
    summary_source: Optional[str] = None
    errors: Dict[str, SectionError] = Field(default_factory=dict)
