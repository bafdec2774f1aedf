"""Portfolio summary models.

`PortfolioSummary` is the portfolio-level snapshot shown on the overview and
insights cards. It is either computed from holdings or read from the stored
summary record.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional
from pydantic import BaseModel


class RiskLevel(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"
    UNKNOWN = "Unknown"


class PerformerInfo(BaseModel):
    symbol: str
    name: str
    gain_percent: float


class PortfolioSummary(BaseModel):
    """Portfolio totals, best/worst holding and diversification classification.

    Percentages are kept at full precision; use `rounded()` at the
    presentation boundary.
    """

    total_value: float
    total_invested: float
    total_gain_loss: float
    total_gain_loss_percent: float

    top_performer: PerformerInfo
    worst_performer: PerformerInfo

    # 0-10, None when the stored record has no score
    diversification_score: Optional[float] = None
    diversification_label: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.UNKNOWN

    number_of_holdings: Optional[int] = None

    def rounded(self, ndigits: int = 2) -> "PortfolioSummary":
        """Return a copy with percentage outputs rounded for display."""
        return self.model_copy(
            update={
                "total_gain_loss_percent": round(self.total_gain_loss_percent, ndigits),
                "top_performer": self.top_performer.model_copy(
                    update={"gain_percent": round(self.top_performer.gain_percent, ndigits)}
                ),
                "worst_performer": self.worst_performer.model_copy(
                    update={"gain_percent": round(self.worst_performer.gain_percent, ndigits)}
                ),
                "diversification_score": (
                    round(self.diversification_score, 1)
                    if self.diversification_score is not None
                    else None
                ),
            }
        )
