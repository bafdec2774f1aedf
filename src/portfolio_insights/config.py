from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, Field

# Ordered lookup chain per requested window. Only the first horizon is exact;
# the rest are approximations and are reported as such in PerformanceView.
WINDOW_FALLBACKS: Dict[str, List[str]] = {
    "1M": ["1M", "3M"],
    "3M": ["3M"],
    "6M": ["6M", "1Y", "3M"],
    "1Y": ["1Y"],
}

# Horizons for which returns are derived from the snapshot series when no
# stored figures are supplied.
DERIVED_RETURN_HORIZONS: List[str] = ["1M", "3M", "6M", "1Y"]

WINDOW_MONTHS: Dict[str, int] = {
    "1M": 1,
    "3M": 3,
    "6M": 6,
    "1Y": 12,
}

DIVERSIFICATION_LABELS: List[tuple[float, str]] = [
    (8.0, "Excellent diversification"),
    (6.0, "Good diversification"),
]
DEFAULT_DIVERSIFICATION_LABEL = "Consider more diversification"


class AnalyticsConfig(BaseModel):
    # Risk buckets over the 0-10 diversification score
    risk_low_min_score: float = 8.0
    risk_moderate_min_score: float = 5.0

    # Relative weight of each distribution in the diversification score
    sector_weight: float = 0.7
    market_cap_weight: float = 0.3

    # Relative tolerance when checking value == quantity * current_price
    value_consistency_tolerance: float = 0.01

    default_window: str = "6M"
    window_fallbacks: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in WINDOW_FALLBACKS.items()}
    )


DEFAULT_CONFIG = AnalyticsConfig()
