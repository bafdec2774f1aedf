from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


TRACKED_SERIES = ("portfolio", "benchmark_a", "benchmark_b")


class PerformanceWindow(str, Enum):
    """
    Lookback horizon selectable on the performance chart.
    """

    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    ONE_YEAR = "1Y"


class PerformanceSnapshot(BaseModel):
    """
    Portfolio and benchmark values on one calendar date.

    benchmark_a is the broad index (e.g. NIFTY 50), benchmark_b the
    commodity proxy (e.g. gold).
    """

    model_config = ConfigDict(frozen=True)

    date: date
    portfolio_value: float
    benchmark_a_value: float
    benchmark_b_value: float


class ReturnTable(BaseModel):
    """
    Return percentages per tracked series, keyed by window label ("1M", "6M", ...).

    Only horizons that are actually known are present; a missing key means
    "no figure", never zero.
    """

    portfolio: Dict[str, float] = Field(default_factory=dict)
    benchmark_a: Dict[str, float] = Field(default_factory=dict)
    benchmark_b: Dict[str, float] = Field(default_factory=dict)

    def for_series(self, series: str) -> Dict[str, float]:
        if series not in TRACKED_SERIES:
            raise ValueError(f"Unknown series {series!r}; expected one of {TRACKED_SERIES}")
        return getattr(self, series)


class PerformanceView(BaseModel):
    """
    Chart-ready performance data for one requested window.

    The series is always present. A tracked series whose return cannot be
    resolved has None in `returns` and the reason in `unresolved_returns`.
    """

    window: PerformanceWindow
    series: List[PerformanceSnapshot]

    # series name -> return percent served for the requested window
    returns: Dict[str, Optional[float]]
    # series name -> horizon that actually served it (differs from window on fallback)
    return_windows_used: Dict[str, str]
    unresolved_returns: Dict[str, str] = Field(default_factory=dict)
    all_returns: ReturnTable

    # True when the window matched nothing and the full history was returned
    is_full_history: bool = False
    as_of: Optional[date] = None

    @property
    def uses_fallback(self) -> bool:
        return any(w != self.window.value for w in self.return_windows_used.values())
