from typing import Dict, List, Optional, Sequence, Tuple
from datetime import date
import logging

import pandas as pd

from portfolio_insights.config import (
    DEFAULT_CONFIG,
    DERIVED_RETURN_HORIZONS,
    WINDOW_MONTHS,
    AnalyticsConfig,
)
from portfolio_insights.data_models.performance import (
    TRACKED_SERIES,
    PerformanceSnapshot,
    PerformanceView,
    PerformanceWindow,
    ReturnTable,
)
from portfolio_insights.errors import UnsupportedWindowError

logger = logging.getLogger(__name__)


def parse_window(window: PerformanceWindow | str) -> PerformanceWindow:
    """Coerce a window label ("6M", "1y") into a `PerformanceWindow`."""
    if isinstance(window, PerformanceWindow):
        return window
    try:
        return PerformanceWindow(str(window).strip().upper())
    except ValueError as exc:
        raise UnsupportedWindowError(str(window), "unknown window label") from exc


def window_start(window: PerformanceWindow | str, as_of: date) -> date:
    """First date inside `window` ending at `as_of` (calendar months, not 30-day blocks)."""
    w = parse_window(window)
    start = pd.Timestamp(as_of) - pd.DateOffset(months=WINDOW_MONTHS[w.value])
    return start.date()


def filter_snapshots_for_window(
    snapshots: Sequence[PerformanceSnapshot],
    window: PerformanceWindow | str,
    as_of: Optional[date] = None,
) -> Tuple[List[PerformanceSnapshot], bool]:
    """
    Keep snapshots dated on or after `as_of - window`, in their original order.

    If the window selects nothing but the input has data, the whole series is
    returned instead and the second element of the result is True. The chart
    never receives an empty dataset while any history exists.
    """
    as_of = as_of or date.today()
    cutoff = window_start(window, as_of)

    selected = [s for s in snapshots if s.date >= cutoff]
    if not selected and snapshots:
        logger.info(
            "No snapshots on or after %s for window %s; returning full history of %d points",
            cutoff.isoformat(),
            parse_window(window).value,
            len(snapshots),
        )
        return list(snapshots), True
    return selected, False


def _snapshots_to_dataframe(snapshots: Sequence[PerformanceSnapshot]) -> pd.DataFrame:
    """
    Convert snapshots into a date-indexed DataFrame with one column per tracked series.
    """
    records = [
        {
            "date": pd.Timestamp(s.date),
            "portfolio": float(s.portfolio_value),
            "benchmark_a": float(s.benchmark_a_value),
            "benchmark_b": float(s.benchmark_b_value),
        }
        for s in snapshots
    ]
    df = pd.DataFrame.from_records(records, columns=["date", *TRACKED_SERIES])
    return df.sort_values("date").set_index("date")


def derive_return_table(
    snapshots: Sequence[PerformanceSnapshot],
    as_of: Optional[date] = None,
    horizons: Sequence[str] = DERIVED_RETURN_HORIZONS,
) -> ReturnTable:
    """Point-to-point return percentages for fixed horizons.

    return = (value at end / value at or before (end - horizon) - 1) * 100

    `end` is the last snapshot on or before `as_of` (default: the last
    snapshot). A horizon longer than the available history, or a
    non-positive base value, yields no figure for that horizon; nothing is
    interpolated.
    """
    table: Dict[str, Dict[str, float]] = {name: {} for name in TRACKED_SERIES}
    if len(snapshots) < 2:
        return ReturnTable(**table)

    df = _snapshots_to_dataframe(snapshots)
    if as_of is not None:
        df = df.loc[: pd.Timestamp(as_of)]
    if df.empty:
        return ReturnTable(**table)

    end_ts = df.index[-1]
    end_row = df.iloc[-1]

    for horizon in horizons:
        months = WINDOW_MONTHS[parse_window(horizon).value]
        base = df.loc[: end_ts - pd.DateOffset(months=months)]
        if base.empty:
            logger.debug("History too short for %s return (ends %s)", horizon, end_ts.date())
            continue
        base_row = base.iloc[-1]
        for name in TRACKED_SERIES:
            base_val = float(base_row[name])
            if base_val <= 0.0:
                logger.warning("Non-positive %s base value on %s; skipping %s return", name, base.index[-1].date(), horizon)
                continue
            table[name][horizon] = (float(end_row[name]) / base_val - 1.0) * 100.0

    return ReturnTable(**table)


def resolve_window_return(
    returns: ReturnTable,
    series: str,
    window: PerformanceWindow | str,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Tuple[float, str]:
    """Look up a series' return for `window`, walking the configured fallback chain.

    A fallback (e.g. 6M served by the 1Y figure) is an approximation; it is
    logged and the horizon actually used is returned alongside the value.
    """
    w = parse_window(window)
    chain = config.window_fallbacks.get(w.value)
    if not chain:
        raise UnsupportedWindowError(w.value, "no fallback chain configured")

    figures = returns.for_series(series)
    for horizon in chain:
        if horizon in figures:
            if horizon != w.value:
                logger.info("No %s return for %s; using %s figure as approximation", w.value, series, horizon)
            return float(figures[horizon]), horizon

    raise UnsupportedWindowError(w.value, f"no {series} return for any of {chain}")


def build_performance_view(
    snapshots: Sequence[PerformanceSnapshot],
    window: PerformanceWindow | str,
    returns: Optional[ReturnTable] = None,
    as_of: Optional[date] = None,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> PerformanceView:
    """Build the chart series and return figures for the selected window.

    `returns` are stored figures reused verbatim; when omitted they are
    derived from the snapshots for the fixed horizons. The series is a pure
    filter of the input (no gap filling).

    A series with no figure anywhere in its fallback chain keeps the chart:
    its return is None and the reason is recorded in `unresolved_returns`.
    Only an unknown window label raises `UnsupportedWindowError`.
    """
    w = parse_window(window)
    as_of = as_of or date.today()

    series, is_full = filter_snapshots_for_window(snapshots, w, as_of)

    if returns is None:
        returns = derive_return_table(snapshots, as_of=as_of)

    served: Dict[str, Optional[float]] = {}
    used: Dict[str, str] = {}
    unresolved: Dict[str, str] = {}
    for name in TRACKED_SERIES:
        try:
            served[name], used[name] = resolve_window_return(returns, name, w, config)
        except UnsupportedWindowError as exc:
            logger.warning("No %s return for %s window: %s", name, w.value, exc)
            served[name] = None
            unresolved[name] = str(exc)

    return PerformanceView(
        window=w,
        series=series,
        returns=served,
        return_windows_used=used,
        unresolved_returns=unresolved,
        all_returns=returns,
        is_full_history=is_full,
        as_of=as_of,
    )


def normalise_series(snapshots: Sequence[PerformanceSnapshot]) -> pd.DataFrame:
    """Rebase every tracked series to 100 at the first snapshot, for comparison charts."""
    df = _snapshots_to_dataframe(snapshots)
    if df.empty:
        return df
    first = df.iloc[0]
    non_positive = [name for name in TRACKED_SERIES if float(first[name]) <= 0.0]
    if non_positive:
        raise ValueError(f"Cannot rebase series with non-positive first value: {non_positive}")
    return df.div(first) * 100.0
