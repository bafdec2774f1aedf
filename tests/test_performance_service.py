from datetime import date

import pytest

from portfolio_insights.data_models.performance import (
    PerformanceSnapshot,
    PerformanceWindow,
    ReturnTable,
)
from portfolio_insights.errors import UnsupportedWindowError
from portfolio_insights.services.performance_service import (
    build_performance_view,
    derive_return_table,
    filter_snapshots_for_window,
    normalise_series,
    parse_window,
    resolve_window_return,
    window_start,
)


MONTH_ENDS = [
    date(2025, 1, 31),
    date(2025, 2, 28),
    date(2025, 3, 31),
    date(2025, 4, 30),
    date(2025, 5, 31),
    date(2025, 6, 30),
    date(2025, 7, 31),
    date(2025, 8, 31),
    date(2025, 9, 30),
    date(2025, 10, 31),
    date(2025, 11, 30),
    date(2025, 12, 31),
    date(2026, 1, 31),
]


def _snap(d: date, portfolio: float, bench_a: float = 100.0, bench_b: float = 50.0) -> PerformanceSnapshot:
    return PerformanceSnapshot(date=d, portfolio_value=portfolio, benchmark_a_value=bench_a, benchmark_b_value=bench_b)


def _monthly_series():
    return [_snap(d, 1000.0 + 10.0 * i) for i, d in enumerate(MONTH_ENDS)]


def _full_table() -> ReturnTable:
    return ReturnTable(
        portfolio={"1M": 2.3, "3M": 8.1, "1Y": 15.7},
        benchmark_a={"1M": 1.8, "3M": 6.2, "1Y": 12.4},
        benchmark_b={"1M": -0.5, "3M": 4.1, "1Y": 8.9},
    )


def test_filter_keeps_window_in_input_order():
    series = _monthly_series()

    selected, is_full = filter_snapshots_for_window(series, "3M", as_of=date(2026, 1, 31))

    assert not is_full
    assert [s.date for s in selected] == MONTH_ENDS[-4:]


def test_window_longer_than_history_returns_everything_available():
    series = _monthly_series()[-3:]

    selected, is_full = filter_snapshots_for_window(series, PerformanceWindow.ONE_YEAR, as_of=date(2026, 1, 31))

    assert selected == series
    assert not is_full


def test_stale_history_falls_back_to_full_series():
    series = [_snap(date(2020, 1, 1), 10.0), _snap(date(2020, 2, 1), 11.0)]

    selected, is_full = filter_snapshots_for_window(series, "1M", as_of=date(2026, 1, 31))

    assert selected == series
    assert is_full


def test_filter_on_empty_series_is_empty():
    selected, is_full = filter_snapshots_for_window([], "6M", as_of=date(2026, 1, 31))
    assert selected == []
    assert not is_full


def test_window_start_uses_calendar_months():
    assert window_start("1M", date(2026, 3, 31)) == date(2026, 2, 28)
    assert window_start("1Y", date(2026, 1, 15)) == date(2025, 1, 15)


def test_parse_window_rejects_unknown_label():
    assert parse_window("6m") is PerformanceWindow.SIX_MONTHS
    with pytest.raises(UnsupportedWindowError):
        parse_window("5Y")


def test_derive_return_table_point_to_point():
    series = [
        _snap(date(2025, 1, 31), 100.0, 200.0, 50.0),
        _snap(date(2025, 10, 31), 110.0, 210.0, 50.0),
        _snap(date(2025, 12, 31), 120.0, 220.0, 40.0),
        _snap(date(2026, 1, 31), 132.0, 231.0, 44.0),
    ]

    table = derive_return_table(series)

    assert table.portfolio["1M"] == pytest.approx(10.0)
    assert table.portfolio["3M"] == pytest.approx(20.0)
    assert table.portfolio["1Y"] == pytest.approx(32.0)
    assert table.benchmark_a["1M"] == pytest.approx(5.0)
    assert table.benchmark_b["1M"] == pytest.approx(10.0)
    # 6M base is the last point on or before 2025-07-31
    assert table.portfolio["6M"] == pytest.approx(32.0)


def test_derive_return_table_skips_horizons_beyond_history():
    series = [_snap(date(2025, 12, 31), 100.0), _snap(date(2026, 1, 31), 105.0)]

    table = derive_return_table(series)

    assert table.portfolio == {"1M": pytest.approx(5.0)}
    assert derive_return_table(series[:1]).portfolio == {}


def test_six_month_request_falls_back_to_one_year_then_three_months():
    table = _full_table()
    value, used = resolve_window_return(table, "portfolio", "6M")
    assert (value, used) == (15.7, "1Y")

    no_year = ReturnTable(portfolio={"3M": 8.1})
    value, used = resolve_window_return(no_year, "portfolio", "6M")
    assert (value, used) == (8.1, "3M")


def test_missing_return_without_fallback_is_a_named_error():
    with pytest.raises(UnsupportedWindowError):
        resolve_window_return(ReturnTable(portfolio={"3M": 8.1}), "portfolio", "1Y")


def test_build_view_reuses_supplied_returns_verbatim():
    view = build_performance_view(_monthly_series(), "3M", returns=_full_table(), as_of=date(2026, 1, 31))

    assert view.window is PerformanceWindow.THREE_MONTHS
    assert view.returns == {"portfolio": 8.1, "benchmark_a": 6.2, "benchmark_b": 4.1}
    assert view.return_windows_used == {"portfolio": "3M", "benchmark_a": "3M", "benchmark_b": "3M"}
    assert not view.uses_fallback
    assert len(view.series) == 4


def test_build_view_flags_fallback():
    view = build_performance_view(_monthly_series(), "6M", returns=_full_table(), as_of=date(2026, 1, 31))

    assert view.uses_fallback
    assert view.returns["benchmark_b"] == 8.9
    assert [s.date for s in view.series] == MONTH_ENDS[-7:]


def test_build_view_derives_returns_when_not_supplied():
    view = build_performance_view(_monthly_series(), "1Y", as_of=date(2026, 1, 31))

    # 1000 -> 1120 over twelve months
    assert view.returns["portfolio"] == pytest.approx(12.0)
    assert view.returns["benchmark_a"] == pytest.approx(0.0)
    assert len(view.series) == 13


def test_derived_six_month_return_is_exact():
    view = build_performance_view(_monthly_series(), "6M", as_of=date(2026, 1, 31))

    # 1060 on 2025-07-31 -> 1120 on 2026-01-31
    assert view.returns["portfolio"] == pytest.approx((1120.0 / 1060.0 - 1.0) * 100.0)
    assert view.return_windows_used["portfolio"] == "6M"
    assert not view.uses_fallback


def test_short_history_keeps_series_without_return():
    series = [_snap(date(2026, 1, 10), 100.0), _snap(date(2026, 1, 20), 101.0)]

    view = build_performance_view(series, "1Y", as_of=date(2026, 1, 31))

    assert view.series == series
    assert not view.is_full_history
    assert view.returns == {"portfolio": None, "benchmark_a": None, "benchmark_b": None}
    assert view.return_windows_used == {}
    assert set(view.unresolved_returns) == {"portfolio", "benchmark_a", "benchmark_b"}
    assert "1Y" in view.unresolved_returns["portfolio"]


def test_partially_resolved_returns_keep_the_rest():
    table = ReturnTable(portfolio={"3M": 8.1}, benchmark_a={"3M": 6.2})

    view = build_performance_view(_monthly_series(), "3M", returns=table, as_of=date(2026, 1, 31))

    assert view.returns == {"portfolio": 8.1, "benchmark_a": 6.2, "benchmark_b": None}
    assert list(view.unresolved_returns) == ["benchmark_b"]
    assert len(view.series) == 4


def test_unknown_window_label_still_raises():
    with pytest.raises(UnsupportedWindowError):
        build_performance_view(_monthly_series(), "2W", as_of=date(2026, 1, 31))


def test_build_view_is_idempotent():
    series = _monthly_series()
    first = build_performance_view(series, "3M", returns=_full_table(), as_of=date(2026, 1, 31))
    second = build_performance_view(series, "3M", returns=_full_table(), as_of=date(2026, 1, 31))
    assert first == second


def test_normalise_series_rebases_to_100():
    series = [_snap(date(2025, 1, 1), 200.0, 50.0, 10.0), _snap(date(2025, 2, 1), 220.0, 45.0, 12.0)]

    df = normalise_series(series)

    assert df["portfolio"].tolist() == pytest.approx([100.0, 110.0])
    assert df["benchmark_a"].tolist() == pytest.approx([100.0, 90.0])
    assert df["benchmark_b"].tolist() == pytest.approx([100.0, 120.0])
