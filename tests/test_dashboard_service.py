from datetime import date
from pathlib import Path

import pytest

from portfolio_insights.data_models.holdings_view import SortDirection, SortField, SortState
from portfolio_insights.data_models.performance import ReturnTable
from portfolio_insights.errors import EmptyPortfolioError, NotFoundError
from portfolio_insights.services.dashboard_service import build_dashboard
from portfolio_insights.services.repository_service import (
    CsvPortfolioRepository,
    InMemoryPortfolioRepository,
)


DATA = Path(__file__).resolve().parents[1] / "data"


def _records():
    holdings = [
        {
            "symbol": "AAA",
            "name": "Alpha Tech",
            "sector": "Technology",
            "marketCap": "Large Cap",
            "quantity": 100,
            "avgPrice": 600,
            "currentPrice": 700,
            "value": 70000,
            "gainLoss": 10000,
            "gainLossPercent": 16.6667,
        },
        {
            "symbol": "BBB",
            "name": "Beta Power",
            "sector": "Energy",
            "marketCap": "Mid Cap",
            "quantity": 50,
            "avgPrice": 800,
            "currentPrice": 914,
            "value": 45700,
            "gainLoss": 5700,
            "gainLossPercent": 14.25,
        },
    ]
    snapshots = [
        {"date": "2025-12-31", "portfolio": 110000, "nifty50": 24910, "gold": 70420},
        {"date": "2026-01-31", "portfolio": 115700, "nifty50": 24507, "gold": 68063},
    ]
    return holdings, snapshots


def _returns() -> ReturnTable:
    return ReturnTable(
        portfolio={"1M": 2.3, "3M": 8.1, "1Y": 15.7},
        benchmark_a={"1M": 1.8, "3M": 6.2, "1Y": 12.4},
        benchmark_b={"1M": -0.5, "3M": 4.1, "1Y": 8.9},
    )


def test_dashboard_from_in_memory_repository():
    holdings, snapshots = _records()
    repo = InMemoryPortfolioRepository.from_records(holdings, snapshots)

    payload = build_dashboard(
        repo,
        window="6M",
        search_term="tech",
        sort=SortState(field=SortField.VALUE, direction=SortDirection.DESC),
        as_of=date(2026, 1, 31),
        returns=_returns(),
    )

    assert payload.errors == {}
    assert payload.summary_source == "computed"
    assert payload.summary.total_gain_loss_percent == 15.70
    assert payload.allocation.by_sector["Technology"].percentage == 60.5
    assert payload.allocation.by_market_cap["Mid Cap"].percentage == 39.5
    assert payload.performance.returns["portfolio"] == 15.7
    assert payload.performance.return_windows_used["portfolio"] == "1Y"
    assert [h.symbol for h in payload.holdings.rows] == ["AAA"]


def test_empty_portfolio_degrades_per_section():
    repo = InMemoryPortfolioRepository()

    payload = build_dashboard(repo, window="3M", as_of=date(2026, 1, 31), returns=_returns())

    assert payload.allocation is None
    assert payload.summary is None
    assert payload.errors["allocation"].error_type == "EmptyPortfolioError"
    assert payload.errors["summary"].error_type == "EmptyPortfolioError"
    assert payload.performance.series == []
    assert payload.holdings.is_empty_portfolio


def test_strict_mode_raises_first_error():
    with pytest.raises(EmptyPortfolioError):
        build_dashboard(InMemoryPortfolioRepository(), returns=_returns(), strict=True)


def test_stored_summary_missing_is_not_found():
    holdings, snapshots = _records()
    repo = InMemoryPortfolioRepository.from_records(holdings, snapshots)

    payload = build_dashboard(repo, as_of=date(2026, 1, 31), returns=_returns(), prefer_stored_summary=True)
    assert payload.summary is None
    assert payload.errors["summary"].error_type == "NotFoundError"

    with pytest.raises(NotFoundError):
        build_dashboard(repo, returns=_returns(), prefer_stored_summary=True, strict=True)


def test_dashboard_from_sample_files():
    repo = CsvPortfolioRepository(
        DATA / "sample_holdings.csv",
        DATA / "sample_performance.csv",
        DATA / "sample_summary.json",
    )

    computed = build_dashboard(repo, window="3M", as_of=date(2026, 1, 31))
    stored = build_dashboard(repo, window="3M", as_of=date(2026, 1, 31), prefer_stored_summary=True)

    assert computed.errors == {}
    assert computed.summary.number_of_holdings == 8
    assert computed.summary.top_performer.symbol == "PERSISTENT"
    assert computed.summary.worst_performer.symbol == "CDSL"
    assert computed.summary.total_gain_loss_percent == pytest.approx(stored.summary.total_gain_loss_percent, abs=0.01)
    assert stored.summary_source == "stored"
    assert sum(s.percentage for s in computed.allocation.by_sector.values()) == pytest.approx(100.0, abs=0.5)
    assert [s.date for s in computed.performance.series][0] == date(2025, 10, 31)
    assert len(computed.performance.series) == 4
    assert computed.performance.return_windows_used["portfolio"] == "3M"


def test_sample_history_too_short_for_one_year_return_keeps_chart():
    # the series ends 2026-01-30, one day short of a full year after its first point
    repo = CsvPortfolioRepository(DATA / "sample_holdings.csv", DATA / "sample_performance.csv")

    payload = build_dashboard(repo, window="1Y", as_of=date(2026, 1, 31))

    assert "performance" not in payload.errors
    assert len(payload.performance.series) == 13
    assert payload.performance.returns["portfolio"] is None
    assert "1Y" in payload.performance.unresolved_returns["portfolio"]
    assert payload.allocation is not None


def test_sample_six_month_return_is_derived_exactly():
    repo = CsvPortfolioRepository(DATA / "sample_holdings.csv", DATA / "sample_performance.csv")

    payload = build_dashboard(repo, window="6M", as_of=date(2026, 1, 31))

    # base is the last point on or before 2025-07-30: 2025-06-30 (688900)
    assert payload.performance.return_windows_used["portfolio"] == "6M"
    assert payload.performance.returns["portfolio"] == pytest.approx((745016 / 688900 - 1) * 100)
