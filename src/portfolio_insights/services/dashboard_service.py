"""Dashboard assembly.

Reads the repository once and runs each aggregator over the same records.
Each section fails independently: an analytics error in one section is
recorded on the payload (or re-raised with `strict=True`) and never replaced
by made-up numbers.
"""
from __future__ import annotations

from datetime import date
from typing import Callable, Optional, TypeVar
import logging

from portfolio_insights.config import DEFAULT_CONFIG, AnalyticsConfig
from portfolio_insights.data_models.dashboard import DashboardPayload, SectionError
from portfolio_insights.data_models.holdings_view import SortState
from portfolio_insights.data_models.performance import PerformanceWindow, ReturnTable
from portfolio_insights.errors import NotFoundError, PortfolioInsightsError
from portfolio_insights.services.allocation_service import compute_allocation_breakdown
from portfolio_insights.services.holdings_view_service import view_holdings
from portfolio_insights.services.performance_service import build_performance_view
from portfolio_insights.services.repository_service import PortfolioRepository
from portfolio_insights.services.summary_service import compute_summary

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _run_section(name: str, payload: DashboardPayload, strict: bool, fn: Callable[[], T]) -> Optional[T]:
    try:
        return fn()
    except PortfolioInsightsError as exc:
        if strict:
            raise
        logger.warning("Dashboard section %s unavailable: %s", name, exc)
        payload.errors[name] = SectionError(error_type=type(exc).__name__, message=str(exc))
        return None


def build_dashboard(
    repository: PortfolioRepository,
    window: PerformanceWindow | str | None = None,
    search_term: str = "",
    sort: SortState | None = None,
    as_of: date | None = None,
    returns: ReturnTable | None = None,
    prefer_stored_summary: bool = False,
    strict: bool = False,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> DashboardPayload:
    """Compute allocation, performance, summary and holdings views.

    The summary is computed from holdings unless `prefer_stored_summary` is
    set, in which case the repository's latest summary is used and its
    absence is reported as `NotFoundError`.
    """
    as_of = as_of or date.today()
    window = window or config.default_window
    sort = sort or SortState()

    holdings = repository.list_holdings()
    snapshots = repository.list_performance_snapshots()

    payload = DashboardPayload(as_of=as_of)

    payload.allocation = _run_section(
        "allocation", payload, strict, lambda: compute_allocation_breakdown(holdings)
    )
    payload.performance = _run_section(
        "performance",
        payload,
        strict,
        lambda: build_performance_view(snapshots, window, returns=returns, as_of=as_of, config=config),
    )

    if prefer_stored_summary:
        def _stored():
            stored = repository.get_latest_summary()
            if stored is None:
                raise NotFoundError("portfolio summary")
            return stored.rounded()

        payload.summary = _run_section("summary", payload, strict, _stored)
        payload.summary_source = "stored" if payload.summary is not None else None
    else:
        payload.summary = _run_section(
            "summary", payload, strict, lambda: compute_summary(holdings, config).rounded()
        )
        payload.summary_source = "computed" if payload.summary is not None else None

    payload.holdings = view_holdings(holdings, search_term, sort.field, sort.direction)

    logger.info(
        "Built dashboard as of %s: %d holdings, %d snapshots, %d section errors",
        as_of.isoformat(),
        len(holdings),
        len(snapshots),
        len(payload.errors),
    )
    return payload
