"""Portfolio summary computations.

Totals, best/worst performer and a diversification score with its risk
bucket. The scoring function is a pluggable policy; the default scores the
evenness of the sector and market-cap value distributions.
"""
from __future__ import annotations

from typing import Callable, Optional, Protocol, Sequence, Tuple
import logging

import numpy as np

from portfolio_insights.config import (
    DEFAULT_CONFIG,
    DEFAULT_DIVERSIFICATION_LABEL,
    DIVERSIFICATION_LABELS,
    AnalyticsConfig,
)
from portfolio_insights.data_models.holding import Holding
from portfolio_insights.data_models.portfolio_summary import (
    PerformerInfo,
    PortfolioSummary,
    RiskLevel,
)
from portfolio_insights.errors import EmptyPortfolioError

logger = logging.getLogger(__name__)


class DiversificationPolicy(Protocol):
    def score(self, holdings: Sequence[Holding]) -> Optional[float]:
        """Return a 0-10 score, higher for a more even spread."""
        ...


def herfindahl_index(values: Sequence[float]) -> float:
    """Sum of squared value shares: 1.0 for a single category, 1/n for n equal ones."""
    arr = np.asarray(values, dtype=float)
    total = arr.sum()
    if arr.size == 0 or total <= 0.0:
        raise EmptyPortfolioError("concentration index")
    shares = arr / total
    return float(np.square(shares).sum())


def _category_values(holdings: Sequence[Holding], key: Callable[[Holding], str]) -> list[float]:
    sums: dict[str, float] = {}
    for h in holdings:
        label = key(h)
        sums[label] = sums.get(label, 0.0) + float(h.value)
    return list(sums.values())


class ConcentrationDiversificationPolicy:
    """Score = 10 x weighted mean of (1 - HHI) over sector and market-cap shares.

    A portfolio in one sector and one band scores 0; adding categories or
    evening out their weights strictly raises the score.
    """

    def __init__(self, config: AnalyticsConfig = DEFAULT_CONFIG):
        self.sector_weight = config.sector_weight
        self.market_cap_weight = config.market_cap_weight

    def score(self, holdings: Sequence[Holding]) -> Optional[float]:
        if not holdings:
            return None
        weight_total = self.sector_weight + self.market_cap_weight
        if weight_total <= 0.0:
            raise ValueError("sector_weight + market_cap_weight must be positive")

        sector_evenness = 1.0 - herfindahl_index(_category_values(holdings, lambda h: h.sector))
        cap_evenness = 1.0 - herfindahl_index(_category_values(holdings, lambda h: h.market_cap))

        raw = 10.0 * (self.sector_weight * sector_evenness + self.market_cap_weight * cap_evenness) / weight_total
        return float(min(max(raw, 0.0), 10.0))


def classify_risk(score: Optional[float], config: AnalyticsConfig = DEFAULT_CONFIG) -> RiskLevel:
    """Bucket a diversification score: Low >= 8, Moderate >= 5, else High; None is Unknown."""
    if score is None:
        return RiskLevel.UNKNOWN
    if score >= config.risk_low_min_score:
        return RiskLevel.LOW
    if score >= config.risk_moderate_min_score:
        return RiskLevel.MODERATE
    return RiskLevel.HIGH


def diversification_label(score: Optional[float]) -> Optional[str]:
    if score is None:
        return None
    for threshold, label in DIVERSIFICATION_LABELS:
        if score >= threshold:
            return label
    return DEFAULT_DIVERSIFICATION_LABEL


def select_performers(holdings: Sequence[Holding]) -> Tuple[Holding, Holding]:
    """Holdings with the highest and lowest `gain_loss_percent`.

    Ties go to the holding that appears first in the input.
    """
    if not holdings:
        raise EmptyPortfolioError("top/worst performer")
    # max()/min() return the first of equal keys
    top = max(holdings, key=lambda h: h.gain_loss_percent)
    worst = min(holdings, key=lambda h: h.gain_loss_percent)
    return top, worst


def _performer(h: Holding) -> PerformerInfo:
    return PerformerInfo(symbol=h.symbol, name=h.name, gain_percent=h.gain_loss_percent)


def compute_summary(
    holdings: Sequence[Holding],
    config: AnalyticsConfig = DEFAULT_CONFIG,
    policy: Optional[DiversificationPolicy] = None,
) -> PortfolioSummary:
    """Compute the portfolio summary from the current holdings.

    total_gain_loss_percent = (total_value - total_invested) / total_invested * 100

    Values are kept at full precision; call `.rounded()` on the result for
    display. Raises `EmptyPortfolioError` for an empty list or when nothing
    is invested.
    """
    if not holdings:
        raise EmptyPortfolioError("portfolio summary")

    total_value = float(sum(h.value for h in holdings))
    total_invested = float(sum(h.invested for h in holdings))
    if total_invested <= 0.0:
        raise EmptyPortfolioError("total gain/loss percent (total invested is zero)")

    total_gain_loss = total_value - total_invested
    total_gain_loss_percent = total_gain_loss / total_invested * 100.0

    top, worst = select_performers(holdings)

    policy = policy or ConcentrationDiversificationPolicy(config)
    score = policy.score(holdings)
    risk = classify_risk(score, config)

    summary = PortfolioSummary(
        total_value=total_value,
        total_invested=total_invested,
        total_gain_loss=total_gain_loss,
        total_gain_loss_percent=total_gain_loss_percent,
        top_performer=_performer(top),
        worst_performer=_performer(worst),
        diversification_score=score,
        diversification_label=diversification_label(score),
        risk_level=risk,
        number_of_holdings=len(holdings),
    )

    logger.info(
        "Computed summary for %d holdings: value %.2f, gain %.2f%%, diversification %s (%s)",
        len(holdings),
        total_value,
        total_gain_loss_percent,
        f"{score:.1f}" if score is not None else "n/a",
        risk.value,
    )
    return summary
