"""Holdings table view.

Stateless search + sort over the raw holdings list. Each call recomputes the
full view from its arguments; nothing is cached between calls.
"""
from __future__ import annotations

from typing import Any, Callable, List, Sequence, Tuple
import logging
import unicodedata

from portfolio_insights.data_models.holding import Holding
from portfolio_insights.data_models.holdings_view import (
    HoldingsView,
    SortDirection,
    SortField,
    SortState,
)

logger = logging.getLogger(__name__)


def matches_search(holding: Holding, search_term: str) -> bool:
    """Case-insensitive substring match on symbol, name or sector."""
    needle = search_term.strip().casefold()
    if not needle:
        return True
    return any(
        needle in field.casefold()
        for field in (holding.symbol, holding.name, holding.sector)
    )


def filter_holdings(holdings: Sequence[Holding], search_term: str = "") -> List[Holding]:
    return [h for h in holdings if matches_search(h, search_term)]


def collation_key(text: str) -> Tuple[str, str]:
    """Case- and accent-insensitive ordering key ("Éclair" sorts with "eclair").

    Accents only break ties between otherwise equal strings.
    """
    folded = text.casefold()
    decomposed = unicodedata.normalize("NFKD", folded)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base, folded


def _sort_key(field: SortField) -> Callable[[Holding], Any]:
    attr = field.value
    if field.is_numeric:
        return lambda h: float(getattr(h, attr))
    return lambda h: collation_key(str(getattr(h, attr)))


def sort_holdings(
    holdings: Sequence[Holding],
    sort_field: SortField | str = SortField.SYMBOL,
    sort_direction: SortDirection | str = SortDirection.ASC,
) -> List[Holding]:
    """Stable sort; equal keys keep their input order in both directions."""
    field = SortField(sort_field)
    direction = SortDirection(sort_direction)
    # sorted(reverse=True) preserves the original order of equal elements
    return sorted(holdings, key=_sort_key(field), reverse=direction is SortDirection.DESC)


def view_holdings(
    holdings: Sequence[Holding],
    search_term: str = "",
    sort_field: SortField | str = SortField.SYMBOL,
    sort_direction: SortDirection | str = SortDirection.ASC,
) -> HoldingsView:
    """Filter by `search_term`, then sort the matches.

    The result tells an empty portfolio (`is_empty_portfolio`) apart from a
    search that matched nothing (`has_no_matches`).
    """
    sort = SortState(field=SortField(sort_field), direction=SortDirection(sort_direction))
    search_term = search_term or ""

    matched = filter_holdings(holdings, search_term)
    rows = sort_holdings(matched, sort.field, sort.direction)

    if holdings and not rows:
        logger.debug("Search %r matched none of %d holdings", search_term, len(holdings))

    return HoldingsView(
        rows=rows,
        total_count=len(holdings),
        search_term=search_term,
        sort=sort,
    )


def next_sort_state(current: SortState | None, field: SortField | str) -> SortState:
    """Sort state after the user clicks a column header."""
    return (current or SortState()).toggle(field)
