from __future__ import annotations

import re
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, computed_field

from portfolio_insights.data_models.holding import Holding


class SortField(str, Enum):
    """Sortable holdings table columns."""

    SYMBOL = "symbol"
    NAME = "name"
    SECTOR = "sector"
    MARKET_CAP = "market_cap"
    QUANTITY = "quantity"
    AVG_PRICE = "avg_price"
    CURRENT_PRICE = "current_price"
    VALUE = "value"
    GAIN_LOSS = "gain_loss"
    GAIN_LOSS_PERCENT = "gain_loss_percent"

    @classmethod
    def _missing_(cls, value):
        # accept the camelCase column names used by the dashboard ("avgPrice")
        if isinstance(value, str):
            snake = re.sub(r"(?<!^)(?=[A-Z])", "_", value.strip()).lower()
            for member in cls:
                if member.value == snake:
                    return member
        return None

    @property
    def is_numeric(self) -> bool:
        return self in NUMERIC_SORT_FIELDS


NUMERIC_SORT_FIELDS = frozenset(
    {
        SortField.QUANTITY,
        SortField.AVG_PRICE,
        SortField.CURRENT_PRICE,
        SortField.VALUE,
        SortField.GAIN_LOSS,
        SortField.GAIN_LOSS_PERCENT,
    }
)


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def flipped(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class SortState(BaseModel):
    """Current sort column and direction of the holdings table."""

    model_config = ConfigDict(frozen=True)

    field: SortField = SortField.SYMBOL
    direction: SortDirection = SortDirection.ASC

    def toggle(self, field: SortField | str) -> "SortState":
        """Same column flips the direction; a new column starts ascending."""
        field = SortField(field)
        if field == self.field:
            return SortState(field=field, direction=self.direction.flipped())
        return SortState(field=field, direction=SortDirection.ASC)


class HoldingsView(BaseModel):
    """Filtered and sorted holdings ready for the table.

    `is_empty_portfolio` and `has_no_matches` are mutually exclusive so the
    caller can tell "no holdings at all" from "nothing matches the search".
    """

    rows: List[Holding]
    total_count: int
    search_term: str = ""
    sort: SortState = SortState()

    @computed_field
    @property
    def match_count(self) -> int:
        return len(self.rows)

    @computed_field
    @property
    def is_empty_portfolio(self) -> bool:
        return self.total_count == 0

    @computed_field
    @property
    def has_no_matches(self) -> bool:
        return self.total_count > 0 and not self.rows
