"""Holding models.

`Stock` is the immutable reference data for a listed equity. `Holding` is one
active position in that stock with its cost basis and current valuation, as
supplied by the holdings repository.
"""
from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Stock(BaseModel):
    """Reference data for one listed equity.

    Attributes:
        symbol: Exchange ticker, unique per stock.
        name: Company name.
        sector: Sector label (free-form categorical string).
        market_cap: Market-cap band, e.g. "Large Cap", "Mid Cap".
        exchange: Listing exchange, if known.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(min_length=1)
    name: str
    sector: str
    market_cap: str
    exchange: Optional[str] = None

    @field_validator("symbol")
    @classmethod
    def _strip_symbol(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("symbol must not be blank")
        return v


class Holding(BaseModel):
    """A single position in one stock.

    `value`, `gain_loss` and `gain_loss_percent` are supplied by the upstream
    source and are never re-derived here; the analytics only aggregate them.
    """

    model_config = ConfigDict(frozen=True)

    stock: Stock
    quantity: int = Field(gt=0)
    avg_price: float = Field(gt=0)
    current_price: float = Field(gt=0)
    value: float
    gain_loss: float
    gain_loss_percent: float

    @property
    def symbol(self) -> str:
        return self.stock.symbol

    @property
    def name(self) -> str:
        return self.stock.name

    @property
    def sector(self) -> str:
        return self.stock.sector

    @property
    def market_cap(self) -> str:
        return self.stock.market_cap

    @property
    def invested(self) -> float:
        """Cost basis of the position (quantity x average price)."""
        return self.quantity * self.avg_price
