"""Repository boundary.

Loads holdings, performance snapshots and the stored summary from plain
records (CSV rows, JSON objects, dicts) into typed models. All validation
of raw input happens here so the aggregators can assume clean data.
"""
from __future__ import annotations

from io import StringIO
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol
import json
import logging
import re

import pandas as pd

from portfolio_insights.config import DEFAULT_CONFIG, AnalyticsConfig
from portfolio_insights.data_models.holding import Holding, Stock
from portfolio_insights.data_models.performance import PerformanceSnapshot
from portfolio_insights.data_models.portfolio_summary import PerformerInfo, PortfolioSummary, RiskLevel
from portfolio_insights.errors import MissingFieldError, NotFoundError
from portfolio_insights.services.summary_service import classify_risk, diversification_label

logger = logging.getLogger(__name__)


HOLDING_TEXT_FIELDS = ("symbol", "name", "sector", "market_cap")
HOLDING_NUMERIC_FIELDS = (
    "quantity",
    "avg_price",
    "current_price",
    "value",
    "gain_loss",
    "gain_loss_percent",
)

# Column aliases seen in dashboard exports (after snake_case normalisation)
SNAPSHOT_COLUMN_ALIASES: Dict[str, str] = {
    "portfolio": "portfolio_value",
    "benchmark_a": "benchmark_a_value",
    "nifty50": "benchmark_a_value",
    "nifty_50": "benchmark_a_value",
    "benchmark_b": "benchmark_b_value",
    "gold": "benchmark_b_value",
}


class PortfolioRepository(Protocol):
    """Data source consumed by the dashboard service."""

    def list_holdings(self) -> List[Holding]: ...

    def list_performance_snapshots(self) -> List[PerformanceSnapshot]: ...

    def get_latest_summary(self) -> Optional[PortfolioSummary]: ...


def normalise_column_name(name: str) -> str:
    """Map `avgPrice`, `Avg Price` or ` avg_price ` to `avg_price`."""
    s = str(name).strip()
    s = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", s)
    s = re.sub(r"[\s\-]+", "_", s)
    return s.lower()


def safe_float(val: Any) -> float | None:
    """Parse a number from a raw cell; None for blanks and unknown markers."""
    if val is None:
        return None
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return None if pd.isna(val) else float(val)
    s = str(val).strip()
    if s == "" or s.lower() in {"unknown", "na", "n/a", "nan", "-"}:
        return None
    # thousands separators and currency marks, e.g. "₹1,23,456.50" or "2'847'611.40"
    s = s.replace(",", "").replace("'", "").replace("₹", "").replace("$", "").rstrip("%")
    try:
        return float(s)
    except ValueError:
        return None


def holding_from_record(
    record: Mapping[str, Any],
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> Holding:
    """Build a `Holding` from a flat `listHoldings()` style record.

    Keys may be snake_case or camelCase. Missing or unparseable required
    fields raise `MissingFieldError` rather than defaulting to 0 / "Unknown".
    """
    row = {normalise_column_name(k): v for k, v in record.items()}
    label = str(row.get("symbol") or "").strip() or None

    text: Dict[str, str] = {}
    for field in HOLDING_TEXT_FIELDS:
        raw = row.get(field)
        if raw is None or (not isinstance(raw, str) and pd.isna(raw)) or str(raw).strip() == "":
            raise MissingFieldError(field, label)
        text[field] = str(raw).strip()

    numbers: Dict[str, float] = {}
    for field in HOLDING_NUMERIC_FIELDS:
        parsed = safe_float(row.get(field))
        if parsed is None:
            raise MissingFieldError(field, label)
        numbers[field] = parsed

    if not float(numbers["quantity"]).is_integer():
        raise MissingFieldError("quantity", label)

    exchange = row.get("exchange")
    if isinstance(exchange, str):
        exchange = exchange.strip() or None
    elif exchange is not None and pd.isna(exchange):
        exchange = None

    holding = Holding(
        stock=Stock(
            symbol=text["symbol"],
            name=text["name"],
            sector=text["sector"],
            market_cap=text["market_cap"],
            exchange=str(exchange) if exchange is not None else None,
        ),
        quantity=int(numbers["quantity"]),
        avg_price=numbers["avg_price"],
        current_price=numbers["current_price"],
        value=numbers["value"],
        gain_loss=numbers["gain_loss"],
        gain_loss_percent=numbers["gain_loss_percent"],
    )

    expected = holding.quantity * holding.current_price
    if abs(holding.value - expected) > config.value_consistency_tolerance * max(abs(expected), 1.0):
        logger.warning(
            "Holding %s value %.2f differs from quantity x current_price %.2f; using supplied value",
            holding.symbol,
            holding.value,
            expected,
        )
    return holding


def snapshot_from_record(record: Mapping[str, Any]) -> PerformanceSnapshot:
    """Build a `PerformanceSnapshot` from a dict with any known column aliases."""
    row: Dict[str, Any] = {}
    for k, v in record.items():
        key = normalise_column_name(k)
        row[SNAPSHOT_COLUMN_ALIASES.get(key, key)] = v

    raw_date = row.get("date")
    if raw_date is None or (isinstance(raw_date, str) and not raw_date.strip()):
        raise MissingFieldError("date")
    try:
        day = pd.to_datetime(raw_date).date()
    except (ValueError, TypeError) as exc:
        raise MissingFieldError("date", str(raw_date)) from exc

    values: Dict[str, float] = {}
    for field in ("portfolio_value", "benchmark_a_value", "benchmark_b_value"):
        parsed = safe_float(row.get(field))
        if parsed is None:
            raise MissingFieldError(field, day.isoformat())
        values[field] = parsed

    return PerformanceSnapshot(date=day, **values)


def _performer_from_record(row: Mapping[str, Any], prefix: str) -> PerformerInfo:
    nested = row.get(prefix)
    if isinstance(nested, Mapping):
        fields = {normalise_column_name(k): v for k, v in nested.items()}
        symbol, name = fields.get("symbol"), fields.get("name")
        gain = safe_float(fields.get("gain_percent", fields.get("gain")))
    else:
        symbol, name = row.get(f"{prefix}_symbol"), row.get(f"{prefix}_name")
        gain = safe_float(row.get(f"{prefix}_gain", row.get(f"{prefix}_gain_percent")))

    if not symbol or gain is None:
        raise MissingFieldError(prefix)
    return PerformerInfo(symbol=str(symbol), name=str(name or ""), gain_percent=gain)


def summary_from_record(record: Optional[Mapping[str, Any]]) -> PortfolioSummary:
    """Normalise a stored summary record into a `PortfolioSummary`.

    Accepts the flat storage layout (`topPerformerSymbol`, `topPerformerGain`,
    ...) and the nested API layout (`topPerformer: {symbol, name, gainPercent}`).
    `None` means the store has no summary yet and raises `NotFoundError`.
    A missing score is kept as None (risk "Unknown" unless stored), never 0.
    """
    if record is None:
        raise NotFoundError("portfolio summary")

    row = {normalise_column_name(k): v for k, v in record.items()}

    totals: Dict[str, float] = {}
    for field in ("total_value", "total_invested", "total_gain_loss", "total_gain_loss_percent"):
        parsed = safe_float(row.get(field))
        if parsed is None:
            raise MissingFieldError(field, "portfolio summary")
        totals[field] = parsed

    score = safe_float(row.get("diversification_score"))

    raw_risk = row.get("risk_level")
    if raw_risk is None or str(raw_risk).strip() == "":
        risk = classify_risk(score)
    else:
        lookup = {r.value.lower(): r for r in RiskLevel}
        risk = lookup.get(str(raw_risk).strip().lower())
        if risk is None:
            raise MissingFieldError("risk_level", str(raw_risk))

    holdings_count = safe_float(row.get("number_of_holdings"))

    return PortfolioSummary(
        **totals,
        top_performer=_performer_from_record(row, "top_performer"),
        worst_performer=_performer_from_record(row, "worst_performer"),
        diversification_score=score,
        diversification_label=diversification_label(score),
        risk_level=risk,
        number_of_holdings=int(holdings_count) if holdings_count is not None else None,
    )


def _read_csv_text(path: Path) -> pd.DataFrame:
    """Read a CSV that may be wrapped in markdown code fences (```csv ... ```)."""
    text = path.read_text(encoding="utf-8")
    cleaned = "\n".join(ln for ln in text.splitlines() if not ln.strip().startswith("```"))
    if not cleaned.strip():
        raise ValueError(f"No rows found in {path} after parsing")
    df = pd.read_csv(StringIO(cleaned), dtype=str, keep_default_na=False, skipinitialspace=True)
    df.columns = [normalise_column_name(c) for c in df.columns]
    return df


def load_holdings_from_csv(
    csv_path: Path | str,
    config: AnalyticsConfig = DEFAULT_CONFIG,
) -> List[Holding]:
    """Load a holdings export (one row per position) into `Holding` objects.

    Required columns: symbol, name, sector, market_cap, quantity, avg_price,
    current_price, value, gain_loss, gain_loss_percent. `exchange` is optional.
    An export with a header but no rows is an empty portfolio, not an error.
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Holdings CSV file not found: {path}")

    df = _read_csv_text(path)

    required = set(HOLDING_TEXT_FIELDS) | set(HOLDING_NUMERIC_FIELDS)
    missing = required - set(df.columns)
    if missing:
        raise MissingFieldError(", ".join(sorted(missing)), str(path))

    holdings = [holding_from_record(r, config) for r in df.to_dict(orient="records")]

    symbols = [h.symbol for h in holdings]
    duplicates = sorted({s for s in symbols if symbols.count(s) > 1})
    if duplicates:
        raise ValueError(f"Duplicate holdings for symbols {duplicates} in {path}")

    logger.info("Loaded %d holdings from %s", len(holdings), path)
    return holdings


def load_performance_from_csv(csv_path: Path | str) -> List[PerformanceSnapshot]:
    """Load dated portfolio / benchmark values, sorted ascending by date.

    Parameters
    ----------
    csv_path : Path | str
        CSV with a `date` column plus portfolio and two benchmark columns
        (`portfolio_value`/`portfolio`, `benchmark_a_value`/`nifty50`,
        `benchmark_b_value`/`gold`).

    Returns
    -------
    List[PerformanceSnapshot]
        One snapshot per row; duplicate dates raise `ValueError`.
    """
    path = Path(csv_path)
    if not path.exists():
        raise FileNotFoundError(f"Performance CSV file not found: {path}")

    df = _read_csv_text(path)
    df.columns = [SNAPSHOT_COLUMN_ALIASES.get(c, c) for c in df.columns]

    required_cols = {"date", "portfolio_value", "benchmark_a_value", "benchmark_b_value"}
    missing = required_cols - set(df.columns)
    if missing:
        raise MissingFieldError(", ".join(sorted(missing)), str(path))

    snapshots = [snapshot_from_record(r) for r in df.to_dict(orient="records")]
    snapshots.sort(key=lambda s: s.date)

    dates = [s.date for s in snapshots]
    if len(set(dates)) != len(dates):
        dupes = sorted({d.isoformat() for d in dates if dates.count(d) > 1})
        raise ValueError(f"Duplicate snapshot dates in {path}: {dupes}")

    logger.info("Loaded %d performance snapshots from %s", len(snapshots), path)
    return snapshots


def load_summary_from_json(json_path: Path | str) -> PortfolioSummary:
    """Load the stored portfolio summary record; a missing file is `NotFoundError`."""
    path = Path(json_path)
    if not path.exists():
        raise NotFoundError(f"portfolio summary at {path}")
    record = json.loads(path.read_text(encoding="utf-8"))
    return summary_from_record(record)


class InMemoryPortfolioRepository:
    """Repository over in-memory lists; each call hands out a fresh list."""

    def __init__(
        self,
        holdings: List[Holding] | None = None,
        snapshots: List[PerformanceSnapshot] | None = None,
        summary: PortfolioSummary | None = None,
    ):
        self._holdings = list(holdings or [])
        self._snapshots = sorted(snapshots or [], key=lambda s: s.date)
        self._summary = summary

    @classmethod
    def from_records(
        cls,
        holdings: List[Mapping[str, Any]],
        snapshots: List[Mapping[str, Any]] | None = None,
        summary: Mapping[str, Any] | None = None,
    ) -> "InMemoryPortfolioRepository":
        return cls(
            holdings=[holding_from_record(r) for r in holdings],
            snapshots=[snapshot_from_record(r) for r in (snapshots or [])],
            summary=summary_from_record(summary) if summary is not None else None,
        )

    def list_holdings(self) -> List[Holding]:
        return list(self._holdings)

    def list_performance_snapshots(self) -> List[PerformanceSnapshot]:
        return list(self._snapshots)

    def get_latest_summary(self) -> Optional[PortfolioSummary]:
        return self._summary


class CsvPortfolioRepository:
    """Repository backed by CSV exports and an optional summary JSON file."""

    def __init__(
        self,
        holdings_path: Path | str,
        performance_path: Path | str | None = None,
        summary_path: Path | str | None = None,
        config: AnalyticsConfig = DEFAULT_CONFIG,
    ):
        self.holdings_path = Path(holdings_path)
        self.performance_path = Path(performance_path) if performance_path else None
        self.summary_path = Path(summary_path) if summary_path else None
        self.config = config

    def list_holdings(self) -> List[Holding]:
        return load_holdings_from_csv(self.holdings_path, self.config)

    def list_performance_snapshots(self) -> List[PerformanceSnapshot]:
        if self.performance_path is None:
            return []
        return load_performance_from_csv(self.performance_path)

    def get_latest_summary(self) -> Optional[PortfolioSummary]:
        if self.summary_path is None or not self.summary_path.exists():
            return None
        return load_summary_from_json(self.summary_path)
