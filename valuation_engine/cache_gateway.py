"""
Cache Gateway - Persisted Canonical Payloads Keyed by Ticker

Defines the cache row schema, the staleness predicate and the get/put
contract the orchestrator depends on, plus two implementations:

    FileCacheGateway      one JSON file per symbol under a cache directory
    InMemoryCacheGateway  process-local dictionary

Row schema:
    symbol, quote, fcf_history, analyst_growth_rate_5y, suggested_wacc,
    wacc_source, valuation_metrics, growth_rate, discount_rate,
    terminal_growth_rate, projection_years, intrinsic_value_per_share,
    current_price, updated_at

Upserts are keyed by the upper-cased symbol and are last-write-wins.

Version: 1.0.0
"""

from __future__ import annotations

import json
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Any, Tuple

from .canonical import (
    CanonicalPayload,
    FCFEntry,
    Quote,
    SavedDCFParams,
    ValuationMetricEntry,
)
from .config import LOGGER


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _optional_float(value: Any) -> Optional[float]:
    return float(value) if _is_finite_number(value) else None


def _dict_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


# =============================================================================
# CACHE RECORD
# =============================================================================

@dataclass(frozen=True)
class CacheRecord:
    """
    One cached row.

    quote, fcf_history and valuation_metrics are stored in their serialized
    (camelCase) form so rows survive JSON round trips unchanged.
    """

    symbol: str
    quote: Dict[str, Any] = field(default_factory=dict)
    fcf_history: List[Dict[str, Any]] = field(default_factory=list)
    analyst_growth_rate_5y: Optional[float] = None
    suggested_wacc: Optional[float] = None
    wacc_source: Optional[str] = None
    valuation_metrics: List[Dict[str, Any]] = field(default_factory=list)

    # Saved analysis
    growth_rate: Optional[float] = None
    discount_rate: Optional[float] = None
    terminal_growth_rate: Optional[float] = None
    projection_years: Optional[int] = None
    intrinsic_value_per_share: Optional[float] = None
    current_price: Optional[float] = None

    updated_at: Optional[str] = None

    @classmethod
    def from_payload(cls, symbol: str, payload: CanonicalPayload) -> "CacheRecord":
        """Build a row from a payload, carrying any saved DCF parameters."""
        saved = payload.saved_dcf_params
        return cls(
            symbol=symbol.upper(),
            quote=payload.quote.to_dict(),
            fcf_history=[e.to_dict() for e in payload.fcf_history],
            analyst_growth_rate_5y=payload.analyst_growth_rate_5y,
            suggested_wacc=payload.suggested_wacc,
            wacc_source=payload.wacc_source,
            valuation_metrics=[e.to_dict() for e in payload.valuation_metrics],
            growth_rate=saved.growth_rate if saved else None,
            discount_rate=saved.discount_rate if saved else None,
            terminal_growth_rate=saved.terminal_growth_rate if saved else None,
            projection_years=saved.projection_years if saved else None,
            intrinsic_value_per_share=saved.intrinsic_value_per_share if saved else None,
            current_price=saved.current_price if saved else None,
            updated_at=_utc_now(),
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "CacheRecord":
        """Rebuild from a stored row, tolerating missing or malformed columns."""
        years = row.get("projection_years")
        wacc_source = row.get("wacc_source")
        return cls(
            symbol=str(row.get("symbol") or "").upper(),
            quote=row.get("quote") if isinstance(row.get("quote"), dict) else {},
            fcf_history=_dict_list(row.get("fcf_history")),
            analyst_growth_rate_5y=_optional_float(row.get("analyst_growth_rate_5y")),
            suggested_wacc=_optional_float(row.get("suggested_wacc")),
            wacc_source=wacc_source if isinstance(wacc_source, str) else None,
            valuation_metrics=_dict_list(row.get("valuation_metrics")),
            growth_rate=_optional_float(row.get("growth_rate")),
            discount_rate=_optional_float(row.get("discount_rate")),
            terminal_growth_rate=_optional_float(row.get("terminal_growth_rate")),
            projection_years=int(years) if _is_finite_number(years) else None,
            intrinsic_value_per_share=_optional_float(row.get("intrinsic_value_per_share")),
            current_price=_optional_float(row.get("current_price")),
            updated_at=row.get("updated_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "quote": self.quote,
            "fcf_history": self.fcf_history,
            "analyst_growth_rate_5y": self.analyst_growth_rate_5y,
            "suggested_wacc": self.suggested_wacc,
            "wacc_source": self.wacc_source,
            "valuation_metrics": self.valuation_metrics,
            "growth_rate": self.growth_rate,
            "discount_rate": self.discount_rate,
            "terminal_growth_rate": self.terminal_growth_rate,
            "projection_years": self.projection_years,
            "intrinsic_value_per_share": self.intrinsic_value_per_share,
            "current_price": self.current_price,
            "updated_at": self.updated_at,
        }

    @property
    def saved_dcf_params(self) -> Optional[SavedDCFParams]:
        """Saved parameters, present only when all four inputs were stored."""
        if None in (self.growth_rate, self.discount_rate,
                    self.terminal_growth_rate, self.projection_years):
            return None
        return SavedDCFParams(
            growth_rate=self.growth_rate,
            discount_rate=self.discount_rate,
            terminal_growth_rate=self.terminal_growth_rate,
            projection_years=self.projection_years,
            intrinsic_value_per_share=self.intrinsic_value_per_share,
            current_price=self.current_price,
        )

    def to_payload(self) -> CanonicalPayload:
        """Convert the row back into a canonical payload."""
        quote = Quote.from_dict(self.quote)
        if not quote.symbol:
            quote = replace(quote, symbol=self.symbol)
        return CanonicalPayload(
            quote=quote,
            fcf_history=tuple(FCFEntry.from_dict(e) for e in self.fcf_history),
            analyst_growth_rate_5y=self.analyst_growth_rate_5y,
            suggested_wacc=self.suggested_wacc,
            wacc_source=self.wacc_source,
            valuation_metrics=tuple(ValuationMetricEntry.from_dict(e) for e in self.valuation_metrics),
            saved_dcf_params=self.saved_dcf_params,
            data_source="cache",
            from_cache=True,
        )

    def with_saved_fields_from(self, other: Optional["CacheRecord"]) -> "CacheRecord":
        """Copy the saved-analysis columns of another row onto this one."""
        if other is None:
            return self
        return replace(
            self,
            growth_rate=other.growth_rate,
            discount_rate=other.discount_rate,
            terminal_growth_rate=other.terminal_growth_rate,
            projection_years=other.projection_years,
            intrinsic_value_per_share=other.intrinsic_value_per_share,
            current_price=other.current_price,
        )


def is_safe_symbol(symbol: str) -> bool:
    """True when the symbol can name a cache file without leaving the cache directory."""
    return bool(symbol) and not any(part in symbol for part in ("/", "\\", "..", "\x00"))


def is_stale(record: CacheRecord) -> bool:
    """
    Whether a cached row must be refetched instead of served.

    A row is stale only when it carries valuation metrics and none of them
    has a finite price. Rows without metrics are served as-is.
    """
    metrics = record.valuation_metrics
    if not metrics:
        return False
    return not any(_is_finite_number(entry.get("price")) for entry in metrics)


# =============================================================================
# GATEWAY CONTRACT
# =============================================================================

class CacheGateway(ABC):
    """Key-value store of CacheRecords keyed by upper-cased symbol."""

    @abstractmethod
    def get(self, symbol: str) -> Optional[CacheRecord]:
        """Return the row for symbol, or None."""

    @abstractmethod
    def put(self, record: CacheRecord) -> bool:
        """Upsert a row; True on success."""

    @abstractmethod
    def list_records(self) -> List[CacheRecord]:
        """Return every stored row."""

    def store_payload(self, symbol: str, payload: CanonicalPayload) -> bool:
        """
        Persist a freshly fetched payload.

        Saved-analysis columns already on the row are preserved, as a data
        refresh does not discard the user's saved parameters.
        """
        record = CacheRecord.from_payload(symbol, payload)
        if payload.saved_dcf_params is None:
            record = record.with_saved_fields_from(self.get(record.symbol))
        return self.put(record)

    def save_analysis(
        self,
        symbol: str,
        payload: CanonicalPayload,
        growth_rate: float,
        discount_rate: float,
        terminal_growth_rate: float,
        intrinsic_value_per_share: float,
        current_price: float,
        projection_years: Optional[float] = None,
    ) -> bool:
        """
        Persist a payload together with the user's DCF parameters and result.

        Args:
            symbol: Ticker symbol (upper-cased before storing)
            payload: Canonical payload the analysis was run against
            growth_rate: Projection growth rate
            discount_rate: Discount rate
            terminal_growth_rate: Terminal growth rate
            intrinsic_value_per_share: Computed intrinsic value
            current_price: Market price at save time
            projection_years: Horizon, rounded to an integer (5 when missing)

        Returns:
            True if the row was stored

        Raises:
            ValueError: If symbol is empty or unsafe, or any figure is not finite
        """
        symbol = (symbol or "").strip().upper()
        if not is_safe_symbol(symbol):
            raise ValueError(f"Invalid ticker symbol: {symbol!r}")

        figures = {
            "growth_rate": growth_rate,
            "discount_rate": discount_rate,
            "terminal_growth_rate": terminal_growth_rate,
            "intrinsic_value_per_share": intrinsic_value_per_share,
            "current_price": current_price,
        }
        invalid = [name for name, value in figures.items() if not _is_finite_number(value)]
        if invalid:
            raise ValueError(f"DCF parameters or valuation invalid: {', '.join(invalid)}")

        years = int(round(projection_years)) if _is_finite_number(projection_years) and projection_years else 5

        saved = SavedDCFParams(
            growth_rate=float(growth_rate),
            discount_rate=float(discount_rate),
            terminal_growth_rate=float(terminal_growth_rate),
            projection_years=years,
            intrinsic_value_per_share=float(intrinsic_value_per_share),
            current_price=float(current_price),
        )
        record = CacheRecord.from_payload(symbol, payload.with_updates(saved_dcf_params=saved))
        ok = self.put(record)
        if ok:
            LOGGER.info(f"Saved analysis for {symbol}")
        return ok

    def list_history(self) -> List[CacheRecord]:
        """All rows, most recently updated first."""
        return sorted(self.list_records(), key=lambda r: r.updated_at or "", reverse=True)


# =============================================================================
# FILE-BACKED GATEWAY
# =============================================================================

class FileCacheGateway(CacheGateway):
    """
    File-based cache gateway.

    Cache Structure:
        cache/{SYMBOL}.json
    """

    def __init__(self, cache_dir: Path):
        """
        Initialize FileCacheGateway.

        Args:
            cache_dir: Directory holding one JSON file per symbol
        """
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_cache_path(self, symbol: str) -> Path:
        symbol = symbol.upper()
        if not is_safe_symbol(symbol):
            raise ValueError(f"Unsafe ticker symbol for a cache file: {symbol!r}")
        return self.cache_dir / f"{symbol}.json"

    def _load(self, path: Path) -> Optional[CacheRecord]:
        try:
            with open(path, "r") as f:
                row = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            LOGGER.warning(f"Unreadable cache file {path.name}: {e}")
            return None
        if not isinstance(row, dict):
            return None
        return CacheRecord.from_row(row)

    def get(self, symbol: str) -> Optional[CacheRecord]:
        path = self._get_cache_path(symbol)
        if not path.exists():
            return None
        return self._load(path)

    def put(self, record: CacheRecord) -> bool:
        path = self._get_cache_path(record.symbol)
        try:
            with open(path, "w") as f:
                json.dump(record.to_row(), f, indent=2, default=str)
            return True
        except IOError as e:
            LOGGER.warning(f"Cache write failed for {record.symbol}: {e}")
            return False

    def list_records(self) -> List[CacheRecord]:
        records = []
        for path in sorted(self.cache_dir.glob("*.json")):
            record = self._load(path)
            if record is not None:
                records.append(record)
        return records


# =============================================================================
# IN-MEMORY GATEWAY
# =============================================================================

class InMemoryCacheGateway(CacheGateway):
    """Dictionary-backed gateway; contents last for the process lifetime."""

    def __init__(self, rows: Optional[Dict[str, Dict[str, Any]]] = None):
        self._rows: Dict[str, Dict[str, Any]] = {}
        for symbol, row in (rows or {}).items():
            self._rows[symbol.upper()] = dict(row, symbol=symbol.upper())

    def get(self, symbol: str) -> Optional[CacheRecord]:
        row = self._rows.get(symbol.upper())
        return CacheRecord.from_row(row) if row is not None else None

    def put(self, record: CacheRecord) -> bool:
        self._rows[record.symbol] = record.to_row()
        return True

    def list_records(self) -> List[CacheRecord]:
        return [CacheRecord.from_row(row) for row in self._rows.values()]

    @property
    def symbols(self) -> Tuple[str, ...]:
        return tuple(self._rows)
