"""
Canonical Data Model - Provider-Independent Valuation Records

Immutable value objects produced by the metric normalizer and consumed by
the heuristics, the DCF engine, the cache gateway and the presentation layer.

Serialized form (to_dict) follows the camelCase output contract consumed by
the UI layer:
    { quote, fcfHistory[], analystGrowthRate5y?, suggestedWacc?, waccSource?,
      valuationMetrics?[], savedDcfParams? }

All monetary figures are in absolute currency units.

Version: 1.0.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Any, Tuple


def _finite_or_none(value: Any) -> Optional[float]:
    """Return value as float if it is a finite number, else None."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)


def _drop_none(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


# =============================================================================
# QUOTE
# =============================================================================

@dataclass(frozen=True)
class Quote:
    """Point-in-time market snapshot for a symbol."""

    symbol: str
    name: Optional[str] = None
    price: Optional[float] = None
    change: Optional[float] = None
    change_percent: Optional[float] = None
    market_cap: Optional[float] = None
    trailing_pe: Optional[float] = None
    forward_pe: Optional[float] = None
    shares_outstanding: Optional[float] = None
    currency: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return _drop_none({
            "symbol": self.symbol,
            "shortName": self.name,
            "regularMarketPrice": self.price,
            "regularMarketChange": self.change,
            "regularMarketChangePercent": self.change_percent,
            "marketCap": self.market_cap,
            "trailingPE": self.trailing_pe,
            "forwardPE": self.forward_pe,
            "sharesOutstanding": self.shares_outstanding,
            "currency": self.currency,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quote":
        """Rebuild from the serialized form."""
        return cls(
            symbol=str(data.get("symbol") or ""),
            name=data.get("shortName"),
            price=_finite_or_none(data.get("regularMarketPrice")),
            change=_finite_or_none(data.get("regularMarketChange")),
            change_percent=_finite_or_none(data.get("regularMarketChangePercent")),
            market_cap=_finite_or_none(data.get("marketCap")),
            trailing_pe=_finite_or_none(data.get("trailingPE")),
            forward_pe=_finite_or_none(data.get("forwardPE")),
            shares_outstanding=_finite_or_none(data.get("sharesOutstanding")),
            currency=data.get("currency"),
        )


# =============================================================================
# FREE CASH FLOW HISTORY
# =============================================================================

@dataclass(frozen=True)
class FCFEntry:
    """
    Annual free cash flow observation.

    date is the fiscal-year-end timestamp in epoch milliseconds.
    """

    date: int
    free_cash_flow: Optional[float] = None
    operating_cash_flow: Optional[float] = None
    capital_expenditure: Optional[float] = None

    @property
    def is_resolved(self) -> bool:
        """True when free cash flow is a finite number."""
        return _finite_or_none(self.free_cash_flow) is not None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "date": self.date,
            "freeCashflow": self.free_cash_flow,
            "operatingCashflow": self.operating_cash_flow,
            "capitalExpenditure": self.capital_expenditure,
        })

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FCFEntry":
        date = data.get("date")
        return cls(
            date=int(date) if _finite_or_none(date) is not None else 0,
            free_cash_flow=_finite_or_none(data.get("freeCashflow")),
            operating_cash_flow=_finite_or_none(data.get("operatingCashflow")),
            capital_expenditure=_finite_or_none(data.get("capitalExpenditure")),
        )


# =============================================================================
# VALUATION RATIO HISTORY
# =============================================================================

@dataclass(frozen=True)
class ValuationMetricEntry:
    """Monthly valuation-ratio sample; ratios are None when undefined."""

    year: int
    month: Optional[int] = None
    ps: Optional[float] = None
    pe_gaap: Optional[float] = None
    pfcf: Optional[float] = None
    price: Optional[float] = None

    @property
    def has_price(self) -> bool:
        return _finite_or_none(self.price) is not None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "year": self.year,
            "ps": self.ps,
            "peGaap": self.pe_gaap,
            "pfcf": self.pfcf,
            "price": self.price,
        }
        if self.month is not None:
            data["month"] = self.month
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValuationMetricEntry":
        month = data.get("month")
        return cls(
            year=int(data.get("year") or 0),
            month=int(month) if month is not None else None,
            ps=_finite_or_none(data.get("ps")),
            pe_gaap=_finite_or_none(data.get("peGaap")),
            pfcf=_finite_or_none(data.get("pfcf")),
            price=_finite_or_none(data.get("price")),
        )


# =============================================================================
# HEURISTIC OUTPUTS
# =============================================================================

@dataclass(frozen=True)
class GrowthEstimate:
    """Annual growth rate with a human-readable provenance."""

    rate: float
    source: str


@dataclass(frozen=True)
class WaccSuggestion:
    """Suggested discount rate with a human-readable provenance."""

    rate: float
    source: str


# =============================================================================
# SAVED ANALYSIS PARAMETERS
# =============================================================================

@dataclass(frozen=True)
class SavedDCFParams:
    """DCF parameters and result a user saved alongside the cached payload."""

    growth_rate: float
    discount_rate: float
    terminal_growth_rate: float
    projection_years: int
    intrinsic_value_per_share: Optional[float] = None
    current_price: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _drop_none({
            "growthRate": self.growth_rate,
            "discountRate": self.discount_rate,
            "terminalGrowthRate": self.terminal_growth_rate,
            "projectionYears": self.projection_years,
            "intrinsicValuePerShare": self.intrinsic_value_per_share,
            "currentPrice": self.current_price,
        })


# =============================================================================
# ADAPTER OUTPUT
# =============================================================================

@dataclass(frozen=True)
class NormalizedRecord:
    """
    Provider-neutral output of a single adapter invocation.

    Carries the raw heuristic signals (beta, sector) so the orchestrator can
    derive a WACC suggestion independently of which provider answered.
    """

    quote: Quote
    fcf_history: Tuple[FCFEntry, ...] = ()
    valuation_metrics: Tuple[ValuationMetricEntry, ...] = ()
    analyst_growth_rate_5y: Optional[float] = None
    beta: Optional[float] = None
    sector: Optional[str] = None


# =============================================================================
# CANONICAL PAYLOAD
# =============================================================================

@dataclass(frozen=True)
class CanonicalPayload:
    """
    Final normalized payload for a ticker.

    Owned by the cache gateway once persisted; everything else lives for a
    single fetch-compute cycle.
    """

    quote: Quote
    fcf_history: Tuple[FCFEntry, ...] = ()
    analyst_growth_rate_5y: Optional[float] = None
    suggested_wacc: Optional[float] = None
    wacc_source: Optional[str] = None
    valuation_metrics: Tuple[ValuationMetricEntry, ...] = ()
    saved_dcf_params: Optional[SavedDCFParams] = None

    # Metadata
    data_source: str = "alpha_vantage"
    from_cache: bool = False

    @property
    def symbol(self) -> str:
        return self.quote.symbol

    @property
    def fcf_values(self) -> List[float]:
        """Resolved FCF values, most recent first."""
        return [e.free_cash_flow for e in self.fcf_history if e.is_resolved]

    @property
    def latest_fcf(self) -> Optional[float]:
        values = self.fcf_values
        return values[0] if values else None

    def with_updates(self, **changes: Any) -> "CanonicalPayload":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase output contract."""
        data: Dict[str, Any] = {
            "quote": self.quote.to_dict(),
            "fcfHistory": [e.to_dict() for e in self.fcf_history],
        }
        if self.analyst_growth_rate_5y is not None:
            data["analystGrowthRate5y"] = self.analyst_growth_rate_5y
        if self.suggested_wacc is not None:
            data["suggestedWacc"] = self.suggested_wacc
        if self.wacc_source:
            data["waccSource"] = self.wacc_source
        if self.valuation_metrics:
            data["valuationMetrics"] = [e.to_dict() for e in self.valuation_metrics]
        if self.saved_dcf_params is not None:
            data["savedDcfParams"] = self.saved_dcf_params.to_dict()
        return data
