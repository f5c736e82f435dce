"""
DCF Calculator - Intrinsic Valuation from Free Cash Flow

Pure, deterministic Discounted Cash Flow engine.

Methodology:
    For t = 1..N:   FCF_t = FCF_{t-1} x (1 + g),  PV_t = FCF_t / (1 + r)^t
    Terminal value: TV = FCF_N x (1 + g_term) / (r - g_term), only if r > g_term
    PV(TV)       = TV / (1 + r)^N
    Enterprise Value = Sum PV_t + PV(TV)
    Intrinsic Value per Share = Enterprise Value / Shares (0 if shares <= 0)

compute_dcf never raises. When the perpetuity formula is undefined the
terminal value is zero, and any non-finite intermediate result collapses to
zero instead of propagating.

Version: 1.0.0
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Any

from .config import DCFBounds, LOGGER


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ValuationSignal(Enum):
    """Valuation signal based on intrinsic vs market value."""
    SIGNIFICANTLY_UNDERVALUED = "significantly_undervalued"  # >30% upside
    UNDERVALUED = "undervalued"                              # 15-30% upside
    FAIRLY_VALUED = "fairly_valued"                          # -15% to +15%
    OVERVALUED = "overvalued"                                # 15-30% downside
    SIGNIFICANTLY_OVERVALUED = "significantly_overvalued"    # >30% downside
    NOT_AVAILABLE = "not_available"                          # no market price


# =============================================================================
# DATA CONTAINERS
# =============================================================================

@dataclass(frozen=True)
class DCFParams:
    """Inputs to a single DCF run."""

    base_fcf: float
    projection_years: int = 5
    growth_rate: float = 0.10
    discount_rate: float = 0.10
    terminal_growth_rate: float = 0.025
    shares_outstanding: float = 0.0


@dataclass(frozen=True)
class YearlyProjection:
    """Single year FCF projection."""

    year: int
    fcf: float
    discount_factor: float
    present_value: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "fcf": self.fcf,
            "discountFactor": self.discount_factor,
            "presentValue": self.present_value,
        }


@dataclass(frozen=True)
class DCFResult:
    """Output of compute_dcf."""

    projections: List[YearlyProjection] = field(default_factory=list)
    pv_projected_fcf: float = 0.0
    terminal_value: float = 0.0
    pv_terminal_value: float = 0.0
    enterprise_value: float = 0.0
    intrinsic_value_per_share: float = 0.0

    @property
    def terminal_value_pct(self) -> Optional[float]:
        """Share of enterprise value contributed by the terminal value."""
        if self.enterprise_value <= 0:
            return None
        return self.pv_terminal_value / self.enterprise_value

    def upside_vs(self, price: Optional[float]) -> Optional[float]:
        """Fractional upside of intrinsic value over a market price."""
        if price is None or not math.isfinite(price) or price <= 0:
            return None
        return (self.intrinsic_value_per_share - price) / price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "projections": [p.to_dict() for p in self.projections],
            "pvProjectedFcf": self.pv_projected_fcf,
            "terminalValue": self.terminal_value,
            "pvTerminalValue": self.pv_terminal_value,
            "enterpriseValue": self.enterprise_value,
            "intrinsicValuePerShare": self.intrinsic_value_per_share,
        }


# =============================================================================
# NUMERIC HELPERS
# =============================================================================

def _finite(value: Any, default: float = 0.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _discount(value: float, rate: float, years: int) -> float:
    """value / (1 + rate)^years, or 0 when that is undefined or overflows."""
    try:
        denominator = (1.0 + rate) ** years
    except (OverflowError, ZeroDivisionError):
        return 0.0
    if isinstance(denominator, complex) or denominator == 0 or not math.isfinite(denominator):
        return 0.0
    return _finite(value / denominator)


def _discount_factor(rate: float, years: int) -> float:
    return _discount(1.0, rate, years)


def _grow(value: float, rate: float) -> float:
    return _finite(value * (1.0 + rate))


# =============================================================================
# DCF ENGINE
# =============================================================================

def compute_dcf(params: DCFParams) -> DCFResult:
    """
    Project FCF, discount it and derive intrinsic value per share.

    Args:
        params: Base FCF, horizon, growth, discount and terminal rates, shares

    Returns:
        DCFResult; never raises for any numeric input
    """
    base_fcf = _finite(params.base_fcf)
    g = _finite(params.growth_rate)
    r = _finite(params.discount_rate)
    g_term = _finite(params.terminal_growth_rate)
    shares = _finite(params.shares_outstanding)
    years = max(0, int(round(_finite(params.projection_years))))

    projections: List[YearlyProjection] = []
    current_fcf = base_fcf
    sum_pv = 0.0

    for year in range(1, years + 1):
        current_fcf = _grow(current_fcf, g)
        present_value = _discount(current_fcf, r, year)
        projections.append(YearlyProjection(
            year=year,
            fcf=current_fcf,
            discount_factor=_discount_factor(r, year),
            present_value=present_value,
        ))
        sum_pv = _finite(sum_pv + present_value)

    # Gordon Growth is undefined or negative when r <= g_term
    terminal_value = 0.0
    if r > g_term:
        terminal_value = _finite(_grow(current_fcf, g_term) / (r - g_term))
    pv_terminal_value = _discount(terminal_value, r, years)

    enterprise_value = _finite(sum_pv + pv_terminal_value)
    per_share = _finite(enterprise_value / shares) if shares > 0 else 0.0

    return DCFResult(
        projections=projections,
        pv_projected_fcf=sum_pv,
        terminal_value=terminal_value,
        pv_terminal_value=pv_terminal_value,
        enterprise_value=enterprise_value,
        intrinsic_value_per_share=per_share,
    )


# =============================================================================
# PARAMETER BOUNDARIES
# =============================================================================

def _clip(value: float, bounds: tuple) -> float:
    low, high = bounds
    return min(max(value, low), high)


def clamp_dcf_params(params: DCFParams, bounds: Optional[DCFBounds] = None) -> DCFParams:
    """
    Clamp externally suggested rates and horizon into plausible ranges.

    Base FCF and shares pass through unchanged; the horizon is rounded to an
    integer before clamping.
    """
    bounds = bounds or DCFBounds()
    clamped = replace(
        params,
        growth_rate=_clip(_finite(params.growth_rate, bounds.growth_rate[0]), bounds.growth_rate),
        discount_rate=_clip(_finite(params.discount_rate, bounds.discount_rate[0]), bounds.discount_rate),
        terminal_growth_rate=_clip(
            _finite(params.terminal_growth_rate, bounds.terminal_growth_rate[0]),
            bounds.terminal_growth_rate,
        ),
        projection_years=int(_clip(
            int(round(_finite(params.projection_years, bounds.projection_years[0]))),
            bounds.projection_years,
        )),
    )
    if clamped != params:
        LOGGER.info("DCF parameters clamped to plausible bounds")
    return clamped


# =============================================================================
# MARKET COMPARISON
# =============================================================================

def valuation_signal(intrinsic_value: float, price: Optional[float]) -> ValuationSignal:
    """Classify intrinsic value against the current market price."""
    if price is None or not math.isfinite(price) or price <= 0:
        return ValuationSignal.NOT_AVAILABLE

    pct = (intrinsic_value - price) / price
    if pct > 0.30:
        return ValuationSignal.SIGNIFICANTLY_UNDERVALUED
    elif pct > 0.15:
        return ValuationSignal.UNDERVALUED
    elif pct < -0.30:
        return ValuationSignal.SIGNIFICANTLY_OVERVALUED
    elif pct < -0.15:
        return ValuationSignal.OVERVALUED
    return ValuationSignal.FAIRLY_VALUED
