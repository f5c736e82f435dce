"""
Heuristic Estimator - Discount-Rate and Growth-Rate Suggestions

Side-effect-free estimators that supply DCF inputs when the user gives none.

Discount rate (WACC):
    1. CAPM when beta is finite: rf + beta x ERP, clamped to [6%, 18%]
    2. Sector lookup table otherwise (substring match), 10% if unrecognized
    3. None when neither beta nor sector is known

Growth rate resolution:
    1. Analyst "next 5 years (per annum)" estimate, verbatim
    2. Conservative history: 3-year FCF CAGR x 0.8, clamped to [-10%, 50%]
    3. Fixed 10% default

Version: 1.0.0
"""

from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np

from .canonical import CanonicalPayload, GrowthEstimate, WaccSuggestion
from .config import HeuristicConfig, LOGGER
from .dcf_calculator import DCFParams


def _clamp(value: float, low: float, high: float) -> float:
    return float(np.clip(value, low, high))


def _is_finite(value: Optional[float]) -> bool:
    return value is not None and bool(np.isfinite(value))


# =============================================================================
# DISCOUNT RATE
# =============================================================================

def match_sector(sector: str, table: Dict[str, float]) -> Optional[str]:
    """
    Find the table key approximately matching a sector name.

    A key matches when either string contains the other.
    """
    for key in table:
        if key in sector or sector in key:
            return key
    return None


def suggest_wacc(
    beta: Optional[float] = None,
    sector: Optional[str] = None,
    config: Optional[HeuristicConfig] = None,
) -> Optional[WaccSuggestion]:
    """
    Suggest a discount rate from beta (CAPM) or sector.

    Args:
        beta: Equity beta, used when finite
        sector: Sector name, used when beta is unavailable
        config: Heuristic parameters

    Returns:
        WaccSuggestion, or None when neither signal is available
    """
    config = config or HeuristicConfig()

    if _is_finite(beta):
        raw = config.risk_free_rate + beta * config.equity_risk_premium
        wacc = _clamp(raw, config.wacc_min, config.wacc_max)
        source = (
            f"Risk-free {config.risk_free_rate * 100:.1f}% + "
            f"beta {beta:.2f} x {config.equity_risk_premium * 100:.1f}% "
            f"= {wacc * 100:.1f}%"
        )
        return WaccSuggestion(rate=wacc, source=source)

    if isinstance(sector, str) and sector.strip():
        key = match_sector(sector, config.sector_wacc)
        wacc = config.sector_wacc[key] if key else config.default_sector_wacc
        source = f"Typical WACC for sector '{sector}' = {wacc * 100:.1f}%"
        return WaccSuggestion(rate=wacc, source=source)

    return None


# =============================================================================
# GROWTH RATE
# =============================================================================

def historical_cagr(latest: float, earliest: float, years: int) -> Optional[float]:
    """Compound annual growth between two positive values."""
    if years < 1 or latest <= 0 or earliest <= 0:
        return None
    return (latest / earliest) ** (1.0 / years) - 1.0


def conservative_growth_from_history(
    fcf_series: Sequence[float],
    years: int = 3,
    weight: float = 0.8,
    config: Optional[HeuristicConfig] = None,
) -> Optional[float]:
    """
    Conservative growth from recent FCF history.

    Uses the CAGR between the latest value and the value up to `years`
    periods earlier, scaled by `weight` and clamped to the configured floor
    and cap.

    Args:
        fcf_series: FCF values, most recent first
        years: Maximum number of year-over-year steps to span
        weight: Haircut applied to the raw CAGR

    Returns:
        Clamped growth rate, or None with fewer than 2 points or a
        non-positive endpoint
    """
    config = config or HeuristicConfig()
    if len(fcf_series) < 2:
        return None
    use_years = min(years, len(fcf_series) - 1)
    if use_years < 1:
        return None

    cagr = historical_cagr(fcf_series[0], fcf_series[use_years], use_years)
    if cagr is None:
        return None
    return _clamp(cagr * weight, config.growth_floor, config.growth_cap)


def suggest_growth_rate_from_history(
    fcf_series: Sequence[float],
    config: Optional[HeuristicConfig] = None,
) -> float:
    """
    Full-history FCF CAGR, clamped for use as a DCF input.

    Returns config.history_growth_default when fewer than 2 points exist or
    the earliest value is non-positive.
    """
    config = config or HeuristicConfig()
    if len(fcf_series) < 2:
        return config.history_growth_default
    earliest, latest = fcf_series[-1], fcf_series[0]
    if earliest <= 0:
        return config.history_growth_default
    cagr = (latest / earliest) ** (1.0 / (len(fcf_series) - 1)) - 1.0
    if not np.isfinite(cagr):
        return config.history_growth_default
    return _clamp(cagr, config.growth_floor, config.history_growth_cap)


def resolve_growth_rate(
    analyst_growth_5y: Optional[float],
    fcf_series: Sequence[float],
    config: Optional[HeuristicConfig] = None,
) -> GrowthEstimate:
    """
    Pick the growth rate used to seed a DCF.

    Order: analyst 5-year estimate (verbatim, no clamping), then the
    conservative historical estimate (negative included), then the default.
    """
    config = config or HeuristicConfig()

    if _is_finite(analyst_growth_5y):
        return GrowthEstimate(
            rate=float(analyst_growth_5y),
            source=f"Analyst next 5 years (per annum) {analyst_growth_5y * 100:.1f}%",
        )

    conservative = conservative_growth_from_history(
        fcf_series, config.growth_years, config.growth_weight, config
    )
    if conservative is not None:
        raw_cagr = conservative / config.growth_weight
        return GrowthEstimate(
            rate=conservative,
            source=(
                f"Past {config.growth_years}-year FCF CAGR {raw_cagr * 100:.1f}% "
                f"x {config.growth_weight} = {conservative * 100:.1f}%"
            ),
        )

    return GrowthEstimate(
        rate=config.default_growth,
        source=f"Default {config.default_growth * 100:.0f}%",
    )


# =============================================================================
# DCF PARAMETER ASSEMBLY
# =============================================================================

def default_dcf_params(
    payload: CanonicalPayload,
    growth_rate: Optional[float] = None,
    discount_rate: Optional[float] = None,
    terminal_growth_rate: Optional[float] = None,
    projection_years: Optional[int] = None,
    config: Optional[HeuristicConfig] = None,
) -> DCFParams:
    """
    Assemble DCF inputs for a payload, letting explicit values win.

    Base FCF is the most recent resolved FCF and shares come from the quote
    (0 when unknown, which yields a zero per-share value). A suggested WACC
    seeds the discount rate only when it lies within [5%, 25%].
    """
    config = config or HeuristicConfig()

    if growth_rate is None:
        estimate = resolve_growth_rate(payload.analyst_growth_rate_5y, payload.fcf_values, config)
        growth_rate = estimate.rate
        LOGGER.info(f"Growth rate for {payload.symbol}: {estimate.source}")

    if discount_rate is None:
        suggested = payload.suggested_wacc
        if _is_finite(suggested) and 0.05 <= suggested <= 0.25:
            discount_rate = suggested
        else:
            discount_rate = config.default_discount_rate

    return DCFParams(
        base_fcf=payload.latest_fcf or 0.0,
        projection_years=projection_years if projection_years is not None else config.default_projection_years,
        growth_rate=growth_rate,
        discount_rate=discount_rate,
        terminal_growth_rate=(
            terminal_growth_rate if terminal_growth_rate is not None else config.default_terminal_growth
        ),
        shares_outstanding=payload.quote.shares_outstanding or 0.0,
    )
