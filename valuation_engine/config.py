"""
Configuration Module - Valuation Data Aggregation & DCF Engine

Centralizes configuration constants, provider field mappings, heuristic
parameters, DCF parameter boundaries and logging for the valuation pipeline.

Configuration objects are plain frozen dataclasses. They are built once at the
entry point (see EngineConfig.from_env) and passed into the orchestrator and
adapters explicitly; nothing below the entry point reads the environment.

Version: 1.0.0
"""

from __future__ import annotations

import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from enum import Enum


# =============================================================================
# DIRECTORY CONFIGURATION
# =============================================================================

PROJECT_ROOT = Path(__file__).parent.parent.absolute()
CACHE_DIR = PROJECT_ROOT / "cache"


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Configure and return a logger instance with professional formatting."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


LOGGER = setup_logger("ValuationEngine")


# =============================================================================
# ENUMERATIONS
# =============================================================================

class ProviderName(Enum):
    """Financial data providers, in priority order."""
    ALPHA_VANTAGE = "alpha_vantage"
    YAHOO = "yahoo"
    CACHE = "cache"


class ProviderFailureKind(Enum):
    """Classified failure outcomes of a provider or resolution call."""
    NO_CREDENTIAL = "no_credential"      # Soft: triggers provider fallback
    RATE_LIMITED = "rate_limited"
    SYMBOL_NOT_FOUND = "symbol_not_found"
    INVALID_PAYLOAD = "invalid_payload"
    PROVIDER_ERROR = "provider_error"
    INVALID_SYMBOL = "invalid_symbol"    # Orchestrator: empty ticker
    CACHE_MISS = "cache_miss"            # Orchestrator: cache-only lookup missed


# =============================================================================
# ALPHA VANTAGE FIELD MAPPINGS
# =============================================================================

# Error/notice fields Alpha Vantage returns instead of data
ALPHA_VANTAGE_NOTICE_FIELDS: Tuple[str, ...] = ("Information", "Note", "Error Message")

# Phrases identifying a rate-limit notice (matched case-insensitively)
RATE_LIMIT_PATTERN = r"spreading out|rate limit|requests per|call frequency|calls per"

# GLOBAL_QUOTE: "Global Quote" container keys -> canonical names
GLOBAL_QUOTE_FIELD_MAP: Dict[str, str] = {
    "01. symbol": "symbol",
    "05. price": "price",
    "09. change": "change",
    "10. change percent": "change_percent",
}

# OVERVIEW keys consumed by the quote and heuristics
OVERVIEW_FIELD_MAP: Dict[str, str] = {
    "Name": "name",
    "MarketCapitalization": "market_cap",
    "SharesOutstanding": "shares_outstanding",
    "PERatio": "trailing_pe",
    "ForwardPE": "forward_pe",
    "Beta": "beta",
    "Sector": "sector",
    "Currency": "currency",
}

# Statement line items; each canonical name lists accepted provider spellings
CASHFLOW_FIELD_VARIANTS: Dict[str, Tuple[str, ...]] = {
    "fiscal_date_ending": ("fiscalDateEnding", "fiscal_date_ending"),
    "operating_cash_flow": ("operatingCashflow", "operating_cashflow"),
    "capital_expenditure": ("capitalExpenditures", "capital_expenditures"),
}

INCOME_FIELD_VARIANTS: Dict[str, Tuple[str, ...]] = {
    "fiscal_date_ending": ("fiscalDateEnding", "fiscal_date_ending"),
    "total_revenue": ("totalRevenue", "total_revenue"),
}

EARNINGS_FIELD_VARIANTS: Dict[str, Tuple[str, ...]] = {
    "fiscal_date_ending": ("fiscalDateEnding", "fiscal_date_ending"),
    "reported_eps": ("reportedEPS", "reported_eps"),
}

MONTHLY_SERIES_KEYS: Tuple[str, ...] = (
    "Monthly Adjusted Time Series",
    "Monthly adjusted time series",
)

MONTHLY_CLOSE_KEYS: Tuple[str, ...] = ("5. adjusted close", "4. close")


# =============================================================================
# YAHOO FINANCE FIELD MAPPINGS
# =============================================================================

# v7 quote result keys -> canonical quote names
YAHOO_QUOTE_FIELD_MAP: Dict[str, str] = {
    "regularMarketPrice": "price",
    "regularMarketChange": "change",
    "regularMarketChangePercent": "change_percent",
    "marketCap": "market_cap",
    "trailingPE": "trailing_pe",
    "forwardPE": "forward_pe",
    "sharesOutstanding": "shares_outstanding",
}

YAHOO_SUMMARY_MODULES = "cashflowStatementHistory,defaultKeyStatistics,summaryProfile"
YAHOO_GROWTH_MODULES = "earningsTrend,growthEstimate"

# Matches earningsTrend periods describing the five-year outlook
FIVE_YEAR_PERIOD_PATTERN = r"5y|\+5y|5\s*year"


# =============================================================================
# API CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class AlphaVantageConfig:
    """Alpha Vantage API configuration."""

    api_key: Optional[str] = None
    base_url: str = "https://www.alphavantage.co/query"
    request_timeout: int = 30
    # Free tier allows roughly one request per second
    rate_limit_seconds: float = 1.3

    @property
    def has_credential(self) -> bool:
        """Whether an API key is configured."""
        return bool(self.api_key and self.api_key.strip())


@dataclass(frozen=True)
class YahooConfig:
    """Yahoo Finance public endpoint configuration."""

    hosts: Tuple[str, ...] = (
        "https://query1.finance.yahoo.com",
        "https://query2.finance.yahoo.com",
    )
    quote_path: str = "/v7/finance/quote"
    summary_path: str = "/v10/finance/quoteSummary/{symbol}"
    request_timeout: int = 30
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    @property
    def headers(self) -> Dict[str, str]:
        """Browser-like request headers; Yahoo rejects bare clients."""
        return {
            "User-Agent": self.user_agent,
            "Accept": "application/json",
            "Accept-Language": "en-US,en;q=0.9",
        }


# =============================================================================
# NORMALIZATION CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class NormalizationConfig:
    """Limits applied when building canonical time series."""

    max_fcf_entries: int = 10
    valuation_years: int = 5
    max_valuation_samples: int = 60
    error_detail_length: int = 120


# =============================================================================
# HEURISTIC CONFIGURATION
# =============================================================================

# Typical WACC by sector, used when no beta is available
SECTOR_WACC: Dict[str, float] = {
    "Technology": 0.105,
    "Consumer Cyclical": 0.09,
    "Consumer Defensive": 0.07,
    "Healthcare": 0.08,
    "Utilities": 0.06,
    "Financial Services": 0.09,
    "Industrials": 0.08,
    "Energy": 0.08,
    "Basic Materials": 0.08,
    "Real Estate": 0.07,
    "Communication Services": 0.08,
}


@dataclass(frozen=True)
class HeuristicConfig:
    """Parameters for WACC and growth-rate suggestions."""

    # CAPM inputs
    risk_free_rate: float = 0.04       # ~10-year Treasury
    equity_risk_premium: float = 0.055
    wacc_min: float = 0.06
    wacc_max: float = 0.18
    default_sector_wacc: float = 0.10
    sector_wacc: Dict[str, float] = field(default_factory=lambda: dict(SECTOR_WACC))

    # Conservative historical growth
    growth_years: int = 3
    growth_weight: float = 0.8
    growth_floor: float = -0.10
    growth_cap: float = 0.50
    default_growth: float = 0.10

    # Full-history CAGR suggestion
    history_growth_cap: float = 0.25
    history_growth_default: float = 0.08

    # DCF defaults applied when nothing better is known
    default_discount_rate: float = 0.10
    default_terminal_growth: float = 0.025
    default_projection_years: int = 5


# =============================================================================
# DCF PARAMETER BOUNDARIES
# =============================================================================

@dataclass(frozen=True)
class DCFBounds:
    """Plausible ranges for externally suggested DCF parameters."""

    growth_rate: Tuple[float, float] = (0.01, 0.5)
    discount_rate: Tuple[float, float] = (0.05, 0.25)
    terminal_growth_rate: Tuple[float, float] = (0.005, 0.05)
    projection_years: Tuple[int, int] = (3, 15)


# =============================================================================
# CACHE CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class CacheConfig:
    """File-backed cache gateway configuration."""

    cache_dir: Path = CACHE_DIR


# =============================================================================
# AGGREGATE CONFIGURATION
# =============================================================================

@dataclass(frozen=True)
class EngineConfig:
    """Complete engine configuration threaded through all components."""

    alpha_vantage: AlphaVantageConfig = field(default_factory=AlphaVantageConfig)
    yahoo: YahooConfig = field(default_factory=YahooConfig)
    normalization: NormalizationConfig = field(default_factory=NormalizationConfig)
    heuristics: HeuristicConfig = field(default_factory=HeuristicConfig)
    bounds: DCFBounds = field(default_factory=DCFBounds)
    cache: CacheConfig = field(default_factory=CacheConfig)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "EngineConfig":
        """
        Build configuration from environment variables.

        Recognized variables:
            ALPHA_VANTAGE_API_KEY: primary provider credential
            ALPHA_VANTAGE_DELAY_SECONDS: pacing interval between primary calls
            VALUATION_CACHE_DIR: directory for the file cache

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            EngineConfig instance
        """
        env = os.environ if environ is None else environ

        api_key = (env.get("ALPHA_VANTAGE_API_KEY") or "").strip() or None
        delay_raw = env.get("ALPHA_VANTAGE_DELAY_SECONDS")
        try:
            delay = float(delay_raw) if delay_raw else AlphaVantageConfig.rate_limit_seconds
        except ValueError:
            LOGGER.warning(f"Ignoring invalid ALPHA_VANTAGE_DELAY_SECONDS={delay_raw!r}")
            delay = AlphaVantageConfig.rate_limit_seconds

        cache_dir = env.get("VALUATION_CACHE_DIR")

        return cls(
            alpha_vantage=AlphaVantageConfig(api_key=api_key, rate_limit_seconds=delay),
            cache=CacheConfig(cache_dir=Path(cache_dir)) if cache_dir else CacheConfig(),
        )
