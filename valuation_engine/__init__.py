"""
Valuation Engine - Provider Aggregation, Heuristics & DCF
=========================================================

Data Aggregation
- Alpha Vantage primary provider (quote, overview, cash flow) with pacing
- Yahoo Finance secondary provider across mirrored hosts
- Asymmetric fallback: a missing credential switches providers, any other
  primary failure is surfaced
- Five-year monthly valuation ratios (P/S, P/E GAAP, P/FCF)
- File-backed cache with staleness check, saved analyses and history

Heuristics
- CAPM or sector-table WACC suggestion
- Analyst, conservative-historical or default growth rate

DCF
- FCF projection, Gordon Growth terminal value, per-share intrinsic value
- Market comparison signal
- Advisor reply parsing with parameter boundary clamps

Version: 1.0.0
"""

from .config import (
    LOGGER,
    CACHE_DIR,
    PROJECT_ROOT,
    ProviderName,
    ProviderFailureKind,
    AlphaVantageConfig,
    YahooConfig,
    NormalizationConfig,
    HeuristicConfig,
    DCFBounds,
    CacheConfig,
    EngineConfig,
)

from .canonical import (
    Quote,
    FCFEntry,
    ValuationMetricEntry,
    GrowthEstimate,
    WaccSuggestion,
    SavedDCFParams,
    NormalizedRecord,
    CanonicalPayload,
)

from .provider_results import (
    ProviderSuccess,
    ProviderFailure,
    ProviderResult,
)

from .rate_limiter import FixedIntervalGate
from .enrichment import degrade_to_empty

from .alpha_vantage_adapter import AlphaVantageClient, AlphaVantageAdapter
from .yahoo_adapter import YahooClient, YahooAdapter

from .dcf_calculator import (
    DCFParams,
    DCFResult,
    YearlyProjection,
    ValuationSignal,
    compute_dcf,
    clamp_dcf_params,
    valuation_signal,
)

from .heuristics import (
    suggest_wacc,
    conservative_growth_from_history,
    suggest_growth_rate_from_history,
    resolve_growth_rate,
    default_dcf_params,
)

from .cache_gateway import (
    CacheRecord,
    CacheGateway,
    FileCacheGateway,
    InMemoryCacheGateway,
    is_stale,
)

from .orchestrator import (
    OrchestratorPolicy,
    Resolution,
    FallbackOrchestrator,
)

from .dcf_advice import (
    DCFAdvice,
    build_advice_context,
    build_advice_prompt,
    parse_advice_response,
)


__version__ = "1.0.0"

__all__ = [
    # Configuration
    "LOGGER",
    "CACHE_DIR",
    "PROJECT_ROOT",
    "ProviderName",
    "ProviderFailureKind",
    "AlphaVantageConfig",
    "YahooConfig",
    "NormalizationConfig",
    "HeuristicConfig",
    "DCFBounds",
    "CacheConfig",
    "EngineConfig",

    # Canonical Model
    "Quote",
    "FCFEntry",
    "ValuationMetricEntry",
    "GrowthEstimate",
    "WaccSuggestion",
    "SavedDCFParams",
    "NormalizedRecord",
    "CanonicalPayload",

    # Provider Results
    "ProviderSuccess",
    "ProviderFailure",
    "ProviderResult",

    # Providers
    "FixedIntervalGate",
    "degrade_to_empty",
    "AlphaVantageClient",
    "AlphaVantageAdapter",
    "YahooClient",
    "YahooAdapter",

    # DCF
    "DCFParams",
    "DCFResult",
    "YearlyProjection",
    "ValuationSignal",
    "compute_dcf",
    "clamp_dcf_params",
    "valuation_signal",

    # Heuristics
    "suggest_wacc",
    "conservative_growth_from_history",
    "suggest_growth_rate_from_history",
    "resolve_growth_rate",
    "default_dcf_params",

    # Cache
    "CacheRecord",
    "CacheGateway",
    "FileCacheGateway",
    "InMemoryCacheGateway",
    "is_stale",

    # Orchestration
    "OrchestratorPolicy",
    "Resolution",
    "FallbackOrchestrator",

    # Advice
    "DCFAdvice",
    "build_advice_context",
    "build_advice_prompt",
    "parse_advice_response",

    # Version
    "__version__",
]
