"""
Fallback Orchestrator - Ticker Resolution Across Cache and Providers

Resolution order:
    1. Cache (unless force_refresh), served unless the row is stale
    2. Alpha Vantage (primary)
    3. Yahoo Finance, ONLY when the primary reports NO_CREDENTIAL

Any other primary failure is returned to the caller as-is. A configured
primary is authoritative, so quota exhaustion is surfaced rather than
masked by silently switching providers.

After a successful fetch the payload is augmented (analyst growth from
Yahoo, WACC suggestion from beta/sector) and written back to the cache.
Cache write failures are logged and never fail the resolution.

Version: 1.0.0
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Any

import requests

from .alpha_vantage_adapter import AlphaVantageAdapter
from .cache_gateway import CacheGateway, FileCacheGateway, is_safe_symbol, is_stale
from .canonical import CanonicalPayload, NormalizedRecord
from .config import EngineConfig, ProviderFailureKind, ProviderName, LOGGER
from .heuristics import suggest_wacc
from .provider_results import ProviderFailure, ProviderSuccess
from .rate_limiter import FixedIntervalGate
from .yahoo_adapter import YahooAdapter


@dataclass(frozen=True)
class OrchestratorPolicy:
    """Tunable resolution behavior."""

    # Query Yahoo for the analyst 5y growth even when the primary succeeded
    augment_with_analyst_growth: bool = True
    # Persist freshly fetched payloads to the cache
    persist_results: bool = True


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolve_ticker: a payload or a classified failure."""

    payload: Optional[CanonicalPayload] = None
    failure: Optional[ProviderFailure] = None

    @property
    def ok(self) -> bool:
        return self.payload is not None

    @property
    def status_code(self) -> int:
        return 200 if self.ok else self.failure.status_code

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return self.payload.to_dict()
        return self.failure.to_dict()


class FallbackOrchestrator:
    """
    Resolves a ticker to a canonical payload.

    Adapters and the cache gateway are injected; defaults are built from
    the EngineConfig.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        primary: Optional[AlphaVantageAdapter] = None,
        secondary: Optional[YahooAdapter] = None,
        cache: Optional[CacheGateway] = None,
        policy: Optional[OrchestratorPolicy] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize FallbackOrchestrator.

        Args:
            config: Engine configuration (defaults to EngineConfig())
            primary: Alpha Vantage adapter
            secondary: Yahoo Finance adapter
            cache: Cache gateway (file-backed under config.cache.cache_dir if omitted)
            policy: Resolution policy
            session: Shared HTTP session for default adapters
        """
        self.config = config or EngineConfig()
        self.policy = policy or OrchestratorPolicy()

        if primary is None:
            gate = FixedIntervalGate(self.config.alpha_vantage.rate_limit_seconds)
            primary = AlphaVantageAdapter(
                self.config.alpha_vantage,
                self.config.normalization,
                session=session,
                gate=gate,
            )
        if secondary is None:
            secondary = YahooAdapter(
                self.config.yahoo,
                self.config.normalization,
                session=session,
            )

        self.primary = primary
        self.secondary = secondary
        self.cache = cache if cache is not None else FileCacheGateway(self.config.cache.cache_dir)

    def resolve_ticker(
        self,
        symbol: str,
        force_refresh: bool = False,
        cache_only: bool = False,
    ) -> Resolution:
        """
        Resolve a ticker symbol to a canonical payload.

        Args:
            symbol: Ticker symbol (case-insensitive, surrounding space ignored)
            force_refresh: Skip the cache read and refetch from providers
            cache_only: Serve only from the cache; never call providers

        Returns:
            Resolution holding a payload or a ProviderFailure
        """
        ticker = (symbol or "").strip().upper()
        if not is_safe_symbol(ticker):
            return Resolution(failure=ProviderFailure(
                kind=ProviderFailureKind.INVALID_SYMBOL,
                message="Missing or invalid ticker symbol",
                provider=ProviderName.CACHE,
            ))

        LOGGER.info(f"Resolving {ticker}")

        # Step 1: Cache
        if not force_refresh:
            cached = self.cache.get(ticker)
            if cached is not None:
                if cache_only or not is_stale(cached):
                    LOGGER.info(f"Using cached data for {ticker}")
                    return Resolution(payload=cached.to_payload())
                LOGGER.info(f"Cached data for {ticker} is stale, refetching")

        if cache_only:
            return Resolution(failure=ProviderFailure(
                kind=ProviderFailureKind.CACHE_MISS,
                message=f"No cached data for {ticker}. Analyze or refresh it first.",
                provider=ProviderName.CACHE,
            ))

        # Step 2-3: Providers
        result = self.primary.fetch_financials(ticker)
        if not result.ok and result.is_soft:
            LOGGER.info(f"Falling back to Yahoo Finance for {ticker}")
            result = self.secondary.fetch_financials(ticker)

        if not result.ok:
            LOGGER.warning(
                f"Resolution failed for {ticker}: {result.kind.value} ({result.provider.value})"
            )
            return Resolution(failure=result)

        payload = self._build_payload(ticker, result)

        # Step 4: Persist
        if self.policy.persist_results:
            self._persist(ticker, payload)

        LOGGER.info(
            f"Resolution complete for {ticker}: source={payload.data_source}, "
            f"{len(payload.fcf_history)} FCF years"
        )
        return Resolution(payload=payload)

    def _build_payload(self, ticker: str, result: ProviderSuccess) -> CanonicalPayload:
        """Augment a provider record with analyst growth and a WACC suggestion."""
        record: NormalizedRecord = result.record

        analyst_growth = record.analyst_growth_rate_5y
        if (
            analyst_growth is None
            and result.provider is ProviderName.ALPHA_VANTAGE
            and self.policy.augment_with_analyst_growth
        ):
            analyst_growth = self.secondary.fetch_analyst_growth_5y(ticker)

        wacc = suggest_wacc(record.beta, record.sector, self.config.heuristics)

        return CanonicalPayload(
            quote=record.quote,
            fcf_history=record.fcf_history,
            analyst_growth_rate_5y=analyst_growth,
            suggested_wacc=wacc.rate if wacc else None,
            wacc_source=wacc.source if wacc else None,
            valuation_metrics=record.valuation_metrics,
            data_source=result.provider.value,
            from_cache=False,
        )

    def _persist(self, ticker: str, payload: CanonicalPayload) -> None:
        try:
            stored = self.cache.store_payload(ticker, payload)
        except Exception as e:
            LOGGER.warning(f"Cache write failed for {ticker}: {e}")
            return
        if not stored:
            LOGGER.warning(f"Cache write failed for {ticker}")
