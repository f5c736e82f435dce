"""
Yahoo Finance Adapter - Secondary Financial Data Provider

Keyless fallback used when no Alpha Vantage credential is configured, and
the source of the analyst five-year growth estimate in every resolution.

Endpoints (each tried across mirrored hosts until one answers usefully):
    /v7/finance/quote?symbols=SYM
    /v10/finance/quoteSummary/SYM?modules=cashflowStatementHistory,
        defaultKeyStatistics,summaryProfile
    /v10/finance/quoteSummary/SYM?modules=earningsTrend,growthEstimate

A host answer is usable only if it is 2xx, declares a JSON content type,
has a body starting with "{", and carries a non-empty result (for quotes,
one whose quoteType is not "NONE"). Anything else moves on to the next host.

Version: 1.0.0
"""

from __future__ import annotations

import re
import concurrent.futures
from urllib.parse import quote
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

import requests

from .canonical import NormalizedRecord
from .config import (
    FIVE_YEAR_PERIOD_PATTERN,
    YAHOO_GROWTH_MODULES,
    YAHOO_SUMMARY_MODULES,
    NormalizationConfig,
    ProviderFailureKind,
    ProviderName,
    YahooConfig,
    LOGGER,
)
from .enrichment import degrade_to_empty
from .metric_normalizer import (
    build_fcf_history,
    fcf_entry_from_yahoo,
    normalize_yahoo_quote,
    parse_json_object,
    safe_float,
)
from .provider_results import (
    NO_KEY_HINT,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
)


T = TypeVar("T")

_FIVE_YEAR_RE = re.compile(FIVE_YEAR_PERIOD_PATTERN, re.IGNORECASE)


# =============================================================================
# RESPONSE EXTRACTORS
# =============================================================================

def _as_percent_fraction(value: float) -> float:
    """Yahoo reports some growth figures as percentages (12.5 for 12.5%)."""
    return value / 100 if value > 1 else value


def extract_quote(data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """First usable quoteResponse result, or None."""
    results = _module(data, "quoteResponse").get("result")
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    if not isinstance(first, dict) or first.get("quoteType") == "NONE":
        return None
    return first


def extract_summary(data: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """First quoteSummary result, or None."""
    results = _module(data, "quoteSummary").get("result")
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    return first if isinstance(first, dict) else None


def extract_analyst_growth(summary: Mapping[str, Any]) -> Optional[float]:
    """
    Analyst "next 5 years (per annum)" growth as a decimal.

    Prefers growthEstimate.growth, then the earningsTrend entry whose period
    describes five years.
    """
    growth_estimate = summary.get("growthEstimate")
    if isinstance(growth_estimate, Mapping):
        growth = safe_float(growth_estimate.get("growth"))
        if growth is not None:
            return _as_percent_fraction(growth)

    earnings_trend = summary.get("earningsTrend")
    trend = earnings_trend.get("trend") if isinstance(earnings_trend, Mapping) else None
    if isinstance(trend, list):
        for item in trend:
            if not isinstance(item, Mapping):
                continue
            if _FIVE_YEAR_RE.search(str(item.get("period") or "")):
                growth = safe_float(item.get("growthRate"))
                return _as_percent_fraction(growth) if growth is not None else None
    return None


def _module(summary: Optional[Mapping[str, Any]], name: str) -> Mapping[str, Any]:
    if not summary:
        return {}
    value = summary.get(name)
    return value if isinstance(value, Mapping) else {}


# =============================================================================
# YAHOO FINANCE CLIENT
# =============================================================================

class YahooClient:
    """Keyless Yahoo Finance client walking mirrored hosts."""

    def __init__(self, config: YahooConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.session = session or requests.Session()

    def _get_json(self, url: str, params: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """Fetch one URL, returning the decoded object only for a usable answer."""
        try:
            response = self.session.get(
                url,
                params=params,
                headers=self.config.headers,
                timeout=self.config.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            LOGGER.debug(f"Yahoo request failed for {url}: {e}")
            return None

        if not 200 <= response.status_code < 300:
            return None
        content_type = response.headers.get("content-type") or ""
        if "application/json" not in content_type:
            return None
        return parse_json_object(response.text)

    def _walk_hosts(
        self,
        path: str,
        params: Dict[str, str],
        extract: Callable[[Mapping[str, Any]], Optional[T]],
    ) -> Optional[T]:
        """Try each host in order until extract yields a value."""
        for host in self.config.hosts:
            data = self._get_json(f"{host}{path}", params)
            if data is None:
                continue
            value = extract(data)
            if value is not None:
                return value
        return None

    def fetch_quote(self, symbol: str) -> Optional[Dict[str, Any]]:
        """Fetch the v7 quote result for a symbol."""
        LOGGER.info(f"Yahoo request: quote for {symbol}")
        return self._walk_hosts(self.config.quote_path, {"symbols": symbol}, extract_quote)

    def fetch_quote_summary(self, symbol: str, modules: str) -> Optional[Dict[str, Any]]:
        """Fetch the v10 quoteSummary result for the given modules."""
        LOGGER.info(f"Yahoo request: quoteSummary[{modules}] for {symbol}")
        path = self.config.summary_path.format(symbol=quote(symbol, safe=""))
        return self._walk_hosts(path, {"modules": modules}, extract_summary)

    def fetch_analyst_growth_5y(self, symbol: str) -> Optional[float]:
        """Analyst five-year growth estimate, or None when no host has one."""
        path = self.config.summary_path.format(symbol=quote(symbol, safe=""))

        def extract(data: Mapping[str, Any]) -> Optional[float]:
            summary = extract_summary(data)
            return extract_analyst_growth(summary) if summary else None

        return self._walk_hosts(path, {"modules": YAHOO_GROWTH_MODULES}, extract)


# =============================================================================
# YAHOO FINANCE ADAPTER
# =============================================================================

class YahooAdapter:
    """
    Secondary provider adapter.

    The quote and statement-summary calls hit separate quotas and run
    concurrently; the analyst growth call is best-effort.
    """

    provider = ProviderName.YAHOO

    def __init__(
        self,
        config: YahooConfig,
        normalization: Optional[NormalizationConfig] = None,
        client: Optional[YahooClient] = None,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        self.normalization = normalization or NormalizationConfig()
        self.client = client or YahooClient(config, session=session)

    def fetch_financials(self, symbol: str) -> ProviderResult:
        """
        Fetch and normalize quote, shares, cash-flow history and growth.

        Args:
            symbol: Upper-cased ticker symbol

        Returns:
            ProviderSuccess, or SYMBOL_NOT_FOUND when no host returns a quote
        """
        with concurrent.futures.ThreadPoolExecutor(max_workers=2) as executor:
            quote_future = executor.submit(self.client.fetch_quote, symbol)
            summary_future = executor.submit(
                self.client.fetch_quote_summary, symbol, YAHOO_SUMMARY_MODULES
            )
            quote_raw = quote_future.result()
            summary = summary_future.result()

        if not quote_raw:
            LOGGER.warning(f"Yahoo returned no quote for {symbol}")
            return ProviderFailure(
                kind=ProviderFailureKind.SYMBOL_NOT_FOUND,
                message=f"No quote found for {symbol}." + NO_KEY_HINT,
                provider=self.provider,
            )

        key_stats = _module(summary, "defaultKeyStatistics")
        profile = _module(summary, "summaryProfile")

        quote = normalize_yahoo_quote(
            quote_raw, symbol, shares_override=safe_float(key_stats.get("sharesOutstanding"))
        )

        cashflow = _module(summary, "cashflowStatementHistory")
        statements: List[Any] = cashflow.get("cashflowStatements") or []
        fcf_history = build_fcf_history(
            (fcf_entry_from_yahoo(s) for s in statements if isinstance(s, Mapping)),
            self.normalization,
        )

        analyst_growth = self.fetch_analyst_growth_5y(symbol)

        sector = profile.get("sector")
        LOGGER.info(f"Yahoo success for {symbol}: {len(fcf_history)} FCF years")

        record = NormalizedRecord(
            quote=quote,
            fcf_history=fcf_history,
            analyst_growth_rate_5y=analyst_growth,
            beta=safe_float(key_stats.get("beta")),
            sector=sector if isinstance(sector, str) and sector.strip() else None,
        )
        return ProviderSuccess(record=record, provider=self.provider)

    def fetch_analyst_growth_5y(self, symbol: str) -> Optional[float]:
        """Best-effort analyst five-year growth; None on any failure."""
        return degrade_to_empty(
            lambda: self.client.fetch_analyst_growth_5y(symbol),
            None,
            f"Analyst growth for {symbol}",
        )
