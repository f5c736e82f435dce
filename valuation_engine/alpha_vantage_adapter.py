"""
Alpha Vantage Adapter - Primary Financial Data Provider

Fetches quote, company overview and cash-flow statement data from Alpha
Vantage and normalizes them into a NormalizedRecord.

Request sequence (strictly sequential, paced by a FixedIntervalGate):
    1. GLOBAL_QUOTE       current price and change
    2. OVERVIEW           name, shares, market cap, P/E, beta, sector
    3. CASH_FLOW          annual operating cash flow and capex
    4. EARNINGS           \
    5. INCOME_STATEMENT    > best-effort valuation-ratio history
    6. TIME_SERIES_MONTHLY_ADJUSTED /

Failure classification:
    - No API key                                   -> NO_CREDENTIAL (soft)
    - "Information"/"Note"/"Error Message" notice  -> RATE_LIMITED or PROVIDER_ERROR
    - Body is not a JSON object                    -> INVALID_PAYLOAD
    - "Global Quote" missing, price absent or <= 0 -> SYMBOL_NOT_FOUND
    - Transport failure                            -> PROVIDER_ERROR

Version: 1.0.0
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from .canonical import NormalizedRecord, ValuationMetricEntry
from .config import (
    ALPHA_VANTAGE_NOTICE_FIELDS,
    MONTHLY_SERIES_KEYS,
    RATE_LIMIT_PATTERN,
    AlphaVantageConfig,
    NormalizationConfig,
    ProviderFailureKind,
    ProviderName,
    LOGGER,
)
from .enrichment import degrade_to_empty
from .metric_normalizer import (
    build_fcf_history,
    build_valuation_metrics,
    fcf_entry_from_alpha,
    first_present,
    normalize_alpha_quote,
    parse_json_object,
    safe_float,
)
from .provider_results import (
    RATE_LIMIT_MESSAGE,
    ProviderFailure,
    ProviderResult,
    ProviderSuccess,
    truncate_detail,
)
from .rate_limiter import FixedIntervalGate


_RATE_LIMIT_RE = re.compile(RATE_LIMIT_PATTERN, re.IGNORECASE)
_API_KEY_RE = re.compile(r"(apikey=)[^&\s]+", re.IGNORECASE)


def _failure(kind: ProviderFailureKind, message: str) -> ProviderFailure:
    return ProviderFailure(kind=kind, message=message, provider=ProviderName.ALPHA_VANTAGE)


def redact_api_key(text: str) -> str:
    """Mask the apikey query parameter in URLs embedded in error text."""
    return _API_KEY_RE.sub(r"\1***", text)


def find_notice(data: Mapping[str, Any]) -> Optional[str]:
    """Return the provider's error/notice text, if the body carries one."""
    for key in ALPHA_VANTAGE_NOTICE_FIELDS:
        notice = data.get(key)
        if isinstance(notice, str):
            return notice
    return None


def classify_notice(notice: str, detail_length: int = 120) -> ProviderFailure:
    """
    Classify an Alpha Vantage notice.

    Rate-limit phrasing maps to RATE_LIMITED with a retry-later message;
    anything else is a PROVIDER_ERROR carrying the truncated provider text.
    """
    if _RATE_LIMIT_RE.search(notice):
        return _failure(ProviderFailureKind.RATE_LIMITED, RATE_LIMIT_MESSAGE)
    return _failure(
        ProviderFailureKind.PROVIDER_ERROR,
        truncate_detail(notice, detail_length),
    )


# =============================================================================
# ALPHA VANTAGE API CLIENT
# =============================================================================

class AlphaVantageClient:
    """
    Alpha Vantage HTTP client with pacing.

    Every request first passes through the shared gate, so all calls made
    through one client honor the provider's per-second budget.
    """

    def __init__(
        self,
        config: AlphaVantageConfig,
        session: Optional[requests.Session] = None,
        gate: Optional[FixedIntervalGate] = None,
    ):
        """
        Initialize AlphaVantageClient.

        Args:
            config: API key, base URL, timeout and pacing interval
            session: HTTP session (a new one is created if omitted)
            gate: Pacing gate (built from config.rate_limit_seconds if omitted)
        """
        self.config = config
        self.session = session or requests.Session()
        self.gate = gate or FixedIntervalGate(config.rate_limit_seconds)
        self._call_count: int = 0

    def _request(self, function: str, symbol: str) -> Tuple[Optional[str], Optional[str]]:
        """
        Make one paced API request.

        Args:
            function: API function name
            symbol: Stock ticker symbol

        Returns:
            Tuple of (response_text, error_message)
        """
        self.gate.acquire()

        params = {
            "function": function,
            "symbol": symbol,
            "apikey": self.config.api_key,
        }

        try:
            LOGGER.info(f"API request: {function} for {symbol}")

            response = self.session.get(
                self.config.base_url,
                params=params,
                timeout=self.config.request_timeout,
            )

            self._call_count += 1
            response.raise_for_status()
            return response.text, None

        except requests.exceptions.Timeout:
            return None, f"Request timeout for {function}"
        except requests.exceptions.RequestException as e:
            return None, f"Request failed: {redact_api_key(str(e))}"

    @property
    def call_count(self) -> int:
        """Return total API calls made."""
        return self._call_count

    def get_global_quote(self, symbol: str) -> Tuple[Optional[str], Optional[str]]:
        """Fetch current quote."""
        return self._request("GLOBAL_QUOTE", symbol)

    def get_overview(self, symbol: str) -> Tuple[Optional[str], Optional[str]]:
        """Fetch company overview data."""
        return self._request("OVERVIEW", symbol)

    def get_cash_flow(self, symbol: str) -> Tuple[Optional[str], Optional[str]]:
        """Fetch cash flow statement data."""
        return self._request("CASH_FLOW", symbol)

    def get_earnings(self, symbol: str) -> Tuple[Optional[str], Optional[str]]:
        """Fetch annual and quarterly EPS."""
        return self._request("EARNINGS", symbol)

    def get_income_statement(self, symbol: str) -> Tuple[Optional[str], Optional[str]]:
        """Fetch income statement data."""
        return self._request("INCOME_STATEMENT", symbol)

    def get_monthly_adjusted(self, symbol: str) -> Tuple[Optional[str], Optional[str]]:
        """Fetch monthly adjusted price series."""
        return self._request("TIME_SERIES_MONTHLY_ADJUSTED", symbol)


# =============================================================================
# ALPHA VANTAGE ADAPTER
# =============================================================================

class AlphaVantageAdapter:
    """
    Primary provider adapter.

    Converts Alpha Vantage responses into a ProviderSuccess carrying a
    NormalizedRecord, or a classified ProviderFailure. Never raises for
    provider or transport problems.
    """

    provider = ProviderName.ALPHA_VANTAGE

    def __init__(
        self,
        config: AlphaVantageConfig,
        normalization: Optional[NormalizationConfig] = None,
        client: Optional[AlphaVantageClient] = None,
        session: Optional[requests.Session] = None,
        gate: Optional[FixedIntervalGate] = None,
    ):
        self.config = config
        self.normalization = normalization or NormalizationConfig()
        self.client = client
        if self.client is None and config.has_credential:
            self.client = AlphaVantageClient(config, session=session, gate=gate)

    def fetch_financials(self, symbol: str) -> ProviderResult:
        """
        Fetch and normalize quote, overview and cash-flow data.

        Args:
            symbol: Upper-cased ticker symbol

        Returns:
            ProviderSuccess or ProviderFailure
        """
        if self.client is None or not self.config.has_credential:
            LOGGER.info("Alpha Vantage key not configured")
            return _failure(ProviderFailureKind.NO_CREDENTIAL, "no_key")

        detail_length = self.normalization.error_detail_length

        # Step 1: Quote (decides whether the symbol exists)
        quote_text, error = self.client.get_global_quote(symbol)
        if error:
            return self._transport_failure(symbol, error)

        quote_json = parse_json_object(quote_text)
        if quote_json is None:
            return _failure(
                ProviderFailureKind.INVALID_PAYLOAD,
                "Alpha Vantage returned an invalid response.",
            )

        notice = find_notice(quote_json)
        if notice is not None:
            failure = classify_notice(notice, detail_length)
            LOGGER.warning(f"Alpha Vantage notice for {symbol}: {failure.kind.value}")
            return failure

        global_quote = quote_json.get("Global Quote")
        if not isinstance(global_quote, dict) or not global_quote:
            return _failure(
                ProviderFailureKind.SYMBOL_NOT_FOUND,
                f"Alpha Vantage: no quote found for {symbol}.",
            )

        price = safe_float(global_quote.get("05. price"))
        if price is None or price <= 0:
            return _failure(
                ProviderFailureKind.SYMBOL_NOT_FOUND,
                f"Alpha Vantage: no valid price for {symbol}.",
            )

        # Step 2-3: Overview and cash flow; unusable bodies count as empty
        overview_text, error = self.client.get_overview(symbol)
        if error:
            return self._transport_failure(symbol, error)
        cashflow_text, error = self.client.get_cash_flow(symbol)
        if error:
            return self._transport_failure(symbol, error)

        overview = parse_json_object(overview_text) or {}
        cashflow = parse_json_object(cashflow_text) or {}

        quote = normalize_alpha_quote(global_quote, overview, symbol)

        annual_reports = cashflow.get("annualReports")
        if not isinstance(annual_reports, list):
            annual_reports = []
        reports = [r for r in annual_reports if isinstance(r, dict)]
        fcf_history = build_fcf_history(
            (fcf_entry_from_alpha(r) for r in reports),
            self.normalization,
        )

        sector = overview.get("Sector")
        sector = sector.strip() if isinstance(sector, str) and sector.strip() not in ("", "None", "-") else None

        # Step 4-6: Valuation-ratio history (best effort)
        valuation_metrics = degrade_to_empty(
            lambda: self._fetch_valuation_metrics(symbol, quote.shares_outstanding or 0.0, reports),
            [],
            f"Valuation metrics for {symbol}",
        )

        LOGGER.info(
            f"Alpha Vantage success for {symbol}: {len(fcf_history)} FCF years, "
            f"{len(valuation_metrics)} valuation samples"
        )

        record = NormalizedRecord(
            quote=quote,
            fcf_history=fcf_history,
            valuation_metrics=tuple(valuation_metrics),
            beta=safe_float(overview.get("Beta")),
            sector=sector,
        )
        return ProviderSuccess(record=record, provider=self.provider)

    def _transport_failure(self, symbol: str, error: str) -> ProviderFailure:
        detail = truncate_detail(redact_api_key(error), self.normalization.error_detail_length)
        LOGGER.warning(f"Alpha Vantage request failed for {symbol}: {detail}")
        return _failure(ProviderFailureKind.PROVIDER_ERROR, f"Alpha Vantage request failed: {detail}")

    def _fetch_valuation_metrics(
        self,
        symbol: str,
        shares_outstanding: float,
        cashflow_reports: List[Dict[str, Any]],
    ) -> List[ValuationMetricEntry]:
        """
        Fetch EARNINGS, INCOME_STATEMENT and the monthly series, then build ratios.

        A notice or unusable body on any call empties only that input.

        Raises:
            RuntimeError: On transport failure (absorbed by degrade_to_empty)
        """
        earnings = self._optional_json(self.client.get_earnings(symbol))
        income = self._optional_json(self.client.get_income_statement(symbol))
        series = self._optional_json(self.client.get_monthly_adjusted(symbol))

        annual_earnings = earnings.get("annualEarnings")
        income_reports = income.get("annualReports")
        monthly = first_present(series, MONTHLY_SERIES_KEYS)

        return build_valuation_metrics(
            cashflow_reports=cashflow_reports,
            income_reports=income_reports if isinstance(income_reports, list) else [],
            annual_earnings=annual_earnings if isinstance(annual_earnings, list) else [],
            monthly_series=monthly if isinstance(monthly, dict) else {},
            shares_outstanding=shares_outstanding,
            config=self.normalization,
        )

    @staticmethod
    def _optional_json(response: Tuple[Optional[str], Optional[str]]) -> Dict[str, Any]:
        text, error = response
        if error:
            raise RuntimeError(error)
        data = parse_json_object(text)
        if data is None or find_notice(data) is not None:
            return {}
        return data
