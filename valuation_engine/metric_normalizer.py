"""
Metric Normalizer - Canonical Quote, FCF and Valuation-Ratio Series

Maps each provider's heterogeneous payloads into canonical records:

    - Quote from Alpha Vantage GLOBAL_QUOTE + OVERVIEW, or Yahoo v7 quote
    - FCF history from Alpha Vantage CASH_FLOW annual reports, or Yahoo
      cashflowStatementHistory statements
    - Monthly valuation ratios (P/S, P/E GAAP, P/FCF) from annual revenue,
      EPS and FCF combined with the monthly adjusted price series

Handles camelCase/snake_case field variants, "05. price" style keys,
comma-formatted numeric strings, "None"/"-" placeholders and Yahoo's
{"raw": ..., "fmt": ...} number wrappers.

Invariants:
    - FCF history is sorted descending by date, contains only entries with a
      resolved free cash flow, and holds at most max_fcf_entries entries
    - Valuation metrics are chronological, limited to the trailing
      valuation_years calendar years and at most max_valuation_samples points
    - A ratio is None (never zero) when its denominator is missing or <= 0

Version: 1.0.0
"""

from __future__ import annotations

import json
import math
from datetime import date as date_cls
from typing import Dict, List, Optional, Any, Iterable, Mapping, Tuple

import numpy as np
import pandas as pd

from .canonical import FCFEntry, Quote, ValuationMetricEntry
from .config import (
    CASHFLOW_FIELD_VARIANTS,
    EARNINGS_FIELD_VARIANTS,
    GLOBAL_QUOTE_FIELD_MAP,
    INCOME_FIELD_VARIANTS,
    MONTHLY_CLOSE_KEYS,
    OVERVIEW_FIELD_MAP,
    YAHOO_QUOTE_FIELD_MAP,
    NormalizationConfig,
)


_PLACEHOLDERS = frozenset({"none", "n/a", "-", "", "null", "nan"})


# =============================================================================
# PRIMITIVE CONVERSIONS
# =============================================================================

def safe_float(value: Any) -> Optional[float]:
    """
    Safely convert a provider value to a finite float.

    Args:
        value: Number, numeric string (commas and a trailing % allowed) or a
            Yahoo {"raw": x} wrapper

    Returns:
        Float value or None if conversion fails or the result is not finite
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        return safe_float(value.get("raw"))
    if isinstance(value, (int, float)):
        if math.isnan(value) or math.isinf(value):
            return None
        return float(value)
    if isinstance(value, str):
        value = value.strip().replace(",", "").rstrip("%").strip()
        if value.lower() in _PLACEHOLDERS:
            return None
        try:
            result = float(value)
        except ValueError:
            return None
        if math.isnan(result) or math.isinf(result):
            return None
        return result
    return None


def first_present(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """Return the first non-None value among the given key spellings."""
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def parse_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse a response body expected to hold a JSON object.

    Returns:
        The decoded dict, or None for empty, non-JSON or non-object bodies
    """
    if not text or not text.lstrip().startswith("{"):
        return None
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def date_to_epoch_ms(value: Any) -> int:
    """
    Convert a fiscal date to epoch milliseconds (UTC).

    Accepts ISO date strings, epoch seconds, epoch milliseconds and Yahoo
    {"raw": seconds} wrappers. Unparseable input maps to 0.
    """
    if isinstance(value, Mapping):
        value = value.get("raw")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if math.isnan(value) or math.isinf(value):
            return 0
        # Yahoo reports seconds; anything below ~1973 in ms is taken as seconds
        return int(value * 1000) if abs(value) < 1e11 else int(value)
    if isinstance(value, str) and value.strip():
        try:
            ts = pd.Timestamp(value.strip())
        except (ValueError, TypeError):
            return 0
        if pd.isna(ts):
            return 0
        if ts.tzinfo is None:
            ts = ts.tz_localize("UTC")
        return int(ts.value // 1_000_000)
    return 0


def fiscal_year(record: Mapping[str, Any]) -> Optional[int]:
    """Calendar year of a statement's fiscalDateEnding, if present."""
    date_str = first_present(record, CASHFLOW_FIELD_VARIANTS["fiscal_date_ending"])
    if not isinstance(date_str, str) or len(date_str) < 4:
        return None
    try:
        return int(date_str[:4])
    except ValueError:
        return None


# =============================================================================
# QUOTE NORMALIZATION
# =============================================================================

def normalize_alpha_quote(
    global_quote: Mapping[str, Any],
    overview: Mapping[str, Any],
    symbol: str,
) -> Quote:
    """
    Build a Quote from Alpha Vantage GLOBAL_QUOTE and OVERVIEW payloads.

    Market cap falls back to shares x price when OVERVIEW omits it.
    """
    fields = {canon: global_quote.get(raw) for raw, canon in GLOBAL_QUOTE_FIELD_MAP.items()}
    info = {canon: overview.get(raw) for raw, canon in OVERVIEW_FIELD_MAP.items()}

    price = safe_float(fields["price"])
    shares = safe_float(info["shares_outstanding"])
    market_cap = safe_float(info["market_cap"])
    if market_cap is None and shares is not None and price:
        market_cap = shares * price

    return Quote(
        symbol=str(fields["symbol"] or symbol),
        name=str(info["name"]) if info["name"] else symbol,
        price=price,
        change=safe_float(fields["change"]),
        change_percent=safe_float(fields["change_percent"]),
        market_cap=market_cap,
        trailing_pe=safe_float(info["trailing_pe"]),
        forward_pe=safe_float(info["forward_pe"]),
        shares_outstanding=shares,
        currency="USD",
    )


def normalize_yahoo_quote(
    raw: Mapping[str, Any],
    symbol: str,
    shares_override: Optional[float] = None,
) -> Quote:
    """
    Build a Quote from a Yahoo v7 quote result.

    Args:
        raw: First element of quoteResponse.result
        symbol: Requested ticker, used when the result omits it
        shares_override: Shares from defaultKeyStatistics, preferred when finite
    """
    fields = {canon: safe_float(raw.get(key)) for key, canon in YAHOO_QUOTE_FIELD_MAP.items()}
    shares = shares_override if shares_override is not None else fields["shares_outstanding"]

    return Quote(
        symbol=str(raw.get("symbol") or symbol),
        name=raw.get("shortName") or raw.get("longName"),
        price=fields["price"],
        change=fields["change"],
        change_percent=fields["change_percent"],
        market_cap=fields["market_cap"],
        trailing_pe=fields["trailing_pe"],
        forward_pe=fields["forward_pe"],
        shares_outstanding=shares,
        currency=raw.get("currency"),
    )


# =============================================================================
# FCF HISTORY
# =============================================================================

def _fcf_from_components(
    operating: Optional[float],
    capex: Optional[float],
) -> Optional[float]:
    """FCF = OCF - |CapEx|; OCF alone when CapEx is unreported."""
    if operating is None:
        return None
    if capex is None:
        return operating
    return operating - abs(capex)


def fcf_entry_from_alpha(report: Mapping[str, Any]) -> FCFEntry:
    """Build an FCFEntry from one Alpha Vantage CASH_FLOW annual report."""
    operating = safe_float(first_present(report, CASHFLOW_FIELD_VARIANTS["operating_cash_flow"]))
    capex = safe_float(first_present(report, CASHFLOW_FIELD_VARIANTS["capital_expenditure"]))
    date_str = first_present(report, CASHFLOW_FIELD_VARIANTS["fiscal_date_ending"])

    return FCFEntry(
        date=date_to_epoch_ms(date_str),
        free_cash_flow=_fcf_from_components(operating, capex),
        operating_cash_flow=operating,
        capital_expenditure=capex,
    )


def fcf_entry_from_yahoo(item: Mapping[str, Any]) -> FCFEntry:
    """
    Build an FCFEntry from one Yahoo cashflowStatementHistory statement.

    Reported freeCashflow wins; otherwise operating minus |capex|, where an
    unreported capex counts as zero.
    """
    operating = safe_float(item.get("totalCashFromOperatingActivities"))
    capex = safe_float(item.get("capitalExpenditures"))
    fcf = safe_float(item.get("freeCashflow"))
    if fcf is None and operating is not None:
        fcf = operating - abs(capex or 0.0)

    end_date = item.get("endDate")
    if end_date is None:
        end_date = item.get("date")

    return FCFEntry(
        date=date_to_epoch_ms(end_date),
        free_cash_flow=fcf,
        operating_cash_flow=operating,
        capital_expenditure=capex,
    )


def build_fcf_history(
    entries: Iterable[FCFEntry],
    config: Optional[NormalizationConfig] = None,
) -> Tuple[FCFEntry, ...]:
    """
    Apply the FCF collection invariant.

    Drops unresolved entries, sorts most-recent-first and keeps at most
    config.max_fcf_entries.
    """
    config = config or NormalizationConfig()
    resolved = [e for e in entries if e.is_resolved]
    resolved.sort(key=lambda e: e.date, reverse=True)
    return tuple(resolved[:config.max_fcf_entries])


# =============================================================================
# VALUATION RATIO HISTORY
# =============================================================================

def _year_map(
    reports: Iterable[Mapping[str, Any]],
    value_keys: Tuple[str, ...],
) -> Dict[int, float]:
    """Map calendar year -> figure for annual reports."""
    by_year: Dict[int, float] = {}
    for report in reports:
        if not isinstance(report, Mapping):
            continue
        year = fiscal_year(report)
        value = safe_float(first_present(report, value_keys))
        if year is not None and value is not None:
            by_year[year] = value
    return by_year


def fcf_by_year(cashflow_reports: Iterable[Mapping[str, Any]]) -> Dict[int, float]:
    """Map calendar year -> FCF from Alpha Vantage CASH_FLOW annual reports."""
    by_year: Dict[int, float] = {}
    for report in cashflow_reports:
        if not isinstance(report, Mapping):
            continue
        year = fiscal_year(report)
        fcf = fcf_entry_from_alpha(report).free_cash_flow
        if year is not None and fcf is not None:
            by_year[year] = fcf
    return by_year


def monthly_price_frame(monthly_series: Mapping[str, Any]) -> pd.DataFrame:
    """
    Build a chronological frame of monthly closes.

    Args:
        monthly_series: {"YYYY-MM-DD": {"5. adjusted close": "...", ...}}

    Returns:
        DataFrame with columns year, month, close sorted oldest first
    """
    rows: List[Dict[str, Any]] = []
    for date_str, point in monthly_series.items():
        if not isinstance(date_str, str) or len(date_str) < 7 or not isinstance(point, Mapping):
            continue
        parts = date_str.split("-")
        try:
            year, month = int(parts[0]), int(parts[1])
        except (ValueError, IndexError):
            continue
        if not 1 <= month <= 12:
            continue
        close = safe_float(first_present(point, MONTHLY_CLOSE_KEYS))
        if close is not None:
            rows.append({"year": year, "month": month, "close": close})

    frame = pd.DataFrame(rows, columns=["year", "month", "close"])
    if frame.empty:
        return frame
    return frame.sort_values(["year", "month"], kind="mergesort").reset_index(drop=True)


def _positive_ratio(numerator: float, denominator: Optional[float]) -> Optional[float]:
    if denominator is None or denominator <= 0:
        return None
    ratio = numerator / denominator
    return float(ratio) if np.isfinite(ratio) else None


def build_valuation_metrics(
    cashflow_reports: Iterable[Mapping[str, Any]],
    income_reports: Iterable[Mapping[str, Any]],
    annual_earnings: Iterable[Mapping[str, Any]],
    monthly_series: Mapping[str, Any],
    shares_outstanding: Optional[float],
    config: Optional[NormalizationConfig] = None,
    today: Optional[date_cls] = None,
) -> List[ValuationMetricEntry]:
    """
    Compute monthly P/S, P/E (GAAP) and P/FCF over the trailing five years.

    For each monthly close: market cap = close x shares; P/S = market cap /
    revenue and P/FCF = market cap / FCF of the same calendar year; P/E =
    close / EPS of that year.

    Args:
        cashflow_reports: CASH_FLOW annualReports
        income_reports: INCOME_STATEMENT annualReports
        annual_earnings: EARNINGS annualEarnings
        monthly_series: TIME_SERIES_MONTHLY_ADJUSTED series mapping
        shares_outstanding: Current shares outstanding
        config: Normalization limits
        today: Reference date for the five-year window (defaults to today)

    Returns:
        Chronological list of ValuationMetricEntry; empty when there are no
        price samples or shares are missing/non-positive
    """
    config = config or NormalizationConfig()
    today = today or date_cls.today()

    if not shares_outstanding or shares_outstanding <= 0:
        return []

    prices = monthly_price_frame(monthly_series)
    if prices.empty:
        return []

    first_year = today.year - config.valuation_years
    window = prices[prices["year"] >= first_year]
    if window.empty:
        window = prices
    window = window.tail(config.max_valuation_samples)

    revenue = _year_map(income_reports, INCOME_FIELD_VARIANTS["total_revenue"])
    eps = _year_map(annual_earnings, EARNINGS_FIELD_VARIANTS["reported_eps"])
    fcf = fcf_by_year(cashflow_reports)

    entries: List[ValuationMetricEntry] = []
    for row in window.itertuples(index=False):
        year, month, close = int(row.year), int(row.month), float(row.close)
        market_cap = close * shares_outstanding
        entries.append(ValuationMetricEntry(
            year=year,
            month=month,
            ps=_positive_ratio(market_cap, revenue.get(year)),
            pe_gaap=_positive_ratio(close, eps.get(year)),
            pfcf=_positive_ratio(market_cap, fcf.get(year)),
            price=close,
        ))

    return entries
