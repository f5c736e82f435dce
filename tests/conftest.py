"""Test configuration helpers and fixtures."""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from unittest.mock import MagicMock

import pytest

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from valuation_engine.config import YAHOO_GROWTH_MODULES  # noqa: E402
from valuation_engine.rate_limiter import FixedIntervalGate  # noqa: E402


# =============================================================================
# HTTP FAKES
# =============================================================================

def make_response(
    body: Any,
    status_code: int = 200,
    content_type: str = "application/json; charset=utf-8",
) -> MagicMock:
    """Build a requests.Response stand-in; dict bodies are JSON-encoded."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"content-type": content_type}
    response.text = body if isinstance(body, str) else json.dumps(body)
    return response


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# =============================================================================
# ALPHA VANTAGE SAMPLE PAYLOADS
# =============================================================================

@pytest.fixture
def av_payloads() -> Dict[str, Any]:
    return {
        "GLOBAL_QUOTE": {
            "Global Quote": {
                "01. symbol": "AAPL",
                "05. price": "190.5000",
                "09. change": "1.2500",
                "10. change percent": "0.6605%",
            }
        },
        "OVERVIEW": {
            "Symbol": "AAPL",
            "Name": "Apple Inc",
            "MarketCapitalization": "2950000000000",
            "SharesOutstanding": "15500000000",
            "PERatio": "29.5",
            "ForwardPE": "28.1",
            "Beta": "1.2",
            "Sector": "TECHNOLOGY",
        },
        "CASH_FLOW": {
            "symbol": "AAPL",
            "annualReports": [
                {
                    "fiscalDateEnding": "2022-09-30",
                    "operatingCashflow": "122151000000",
                    "capitalExpenditures": "10708000000",
                },
                {
                    "fiscalDateEnding": "2023-09-30",
                    "operatingCashflow": "110543000000",
                    "capitalExpenditures": "10959000000",
                },
                {
                    "fiscalDateEnding": "2021-09-30",
                    "operatingCashflow": "104038000000",
                    "capitalExpenditures": "None",
                },
                {
                    "fiscalDateEnding": "2020-09-30",
                    "operatingCashflow": "None",
                    "capitalExpenditures": "7309000000",
                },
            ],
        },
        "EARNINGS": {
            "annualEarnings": [
                {"fiscalDateEnding": "2023-09-30", "reportedEPS": "6.13"},
                {"fiscalDateEnding": "2022-09-30", "reportedEPS": "6.11"},
            ]
        },
        "INCOME_STATEMENT": {
            "annualReports": [
                {"fiscalDateEnding": "2023-09-30", "totalRevenue": "383285000000"},
                {"fiscalDateEnding": "2022-09-30", "totalRevenue": "394328000000"},
            ]
        },
        "TIME_SERIES_MONTHLY_ADJUSTED": {
            "Monthly Adjusted Time Series": {
                "2023-12-29": {"4. close": "192.5300", "5. adjusted close": "191.5900"},
                "2023-11-30": {"4. close": "189.9500", "5. adjusted close": "189.0200"},
                "2022-12-30": {"4. close": "129.9300", "5. adjusted close": "128.5800"},
            }
        },
    }


def make_av_session(payloads: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> MagicMock:
    """
    Session routing Alpha Vantage calls by the "function" parameter.

    Override values may be a body (dict or str) or an exception instance to raise.
    """
    routes = dict(payloads)
    routes.update(overrides or {})

    def get(url, params=None, **kwargs):
        body = routes[params["function"]]
        if isinstance(body, Exception):
            raise body
        return make_response(body)

    session = MagicMock()
    session.get.side_effect = get
    return session


@pytest.fixture
def av_session_factory(av_payloads) -> Callable[..., MagicMock]:
    def factory(**overrides) -> MagicMock:
        return make_av_session(av_payloads, overrides)
    return factory


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def paced_gate(fake_clock) -> FixedIntervalGate:
    return FixedIntervalGate(1.3, clock=fake_clock, sleep=fake_clock.sleep)


# =============================================================================
# YAHOO FINANCE SAMPLE PAYLOADS
# =============================================================================

@pytest.fixture
def yahoo_payloads() -> Dict[str, Any]:
    return {
        "quote": {
            "quoteResponse": {
                "result": [{
                    "symbol": "MSFT",
                    "shortName": "Microsoft Corporation",
                    "quoteType": "EQUITY",
                    "regularMarketPrice": 410.0,
                    "regularMarketChange": -2.5,
                    "regularMarketChangePercent": -0.61,
                    "marketCap": 3050000000000,
                    "trailingPE": 35.2,
                    "forwardPE": 31.0,
                    "sharesOutstanding": 7400000000,
                    "currency": "USD",
                }]
            }
        },
        "summary": {
            "quoteSummary": {
                "result": [{
                    "cashflowStatementHistory": {
                        "cashflowStatements": [
                            {
                                "endDate": {"raw": 1688083200, "fmt": "2023-06-30"},
                                "totalCashFromOperatingActivities": {"raw": 87582000000},
                                "capitalExpenditures": {"raw": -28107000000},
                            },
                            {
                                "endDate": {"raw": 1719705600, "fmt": "2024-06-30"},
                                "totalCashFromOperatingActivities": {"raw": 118548000000},
                                "capitalExpenditures": {"raw": -44477000000},
                            },
                        ]
                    },
                    "defaultKeyStatistics": {
                        "sharesOutstanding": {"raw": 7430000000},
                        "beta": {"raw": 0.9},
                    },
                    "summaryProfile": {"sector": "Technology"},
                }],
                "error": None,
            }
        },
        "growth": {
            "quoteSummary": {
                "result": [{
                    "growthEstimate": {"growth": {"raw": 0.145}},
                    "earningsTrend": {"trend": []},
                }]
            }
        },
    }


def make_yahoo_session(payloads: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> MagicMock:
    """
    Session routing Yahoo calls to "quote", "summary" or "growth".

    Override values may be a response MagicMock, a body, or an exception.
    """
    routes = dict(payloads)
    routes.update(overrides or {})

    def get(url, params=None, **kwargs):
        if "/v7/finance/quote" in url:
            key = "quote"
        elif (params or {}).get("modules") == YAHOO_GROWTH_MODULES:
            key = "growth"
        else:
            key = "summary"
        body = routes[key]
        if isinstance(body, Exception):
            raise body
        if isinstance(body, MagicMock):
            return body
        return make_response(body)

    session = MagicMock()
    session.get.side_effect = get
    return session


@pytest.fixture
def yahoo_session_factory(yahoo_payloads) -> Callable[..., MagicMock]:
    def factory(**overrides) -> MagicMock:
        return make_yahoo_session(yahoo_payloads, overrides)
    return factory
