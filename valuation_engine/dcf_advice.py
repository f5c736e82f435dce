"""
DCF Advice - Advisor Prompt Context and Suggestion Parsing

Prepares the context sent to an external text-generation advisor and turns
its best-effort JSON reply into bounded DCF parameters. The advisor call
itself lives outside the engine; nothing here performs network I/O.

Reply handling:
    1. Take the body of a ```json fenced block when present, else the
       outermost {...} span
    2. Missing or non-numeric fields fall back to 0.10 / 0.10 / 0.025 / 5
    3. Every field is clamped to the DCF parameter boundaries
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Any

from .canonical import CanonicalPayload
from .config import DCFBounds
from .dcf_calculator import DCFParams, clamp_dcf_params
from .metric_normalizer import safe_float


ADVISOR_SYSTEM_PROMPT = """You are a professional equity valuation analyst specializing in DCF (discounted cash flow) valuation. Based on the company financial data below, suggest DCF parameter settings.

Reply in JSON only, with no other text, in this format:
{
    "growthRate": 0.12,
    "discountRate": 0.10,
    "terminalGrowthRate": 0.025,
    "projectionYears": 5,
    "reasoning": "Short explanation based on analyst expectations, sector and macro factors"
}

All rates are decimals:
- growthRate: FCF growth rate, e.g. 0.12 for 12%
- discountRate: discount rate (WACC), usually 0.06-0.15
- terminalGrowthRate: perpetual growth rate, usually 0.01-0.03, not above long-run GDP growth
- projectionYears: explicit projection years, usually 5-10"""

NO_REASONING = "No reasoning provided"

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class DCFAdvice:
    """Bounded parameter suggestion from the advisor."""

    growth_rate: float
    discount_rate: float
    terminal_growth_rate: float
    projection_years: int
    reasoning: str = NO_REASONING

    def apply_to(self, params: DCFParams) -> DCFParams:
        """Replace the rates and horizon of params with the suggestion."""
        return replace(
            params,
            growth_rate=self.growth_rate,
            discount_rate=self.discount_rate,
            terminal_growth_rate=self.terminal_growth_rate,
            projection_years=self.projection_years,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "growthRate": self.growth_rate,
            "discountRate": self.discount_rate,
            "terminalGrowthRate": self.terminal_growth_rate,
            "projectionYears": self.projection_years,
            "reasoning": self.reasoning,
        }


def _fmt_billions(value: Optional[float]) -> str:
    return f"{value / 1e9:.2f}B USD" if value is not None else "-"


def build_advice_context(
    payload: CanonicalPayload,
    current_params: Optional[DCFParams] = None,
) -> str:
    """
    Render the company data block appended to ADVISOR_SYSTEM_PROMPT.

    Args:
        payload: Canonical payload for the company
        current_params: Parameters the user is currently looking at

    Returns:
        Plain-text context
    """
    quote = payload.quote
    fcf_years = []
    for entry in payload.fcf_history:
        if not entry.is_resolved:
            continue
        year = datetime.fromtimestamp(entry.date / 1000, tz=timezone.utc).year if entry.date else "-"
        fcf_years.append({"year": year, "fcf": _fmt_billions(entry.free_cash_flow)})

    price = f"${quote.price:.2f}" if quote.price is not None else "-"
    market_cap = f"${quote.market_cap / 1e9:.2f}B" if quote.market_cap is not None else "-"

    lines = [
        f"Ticker: {quote.symbol}",
        f"Company: {quote.name or '-'}",
        f"Current price: {price}",
        f"Market cap: {market_cap}",
        "",
        "Historical FCF (annual):",
        json.dumps(fcf_years, indent=2),
    ]

    if payload.analyst_growth_rate_5y is not None:
        lines.append(f"Analyst 5-year growth estimate: {payload.analyst_growth_rate_5y * 100:.1f}%")
    if payload.suggested_wacc is not None:
        lines.append(f"Suggested WACC (discount rate): {payload.suggested_wacc * 100:.1f}%")
    if payload.wacc_source:
        lines.append(f"WACC source: {payload.wacc_source}")
    if current_params is not None:
        lines.append(
            f"User's current parameters: growth {current_params.growth_rate * 100:.1f}%, "
            f"discount {current_params.discount_rate * 100:.1f}%, "
            f"terminal growth {current_params.terminal_growth_rate * 100:.1f}%, "
            f"{current_params.projection_years} projection years"
        )

    return "\n".join(lines) + "\n"


def build_advice_prompt(payload: CanonicalPayload, current_params: Optional[DCFParams] = None) -> str:
    """Full prompt text: system instructions followed by the company context."""
    return ADVISOR_SYSTEM_PROMPT + "\n\n" + build_advice_context(payload, current_params)


def extract_json_text(raw: str) -> str:
    """Pull the JSON object out of a reply that may be wrapped in a code fence."""
    text = (raw or "").strip()
    fenced = _FENCED_JSON.search(text)
    if fenced:
        return fenced.group(1).strip()
    match = _JSON_OBJECT.search(text)
    return match.group() if match else text


def _number(value: Any, default: float) -> float:
    number = safe_float(value)
    return default if number is None else number


def parse_advice_response(raw: str, bounds: Optional[DCFBounds] = None) -> DCFAdvice:
    """
    Parse an advisor reply into a bounded DCFAdvice.

    Args:
        raw: Advisor reply text
        bounds: Parameter boundaries

    Returns:
        DCFAdvice with defaults applied and every field clamped

    Raises:
        ValueError: If the reply holds no JSON object
    """
    bounds = bounds or DCFBounds()
    data = json.loads(extract_json_text(raw))
    if not isinstance(data, dict):
        raise ValueError("Advisor reply is not a JSON object")

    suggested = clamp_dcf_params(DCFParams(
        base_fcf=0.0,
        growth_rate=_number(data.get("growthRate"), 0.1),
        discount_rate=_number(data.get("discountRate"), 0.1),
        terminal_growth_rate=_number(data.get("terminalGrowthRate"), 0.025),
        projection_years=_number(data.get("projectionYears"), 5),
    ), bounds)

    reasoning = data.get("reasoning")
    return DCFAdvice(
        growth_rate=suggested.growth_rate,
        discount_rate=suggested.discount_rate,
        terminal_growth_rate=suggested.terminal_growth_rate,
        projection_years=suggested.projection_years,
        reasoning=reasoning if isinstance(reasoning, str) else NO_REASONING,
    )
