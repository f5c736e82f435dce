"""Tests for advisor prompt context and reply parsing."""

import json

import pytest

from valuation_engine.canonical import CanonicalPayload, FCFEntry, Quote
from valuation_engine.dcf_advice import (
    ADVISOR_SYSTEM_PROMPT,
    NO_REASONING,
    DCFAdvice,
    build_advice_context,
    build_advice_prompt,
    extract_json_text,
    parse_advice_response,
)
from valuation_engine.dcf_calculator import DCFParams


@pytest.fixture
def payload():
    return CanonicalPayload(
        quote=Quote(symbol="AAPL", name="Apple Inc", price=190.5, market_cap=2.95e12),
        fcf_history=(
            FCFEntry(date=1696032000000, free_cash_flow=99.584e9),
            FCFEntry(date=1664496000000, free_cash_flow=111.443e9),
        ),
        analyst_growth_rate_5y=0.12,
        suggested_wacc=0.106,
        wacc_source="Risk-free 4.0% + beta 1.20 x 5.5% = 10.6%",
    )


class TestExtractJsonText:
    def test_fenced_block(self):
        raw = 'Here you go:\n```json\n{"growthRate": 0.1}\n```\nThanks'
        assert extract_json_text(raw) == '{"growthRate": 0.1}'

    def test_bare_fence(self):
        assert extract_json_text('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_embedded_object(self):
        assert extract_json_text('Suggestion: {"a": 1} done') == '{"a": 1}'


class TestParseAdviceResponse:
    def test_valid_reply(self):
        raw = json.dumps({
            "growthRate": 0.12,
            "discountRate": 0.095,
            "terminalGrowthRate": 0.025,
            "projectionYears": 7,
            "reasoning": "Services growth offsets hardware maturity.",
        })

        advice = parse_advice_response(f"```json\n{raw}\n```")

        assert advice == DCFAdvice(0.12, 0.095, 0.025, 7, "Services growth offsets hardware maturity.")

    def test_values_are_clamped(self):
        advice = parse_advice_response(json.dumps({
            "growthRate": 0.9,
            "discountRate": 0.01,
            "terminalGrowthRate": 0.2,
            "projectionYears": 30,
        }))

        assert advice.growth_rate == 0.5
        assert advice.discount_rate == 0.05
        assert advice.terminal_growth_rate == 0.05
        assert advice.projection_years == 15

    def test_missing_fields_use_defaults(self):
        advice = parse_advice_response("{}")

        assert advice.growth_rate == pytest.approx(0.1)
        assert advice.discount_rate == pytest.approx(0.1)
        assert advice.terminal_growth_rate == pytest.approx(0.025)
        assert advice.projection_years == 5
        assert advice.reasoning == NO_REASONING

    def test_string_numbers_and_rounding(self):
        advice = parse_advice_response('{"growthRate": "0.08", "projectionYears": 7.4}')

        assert advice.growth_rate == pytest.approx(0.08)
        assert advice.projection_years == 7

    @pytest.mark.parametrize("raw", ["no json here", "", "[1, 2, 3]", "{broken"])
    def test_invalid_reply_raises(self, raw):
        with pytest.raises(ValueError):
            parse_advice_response(raw)


class TestDCFAdvice:
    def test_apply_to_keeps_base_and_shares(self):
        params = DCFParams(base_fcf=100.0, shares_outstanding=50.0)
        updated = DCFAdvice(0.2, 0.12, 0.03, 8).apply_to(params)

        assert updated.base_fcf == 100.0
        assert updated.shares_outstanding == 50.0
        assert (updated.growth_rate, updated.discount_rate) == (0.2, 0.12)
        assert updated.projection_years == 8

    def test_to_dict(self):
        assert DCFAdvice(0.2, 0.12, 0.03, 8).to_dict()["reasoning"] == NO_REASONING


class TestAdviceContext:
    def test_context_lines(self, payload):
        context = build_advice_context(payload)

        assert "Ticker: AAPL" in context
        assert "Current price: $190.50" in context
        assert "Market cap: $2950.00B" in context
        assert "Analyst 5-year growth estimate: 12.0%" in context
        assert "Suggested WACC (discount rate): 10.6%" in context
        assert '"year": 2023' in context
        assert "User's current parameters" not in context

    def test_current_params_included(self, payload):
        params = DCFParams(base_fcf=1.0, growth_rate=0.08, projection_years=6)
        context = build_advice_context(payload, params)

        assert "growth 8.0%" in context
        assert "6 projection years" in context

    def test_missing_values(self):
        context = build_advice_context(CanonicalPayload(quote=Quote(symbol="ZZZZ")))

        assert "Current price: -" in context
        assert "Analyst" not in context

    def test_prompt_starts_with_instructions(self, payload):
        assert build_advice_prompt(payload).startswith(ADVISOR_SYSTEM_PROMPT)
