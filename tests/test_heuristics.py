"""Tests for WACC and growth-rate heuristics."""

import pytest

from valuation_engine.canonical import CanonicalPayload, FCFEntry, Quote
from valuation_engine.config import HeuristicConfig
from valuation_engine.heuristics import (
    conservative_growth_from_history,
    default_dcf_params,
    historical_cagr,
    match_sector,
    resolve_growth_rate,
    suggest_growth_rate_from_history,
    suggest_wacc,
)


def _payload(fcf_values, suggested_wacc=None, analyst=None, shares=1000.0):
    history = tuple(
        FCFEntry(date=1_700_000_000_000 - i * 31_536_000_000, free_cash_flow=value)
        for i, value in enumerate(fcf_values)
    )
    return CanonicalPayload(
        quote=Quote(symbol="TEST", price=10.0, shares_outstanding=shares),
        fcf_history=history,
        analyst_growth_rate_5y=analyst,
        suggested_wacc=suggested_wacc,
    )


class TestSuggestWacc:
    def test_capm_from_beta(self):
        suggestion = suggest_wacc(beta=1.2)

        assert suggestion.rate == pytest.approx(0.106)
        assert "beta 1.20" in suggestion.source
        assert "10.6%" in suggestion.source

    def test_capm_clamped_high(self):
        assert suggest_wacc(beta=3.0).rate == pytest.approx(0.18)

    def test_capm_clamped_low(self):
        assert suggest_wacc(beta=-1.0).rate == pytest.approx(0.06)

    def test_beta_wins_over_sector(self):
        assert suggest_wacc(beta=1.0, sector="Utilities").rate == pytest.approx(0.095)

    def test_sector_table(self):
        suggestion = suggest_wacc(sector="Utilities")

        assert suggestion.rate == pytest.approx(0.06)
        assert "Utilities" in suggestion.source

    def test_sector_substring_match(self):
        assert suggest_wacc(sector="Tech").rate == pytest.approx(0.105)

    def test_unknown_sector_uses_default(self):
        assert suggest_wacc(sector="Unknown Sector").rate == pytest.approx(0.10)

    def test_non_finite_beta_falls_back_to_sector(self):
        assert suggest_wacc(beta=float("nan"), sector="Healthcare").rate == pytest.approx(0.08)

    @pytest.mark.parametrize("sector", [None, "", "   "])
    def test_no_signal_returns_none(self, sector):
        assert suggest_wacc(beta=None, sector=sector) is None

    def test_custom_config(self):
        config = HeuristicConfig(risk_free_rate=0.03, equity_risk_premium=0.05)
        assert suggest_wacc(beta=1.0, config=config).rate == pytest.approx(0.08)


class TestMatchSector:
    def test_exact_and_partial(self):
        table = {"Technology": 0.105, "Energy": 0.08}

        assert match_sector("Technology", table) == "Technology"
        assert match_sector("Information Technology", table) == "Technology"
        assert match_sector("Retail", table) is None


class TestConservativeGrowth:
    def test_three_year_cagr_with_haircut(self):
        assert conservative_growth_from_history([133.1, 121.0, 110.0, 100.0]) == pytest.approx(0.08)

    def test_uses_available_span(self):
        # 2 points => 1-year CAGR of 20%, x 0.8
        assert conservative_growth_from_history([120.0, 100.0]) == pytest.approx(0.16)

    def test_single_point(self):
        assert conservative_growth_from_history([100.0]) is None

    def test_non_positive_endpoint(self):
        assert conservative_growth_from_history([100.0, 50.0, 20.0, -10.0]) is None
        assert conservative_growth_from_history([-5.0, 100.0]) is None

    def test_clamped_to_cap(self):
        assert conservative_growth_from_history([1000.0, 1.0]) == pytest.approx(0.5)

    def test_clamped_to_floor(self):
        assert conservative_growth_from_history([50.0, 100.0]) == pytest.approx(-0.10)


class TestSuggestGrowthFromHistory:
    def test_full_history_cagr(self):
        assert suggest_growth_rate_from_history([121.0, 110.0, 100.0]) == pytest.approx(0.10)

    def test_capped(self):
        assert suggest_growth_rate_from_history([200.0, 10.0]) == pytest.approx(0.25)

    @pytest.mark.parametrize("series", [[], [100.0], [100.0, 0.0], [100.0, -5.0]])
    def test_default(self, series):
        assert suggest_growth_rate_from_history(series) == pytest.approx(0.08)


class TestHistoricalCagr:
    def test_values(self):
        assert historical_cagr(121.0, 100.0, 2) == pytest.approx(0.10)
        assert historical_cagr(121.0, 0.0, 2) is None
        assert historical_cagr(121.0, 100.0, 0) is None


class TestResolveGrowthRate:
    def test_analyst_estimate_wins_verbatim(self):
        estimate = resolve_growth_rate(0.65, [133.1, 121.0, 110.0, 100.0])

        assert estimate.rate == 0.65
        assert estimate.source.startswith("Analyst")

    def test_conservative_history_second(self):
        estimate = resolve_growth_rate(None, [133.1, 121.0, 110.0, 100.0])

        assert estimate.rate == pytest.approx(0.08)
        assert "CAGR" in estimate.source

    def test_declining_history_is_used(self):
        estimate = resolve_growth_rate(None, [80.0, 90.0, 100.0, 110.0])

        # (80/110)^(1/3) - 1 = -0.1007, x 0.8
        assert estimate.rate == pytest.approx(-0.0806, abs=1e-4)
        assert estimate.rate < 0
        assert "CAGR" in estimate.source

    def test_non_positive_endpoint_falls_to_default(self):
        estimate = resolve_growth_rate(None, [-5.0, 90.0, 100.0])

        assert estimate.rate == pytest.approx(0.10)
        assert estimate.source == "Default 10%"

    def test_empty_history_falls_to_default(self):
        assert resolve_growth_rate(None, []).rate == pytest.approx(0.10)

    def test_non_finite_analyst_is_ignored(self):
        assert resolve_growth_rate(float("nan"), []).source == "Default 10%"


class TestDefaultDCFParams:
    def test_seeded_from_payload(self):
        params = default_dcf_params(_payload([133.1, 121.0, 110.0, 100.0], suggested_wacc=0.09))

        assert params.base_fcf == 133.1
        assert params.growth_rate == pytest.approx(0.08)
        assert params.discount_rate == pytest.approx(0.09)
        assert params.terminal_growth_rate == pytest.approx(0.025)
        assert params.projection_years == 5
        assert params.shares_outstanding == 1000.0

    @pytest.mark.parametrize("wacc", [0.30, 0.04, None])
    def test_out_of_range_wacc_uses_default(self, wacc):
        params = default_dcf_params(_payload([100.0], suggested_wacc=wacc))
        assert params.discount_rate == pytest.approx(0.10)

    def test_explicit_values_win(self):
        params = default_dcf_params(
            _payload([100.0], suggested_wacc=0.09, analyst=0.2),
            growth_rate=0.03,
            discount_rate=0.12,
            terminal_growth_rate=0.02,
            projection_years=10,
        )

        assert params.growth_rate == 0.03
        assert params.discount_rate == 0.12
        assert params.terminal_growth_rate == 0.02
        assert params.projection_years == 10

    def test_analyst_growth_used(self):
        params = default_dcf_params(_payload([100.0], analyst=0.145))
        assert params.growth_rate == pytest.approx(0.145)

    def test_missing_fcf_and_shares(self):
        params = default_dcf_params(_payload([], shares=None))

        assert params.base_fcf == 0.0
        assert params.shares_outstanding == 0.0
