"""Tests for cache rows, staleness and the gateway implementations."""

import math

import pytest

from valuation_engine.cache_gateway import (
    CacheRecord,
    FileCacheGateway,
    InMemoryCacheGateway,
    is_safe_symbol,
    is_stale,
)
from valuation_engine.canonical import (
    CanonicalPayload,
    FCFEntry,
    Quote,
    SavedDCFParams,
    ValuationMetricEntry,
)


@pytest.fixture
def payload():
    return CanonicalPayload(
        quote=Quote(symbol="AAPL", name="Apple Inc", price=190.5, shares_outstanding=1.55e10),
        fcf_history=(
            FCFEntry(date=1696032000000, free_cash_flow=99584000000.0,
                     operating_cash_flow=110543000000.0, capital_expenditure=10959000000.0),
            FCFEntry(date=1664496000000, free_cash_flow=111443000000.0),
        ),
        analyst_growth_rate_5y=0.12,
        suggested_wacc=0.106,
        wacc_source="Risk-free 4.0% + beta 1.20 x 5.5% = 10.6%",
        valuation_metrics=(ValuationMetricEntry(year=2023, month=12, ps=7.8, pe_gaap=31.2, pfcf=None,
                                                price=191.59),),
    )


@pytest.fixture(params=["memory", "file"])
def gateway(request, tmp_path):
    if request.param == "memory":
        return InMemoryCacheGateway()
    return FileCacheGateway(tmp_path / "cache")


class TestIsSafeSymbol:
    @pytest.mark.parametrize("symbol", ["AAPL", "BRK.B", "BRK-B", "RDS^A"])
    def test_accepted(self, symbol):
        assert is_safe_symbol(symbol)

    @pytest.mark.parametrize("symbol", ["", "../X", "A/B", "A\\B", "..", "A\x00"])
    def test_rejected(self, symbol):
        assert not is_safe_symbol(symbol)


class TestIsStale:
    def test_no_metrics_is_fresh(self):
        assert not is_stale(CacheRecord(symbol="AAPL"))

    def test_metrics_without_prices_are_stale(self):
        record = CacheRecord(symbol="AAPL", valuation_metrics=[
            {"year": 2023, "ps": 1.0, "price": None},
            {"year": 2022, "ps": 1.0},
        ])
        assert is_stale(record)

    def test_non_finite_price_counts_as_missing(self):
        record = CacheRecord(symbol="AAPL", valuation_metrics=[{"year": 2023, "price": math.nan}])
        assert is_stale(record)

    def test_one_priced_entry_is_enough(self):
        record = CacheRecord(symbol="AAPL", valuation_metrics=[
            {"year": 2022, "price": None},
            {"year": 2023, "price": 150.0},
        ])
        assert not is_stale(record)


class TestCacheRecord:
    def test_payload_round_trip(self, payload):
        restored = CacheRecord.from_payload("aapl", payload).to_payload()

        assert restored.symbol == "AAPL"
        assert restored.quote == payload.quote
        assert restored.fcf_history == payload.fcf_history
        assert restored.valuation_metrics == payload.valuation_metrics
        assert restored.suggested_wacc == pytest.approx(0.106)
        assert restored.from_cache
        assert restored.data_source == "cache"
        assert restored.saved_dcf_params is None

    def test_from_row_tolerates_garbage(self):
        record = CacheRecord.from_row({
            "symbol": "msft",
            "quote": "not a dict",
            "fcf_history": [{"date": 1, "freeCashflow": 2.0}, "junk"],
            "suggested_wacc": "0.1",
            "projection_years": 7.0,
        })

        assert record.symbol == "MSFT"
        assert record.quote == {}
        assert len(record.fcf_history) == 1
        assert record.suggested_wacc is None
        assert record.projection_years == 7
        assert record.to_payload().symbol == "MSFT"

    def test_saved_params_need_all_four_inputs(self):
        partial = CacheRecord(symbol="AAPL", growth_rate=0.1, discount_rate=0.09, terminal_growth_rate=0.02)
        assert partial.saved_dcf_params is None

        full = CacheRecord(symbol="AAPL", growth_rate=0.1, discount_rate=0.09,
                           terminal_growth_rate=0.02, projection_years=5)
        assert full.saved_dcf_params == SavedDCFParams(0.1, 0.09, 0.02, 5)


class TestGateway:
    def test_get_missing(self, gateway):
        assert gateway.get("NOPE") is None

    def test_store_and_get_case_insensitive(self, gateway, payload):
        assert gateway.store_payload("aapl", payload)

        record = gateway.get("Aapl")

        assert record is not None
        assert record.symbol == "AAPL"
        assert record.updated_at
        assert record.to_payload().fcf_history == payload.fcf_history

    def test_last_write_wins(self, gateway, payload):
        gateway.store_payload("AAPL", payload)
        gateway.store_payload("AAPL", payload.with_updates(suggested_wacc=0.09))

        assert gateway.get("AAPL").suggested_wacc == pytest.approx(0.09)
        assert len(gateway.list_records()) == 1

    def test_save_analysis(self, gateway, payload):
        assert gateway.save_analysis(
            " aapl ", payload,
            growth_rate=0.12, discount_rate=0.1, terminal_growth_rate=0.025,
            intrinsic_value_per_share=210.0, current_price=190.5, projection_years=7.6,
        )

        saved = gateway.get("AAPL").to_payload().saved_dcf_params
        assert saved.projection_years == 8
        assert saved.intrinsic_value_per_share == pytest.approx(210.0)
        assert saved.current_price == pytest.approx(190.5)

    @pytest.mark.parametrize("years", [None, 0])
    def test_save_analysis_default_years(self, gateway, payload, years):
        gateway.save_analysis("AAPL", payload, 0.12, 0.1, 0.025, 210.0, 190.5, projection_years=years)
        assert gateway.get("AAPL").projection_years == 5

    @pytest.mark.parametrize("symbol", ["  ", "../x", "a/b", "..\\evil"])
    def test_save_analysis_rejects_bad_symbol(self, gateway, payload, symbol):
        with pytest.raises(ValueError):
            gateway.save_analysis(symbol, payload, 0.12, 0.1, 0.025, 210.0, 190.5)

    @pytest.mark.parametrize("field", ["growth_rate", "discount_rate", "current_price"])
    def test_save_analysis_rejects_non_finite(self, gateway, payload, field):
        figures = dict(growth_rate=0.12, discount_rate=0.1, terminal_growth_rate=0.025,
                       intrinsic_value_per_share=210.0, current_price=190.5)
        figures[field] = float("nan")

        with pytest.raises(ValueError, match=field):
            gateway.save_analysis("AAPL", payload, **figures)
        assert gateway.get("AAPL") is None

    def test_refresh_keeps_saved_analysis(self, gateway, payload):
        gateway.save_analysis("AAPL", payload, 0.12, 0.1, 0.025, 210.0, 190.5, projection_years=6)
        gateway.store_payload("AAPL", payload.with_updates(suggested_wacc=0.09))

        record = gateway.get("AAPL")
        assert record.suggested_wacc == pytest.approx(0.09)
        assert record.growth_rate == pytest.approx(0.12)
        assert record.projection_years == 6

    def test_list_history_newest_first(self, gateway):
        gateway.put(CacheRecord(symbol="OLD", updated_at="2024-01-01T00:00:00+00:00"))
        gateway.put(CacheRecord(symbol="NEW", updated_at="2024-06-01T00:00:00+00:00"))
        gateway.put(CacheRecord(symbol="MID", updated_at="2024-03-01T00:00:00+00:00"))

        assert [r.symbol for r in gateway.list_history()] == ["NEW", "MID", "OLD"]


class TestFileCacheGateway:
    def test_one_file_per_symbol(self, tmp_path, payload):
        gateway = FileCacheGateway(tmp_path)
        gateway.store_payload("aapl", payload)

        assert (tmp_path / "AAPL.json").exists()

    def test_corrupt_file_is_a_miss(self, tmp_path):
        (tmp_path / "BAD.json").write_text("{not json")
        gateway = FileCacheGateway(tmp_path)

        assert gateway.get("BAD") is None
        assert gateway.list_records() == []

    def test_path_traversal_rejected(self, tmp_path, payload):
        gateway = FileCacheGateway(tmp_path / "cache")

        with pytest.raises(ValueError):
            gateway.store_payload("../x", payload)
        with pytest.raises(ValueError):
            gateway.get("../x")
        assert not (tmp_path / "X.json").exists()

    def test_survives_new_instance(self, tmp_path, payload):
        FileCacheGateway(tmp_path).store_payload("AAPL", payload)
        assert FileCacheGateway(tmp_path).get("AAPL").analyst_growth_rate_5y == pytest.approx(0.12)


class TestInMemoryCacheGateway:
    def test_seed_rows(self):
        gateway = InMemoryCacheGateway({"msft": {"quote": {"symbol": "MSFT"}}})

        assert gateway.symbols == ("MSFT",)
        assert gateway.get("MSFT").symbol == "MSFT"
