"""Tests for environment-driven configuration."""

from pathlib import Path

import pytest

from valuation_engine.config import CACHE_DIR, AlphaVantageConfig, EngineConfig


class TestEngineConfigFromEnv:
    def test_defaults(self):
        config = EngineConfig.from_env({})

        assert config.alpha_vantage.api_key is None
        assert not config.alpha_vantage.has_credential
        assert config.alpha_vantage.rate_limit_seconds == pytest.approx(1.3)
        assert config.cache.cache_dir == CACHE_DIR

    def test_values_are_read(self, tmp_path):
        config = EngineConfig.from_env({
            "ALPHA_VANTAGE_API_KEY": "  abc123 ",
            "ALPHA_VANTAGE_DELAY_SECONDS": "0.5",
            "VALUATION_CACHE_DIR": str(tmp_path),
        })

        assert config.alpha_vantage.api_key == "abc123"
        assert config.alpha_vantage.has_credential
        assert config.alpha_vantage.rate_limit_seconds == pytest.approx(0.5)
        assert config.cache.cache_dir == Path(tmp_path)

    def test_blank_key_means_no_credential(self):
        assert not EngineConfig.from_env({"ALPHA_VANTAGE_API_KEY": "   "}).alpha_vantage.has_credential

    def test_invalid_delay_uses_default(self):
        config = EngineConfig.from_env({"ALPHA_VANTAGE_DELAY_SECONDS": "soon"})
        assert config.alpha_vantage.rate_limit_seconds == pytest.approx(1.3)


class TestAlphaVantageConfig:
    @pytest.mark.parametrize("key,expected", [(None, False), ("", False), (" ", False), ("k", True)])
    def test_has_credential(self, key, expected):
        assert AlphaVantageConfig(api_key=key).has_credential is expected
