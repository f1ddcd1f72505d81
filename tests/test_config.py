"""
Tests for configuration management
"""

import pytest
from pydantic import ValidationError

from x402_facilitator.config import FacilitatorConfig, get_facilitator_config, reset_facilitator_config


class TestConfigurationLoading:
    """Test configuration loading and validation"""

    def test_facilitator_config_defaults(self):
        """Test facilitator config loads with defaults"""
        config = FacilitatorConfig(_env_file=None)

        assert config.facilitator_host == "0.0.0.0"
        assert config.facilitator_port == 8000
        assert config.network == "aptos:2"
        assert config.idempotency_ttl_seconds == 300
        assert config.cache_sweep_interval_seconds == 60
        assert config.confirmation_timeout == 30.0
        assert config.rate_limit == "120/minute"

    def test_config_environment_variables(self, monkeypatch):
        """Test that config loads from environment variables"""
        monkeypatch.setenv("FACILITATOR_PORT", "9000")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("SETTLE_BALANCE_CHECK", "false")

        config = FacilitatorConfig(_env_file=None)

        assert config.facilitator_port == 9000
        assert config.log_level == "DEBUG"
        assert config.settle_balance_check is False

    def test_gas_station_key_accepts_geomi_name(self, monkeypatch):
        """Test the gas station key can come from GEOMI_API_KEY"""
        monkeypatch.delenv("GAS_STATION_API_KEY", raising=False)
        monkeypatch.setenv("GEOMI_API_KEY", "geomi-key")

        assert FacilitatorConfig(_env_file=None).gas_station_api_key == "geomi-key"

    def test_timeouts_must_be_positive(self):
        """Test that timeouts are validated"""
        with pytest.raises(ValidationError):
            FacilitatorConfig(_env_file=None, confirmation_timeout=0)

    def test_node_url_per_network(self):
        """Test node URL lookup by network name"""
        config = FacilitatorConfig(_env_file=None, aptos_testnet_node_url="http://localhost:8080/v1")

        assert config.node_url_for("testnet") == "http://localhost:8080/v1"
        assert config.node_url_for("mainnet") == "https://api.mainnet.aptoslabs.com/v1"
        assert config.node_url_for("unknown") is None

    def test_singleton(self):
        """Test config singleton is reused until reset"""
        reset_facilitator_config()
        first = get_facilitator_config()
        assert get_facilitator_config() is first

        reset_facilitator_config()
        assert get_facilitator_config() is not first
        reset_facilitator_config()

    def test_unused_debug_flag_removed(self):
        """Test that only the reload flag remains in the development settings"""
        config = FacilitatorConfig(_env_file=None)
        assert config.reload is False
        assert "debug" not in FacilitatorConfig.model_fields
