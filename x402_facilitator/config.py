"""
x402 Facilitator Configuration Management
Uses pydantic-settings for type-safe environment variable loading
"""

from typing import Literal, Optional
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FacilitatorConfig(BaseSettings):
    """Configuration for the facilitator FastAPI server"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Server Configuration
    facilitator_host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    facilitator_port: int = Field(default=8000, description="Port to bind the server to")

    # Network Configuration
    network: str = Field(default="aptos:2", description="Default network advertised by /supported")
    aptos_mainnet_node_url: str = Field(default="https://api.mainnet.aptoslabs.com/v1")
    aptos_testnet_node_url: str = Field(default="https://api.testnet.aptoslabs.com/v1")
    aptos_devnet_node_url: str = Field(default="https://api.devnet.aptoslabs.com/v1")
    aptos_api_key: str = Field(default="", description="Optional fullnode API key (Bearer)")
    chain_request_timeout: float = Field(default=10.0, description="Timeout in seconds for simulate/submit calls")

    # Settlement
    confirmation_timeout: float = Field(default=30.0, description="Background confirmation timeout in seconds")
    confirmation_poll_interval: float = Field(default=1.0)
    idempotency_ttl_seconds: int = Field(default=300, description="How long a settled payload is remembered")
    cache_sweep_interval_seconds: int = Field(default=60)
    settle_balance_check: bool = Field(default=True, description="Check payer balance before submitting")
    estimated_fee_octas: int = Field(default=1000, description="Fee reserve for non-sponsored APT transfers")

    # Gas station (fee sponsorship)
    gas_station_url: str = Field(default="", description="Overrides the per-network gas station URL")
    gas_station_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("gas_station_api_key", "geomi_api_key"),
    )

    # Rate limiting for /verify and /settle
    rate_limit: str = Field(default="120/minute")

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    log_format: Literal["json", "text"] = Field(default="json")

    # Development
    reload: bool = Field(default=False)

    @field_validator("confirmation_timeout", "chain_request_timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    def node_url_for(self, network_name: str) -> Optional[str]:
        """Fullnode URL for a network name ("mainnet", "testnet", "devnet")"""
        return {
            "mainnet": self.aptos_mainnet_node_url,
            "testnet": self.aptos_testnet_node_url,
            "devnet": self.aptos_devnet_node_url,
        }.get(network_name)


# Singleton instance
_facilitator_config: FacilitatorConfig | None = None


def get_facilitator_config() -> FacilitatorConfig:
    """Get or create facilitator configuration singleton"""
    global _facilitator_config
    if _facilitator_config is None:
        _facilitator_config = FacilitatorConfig()
    return _facilitator_config


def reset_facilitator_config() -> None:
    """Drop the cached configuration so the next call reloads the environment"""
    global _facilitator_config
    _facilitator_config = None
