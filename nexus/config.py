import os

from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        env_prefix="NEXUS_",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Honour the legacy unprefixed LOG_LEVEL variable."""

        super().model_post_init(__context)

        if "NEXUS_LOG_LEVEL" not in os.environ:
            fallback = os.getenv("LOG_LEVEL")
            if fallback:
                object.__setattr__(self, "log_level", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Simulated network / settlement delays (seconds)
    init_delay_seconds: float = Field(default=1.5, ge=0, description="Session initialization delay")
    balance_refresh_delay_seconds: float = Field(default=0.8, ge=0, description="Balance refresh round-trip")
    allowance_fetch_delay_seconds: float = Field(default=0.5, ge=0, description="Allowance query round-trip")
    allowance_set_delay_seconds: float = Field(default=1.0, ge=0, description="Allowance approval round-trip")
    allowance_revoke_delay_seconds: float = Field(default=0.8, ge=0, description="Allowance revocation round-trip")
    intent_create_delay_seconds: float = Field(default=0.6, ge=0, description="Intent quoting round-trip")
    intent_submit_delay_seconds: float = Field(default=0.5, ge=0, description="Delay between approval and execution")
    intent_settlement_delay_seconds: float = Field(default=2.0, ge=0, description="Delay between execution and settlement")
    swap_settlement_delay_seconds: float = Field(default=2.0, ge=0, description="Swap settlement delay")

    # Fees
    bridge_fee_bps: int = Field(default=5, ge=0, le=10_000, description="Bridge fee in basis points of the requested amount")
    gas_fee_wei: int = Field(default=10**15, ge=0, description="Flat gas estimate in native wei (0.001 ETH)")
    gas_fee_symbol: str = Field(default="ETH", description="Native token the gas estimate is denominated in")
    min_estimated_time_seconds: int = Field(default=30, ge=0, description="Lower bound of the completion estimate")
    estimated_time_spread_seconds: int = Field(default=60, ge=1, description="Random spread added to the completion estimate")

    # Allowances
    unlimited_allowance_threshold: int = Field(
        default=2**255,
        description="Allowances strictly above this value are displayed as unlimited",
    )
    default_spender_address: str = Field(
        default="0x1234567890123456789012345678901234567890",
        validation_alias=AliasChoices("default_spender_address", "NEXUS_SPENDER_ADDRESS", "NEXUS_DEFAULT_SPENDER_ADDRESS"),
        description="Spender contract reported by the simulated allowance source",
    )

    # Swap pricing
    reference_prices_usd: Dict[str, float] = Field(
        default_factory=lambda: {
            "USDC": 1.0,
            "USDT": 1.0,
            "DAI": 1.0,
            "ETH": 2500.0,
            "WBTC": 45000.0,
        },
        description="Reference USD prices used by the simulated exchange rate",
    )
    swap_price_jitter: float = Field(
        default=0.02,
        ge=0,
        lt=1,
        description="Maximum relative random deviation applied to simulated exchange rates",
    )

    # Simulated providers
    simulation_seed: Optional[int] = Field(default=None, description="Seed for simulated balances, rates and hashes")
    max_demo_balance_units: int = Field(default=1000, ge=1, description="Upper bound of simulated balances in whole tokens / 100")
    explorer_base_url: str = Field(default="https://etherscan.io/tx/", description="Explorer URL prefix for transaction links")

    # Chains
    default_source_chains: List[int] = Field(
        default_factory=lambda: [1, 137, 42161, 10, 8453],
        description="Chain walk order used when an intent names no source chains",
    )


# Global settings instance
settings = Settings()
