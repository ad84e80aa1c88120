"""
TradingDesk - Core Configuration Module

Centralized configuration management using Pydantic Settings.
Every section can be overridden from the environment or a local .env file.
"""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BinanceConfig(BaseSettings):
    """Binance market data endpoints."""

    model_config = SettingsConfigDict(env_prefix="BINANCE_")

    futures_rest_url: str = Field(
        default="https://fapi.binance.com",
        description="USD-M futures REST endpoint (primary source)",
    )
    spot_rest_url: str = Field(
        default="https://api.binance.com",
        description="Spot REST endpoint (secondary source)",
    )
    us_rest_url: str = Field(
        default="https://api.binance.us",
        description="Binance.US REST endpoint, used for restricted locations",
    )
    futures_websocket_url: str = Field(
        default="wss://fstream.binance.com/ws",
        description="Futures WebSocket endpoint for live klines",
    )
    interval: str = Field(default="1h", description="Kline interval")
    kline_limit: int = Field(default=100, description="Candles per history fetch")
    depth_limit: int = Field(default=20, description="Order book levels to request")
    request_timeout: float = Field(default=10.0, description="HTTP timeout in seconds")


class ProxyConfig(BaseSettings):
    """CORS-relaxing relay used as a second attempt for every REST call."""

    model_config = SettingsConfigDict(env_prefix="PROXY_")

    enabled: bool = Field(default=True)
    url: str = Field(
        default="https://api.allorigins.win/raw",
        description="Relay endpoint taking the target as a `url` query parameter",
    )


class EtherscanConfig(BaseSettings):
    """Etherscan gas oracle configuration."""

    model_config = SettingsConfigDict(env_prefix="ETHERSCAN_")

    api_key: str = Field(default="", description="Etherscan API key")
    base_url: str = Field(default="https://api.etherscan.io/api")


class LLMConfig(BaseSettings):
    """Language model provider configuration."""

    model_config = SettingsConfigDict(env_prefix="LLM_", populate_by_name=True)

    provider: Literal["gemini", "deepseek", "groq"] = Field(
        default="gemini",
        description="Backend used to run every agent",
    )

    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "API_KEY", "gemini_api_key"),
    )
    gemini_model: str = Field(default="gemini-2.5-flash")

    deepseek_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("DEEPSEEK_API_KEY", "deepseek_api_key"),
    )
    deepseek_model: str = Field(default="deepseek-chat")
    deepseek_base_url: str = Field(default="https://api.deepseek.com")

    groq_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("GROQ_API_KEY", "groq_api_key"),
    )
    groq_model: str = Field(default="llama-3.3-70b-versatile")

    request_timeout: float = Field(default=60.0, description="Per-call timeout in seconds")

    def api_key_for(self, provider: str) -> str:
        """Return the configured key for a provider ('' when unset)."""
        return {
            "gemini": self.gemini_api_key,
            "deepseek": self.deepseek_api_key,
            "groq": self.groq_api_key,
        }.get(provider, "")


DEFAULT_TEMPERATURES: dict[str, float] = {
    "SHORT_TERM_ANALYST": 0.7,
    "LONG_TERM_ANALYST": 0.7,
    "QUANT_ANALYST": 0.7,
    "ON_CHAIN_ANALYST": 0.7,
    "MACRO_ANALYST": 0.7,
    "TECHNICAL_MANAGER": 0.5,
    "FUNDAMENTAL_MANAGER": 0.5,
    "RISK_MANAGER": 0.3,
    "CEO": 0.2,
}


class PipelineConfig(BaseSettings):
    """Agent pipeline behaviour."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    language: Literal["en", "zh"] = Field(default="en")
    tier_delay_ms: int = Field(
        default=800,
        ge=0,
        description="Pause between tiers, purely for visual pacing",
    )
    max_attempts: int = Field(default=3, ge=1, description="Provider attempts per agent")
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="First retry wait; doubles on every further retry",
    )
    buffer_capacity: int = Field(default=100, ge=1, description="Resident candle window")

    # Independently toggleable context features
    supplemental_signals: bool = Field(default=True)
    user_position_context: bool = Field(default=True)
    macro_web_search: bool = Field(default=False)

    temperatures: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_TEMPERATURES),
    )

    @field_validator("temperatures", mode="before")
    @classmethod
    def merge_default_temperatures(cls, v: dict[str, float] | None) -> dict[str, float]:
        merged = dict(DEFAULT_TEMPERATURES)
        if v:
            merged.update({str(k).upper(): float(t) for k, t in v.items()})
        return merged


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    env: Literal["development", "staging", "production"] = Field(
        default="development",
        alias="TRADINGDESK_ENV",
    )
    debug: bool = Field(default=True, alias="TRADINGDESK_DEBUG")
    log_level: str = Field(default="INFO", alias="TRADINGDESK_LOG_LEVEL")

    # Sub-configurations
    binance: BinanceConfig = Field(default_factory=BinanceConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
    etherscan: EtherscanConfig = Field(default_factory=EtherscanConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    @property
    def is_local(self) -> bool:
        """Check if running in local development mode."""
        return self.env == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience alias
settings = get_settings()
