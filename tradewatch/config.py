"""Application configuration pulled from environment variables via pydantic."""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tradewatch.assets import DEFAULT_FALLBACK_PRICES, AssetId
from utils.logging_utils import get_tagged_logger, mask_url
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the tradewatch service."""
    model_config = SettingsConfigDict(env_prefix="TRADEWATCH_", extra="ignore")

    price_source: str = "coingecko"  # options: coingecko
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    vs_currency: str = "usd"
    request_timeout_seconds: float = 10.0

    cache_ttl_seconds: float = 10.0
    fetch_max_attempts: int = Field(default=3, ge=1)
    backoff_base_seconds: float = 1.0

    refresh_interval_seconds: float = 15.0
    chart_window_days: int = Field(default=30, ge=1)
    updated_indicator_seconds: float = 2.0
    autostart_refresh: bool = True

    tracked_assets: list[AssetId] = Field(default_factory=lambda: [AssetId.ICP, AssetId.BTC])
    selected_asset: AssetId = AssetId.ICP
    fallback_prices: dict[AssetId, float] = Field(default_factory=lambda: dict(DEFAULT_FALLBACK_PRICES))

    recommendation_base_url: str = "http://localhost:8080"
    recommendation_timeout_seconds: float = 30.0
    api_key: str | None = None

    @field_validator("coingecko_base_url", "recommendation_base_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs to avoid double slashes."""
        return str(v).rstrip("/")

    @field_validator("tracked_assets", mode="after")
    @classmethod
    def dedupe_assets(cls, v: list[AssetId]) -> list[AssetId]:
        """Drop repeated assets while keeping the configured order."""
        return list(dict.fromkeys(v))


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    dumped = settings.model_dump()
    dumped["recommendation_base_url"] = mask_url(dumped["recommendation_base_url"])
    dumped["api_key"] = "***" if dumped["api_key"] else None
    logger.debug(f"Loaded settings: {dumped}")
