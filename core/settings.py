import logging
import os
from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_MUTUAL_FUNDS = ("VWUAX", "VMFXX", "VFIAX", "VTSAX", "VBTLX", "VTIAX", "VIGAX", "VVIAX")
KNOWN_QUOTE_PROVIDERS = {"fmp", "alpaca", "cnbc", "yahoo"}

_KNOWN_REFRESH_ENV_KEYS = {
    "REFRESH_SECRET",
    "REFRESH_RATE_LIMIT_SECONDS",
}


def _warn_unknown_prefixed_env(prefix: str, known_keys: set[str]) -> None:
    unknown = sorted(key for key in os.environ if key.startswith(prefix) and key not in known_keys)
    if unknown:
        logger.warning("Unknown %s env vars ignored: %s", prefix, ", ".join(unknown))


def _split_csv(value: object) -> object:
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseSettings):
    """Application settings sourced from environment variables."""

    database_url: str = Field(
        default="sqlite:///./data/snapshots.db",
        validation_alias=AliasChoices("database_url", "DATABASE_URL", "db_url"),
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0", validation_alias=AliasChoices("redis_url", "REDIS_URL")
    )
    cache_namespace: str = Field(
        default="portfolio",
        validation_alias=AliasChoices("cache_namespace", "CACHE_NAMESPACE"),
    )

    fmp_api_key: str | None = Field(default=None, validation_alias=AliasChoices("fmp_api_key", "FMP_API_KEY"))
    alpaca_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("alpaca_api_key", "ALPACA_API_KEY", "alpaca_api_key_id", "ALPACA_API_KEY_ID"),
    )
    alpaca_api_secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "alpaca_api_secret", "ALPACA_API_SECRET", "alpaca_api_secret_key", "ALPACA_API_SECRET_KEY"
        ),
    )
    alpaca_data_feed: str = Field(
        default="iex",
        validation_alias=AliasChoices("alpaca_data_feed", "ALPACA_DATA_FEED"),
    )

    quote_providers: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["fmp", "alpaca", "cnbc", "yahoo"],
        validation_alias=AliasChoices("quote_providers", "QUOTE_PROVIDERS"),
    )
    quote_batch_size: int = Field(
        default=10, ge=1, validation_alias=AliasChoices("quote_batch_size", "QUOTE_BATCH_SIZE")
    )
    quote_batch_delay_seconds: float = Field(
        default=0.25,
        ge=0,
        validation_alias=AliasChoices("quote_batch_delay_seconds", "QUOTE_BATCH_DELAY_SECONDS"),
    )
    provider_concurrency: int = Field(
        default=8, ge=1, validation_alias=AliasChoices("provider_concurrency", "PROVIDER_CONCURRENCY")
    )
    http_timeout_seconds: float = Field(
        default=10.0, gt=0, validation_alias=AliasChoices("http_timeout_seconds", "HTTP_TIMEOUT_SECONDS")
    )
    mutual_fund_symbols: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_MUTUAL_FUNDS),
        validation_alias=AliasChoices("mutual_fund_symbols", "MUTUAL_FUND_SYMBOLS"),
    )

    benchmark_ticker: str = Field(
        default="SPY", validation_alias=AliasChoices("benchmark_ticker", "BENCHMARK_TICKER")
    )
    history_window_points: int = Field(
        default=30, ge=1, validation_alias=AliasChoices("history_window_points", "HISTORY_WINDOW_POINTS")
    )
    history_lookback_days: int = Field(
        default=35, ge=1, validation_alias=AliasChoices("history_lookback_days", "HISTORY_LOOKBACK_DAYS")
    )
    fundamentals_stale_hours: float = Field(
        default=12, ge=0, validation_alias=AliasChoices("fundamentals_stale_hours", "FUNDAMENTALS_STALE_HOURS")
    )
    snapshot_stale_seconds: int = Field(
        default=600, ge=1, validation_alias=AliasChoices("snapshot_stale_seconds", "SNAPSHOT_STALE_SECONDS")
    )
    market_timezone: str = Field(
        default="America/New_York", validation_alias=AliasChoices("market_timezone", "MARKET_TIMEZONE")
    )

    refresh_secret: str | None = Field(
        default=None, validation_alias=AliasChoices("refresh_secret", "REFRESH_SECRET")
    )
    refresh_rate_limit_seconds: int = Field(
        default=45,
        ge=0,
        validation_alias=AliasChoices("refresh_rate_limit_seconds", "REFRESH_RATE_LIMIT_SECONDS"),
    )

    @field_validator("quote_providers", mode="before")
    @classmethod
    def _parse_providers(cls, value: object) -> object:
        return _split_csv(value)

    @field_validator("mutual_fund_symbols", mode="before")
    @classmethod
    def _parse_mutual_funds(cls, value: object) -> object:
        return _split_csv(value)

    @field_validator("quote_providers")
    @classmethod
    def _validate_providers(cls, value: list[str]) -> list[str]:
        providers = [item.strip().lower() for item in value if item.strip()]
        unknown = [item for item in providers if item not in KNOWN_QUOTE_PROVIDERS]
        if unknown:
            logger.warning("QUOTE_PROVIDERS contains unknown providers ignored: %s", ", ".join(unknown))
        return [item for item in providers if item in KNOWN_QUOTE_PROVIDERS]

    @field_validator("mutual_fund_symbols")
    @classmethod
    def _normalize_mutual_funds(cls, value: list[str]) -> list[str]:
        return [item.strip().upper() for item in value if item.strip()]

    @field_validator("benchmark_ticker")
    @classmethod
    def _normalize_benchmark(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("alpaca_data_feed")
    @classmethod
    def _validate_data_feed(cls, value: str) -> str:
        feed = value.strip().lower()
        if feed not in {"iex", "sip"}:
            logger.warning("ALPACA_DATA_FEED=%s is unusual; expected 'iex' or 'sip'", value)
        return feed

    @model_validator(mode="after")
    def _warn_missing_credentials(self) -> "Settings":
        if "fmp" in self.quote_providers and not self.fmp_api_key:
            logger.warning("FMP_API_KEY is not set; the FMP quote provider is disabled")
        if "alpaca" in self.quote_providers and not (self.alpaca_api_key and self.alpaca_api_secret):
            logger.info("Alpaca credentials not set; the Alpaca quote provider is disabled")
        if self.history_lookback_days < self.history_window_points:
            logger.warning(
                "HISTORY_LOOKBACK_DAYS=%s is shorter than HISTORY_WINDOW_POINTS=%s; curves will be short",
                self.history_lookback_days,
                self.history_window_points,
            )
        _warn_unknown_prefixed_env("REFRESH_", _KNOWN_REFRESH_ENV_KEYS)
        return self

    @property
    def alpaca_enabled(self) -> bool:
        return bool(self.alpaca_api_key and self.alpaca_api_secret)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """Cached accessor so we only load settings once per process."""
    return Settings()
