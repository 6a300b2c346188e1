"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (ANNOUNCETRACKER__CACHE__VALIDITY_SECONDS=120)
  2. announcetracker.yaml   (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional. Every field has a default that matches the
production deployment: two AWS feeds, a five minute cache and ten requests
per minute per client.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


def _find_config_file() -> str | None:
    """Return the path of the first announcetracker.yaml found, or None."""
    candidates = [
        Path("announcetracker.yaml"),
        Path(platformdirs.user_config_dir("announcetracker")) / "announcetracker.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class FeedSource(BaseModel):
    name: str
    url: str


_DEFAULT_SOURCES = [
    FeedSource(
        name="AWS What's New",
        url="https://aws.amazon.com/about-aws/whats-new/recent/feed/",
    ),
    FeedSource(
        name="AWS News Blog",
        url="https://aws.amazon.com/blogs/aws/feed/",
    ),
]


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    service_name: str = "AWS Announcement Tracker"
    # Edge cache hints for /announcements
    cache_max_age: int = 300
    stale_while_revalidate: int = 600


class CacheSettings(BaseModel):
    validity_seconds: float = 300.0
    # Kept below the 30s execution ceiling of the hosting platform
    refresh_timeout_seconds: float = 25.0
    # Summarization is the expensive step; only this many items are normalized per refresh
    max_items_per_refresh: int = 8
    backfill_days: int = 7
    recency_window_seconds: float = 3600.0
    batch_size: int = 10
    batch_delay_seconds: float = 1.0
    warm_on_startup: bool = False


class RateLimitSettings(BaseModel):
    max_requests: int = 10
    window_seconds: float = 60.0
    sweep_interval_seconds: float = 60.0


class SummarizerSettings(BaseModel):
    api_key: SecretStr | None = None
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 150
    max_input_chars: int = 500
    fallback_chars: int = 200
    timeout_seconds: float = 10.0


class FetcherSettings(BaseModel):
    timeout_seconds: float = 10.0
    user_agent: str = "announcetracker/1.0"


class ApiSettings(BaseModel):
    default_limit: int = 50
    max_limit: int = 100


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: ANNOUNCETRACKER__SERVER__PORT=9090
        env_prefix="ANNOUNCETRACKER__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    sources: list[FeedSource] = Field(default_factory=lambda: list(_DEFAULT_SOURCES))
    cache: CacheSettings = CacheSettings()
    rate_limit: RateLimitSettings = RateLimitSettings()
    summarizer: SummarizerSettings = SummarizerSettings()
    fetcher: FetcherSettings = FetcherSettings()
    api: ApiSettings = ApiSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
