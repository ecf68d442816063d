"""Configuration settings for Edge Shield."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CacheBackend(str, Enum):
    """Storage backend for cache tiers."""

    MEMORY = "memory"
    DATABASE = "database"


def _split_list(value: str) -> list[str]:
    """Split a comma and/or whitespace separated setting into items."""
    return [item for item in re.split(r"[,\s]+", value.strip()) if item]


@dataclass(frozen=True)
class ShieldConfig:
    """Immutable runtime configuration injected into the edge components.

    Built once from ``ShieldSettings`` and never mutated afterwards.
    """

    serving_origin: str = "https://www.abphotostudio.in"
    allowed_origins: tuple[str, ...] = (
        "https://avinashbhorphotography.github.io",
        "https://www.abphotostudio.in",
        "http://localhost:8080",
        "http://localhost:5173",
    )
    static_assets: tuple[str, ...] = (
        "/",
        "/index.html",
        "/manifest.json",
        "/favicon.svg",
        "/apple-touch-icon.png",
    )
    protected_image_prefix: str = "/images/"
    protected_image_hosts: tuple[str, ...] = (
        "images.unsplash.com",
        "source.unsplash.com",
    )
    api_prefix: str = "/api/"
    dev_hosts: tuple[str, ...] = ("localhost", "127.0.0.1")
    dev_marker: str = "localhost"
    bot_signatures: tuple[str, ...] = (
        "Wget",
        "curl",
        "Python",
        "bot",
        "spider",
        "crawler",
        "Postman",
        "HTTPie",
    )
    token_max_age_ms: int = 5 * 60 * 1000
    token_clock_skew_ms: int = 1000
    cache_generation: str = "v11"
    placeholder_image_path: str = "/images/placeholder.jpeg"

    @property
    def serving_host(self) -> str:
        """Hostname of the origin this layer serves."""
        return urlsplit(self.serving_origin).hostname or ""

    @property
    def is_development(self) -> bool:
        """True when serving from a local development host."""
        host = self.serving_host
        return host in self.dev_hosts or self.dev_marker in host

    @property
    def static_tier(self) -> str:
        return f"static-{self.cache_generation}"

    @property
    def image_tier(self) -> str:
        return f"images-{self.cache_generation}"

    @property
    def catchall_tier(self) -> str:
        return f"image-protection-{self.cache_generation}"

    @property
    def current_tiers(self) -> tuple[str, str, str]:
        """Names of the tiers belonging to the current generation."""
        return (self.catchall_tier, self.static_tier, self.image_tier)

    def absolute_url(self, path: str) -> str:
        """Resolve a root-relative path against the serving origin."""
        if "://" in path:
            return path
        return self.serving_origin.rstrip("/") + "/" + path.lstrip("/")


class CommonSettings(BaseSettings):
    """Common settings shared by all entry points."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Data directory
    data_home: str = Field(
        default="./data",
        description="Base directory for runtime data (default: ./data)",
    )

    # Logging
    log_level: LogLevel = Field(default=LogLevel.INFO, description="Logging level")


class ShieldSettings(CommonSettings):
    """Settings for the edge interception layer."""

    # Origins
    serving_origin: str = Field(
        default="https://www.abphotostudio.in",
        description="Origin (scheme://host[:port]) this layer serves",
    )
    allowed_origins: str = Field(
        default=(
            "https://avinashbhorphotography.github.io,"
            "https://www.abphotostudio.in,"
            "http://localhost:8080,"
            "http://localhost:5173"
        ),
        description="Comma/space separated list of origins accepted as referers",
    )

    # Classification
    static_assets: str = Field(
        default="/, /index.html, /manifest.json, /favicon.svg, /apple-touch-icon.png",
        description="Comma/space separated static asset manifest",
    )
    protected_image_prefix: str = Field(
        default="/images/", description="Path prefix of protected images"
    )
    protected_image_hosts: str = Field(
        default="images.unsplash.com, source.unsplash.com",
        description="External hosts whose images are protected",
    )
    api_prefix: str = Field(default="/api/", description="Path prefix of API routes")

    # Policy
    dev_hosts: str = Field(
        default="localhost, 127.0.0.1",
        description="Serving hosts treated as local development",
    )
    bot_signatures: str = Field(
        default="Wget, curl, Python, bot, spider, crawler, Postman, HTTPie",
        description="User-agent substrings identifying automated clients",
    )
    token_max_age_seconds: int = Field(
        default=300, ge=1, description="Maximum session token age"
    )
    token_clock_skew_ms: int = Field(
        default=1000, ge=0, description="Tolerated clock skew for future tokens"
    )

    # Caching
    cache_generation: str = Field(
        default="v11", description="Generation label appended to tier names"
    )
    cache_backend: CacheBackend = Field(
        default=CacheBackend.MEMORY, description="Cache tier storage backend"
    )
    placeholder_image_path: str = Field(
        default="/images/placeholder.jpeg",
        description="Image served when a protected image cannot be fetched",
    )
    auto_activate: bool = Field(
        default=True,
        description="Activate a freshly installed generation without waiting for skip-waiting",
    )
    database_url: Optional[str] = Field(
        default=None,
        description="Database URL (default: sqlite+aiosqlite:///{data_home}/shield/edge_shield.db)",
    )

    # Upstream
    upstream_url: str = Field(
        default="http://localhost:8080",
        description="Origin server requests are forwarded to",
    )
    upstream_timeout: float = Field(
        default=10.0, gt=0, description="Upstream request timeout in seconds"
    )

    @field_validator("serving_origin", "upstream_url")
    @classmethod
    def validate_origin(cls, value: str) -> str:
        """Require an absolute http(s) URL and drop any trailing slash."""
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"Expected an absolute http(s) URL, got {value!r}")
        return value.rstrip("/")

    @property
    def shield_data_dir(self) -> str:
        """Get the shield data directory path."""
        from pathlib import Path

        return str(Path(self.data_home) / "shield")

    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL."""
        if self.database_url:
            return self.database_url
        from pathlib import Path

        db_path = Path(self.shield_data_dir) / "edge_shield.db"
        return f"sqlite+aiosqlite:///{db_path}"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [origin.rstrip("/") for origin in _split_list(self.allowed_origins)]

    @property
    def static_assets_list(self) -> list[str]:
        return _split_list(self.static_assets)

    @property
    def protected_image_hosts_list(self) -> list[str]:
        return _split_list(self.protected_image_hosts)

    @property
    def dev_hosts_list(self) -> list[str]:
        return _split_list(self.dev_hosts)

    @property
    def bot_signatures_list(self) -> list[str]:
        return _split_list(self.bot_signatures)

    def to_config(self) -> ShieldConfig:
        """Freeze these settings into the value passed to the components."""
        return ShieldConfig(
            serving_origin=self.serving_origin,
            allowed_origins=tuple(self.allowed_origins_list),
            static_assets=tuple(self.static_assets_list),
            protected_image_prefix=self.protected_image_prefix,
            protected_image_hosts=tuple(self.protected_image_hosts_list),
            api_prefix=self.api_prefix,
            dev_hosts=tuple(self.dev_hosts_list),
            bot_signatures=tuple(self.bot_signatures_list),
            token_max_age_ms=self.token_max_age_seconds * 1000,
            token_clock_skew_ms=self.token_clock_skew_ms,
            cache_generation=self.cache_generation,
            placeholder_image_path=self.placeholder_image_path,
        )
