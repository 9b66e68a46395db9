"""
Configuration settings for the deployment validator.

All settings can be overridden via environment variables. The settings object
is built once at process start and passed into every component; nothing
re-reads the environment during a validation run.
"""

import os
from typing import Dict, List, Optional
from urllib.parse import urlparse

from dotenv import dotenv_values
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_LOCALES = ["en", "ja", "ko", "zh-cn", "zh-tw", "es"]


class ConfigurationError(ValueError):
    """Raised when the effective configuration cannot drive a run."""
    pass


class Settings(BaseSettings):
    """Validator settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Target
    VALIDATION_URL: str = Field(
        default="https://dev.otogidb.pages.dev",
        description="Base URL of the deployment under test"
    )
    VALIDATION_TIMEOUT: int = Field(default=10000, description="Per-request timeout in ms")
    VALIDATION_CONCURRENCY: int = Field(default=10, description="Max concurrent requests per batch")
    USER_AGENT: str = Field(default="OtogiDB-Validator/1.0", description="User-Agent header")

    # Sampling
    CARDS_PER_LOCALE: int = Field(default=10, description="Card pages sampled per locale")
    IMAGE_COUNT: int = Field(default=50, description="Card images sampled from the CDN")
    LOCALES: List[str] = Field(default=DEFAULT_LOCALES, description="Supported site locales")
    INVENTORY_PATH: str = Field(
        default="public/data/cards.json",
        description="Build-time content inventory"
    )

    # Category selection
    SKIP_CATEGORIES: List[str] = Field(default=[], description="Category keys to skip")

    # Page / SEO expectations
    PAGE_MAX_RESPONSE_MS: int = Field(default=8000, description="Page reachability latency ceiling")
    CANONICAL_ORIGIN: str = Field(default="https://otogidb.com", description="Expected canonical origin")
    SITE_NAME: str = Field(default="OtogiDB", description="Expected og:site_name")
    MAX_LINKS_PER_PAGE: int = Field(default=25, description="Internal links checked per page")

    # Performance
    PERF_MAX_RESPONSE_MS: int = Field(default=5000, description="Hard response time ceiling")
    PERF_WARN_RESPONSE_MS: int = Field(default=2000, description="Slow-but-passed threshold")
    PERF_MAX_PAYLOAD_BYTES: int = Field(default=5 * 1024 * 1024, description="Max payload size")
    PERF_EXTRA_CARD_PAGES: int = Field(default=5, description="Extra card pages timed")

    # Data endpoints
    API_MIN_CARDS: int = Field(default=850, description="Minimum cards in the card index")
    API_MAX_CARDS: int = Field(default=1000, description="Maximum cards in the card index")

    # Delta system
    DELTA_SAMPLE_SIZE: int = Field(default=3, description="Delta files fetched per run")

    # Outputs
    GITHUB_SHA: Optional[str] = Field(default=None, description="Commit under test")
    GITHUB_OUTPUT: Optional[str] = Field(default=None, description="CI key/value output file")
    REPORT_JSON_PATH: Optional[str] = Field(default=None, description="JSON report artifact path")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: str = Field(default="text", description="Log format: json or text")

    # Deployment poller
    CLOUDFLARE_API_TOKEN: Optional[str] = Field(default=None, description="Cloudflare API token")
    CLOUDFLARE_ACCOUNT_ID: Optional[str] = Field(default=None, description="Cloudflare account id")
    CLOUDFLARE_PROJECT_NAME: str = Field(default="otogidb", description="Cloudflare Pages project")
    CLOUDFLARE_API_BASE: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Cloudflare API base URL"
    )
    TARGET_BRANCH: str = Field(default="dev", description="Branch whose deployment is awaited")
    POLL_INTERVAL_SECONDS: float = Field(default=15.0, description="Deployment poll interval")
    MAX_POLL_SECONDS: float = Field(default=600.0, description="Deployment wait ceiling")
    IDLE_TIMEOUT_SECONDS: float = Field(default=45.0, description="Queued-idle skip detection")

    @property
    def base_url(self) -> str:
        return self.VALIDATION_URL.rstrip("/")

    @property
    def short_sha(self) -> str:
        return self.GITHUB_SHA[:7] if self.GITHUB_SHA else "unknown"


def load_settings(**overrides) -> Settings:
    """Build and validate the settings for one process."""
    settings = Settings(**overrides)
    validate_settings(settings)
    return settings


def environ_with_dotenv(env_file: Optional[str] = ".env") -> Dict[str, str]:
    """
    Environment snapshot as Settings sees it: `.env` values overlaid by the
    process environment. Used for keys Settings does not declare, such as
    the THRESHOLD_* overrides.
    """
    values = {}
    if env_file:
        values = {k: v for k, v in dotenv_values(env_file).items() if v is not None}
    values.update(os.environ)
    return values


def validate_settings(settings: Settings) -> None:
    """Validate critical settings on startup."""
    errors = []

    parsed = urlparse(settings.VALIDATION_URL)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"VALIDATION_URL must be an absolute http(s) URL, got '{settings.VALIDATION_URL}'")

    if settings.VALIDATION_TIMEOUT <= 0:
        errors.append("VALIDATION_TIMEOUT must be positive")

    if settings.VALIDATION_CONCURRENCY < 1:
        errors.append("VALIDATION_CONCURRENCY must be at least 1")

    if settings.CARDS_PER_LOCALE < 0 or settings.IMAGE_COUNT < 0:
        errors.append("CARDS_PER_LOCALE and IMAGE_COUNT must not be negative")

    if not settings.LOCALES:
        errors.append("LOCALES must name at least one locale")

    if settings.PERF_WARN_RESPONSE_MS > settings.PERF_MAX_RESPONSE_MS:
        errors.append("PERF_WARN_RESPONSE_MS must not exceed PERF_MAX_RESPONSE_MS")

    if errors:
        raise ConfigurationError("Configuration errors: " + "; ".join(errors))


# Secret patterns for redaction
SECRET_PATTERNS = [
    r"password",
    r"secret",
    r"token",
    r"api[_-]?key",
    r"auth",
    r"credential",
    r"bearer",
    r"jwt",
]
