"""
Link Preview Service Configuration.

Environment-driven settings for the preview rendering microservice.
"""

from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # =========================================================================
    # API SETTINGS
    # =========================================================================
    api_title: str = "Link Preview Service"
    api_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Enable verbose logging")
    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=3000, description="Port to listen on")

    # =========================================================================
    # CORS SETTINGS
    # =========================================================================
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="Allowed origins for CORS",
    )
    cors_credentials: bool = True
    cors_methods: List[str] = ["*"]
    cors_headers: List[str] = ["*"]

    # =========================================================================
    # CACHE SETTINGS
    # =========================================================================
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for the preview cache",
    )
    cache_ttl_seconds: int = Field(
        default=86400,
        validation_alias=AliasChoices("cache_ttl_seconds", "redis_expire"),
        description="Sliding expiry for cached previews",
    )
    cache_key_prefix: str = Field(default="preview:", description="Prefix for cache keys")
    cache_connect_timeout_s: float = Field(
        default=10.0,
        description="How long startup waits for Redis to become ready",
    )
    cache_socket_timeout_s: float = Field(default=5.0, description="Redis socket timeout")

    # =========================================================================
    # BROWSER SETTINGS
    # =========================================================================
    browser_headless: bool = Field(default=True, description="Run Chromium headless")
    browser_launch_timeout_ms: int = Field(default=20000, description="Browser launch timeout")
    browser_stealth: bool = Field(
        default=True,
        description="Inject basic fingerprint-masking scripts into each page",
    )
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="Desktop user agent sent with every navigation",
    )
    viewport_width: int = Field(default=1024, description="Base viewport width")
    viewport_height: int = Field(default=768, description="Base viewport height")
    viewport_jitter: int = Field(
        default=100,
        description="Random pixels added to each viewport dimension (0 disables)",
    )

    # =========================================================================
    # NAVIGATION
    # =========================================================================
    navigation_timeout_ms: int = Field(default=30000, description="Timeout per navigation attempt")
    navigation_max_attempts: int = Field(default=3, description="Navigation attempts before giving up")
    navigation_retry_delay_s: float = Field(default=2.0, description="Pause between attempts")
    navigation_referer: str = Field(
        default="https://www.google.com/",
        description="Referer header sent with navigations",
    )
    readiness_timeout_ms: int = Field(
        default=10000,
        description="How long to wait for the page body to contain text",
    )
    readiness_min_text_chars: int = Field(
        default=20,
        description="Visible text length the body must exceed to count as ready",
    )
    screenshot_timeout_ms: int = Field(default=15000, description="Screenshot capture timeout")

    # =========================================================================
    # BATCH
    # =========================================================================
    batch_max_urls: int = Field(default=10, description="Maximum URLs per batch request")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"
        populate_by_name = True


settings = Settings()
