"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    api_url: str = _get_env("DISCOVERY_API_URL", "http://localhost:5000/api")
    request_timeout_seconds: float = float(_get_env("REQUEST_TIMEOUT_SECONDS", "10"))
    page_size: int = int(_get_env("PAGE_SIZE", "12"))
    suggestion_limit: int = int(_get_env("SUGGESTION_LIMIT", "6"))
    suggestion_debounce_ms: int = int(_get_env("SUGGESTION_DEBOUNCE_MS", "300"))
    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_index: str = _get_env("ES_INDEX", "products")
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "60"))
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
