import os
from dataclasses import dataclass, field
from functools import lru_cache

import redis
from dotenv import load_dotenv
from pymongo import MongoClient

load_dotenv()


def parse_years(value: str) -> tuple[int, ...]:
    """Parse a year set like ``"2019-2025"`` or ``"2019,2021,2023"``."""
    value = value.strip()
    if "-" in value and "," not in value:
        start, end = (int(part) for part in value.split("-", 1))
        return tuple(range(start, end + 1))
    return tuple(sorted({int(part) for part in value.split(",") if part.strip()}))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # MongoDB
    mongodb_uri: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017/chapter-dashboard")
    mongodb_database: str = os.getenv("MONGODB_DATABASE", "chapter-dashboard")
    mongodb_timeout_ms: int = int(os.getenv("MONGODB_TIMEOUT_MS", "5000"))
    enforce_unique_chapters: bool = _env_bool("ENFORCE_UNIQUE_CHAPTERS", "true")

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    redis_timeout: float = float(os.getenv("REDIS_TIMEOUT", "2.0"))

    # Cache
    cache_ttl: int = int(os.getenv("CACHE_TTL", "3600"))
    stats_cache_ttl: int = int(os.getenv("STATS_CACHE_TTL", "1800"))
    cache_namespace: str = os.getenv("CACHE_NAMESPACE", "chapters")

    # Rate limiting
    rate_limit_window: int = int(os.getenv("RATE_LIMIT_WINDOW", "60"))
    rate_limit_max: int = int(os.getenv("RATE_LIMIT_MAX", "30"))
    admin_rate_limit_max: int = int(os.getenv("ADMIN_RATE_LIMIT_MAX", "100"))

    # Records
    valid_years: tuple[int, ...] = field(
        default_factory=lambda: parse_years(os.getenv("VALID_YEARS", "2019-2025"))
    )
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))

    # Auth
    admin_secret_key: str = os.getenv("ADMIN_SECRET_KEY", "default_admin_key")

    # API
    app_env: str = os.getenv("APP_ENV", "production")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("PORT", "3000"))
    api_reload: bool = _env_bool("API_RELOAD", "false")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def is_development(self) -> bool:
        """Whether cache keys and other debugging details are exposed."""
        return self.app_env.lower() == "development"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if not self.valid_years:
            raise ValueError("VALID_YEARS must name at least one year")

        for name in ("cache_ttl", "stats_cache_ttl", "rate_limit_window"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be positive, got {getattr(self, name)}")

        if self.rate_limit_max < 1 or self.admin_rate_limit_max < 1:
            raise ValueError("Rate limit ceilings must be at least 1")

        if ":" in self.cache_namespace or "*" in self.cache_namespace:
            raise ValueError("CACHE_NAMESPACE must not contain ':' or '*'")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client(config: Settings | None = None) -> redis.Redis:
    """Create a Redis client instance with bounded socket timeouts."""
    config = config or settings
    return redis.from_url(
        config.redis_url,
        password=config.redis_password,
        decode_responses=True,
        socket_connect_timeout=config.redis_timeout,
        socket_timeout=config.redis_timeout,
        retry_on_timeout=True,
        health_check_interval=30,
    )


def get_mongo_client(config: Settings | None = None) -> MongoClient:
    """Create a MongoDB client instance.

    The client connects lazily; the first operation (or an explicit ping)
    establishes the connection pool.
    """
    config = config or settings
    return MongoClient(
        config.mongodb_uri,
        serverSelectionTimeoutMS=config.mongodb_timeout_ms,
        connectTimeoutMS=config.mongodb_timeout_ms,
        socketTimeoutMS=config.mongodb_timeout_ms,
        tz_aware=True,
    )
