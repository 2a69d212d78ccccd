"""Configuration management with environment variable support."""

import os
import secrets
from dataclasses import dataclass, field


def _parse_cors_origins() -> list[str]:
    """Parse CORS_ORIGINS environment variable."""
    origins = os.getenv("CORS_ORIGINS", "http://localhost:8000")
    return [o.strip() for o in origins.split(",") if o.strip()]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class CORSConfig:
    """CORS configuration."""

    allowed_origins: list[str] = field(default_factory=_parse_cors_origins)
    allow_credentials: bool = True
    allow_methods: list[str] = field(default_factory=lambda: ["*"])
    allow_headers: list[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limiting configuration."""

    enabled: bool = field(default_factory=lambda: _env_bool("RATE_LIMIT_ENABLED", "true"))
    requests_per_minute: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_RPM", "60"))
    )


@dataclass(frozen=True)
class SecurityConfig:
    """Security configuration."""

    secret_key: str = field(
        default_factory=lambda: os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    )


@dataclass(frozen=True)
class RedisConfig:
    """Redis connection configuration."""

    host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))
    password: str | None = field(default_factory=lambda: os.getenv("REDIS_PASSWORD"))

    @property
    def url(self) -> str:
        """Build Redis connection URL."""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass(frozen=True)
class GameConfig:
    """Table and chip defaults."""

    starting_chips: int = field(
        default_factory=lambda: int(os.getenv("STARTING_CHIPS", "1000"))
    )
    chip_top_up: int = 500
    dealer_stands_on: int = 17
    blackjack_payout: tuple[int, int] = (3, 2)
    history_limit: int = 50


@dataclass(frozen=True)
class PersistenceConfig:
    """Balance and history write behaviour."""

    write_retries: int = field(default_factory=lambda: int(os.getenv("PERSIST_RETRIES", "2")))
    retry_delay: float = field(
        default_factory=lambda: float(os.getenv("PERSIST_RETRY_DELAY", "0.05"))
    )
    # Seconds a session lock is held at most, and waited for at most
    lock_timeout: int = field(default_factory=lambda: int(os.getenv("SESSION_LOCK_TIMEOUT", "10")))
    lock_wait: float = field(default_factory=lambda: float(os.getenv("SESSION_LOCK_WAIT", "5")))


@dataclass(frozen=True)
class AdviceConfig:
    """Hint service configuration."""

    api_key: str | None = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
    )
    model: str = field(default_factory=lambda: os.getenv("ADVICE_MODEL", "gemini-2.5-flash"))
    timeout: float = field(default_factory=lambda: float(os.getenv("ADVICE_TIMEOUT", "8")))
    fallback_message: str = "Advice is unavailable right now. Trust your gut: hit or stand?"

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class AppConfig:
    """Application configuration."""

    debug: bool = field(default_factory=lambda: _env_bool("DEBUG", "false"))
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    session_ttl: int = 3600  # Session timeout in seconds

    redis: RedisConfig = field(default_factory=RedisConfig)
    game: GameConfig = field(default_factory=GameConfig)
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    advice: AdviceConfig = field(default_factory=AdviceConfig)
    cors: CORSConfig = field(default_factory=CORSConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)


# Global configuration instance
config = AppConfig()
