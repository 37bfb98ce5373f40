import os
import re
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

_TABLE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _split_paths(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables.

    Built once per process and handed to each component constructor;
    nothing in the core reads the environment on its own.
    """

    # Upstream
    upstream_url: str = os.getenv("UPSTREAM_URL", "")
    upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "30.0"))

    # Secrets
    service_auth_key: str = os.getenv("SERVICE_AUTH_KEY", "")
    encryption_key: str = os.getenv("CACHE_ENCRYPTION_KEY", "")

    # Cache
    store_url: str = os.getenv("CACHE_STORE_URL", "sqlite:///supacache.db")
    table_name: str = os.getenv("CACHE_TABLE_NAME", "SUPACACHE")
    default_ttl: int = int(os.getenv("CACHE_DEFAULT_TTL", "900"))  # 15 minutes
    bypass_paths: tuple[str, ...] = _split_paths(
        os.getenv("CACHE_BYPASS_PATHS", "/realtime/,/subscriptions/")
    )

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "info")

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "false").lower() == "true"

    @property
    def uses_redis(self) -> bool:
        """Check if the configured store URL points at Redis.

        Returns:
            True for redis:// and rediss:// URLs, False otherwise
        """
        return self.store_url.startswith(("redis://", "rediss://"))

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.default_ttl <= 0:
            raise ValueError("CACHE_DEFAULT_TTL must be a positive number of seconds")

        if self.upstream_timeout <= 0:
            raise ValueError("UPSTREAM_TIMEOUT must be positive")

        # The table name is interpolated into SQL and Redis key prefixes
        if not _TABLE_NAME_RE.match(self.table_name):
            raise ValueError(
                f"CACHE_TABLE_NAME must be a plain identifier, got {self.table_name!r}"
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
