import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./database/database.db"
DEFAULT_PROVIDER_BASE_URL = "https://capstoneproject.free.beeceptor.com"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> list[str]:
    raw = os.getenv(name) or default
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. Built once and handed to the app factory / CLI."""

    database_url: str = DEFAULT_DATABASE_URL
    db_echo: bool = False
    provider_base_url: str = DEFAULT_PROVIDER_BASE_URL
    provider_timeout_seconds: float = 10.0
    static_token_prefix: str = "STATIC_TOKEN_"
    internal_api_key: str = ""
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"
    metrics_enabled: bool = True
    otel_enabled: bool = False
    otlp_endpoint: str = "http://localhost:4317"
    service_name: str = "payments-ledger"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            db_echo=_env_flag("DB_ECHO", False),
            provider_base_url=os.getenv("PROVIDER_BASE_URL", DEFAULT_PROVIDER_BASE_URL),
            provider_timeout_seconds=float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10")),
            static_token_prefix=os.getenv("STATIC_TOKEN_PREFIX", "STATIC_TOKEN_"),
            internal_api_key=os.getenv("INTERNAL_API_KEY", ""),
            cors_origins=_env_list("CORS_ORIGIN", "http://localhost:3000"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            metrics_enabled=_env_flag("METRICS_ENABLED", True),
            otel_enabled=_env_flag("OTEL_ENABLED", False),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT", "http://localhost:4317"),
        )
