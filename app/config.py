import warnings
from typing import List
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Known insecure default tokens (must never be used in production) ──
_INSECURE_TOKENS = {
    "change_this",
    "changeme",
    "secret",
}


class Settings(BaseSettings):
    APP_NAME: str = "Deployment Console"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"
    APP_VERSION: str = "1.0.0"

    # Bearer token required on /api/v1 when set
    CONSOLE_API_TOKEN: str = ""

    # CORS
    BACKEND_CORS_ORIGINS: str = ""

    # Database
    DATABASE_URL: str = ""
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "console"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # 30 minutes
    DB_ECHO: bool = False
    SLOW_QUERY_THRESHOLD_MS: int = 500

    # Redis (staging hostname counter)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    VERIFICATION_POLL_INTERVAL_SECONDS: int = 300
    VERIFICATION_POLL_BATCH_SIZE: int = 100

    # Snowflake worker id (0-1023), unique per running instance
    SNOWFLAKE_WORKER_ID: int = 1

    # Edge hostname provider (custom hostnames for SaaS)
    EDGE_API_BASE_URL: str = "https://api.cloudflare.com/client/v4"
    EDGE_API_TOKEN: str = ""
    EDGE_ZONE_ID: str = ""
    EDGE_API_TIMEOUT: float = 15.0
    EDGE_ACCOUNTS_ORIGIN: str = "accounts.wacht.services"
    EDGE_API_ORIGIN: str = "frontend.wacht.services"
    # CNAME targets customers point their hostnames at
    EDGE_ACCOUNTS_TARGET: str = "accounts.wacht.services"
    EDGE_FRONTEND_TARGET: str = "frontend.wacht.services"

    # Transactional email provider (sending domains)
    EMAIL_API_BASE_URL: str = "https://api.postmarkapp.com"
    EMAIL_ACCOUNT_TOKEN: str = ""
    EMAIL_API_TIMEOUT: float = 15.0
    MAIL_FROM_SUBDOMAIN: str = "wcmail"

    # DNS resolution (comma separated nameserver IPs, empty = system resolver)
    DNS_NAMESERVERS: str = "8.8.8.8,1.1.1.1"
    DNS_TIMEOUT: float = 5.0

    # Staging deployments
    STAGING_BACKEND_SUFFIX: str = "backend-api.services"
    STAGING_FRONTEND_SUFFIX: str = "wacht.tech"
    STAGING_MAIL_FROM_HOST: str = "staging.wacht.services"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup if provider credentials are missing in production / staging."""
        if self.APP_ENV in ("production", "staging"):
            if not self.CONSOLE_API_TOKEN or self.CONSOLE_API_TOKEN in _INSECURE_TOKENS:
                raise ValueError(
                    "CONSOLE_API_TOKEN is missing or insecure. "
                    "Set a strong random token in .env or environment."
                )
            if not self.EDGE_API_TOKEN or not self.EDGE_ZONE_ID:
                raise ValueError("EDGE_API_TOKEN and EDGE_ZONE_ID are required outside development.")
            if not self.EMAIL_ACCOUNT_TOKEN:
                raise ValueError("EMAIL_ACCOUNT_TOKEN is required outside development.")
            if self.POSTGRES_PASSWORD in ("postgres", "") and not self.DATABASE_URL:
                warnings.warn(
                    "POSTGRES_PASSWORD is still the default 'postgres'. "
                    "Set a strong password for production.",
                    UserWarning,
                    stacklevel=2,
                )
        return self

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def dns_nameservers(self) -> List[str]:
        return [ns.strip() for ns in self.DNS_NAMESERVERS.split(",") if ns.strip()]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

settings = Settings()
