# backend/witar/core/config.py

from __future__ import annotations

from decimal import Decimal
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

from pydantic_settings import BaseSettings, SettingsConfigDict


def _strip_asyncpg_unsupported_params(url: str) -> str:
    """
    asyncpg does NOT accept sslmode or channel_binding as connect kwargs.
    Managed Postgres providers put them in the URL query, so drop them before
    the URL reaches create_async_engine().
    """
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = parse_qsl(parts.query, keep_blank_values=True)
    filtered = [(k, v) for (k, v) in params if k not in {"sslmode", "channel_binding"}]
    new_query = urlencode(filtered, doseq=True)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, new_query, parts.fragment))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -----------------------------
    # Environment
    # -----------------------------
    # Use: development | staging | production
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # -----------------------------
    # DB
    # -----------------------------
    DATABASE_URL_ASYNC: str
    DATABASE_URL_SYNC: str = ""

    # -----------------------------
    # JWT
    # -----------------------------
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Only honored outside production
    RETURN_MAGIC_CODE_IN_RESPONSE: bool = True

    # -----------------------------
    # HTTP
    # -----------------------------
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "https://witar.es",
        "https://www.witar.es",
    ]
    APP_URL: str = "http://localhost:5173"

    # -----------------------------
    # Invitations / trial
    # -----------------------------
    INVITE_EXPIRY_DAYS: int = 7
    TRIAL_DAYS: int = 14

    # -----------------------------
    # Billing (per active employee)
    # -----------------------------
    PRICE_PER_EMPLOYEE: Decimal = Decimal("1.50")
    PLAN_EMPLOYEE_LIMIT: int = 25
    BILLING_CURRENCY: str = "EUR"

    # -----------------------------
    # Time clock
    # -----------------------------
    MAX_SESSION_HOURS: int = 24

    # -----------------------------
    # Documents
    # -----------------------------
    DOCUMENT_STORAGE_DIR: str = "storage/documents"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    # -----------------------------
    # Notifications
    # -----------------------------
    DELETED_NOTIFICATION_RETENTION_DAYS: int = 15

    # -----------------------------
    # Scheduled jobs (cron -> HTTP)
    # -----------------------------
    JOBS_API_KEY: str | None = None

    # -----------------------------
    # Email (Resend)
    # -----------------------------
    RESEND_API_KEY: str | None = None
    RESEND_API_URL: str = "https://api.resend.com/emails"
    MAIL_FROM: str = "Witar <noreply@witar.es>"

    @property
    def DATABASE_URL_ASYNC_CLEAN(self) -> str:
        return _strip_asyncpg_unsupported_params(self.DATABASE_URL_ASYNC)

    @property
    def is_production(self) -> bool:
        return (self.ENVIRONMENT or "").strip().lower() in {"prod", "production"}

    def model_post_init(self, __context) -> None:  # pydantic v2 hook
        env = (self.ENVIRONMENT or "").strip().lower()

        # Never run staging/production with a placeholder secret.
        if env in {"staging", "production"}:
            if not self.JWT_SECRET or self.JWT_SECRET.strip() == "dev-secret-change-me":
                raise ValueError("JWT_SECRET must be set to a strong value in staging/production.")
            if len(self.JWT_SECRET.strip()) < 32:
                raise ValueError("JWT_SECRET is too short; use at least 32 characters in staging/production.")

        if self.JWT_ALGORITHM not in {"HS256"}:
            raise ValueError(f"Unsupported JWT_ALGORITHM={self.JWT_ALGORITHM!r}. Allowed: HS256")

        if self.PLAN_EMPLOYEE_LIMIT < 1:
            raise ValueError("PLAN_EMPLOYEE_LIMIT must be at least 1.")


settings = Settings()
