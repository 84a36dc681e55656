from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    All config comes from .env file.
    Change values in .env - they automatically apply everywhere.
    """

    # ── Database ──────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./devpath.db"  # asyncpg in production
    AUTO_CREATE_TABLES: bool = True

    # ── JWT ───────────────────────────────────────────────
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── CORS ──────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:5173"

    # ── App ───────────────────────────────────────────────
    APP_ENV: str = "production"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:5173"

    # ── Email (Brevo / Sendinblue) ────────────────────────
    BREVO_API_KEY: str = ""
    EMAIL_FROM: str = "no-reply@devpath.app"
    EMAIL_FROM_NAME: str = "DevPath"
    EMAIL_REPLY_TO: str | None = None

    # ── OTP / password reset ──────────────────────────────
    OTP_EXPIRE_MINUTES: int = 10
    RESET_CODE_EXPIRE_MINUTES: int = 10
    RESET_VERIFIED_GRACE_MINUTES: int = 5  # extra time to pick a password after verifying
    OTP_RESEND_COOLDOWN_SECONDS: int = 60
    OTP_MAX_ATTEMPTS: int = 5
    SIGNUP_FLOW_IDLE_MINUTES: int = 30
    SIGNUP_FLOW_MAX: int = 10000
    PRESENCE_STALE_SECONDS: int = 90  # clients heartbeat well inside this window
    RESET_LINK_SECRET: str = "change-me-too"
    RESET_LINK_MAX_AGE_MINUTES: int = 60

    # ── Progress ──────────────────────────────────────────
    READINESS_THRESHOLD: int = 70
    TOTAL_ASSESSMENTS_FALLBACK: int = 17  # used when no assessments are defined

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def origins_list(self) -> list[str]:
        """Splits comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def reply_to(self) -> str:
        return self.EMAIL_REPLY_TO or self.EMAIL_FROM


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# Single instance used across the entire app
settings = get_settings()
