from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings

from app.platform.logger import get_logger

logger = get_logger(__name__)


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Waitly"
    ENVIRONMENT: Literal["development", "staging", "production"] = "production"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # ── Notion (waitlist database) ──────────────
    NOTION_SECRET: str = ""
    NOTION_DB_ID: str = ""
    NOTION_TIMEOUT_MS: int = 60_000

    # ── Resend (transactional email) ────────────
    RESEND_API_KEY: str = ""
    RESEND_FROM_EMAIL: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    RESEND_TIMEOUT: int = 30
    WELCOME_EMAIL_SUBJECT: str = "Welcome to Next.js + Notion CMS Waitlist"
    WELCOME_EMAIL_FOLLOW_URL: str = "https://twitter.com/Idee8Agency"

    # ── Rate limiting ───────────────────────────
    REDIS_URL: Optional[str] = None
    FORCE_IN_MEMORY_RATE_LIMITER: bool = False
    MAIL_RATE_LIMIT: int = 2
    MAIL_RATE_WINDOW_SECONDS: int = 60

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"


REQUIRED_SECRETS = ("NOTION_SECRET", "NOTION_DB_ID", "RESEND_API_KEY", "RESEND_FROM_EMAIL")


def check_required_settings(config: Settings) -> list[str]:
    """
    Log every required secret that is missing. Startup is never halted,
    requests touching the missing service fail at call time instead.
    """
    missing = [name for name in REQUIRED_SECRETS if not getattr(config, name)]
    for name in missing:
        logger.error(
            f"Missing required setting {name}",
            extra={"source": "config", "context": {"setting": name}},
        )

    if not config.REDIS_URL and not config.FORCE_IN_MEMORY_RATE_LIMITER:
        logger.warning(
            "REDIS_URL not configured, rate limits are kept in process memory",
            extra={"source": "config"},
        )
    return missing


@lru_cache
def get_settings() -> Settings:
    return Settings()

