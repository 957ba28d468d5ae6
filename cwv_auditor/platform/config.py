from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "CWV Auditor"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True

    # ── Logging ─────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None
    LOG_TO_FILE: bool = True

    # ── Database ────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./auditor.db"

    # ── Progress events (SSE) ───────────────────
    REDIS_URL: str = "redis://localhost:6379/0"
    SSE_CONNECTION_TIMEOUT: int = 300
    REDIS_SOCKET_TIMEOUT: float = 2.0
    PROGRESS_DRAIN_TIMEOUT: float = 5.0

    # ── PageSpeed Insights ──────────────────────
    PAGESPEED_API_URL: str = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
    PAGESPEED_API_KEY: Optional[str] = None
    PAGESPEED_STRATEGY: Literal["mobile", "desktop"] = "mobile"
    PAGESPEED_TIMEOUT: int = 60  # PSI runs Lighthouse server-side, so this is slow

    # ── Sitemap discovery ───────────────────────
    SITEMAP_TIMEOUT: int = 15
    SITEMAP_MAX_CHILD_SITEMAPS: int = 50

    # ── Scan ────────────────────────────────────
    SCAN_BATCH_SIZE: int = 50

    # ── Email Configuration ─────────────────────
    MAIL_HOST: str = "smtp.gmail.com"
    MAIL_PORT: int = 587
    MAIL_USERNAME: Optional[str] = None
    MAIL_PASSWORD: Optional[str] = None
    MAIL_ENCRYPTION: str = "tls"
    MAIL_FROM_ADDRESS: str = "noreply@cwv-auditor.com"
    MAIL_FROM_NAME: str = "CWV Auditor"

    # ── Admin / Auth ────────────────────────────
    ADMIN_EMAIL: str = "admin@example.com"
    ADMIN_PASSWORD: str = "securepassword123"
    JWT_SECRET_KEY: str = "your-secret-key-change-this-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440
    ALGORITHM: str = "HS256"

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
