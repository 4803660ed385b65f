from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env at the project root: xenostore/core/config.py -> xenostore/core -> xenostore -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"


class Settings(BaseSettings):
    database_url: str = "sqlite:///./xenostore.db"
    # Admin panel and admin API (X-Admin-Secret header)
    admin_secret: str = ""
    environment: str = "development"
    log_level: str = "INFO"
    # Echo SQL statements (sqlalchemy.engine at INFO)
    log_sql: bool = False
    # CORS: comma separated origins; "*" in development
    cors_origins: str = "*"
    rate_limit_per_minute: int = 60
    # Coupon validation is brute-forceable, keep it tighter than the rest
    rate_limit_coupon_validate_per_minute: int = 20
    # Rounds of re-check when another request changes the coupon during record-usage
    coupon_usage_max_attempts: int = 5
    store_name: str = "XenoNepal"
    currency: str = "NPR"
    frontend_url: str = "http://127.0.0.1:8000"
    # SMTP (exclusive coupon notifications)
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "noreply@xenonepal.com"
    smtp_from_name: str = "XenoNepal"
    smtp_use_tls: bool = True

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("admin_secret", mode="before")
    @classmethod
    def strip_admin_secret(cls, v: str | None) -> str:
        """Trailing whitespace from copy/paste must not lock admins out."""
        return (v or "").strip()

    @field_validator("coupon_usage_max_attempts")
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        return max(1, v)


settings = Settings()


def cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
