"""Configuration from environment (no hardcoded secrets)."""

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Backend settings from env."""

    model_config = SettingsConfigDict(env_prefix="FILEVAULT_", extra="ignore")

    # Database (SQLAlchemy async URL)
    db_url: str = "sqlite+aiosqlite:///./filevault.db"

    # Sessions
    session_cookie_name: str = "filevault_sid"
    session_max_age_minutes: int = 7 * 24 * 60
    cookie_secure: bool = False

    # Uploads: per-file limit in bytes
    max_upload_bytes: int = 100 * 1024 * 1024

    # Rate limiting (slowapi); login_rate_limit also covers register and password change
    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"

    # CORS: set as comma-separated string in env (e.g. https://vault.example.com)
    # so pydantic-settings does not try to JSON-decode it
    cors_origins: str = "http://localhost:5000"

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins as a list (split on comma)."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # Logging (empty log_file = stderr only; level DEBUG|INFO|WARNING|ERROR)
    log_level: str = "INFO"
    log_file: str = ""
    # Raw usernames in auth log lines; masked when False
    log_usernames: bool = False


def get_settings() -> Settings:
    """Return application settings."""
    return Settings()
