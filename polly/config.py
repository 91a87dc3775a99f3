"""
Polly – Application configuration.
Reads environment variables from a .env file via pydantic-settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ── App ──
    APP_NAME: str = "Polly"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Public base URL, used to build share links
    APP_URL: str = "http://127.0.0.1:8000"

    # Proxies whose X-Forwarded-For is believed; anonymous votes are keyed on the client IP
    TRUSTED_PROXIES: str = "127.0.0.1"

    # ── Database ──
    DATABASE_URL: str = "sqlite+aiosqlite:///./polly.db"

    # ── JWT ──
    SECRET_KEY: str = "change-me-to-a-random-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── Google OAuth ──
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # ── GitHub OAuth ──
    GITHUB_CLIENT_ID: str = ""
    GITHUB_CLIENT_SECRET: str = ""

    def share_url(self, share_token: str) -> str:
        return f"{self.APP_URL.rstrip('/')}/polls/{share_token}"


settings = Settings()
