"""
Application configuration — reads all settings from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ──────────────────────────────────────────────
    APP_NAME: str = "SimDesk"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 5000
    SECRET_KEY: str = "change-me-in-production"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    CORS_ORIGINS: str = "*"

    # ── Database ─────────────────────────────────────────
    DATABASE_URL: str = "sqlite+aiosqlite:///./simdesk.db"

    # ── Support assistant ────────────────────────────────
    QUESTION_BANK_PATH: str = "./data/questions.json"
    MATCH_THRESHOLD: float = 0.5
    SHORT_INPUT_LENGTH: int = 10
    WELCOME_TEXT: str = "Hi there! I'm the SimDesk assistant. Ask me anything about running or saving simulations."
    SEND_TIMEOUT_SECONDS: float = 5.0
    SESSION_QUEUE_SIZE: int = 100

    # ── Caching ──────────────────────────────────────────
    VALIDATOR_SCOPE: str = "resource"  # resource / shared
    CACHE_TTL_SECONDS: int = 300
    CACHE_MAX_ENTRIES: int = 1024

    # ── Upstream mirror ──────────────────────────────────
    UPSTREAM_BASE_URL: str = ""
    UPSTREAM_TIMEOUT_SECONDS: float = 10.0

    # ── Rate Limiting ────────────────────────────────────
    RATE_LIMIT_PER_MINUTE: int = 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
