from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent.parent  # project root
ENV_PATH = BASE_DIR / ".env"

# Load .env into the process environment first; real env vars still win.
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",  # ignore unknown keys in .env
        case_sensitive=False,
    )

    DATABASE_URL: str = "sqlite+aiosqlite:///./vouchers.db"
    DB_ECHO: bool = False

    # Redemption transaction retries (lock timeout / deadlock / lost connection)
    REDEEM_MAX_ATTEMPTS: int = Field(3, ge=1)
    REDEEM_RETRY_BACKOFF_SECONDS: float = Field(0.05, ge=0)
    DB_LOCK_TIMEOUT_MS: int | None = 5000

    EXPIRY_SWEEP_ENABLED: bool = True
    EXPIRY_SWEEP_INTERVAL_SECONDS: int = Field(60, ge=1)

    LOG_LEVEL: str = "INFO"
    EXPOSE_INTERNAL_ERRORS: bool = False

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]


settings = Settings()
