from pathlib import Path

from pydantic_settings import BaseSettings


def _load_version() -> str:
    version_path = Path(__file__).resolve().parent / "VERSION"
    try:
        return version_path.read_text().strip()
    except FileNotFoundError:
        return "0.1.0"


class Settings(BaseSettings):
    """Application configuration using Pydantic settings."""

    # Database
    DATABASE_URL: str = "sqlite:///./data/localping.db"

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: list[str] = ["*"]
    CORS_ALLOW_HEADERS: list[str] = ["*"]

    # Application
    APP_NAME: str = "LocalPing"
    APP_VERSION: str = _load_version()
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Retention ──────────────────────────────────────────────────────
    # Used when the admin settings row has no value yet
    DEFAULT_DATA_RETENTION_DAYS: int = 30
    # Backstop against runaway write volume, independent of age
    MAX_RESULTS_PER_TARGET: int = 10000
    # Ids per DELETE ... WHERE id IN (...) statement
    DELETE_BATCH_SIZE: int = 500

    # Background sweep (UTC hour of day)
    RETENTION_SCHEDULE_ENABLED: bool = True
    RETENTION_SWEEP_HOUR: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
