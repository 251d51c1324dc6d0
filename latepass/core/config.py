from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Late Pass API"
    # Comma-separated origins for CORS (e.g. https://school.example,https://admin.school.example). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str = "change-me"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # HMAC key for QR payloads. Empty means reuse SECRET_KEY.
    LATE_PASS_SIGNING_KEY: str = ""

    DATABASE_URL: str = "sqlite:///./latepass.db"

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_TIMEZONE: str = "UTC"
    SWEEP_INTERVAL_SECONDS: float = 60.0

    @property
    def signing_key(self) -> str:
        return self.LATE_PASS_SIGNING_KEY or self.SECRET_KEY


settings = Settings()
