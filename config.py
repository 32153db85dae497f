"""Application configuration using pydantic-settings."""

from typing import List, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder signing key; deployments must set SECRET_KEY
DEFAULT_SECRET_KEY = "change-me-in-production-please-32b"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "Hackathon"

    # Server
    host: str = "0.0.0.0"
    port: int = 4000
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    # Token signing
    secret_key: SecretStr = SecretStr(DEFAULT_SECRET_KEY)
    token_algorithm: str = "HS256"
    token_expire_minutes: Optional[int] = None

    # Mail relay
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    smtp_use_ssl: bool = True
    smtp_timeout: float = 30
    mail_user: str = ""
    mail_password: SecretStr = SecretStr("")
    mail_subject: str = "Payment confirmation"

    @property
    def uses_default_secret(self) -> bool:
        return self.secret_key.get_secret_value() == DEFAULT_SECRET_KEY


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    return settings
