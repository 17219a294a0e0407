"""Application configuration, read from the environment or .env"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    APP_NAME: str = "Hotel Reservation API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # JWT
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Front-desk staff account
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin123"
    ADMIN_FULL_NAME: str = "Front Desk Manager"
    ADMIN_EMAIL: str = "admin@example.com"

    # Display currency for balance messages
    CURRENCY: str = "TL"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
