"""Configuration management using Pydantic Settings"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Lending policy document; empty means the packaged resources/policy_rules.json
    policy_path: str = ""

    # Service
    service_name: str = "smartloan-core"
    log_level: str = "INFO"

    # Offers
    offer_validity_hours: int = 48


settings = Settings()
