"""Key store configuration management using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Key store settings loaded from environment variables."""

    # Application Settings
    app_name: str = Field(default="jwkstore", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="json", alias="LOG_FORMAT")

    # Database Settings
    database_url: str = Field(default="sqlite:///./jwkstore.db", alias="DATABASE_URL")
    migration_table: str = Field(default="hydra_jwk_migration", alias="JWK_MIGRATION_TABLE")

    # Encryption Settings
    system_secret: str = Field(default="", alias="SYSTEM_SECRET")

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
