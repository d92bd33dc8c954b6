"""
Application configuration with environment variables.
"""
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field, field_validator
from typing import Optional, List


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "TenderFlow"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    SECRET_KEY: str = "your-secret-key-change-in-production"

    # Database
    POSTGRES_USER: str = "tenderflow"
    POSTGRES_PASSWORD: str = "tenderflow"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "tenderflow"
    DATABASE_URL: Optional[str] = Field(default=None, validate_default=True)

    # JWT Settings
    JWT_ALGORITHM: str = "HS256"

    # Procurement defaults
    DEFAULT_CURRENCY: str = "QAR"
    REFERENCE_PREFIX: str = "RFX"
    REFERENCE_SEQUENCE_WIDTH: int = 4

    # Listing
    DEFAULT_PAGE_SIZE: int = 50
    MAX_PAGE_SIZE: int = 200

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    @field_validator('DATABASE_URL', mode='before')
    @classmethod
    def assemble_db_url(cls, v: Optional[str], info) -> str:
        if isinstance(v, str) and v:
            return v

        data = info.data
        user = data.get("POSTGRES_USER", "tenderflow")
        password = data.get("POSTGRES_PASSWORD", "tenderflow")
        host = data.get("POSTGRES_HOST", "postgres")
        port = data.get("POSTGRES_PORT", "5432")
        db = data.get("POSTGRES_DB", "tenderflow")

        return f"postgresql://{user}:{password}@{host}:{port}/{db}"

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str, info) -> str:
        """Reject weak SECRET_KEY in production, warn in development."""
        weak_keys = {
            "your-secret-key-change-in-production",
            "change-me-in-production",
            "secret",
            "changeme",
        }
        if v in weak_keys or len(v) < 32:
            if not info.data.get("DEBUG", False):
                raise ValueError(
                    "SECRET_KEY is weak or default. "
                    "Generate a strong key with: openssl rand -hex 32"
                )
            import warnings
            warnings.warn(
                "SECRET_KEY is weak or default! Set a strong key before deploying.",
                UserWarning,
                stacklevel=2,
            )
        return v

    @field_validator('POSTGRES_PASSWORD')
    @classmethod
    def validate_postgres_password(cls, v: str, info) -> str:
        """Reject default database password in production."""
        weak = {"tenderflow", "postgres", "password", "changeme", ""}
        if v in weak and not info.data.get("DEBUG", False):
            raise ValueError(
                "POSTGRES_PASSWORD is set to a default value. "
                "Set a strong database password for production."
            )
        return v

    @field_validator('REFERENCE_SEQUENCE_WIDTH')
    @classmethod
    def validate_sequence_width(cls, v: int) -> int:
        if v < 1:
            raise ValueError("REFERENCE_SEQUENCE_WIDTH must be at least 1")
        return v


settings = Settings()
