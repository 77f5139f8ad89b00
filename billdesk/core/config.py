from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator


def _parse_bool(v):
    if isinstance(v, str):
        return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
    return bool(v)


class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'billdesk_user'
    POSTGRES_PASSWORD: str = 'billdesk_pass'
    POSTGRES_DB: str = 'billdesk_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    # Full URL override (e.g. sqlite:// for tests)
    DATABASE_URL: Optional[str] = None

    # JWT settings (tokens are issued by the identity provider, we only verify them)
    APP_SECRET_STRING: str = 'your-super-secret-key-here-change-in-production-2024'
    ALGORITHM: str = 'HS256'

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Documents
    DEFAULT_CURRENCY: str = 'USD'
    QUOTATION_NUMBER_YEARLY_RESET: bool = True
    NUMBERING_MAX_RETRIES: int = 3

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        return _parse_bool(v)

    @field_validator("QUOTATION_NUMBER_YEARLY_RESET", mode="before")
    @classmethod
    def parse_yearly_reset(cls, v):
        return _parse_bool(v)

    @field_validator("NUMBERING_MAX_RETRIES")
    @classmethod
    def validate_retries(cls, v):
        if v < 1:
            raise ValueError("NUMBERING_MAX_RETRIES must be at least 1")
        return v

settings = Settings()
