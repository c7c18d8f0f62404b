"""Configuration management for the Lyra API."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.features import DEFAULT_TRIAL_DAYS, parse_csv

try:
    load_dotenv()
except (PermissionError, OSError):
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = Field(default="dev", description="Environment: dev, test, prod")
    LOG_LEVEL: str = Field(default="INFO")

    DATABASE_URL: str = Field(default="sqlite://", description="SQLAlchemy database URL")

    # Identity provider tokens
    SECRET_KEY: str | None = Field(default=None, description="Key used to verify identity tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    JWT_AUDIENCE: str | None = Field(default=None)

    # Language model
    OPENAI_API_KEY: str | None = Field(default=None)
    OPENAI_MODEL: str = Field(default="gpt-4o")

    # Billing
    STRIPE_SECRET_KEY: str | None = Field(default=None)
    STRIPE_PRICE_ID: str | None = Field(default=None)
    STRIPE_WEBHOOK_SECRET: str | None = Field(default=None)

    # Workspace export
    NOTION_API_VERSION: str = Field(default="2022-06-28")

    TRIAL_DAYS: int = Field(default=DEFAULT_TRIAL_DAYS, ge=0)

    # Comma separated lists
    PRO_OVERRIDE_EMAILS: str = Field(default="", description="Emails always treated as Pro")
    ADMIN_EMAILS: str = Field(default="", description="Emails with admin access (implies Pro)")
    PRO_ONLY_TOOLS: str = Field(default="", description="Tool types that require Pro")
    CORS_ORIGINS: str = Field(default="")

    @property
    def pro_override_emails(self) -> list[str]:
        return [email.lower() for email in parse_csv(self.PRO_OVERRIDE_EMAILS)]

    @property
    def admin_emails(self) -> list[str]:
        return [email.lower() for email in parse_csv(self.ADMIN_EMAILS)]

    @property
    def pro_only_tools(self) -> list[str]:
        return [tool.lower() for tool in parse_csv(self.PRO_ONLY_TOOLS)]

    @property
    def cors_origins(self) -> list[str]:
        origins = parse_csv(self.CORS_ORIGINS)
        return origins or ["http://localhost:3000", "http://127.0.0.1:3000"]

    @property
    def billing_configured(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY and self.STRIPE_PRICE_ID)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Raises:
        ValidationError: If an environment variable has an invalid value
    """
    return Settings()
