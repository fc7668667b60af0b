"""Application configuration from environment variables."""
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _clean_str(value: str | None) -> str | None:
    if value is None:
        return None
    # Replace non-breaking spaces with normal spaces
    return value.replace("\u00a0", " ").strip()


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    PROJECT_NAME: str = "memberhub"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    INTERNAL_API_TOKEN: str | None = None
    CORS_ORIGINS: str = "*"

    # Public site URL, used for checkout and billing portal redirects
    APP_URL: str = "http://localhost:3000"
    ADMIN_EMAILS: str = ""

    # Database Settings
    DATABASE_URL: str | None = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "memberhub"
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432

    # Stripe
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_WEBHOOK_SECRET: str | None = None

    # Clerk
    CLERK_SECRET_KEY: str | None = None
    CLERK_WEBHOOK_SECRET: str | None = None

    # Circle
    CIRCLE_BASE_URL: str | None = None
    CIRCLE_ADMIN_API_KEY: str | None = None
    CIRCLE_HEADLESS_AUTH_API_KEY: str | None = None
    CIRCLE_COMMUNITY_ID: int | None = None
    CIRCLE_TIMEOUT_SECONDS: float = 20.0

    @field_validator(
        "STRIPE_SECRET_KEY",
        "STRIPE_WEBHOOK_SECRET",
        "CLERK_SECRET_KEY",
        "CLERK_WEBHOOK_SECRET",
        "CIRCLE_ADMIN_API_KEY",
        "CIRCLE_HEADLESS_AUTH_API_KEY",
        mode="before",
    )
    @classmethod
    def clean_secret_strings(cls, v):
        return _clean_str(v) or None

    @field_validator("CIRCLE_BASE_URL", "APP_URL", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        v = _clean_str(v)
        return v.rstrip("/") if v else v

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def admin_emails(self) -> set[str]:
        return {e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()}

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
