"""Application configuration using pydantic-settings."""

from dataclasses import dataclass
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All required database parameters must be provided via environment
    variables or a .env file. Missing required parameters will raise
    a ValidationError at application startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )

    # Database - Required
    POSTGRES_HOST: str
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str

    # Redis - Optional with defaults
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    # Application
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Coin pricing policy
    DEFAULT_WALLET_BALANCE: int = 150
    CONTACT_COST: int = 50
    APPLICATION_BASE_COST: int = 40
    APPLICATION_COST_PER_SUBJECT: int = 10
    APPLICATION_MAX_SUBJECTS: int = 3
    APPLICATION_COST_CAP: int = 40
    COINS_PER_USD: int = 1000
    MIN_PURCHASE_AMOUNT: Decimal = Decimal("0.1")
    MIN_PURCHASE_COINS: int = 100
    PENDING_PAYMENT_ABANDON_MINUTES: int = 60
    PENDING_PAYMENT_EXPIRE_HOURS: int = 24

    # PayPal - Optional, payment endpoints fail without credentials
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_CLIENT_SECRET: str = ""
    PAYPAL_MODE: str = "sandbox"
    PAYPAL_TIMEOUT_SECONDS: float = 30.0
    FRONTEND_URL: str = "http://localhost:3000"
    BRAND_NAME: str = "TutorLink"

    # AWS S3
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    AWS_BUCKET_NAME: str = ""
    SIGNED_URL_TTL_SECONDS: int = 3600

    # Brevo transactional email
    BREVO_API_KEY: str = ""
    BREVO_SENDER_EMAIL: str = ""
    BREVO_SENDER_NAME: str = "TutorLink"
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    @property
    def database_url(self) -> str:
        """Construct async PostgreSQL database URL with asyncpg driver."""
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def celery_broker_url(self) -> str:
        """Construct Celery broker URL using Redis settings."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    @property
    def celery_result_backend(self) -> str:
        """Construct Celery result backend URL using Redis settings."""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/0"

    @property
    def paypal_base_url(self) -> str:
        if self.PAYPAL_MODE == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"


@dataclass(frozen=True)
class PricingPolicy:
    """Coin prices and limits shared by the wallet-gated workflows."""

    default_wallet_balance: int = 150
    contact_cost: int = 50
    application_base_cost: int = 40
    application_cost_per_subject: int = 10
    application_max_subjects: int = 3
    application_cost_cap: int = 40
    coins_per_usd: int = 1000
    min_purchase_amount: Decimal = Decimal("0.1")
    min_purchase_coins: int = 100
    pending_abandon_minutes: int = 60
    pending_expire_hours: int = 24

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingPolicy":
        return cls(
            default_wallet_balance=settings.DEFAULT_WALLET_BALANCE,
            contact_cost=settings.CONTACT_COST,
            application_base_cost=settings.APPLICATION_BASE_COST,
            application_cost_per_subject=settings.APPLICATION_COST_PER_SUBJECT,
            application_max_subjects=settings.APPLICATION_MAX_SUBJECTS,
            application_cost_cap=settings.APPLICATION_COST_CAP,
            coins_per_usd=settings.COINS_PER_USD,
            min_purchase_amount=settings.MIN_PURCHASE_AMOUNT,
            min_purchase_coins=settings.MIN_PURCHASE_COINS,
            pending_abandon_minutes=settings.PENDING_PAYMENT_ABANDON_MINUTES,
            pending_expire_hours=settings.PENDING_PAYMENT_EXPIRE_HOURS,
        )


# Singleton settings instance - lazily loaded
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def get_pricing_policy() -> PricingPolicy:
    """Build the pricing policy from the current settings."""
    return PricingPolicy.from_settings(get_settings())
