"""Configuration settings for the billsync service.

Wraps environment variables and provides defaults.
"""

from typing import Optional

from pydantic import Field, PostgresDsn, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings class.

    Attributes:
    ----------
        PROJECT_NAME (str): The name of the project.
        LOCAL_DEVELOPMENT (bool): Whether the application is running locally.
        ENVIRONMENT (str): The deployment environment (local, dev, test, prod).
        DEBUG (bool): Whether debug mode is enabled.
        LOG_LEVEL (str): The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        POSTGRES_HOST (str): The PostgreSQL server hostname.
        POSTGRES_DB (str): The PostgreSQL database name.
        POSTGRES_USER (str): The PostgreSQL username.
        POSTGRES_PASSWORD (str): The PostgreSQL password.
        SQLALCHEMY_ASYNC_DATABASE_URI (Optional[PostgresDsn]): The SQLAlchemy async database URI.
        RUN_DB_INIT (bool): Whether to create missing tables on startup.
        STRIPE_ENABLED (bool): Whether the Stripe billing provider is enabled.
        STRIPE_SECRET_KEY (Optional[str]): The Stripe API secret key.
        BILLING_WEBHOOK_SECRET (Optional[str]): Shared secret used to sign provider webhooks.
        BILLING_WEBHOOK_SIGNATURE_HEADER (str): Header carrying the webhook signature.
        WEBHOOK_QUEUE_SIZE (int): Capacity of the webhook processing queue.
        CHECKOUT_SUCCESS_URL (str): Where the hosted checkout returns on success.
        CHECKOUT_CANCEL_URL (str): Where the hosted checkout returns on cancel.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PROJECT_NAME: str = "billsync"
    LOCAL_DEVELOPMENT: bool = False
    ENVIRONMENT: str = "local"

    # Debug configuration
    DEBUG: bool = False

    # Logging configuration
    LOG_LEVEL: str = "INFO"

    POSTGRES_HOST: str = "localhost"
    POSTGRES_DB: str = "billsync"
    POSTGRES_USER: str = "billsync"
    POSTGRES_PASSWORD: str = "billsync"
    SQLALCHEMY_ASYNC_DATABASE_URI: Optional[PostgresDsn] = Field(
        default=None, validate_default=True
    )

    RUN_DB_INIT: bool = False

    # Billing provider
    STRIPE_ENABLED: bool = False
    STRIPE_SECRET_KEY: Optional[str] = Field(default=None, validate_default=True)

    # Webhook ingestion
    BILLING_WEBHOOK_SECRET: Optional[str] = None
    BILLING_WEBHOOK_SIGNATURE_HEADER: str = "X-Billing-Signature"
    WEBHOOK_QUEUE_SIZE: int = 1000

    # Hosted checkout return URLs
    CHECKOUT_SUCCESS_URL: str = "http://localhost:5173/billing/success"
    CHECKOUT_CANCEL_URL: str = "http://localhost:5173/billing/cancel"

    @field_validator("STRIPE_SECRET_KEY", mode="before")
    def validate_stripe_key(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Require a secret key when Stripe is enabled.

        Args:
        ----
            v (Optional[str]): The Stripe secret key.
            info (ValidationInfo): The validation context containing all field values.

        Raises:
        ------
            ValueError: If STRIPE_ENABLED is True and no key is configured.
        """
        if info.data.get("STRIPE_ENABLED", False) and not v:
            raise ValueError("STRIPE_SECRET_KEY must be set when STRIPE_ENABLED is True")
        return v

    @field_validator("SQLALCHEMY_ASYNC_DATABASE_URI", mode="before")
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> PostgresDsn:
        """Build the SQLAlchemy database URI.

        Args:
        ----
            v (Optional[str]): The value of the SQLALCHEMY_ASYNC_DATABASE_URI setting.
            info (ValidationInfo): The validation context containing all field values.

        Returns:
        -------
            PostgresDsn: The assembled SQLAlchemy async database URI.

        """
        if isinstance(v, str):
            return v

        return PostgresDsn.build(
            scheme="postgresql+asyncpg",
            username=info.data.get("POSTGRES_USER"),
            password=info.data.get("POSTGRES_PASSWORD"),
            host=info.data.get("POSTGRES_HOST", "localhost"),
            path=f"{info.data.get('POSTGRES_DB') or ''}",
        )

    @property
    def webhook_configured(self) -> bool:
        """Whether a webhook signing secret is available."""
        return bool(self.BILLING_WEBHOOK_SECRET)


settings = Settings()
