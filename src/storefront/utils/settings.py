"""Runtime configuration for the storefront.

Values come from ``STOREFRONT_*`` environment variables or a ``.env`` file.
"""

from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        extra="ignore",
    )

    environment: str = Field("development", description="development, test, staging or production")
    log_level: str | None = Field(None, description="Overrides the per-environment log level")
    currency: str = "EUR"
    vat_rate: Decimal = Field(Decimal("0.21"), description="VAT included in catalog prices")

    admin_email: str = "orders@example.com"
    notification_dispatch: str = Field("background", pattern="^(background|inline)$")

    draft_expiry_minutes: int = Field(60, gt=0)
    reconciliation_max_retries: int = Field(3, ge=1)
    discount_cache_ttl_seconds: int = Field(300, ge=0)

    # Gateway A (Stripe). Webhooks are refused while the secret is empty.
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance: int = Field(300, description="Seconds a signed webhook stays valid")

    # Gateway B (Paysera). Callbacks and redirects are refused while the password is empty.
    paysera_project_id: str = "0"
    paysera_sign_password: str = ""
    paysera_test_mode: bool = True
    paysera_pay_url: str = "https://bank.paysera.com/pay/"

    # Shopper-facing redirect targets
    base_url: str = "http://localhost:8000"
    payment_success_path: str = "/order/confirmation/{reference}"
    payment_cancel_path: str = "/checkout"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    global _settings
    _settings = None
