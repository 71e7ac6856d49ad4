"""Application configuration management using Pydantic Settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    Required settings will raise validation errors if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="storefront-checkout", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    # Supabase
    supabase_url: str = Field(..., description="Supabase project URL")
    supabase_secret_key: str = Field(..., description="Supabase secret key for backend operations")
    supabase_signing_key_jwk: str = Field(
        default="",
        description="Supabase signing key JWK (JSON string) for ES256 token verification",
    )
    supabase_jwt_secret: str = Field(
        default="",
        description="Legacy shared secret for HS256 token verification (used when no JWK is set)",
    )
    supabase_jwt_audience: str = Field(default="authenticated", description="Expected JWT audience")

    # Anonymous sessions
    session_cookie_name: str = Field(default="storefront_session", description="Session cookie name")
    session_cookie_max_age: int = Field(default=2592000, description="Session cookie max age in seconds (30 days)")
    session_cookie_secure: bool = Field(default=True, description="Use secure cookies (HTTPS only)")
    session_expiry_days: int = Field(default=30, description="Days until session expires")

    # Stripe (payment provider)
    stripe_secret_key: str = Field(default="", description="Stripe secret API key")
    stripe_webhook_secret: str = Field(default="", description="Stripe webhook signing secret")

    # Payments
    payment_currency: str = Field(default="rub", description="ISO currency code for charges")
    online_payment_methods: str = Field(
        default="card",
        description="Comma-separated payment methods that require online authorization",
    )
    payment_timeout_seconds: float = Field(default=10.0, description="Upper bound for a payment session request")
    payment_max_attempts: int = Field(default=3, description="Attempts on provider connection errors")

    # Frontend
    frontend_url: str = Field(
        default="http://localhost:5173",
        description="Storefront URL used to build payment return links",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def online_payment_methods_list(self) -> list[str]:
        """Parse online payment methods into a list."""
        return [m.strip() for m in self.online_payment_methods.split(",") if m.strip()]

    @property
    def payments_enabled(self) -> bool:
        """Check whether the payment provider is configured."""
        return bool(self.stripe_secret_key)

    def requires_online_payment(self, payment_method: str) -> bool:
        """Check whether a payment method hands off to the payment provider.

        Args:
            payment_method: Payment method chosen at checkout.

        Returns:
            bool: True if the provider is configured and the method needs it.
        """
        return self.payments_enabled and payment_method in self.online_payment_methods_list


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings: Application settings instance.

    Note:
        Settings are cached using lru_cache for performance.
        Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
