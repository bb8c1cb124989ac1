# app/core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,  # Environment vars are uppercase
        extra="ignore",      # Ignore unexpected vars instead of raising
    )

    # Core application settings
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    PUBLIC_URL: str = "https://dfirst-payments.onrender.com"
    LOG_FILE: str = "app.log"
    LOG_WHITELIST_INFO: bool = True

    # Mobile app deep link scheme used for verify redirects
    APP_URL_SCHEME: str = "dfirsttrader"

    # CORS settings
    ALLOWED_ORIGINS: list[str] = ["*"]
    ALLOW_CREDENTIALS: bool = True
    ALLOWED_METHODS: list[str] = ["*"]
    ALLOWED_HEADERS: list[str] = ["*"]

    # Paystack
    PAYSTACK_SECRET_KEY: str
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"
    PAYSTACK_CURRENCY: str = "KES"
    PAYSTACK_CHANNELS: list[str] = ["card"]

    # M-Pesa (Daraja) STK push
    MPESA_CONSUMER_KEY: str | None = None
    MPESA_CONSUMER_SECRET: str | None = None
    MPESA_SHORTCODE: str | None = None
    MPESA_PASSKEY: str | None = None
    MPESA_CALLBACK_URL: str | None = None
    MPESA_ENVIRONMENT: str = "sandbox"  # 'sandbox' | 'production'
    MPESA_TRANSACTION_TYPE: str = "CustomerPayBillOnline"

    # Verification cache
    VERIFY_CACHE_TTL_SECONDS: int = 300  # 5 minutes
    CACHE_SWEEP_INTERVAL_SECONDS: int = 60

    # Outbound HTTP
    UPSTREAM_TIMEOUT_SECONDS: float = 30.0

    @property
    def server_url(self) -> str:
        """Base URL that payment providers call back into."""
        if self.ENVIRONMENT == "production":
            return self.PUBLIC_URL.rstrip("/")
        return f"http://localhost:{self.PORT}"

    @property
    def mpesa_configured(self) -> bool:
        return all(
            (
                self.MPESA_CONSUMER_KEY,
                self.MPESA_CONSUMER_SECRET,
                self.MPESA_SHORTCODE,
                self.MPESA_PASSKEY,
            )
        )


def _validate_settings(settings: Settings) -> None:
    """Validate critical application settings."""
    if not settings.PAYSTACK_SECRET_KEY:
        raise ValueError("PAYSTACK_SECRET_KEY is required")
    if settings.MPESA_ENVIRONMENT not in ("sandbox", "production"):
        raise ValueError("MPESA_ENVIRONMENT must be 'sandbox' or 'production'")
    if settings.VERIFY_CACHE_TTL_SECONDS <= 0:
        raise ValueError("VERIFY_CACHE_TTL_SECONDS must be positive")

    # Environment-specific validations
    if settings.ENVIRONMENT == "production" and settings.DEBUG:
        print("WARNING: DEBUG is enabled in production. Consider setting DEBUG=False.")


# Initialize settings with error handling
try:
    settings = Settings()
    _validate_settings(settings)
except Exception as e:
    print(f"Error initializing settings: {e}")
    raise
