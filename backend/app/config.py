"""
Application Configuration — Environment & Settings
Centralizes all config from .env with Pydantic Settings for validation.

The M-Pesa credentials have no defaults: if any of them is missing,
Settings() raises and the process refuses to start.
"""
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings

# Resolve paths relative to backend/ directory
BASE_DIR = Path(__file__).resolve().parent.parent

REQUIRED_SETTINGS = (
    "MPESA_CONSUMER_KEY",
    "MPESA_CONSUMER_SECRET",
    "MPESA_BUSINESS_SHORTCODE",
    "MPESA_PASSKEY",
    "MPESA_CALLBACK_URL",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Core ---
    APP_NAME: str = "Hotspot Payment Bridge"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | production
    DEBUG: bool = False

    # --- Database ---
    DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'data' / 'payments.db'}"

    # --- M-Pesa (Daraja) ---
    MPESA_CONSUMER_KEY: str
    MPESA_CONSUMER_SECRET: str
    MPESA_BUSINESS_SHORTCODE: str
    MPESA_PASSKEY: str
    MPESA_CALLBACK_URL: str
    MPESA_API_BASE_URL: str = "https://sandbox.safaricom.co.ke"
    MPESA_TRANSACTION_TYPE: str = "CustomerPayBillOnline"
    MPESA_ACCOUNT_NAME: str = "Hotspot Services"
    MPESA_TIMEOUT_SECONDS: float = 30.0

    # --- Security ---
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5500"]
    ADMIN_API_TOKEN: str = ""
    INITIATE_RATE_LIMIT: int = 5
    INITIATE_RATE_WINDOW: int = 60

    # --- Logging ---
    LOG_DIR: str = str(BASE_DIR / "logs")
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
