"""
Configuration management for the application.
Loads settings from environment variables using Pydantic Settings.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./billing_local.sqlite"

    @property
    def database_url_async(self) -> str:
        """
        Transform DATABASE_URL to use the appropriate async driver.
        - PostgreSQL: postgresql+asyncpg://...
        - SQLite: sqlite+aiosqlite:///...
        """
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif self.DATABASE_URL.startswith("postgres://"):
            return self.DATABASE_URL.replace("postgres://", "postgresql+asyncpg://", 1)
        elif self.DATABASE_URL.startswith("sqlite://"):
            return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return self.DATABASE_URL

    # Application
    APP_NAME: str = "Billing API"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    SEED_DEMO_DATA: bool = False

    # Invoicing
    INVOICE_NUMBER_PREFIX: str = "INV"
    INVOICE_NUMBER_WIDTH: int = 3
    CURRENCY_SYMBOL: str = "₹"

    # Balance import (amounts in the statement are tax-inclusive)
    IMPORT_TAX_RATE: float = 18.0

    # Reminder messaging (WhatsApp providers)
    DEFAULT_REMINDER_FREQUENCY_DAYS: int = 3
    MESSAGING_TIMEOUT_SECONDS: float = 30.0
    TWILIO_API_BASE: str = "https://api.twilio.com"
    META_GRAPH_API_BASE: str = "https://graph.facebook.com/v18.0"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Singleton instance - import this in other modules
settings = Settings()
