"""Application configuration via pydantic-settings.

Secrets are loaded from environment variables (.env file).
Settings are organized into logical groups and composed into a single Settings object.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.models.enums import AccountType, StorageBackendType


class StorageSettings(BaseSettings):
    """Which persistence backend holds the catalog and the quotes."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    storage_backend: StorageBackendType = Field(
        default=StorageBackendType.LOCAL,
        description="local (device store), sql (database) or crm (remote CRM)",
    )
    local_store_path: str = Field(
        default="",
        description="JSON file for the local backend; empty keeps everything in memory",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./quotedesk.db",
        description="Async SQLAlchemy connection string for the sql backend",
    )
    seed_demo_data: bool = Field(
        default=True,
        description="Seed the demo units and discount rules into an empty catalog at startup",
    )


class CrmSettings(BaseSettings):
    """Salesforce-style CRM REST API used by the crm backend."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    crm_base_url: str = Field(default="", description="Instance URL, e.g. https://acme.my.salesforce.com")
    crm_api_token: str = Field(default="", description="OAuth bearer token")
    crm_api_version: str = Field(default="v59.0")
    crm_timeout: float = Field(default=10.0, description="Request timeout in seconds")

    @property
    def api_root(self) -> str:
        """REST root all CRM paths are relative to."""
        return f"{self.crm_base_url.rstrip('/')}/services/data/{self.crm_api_version}"


class AuthSettings(BaseSettings):
    """Accounts accepted by the HTTP Basic authenticator."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    demo_username: str = Field(default="demo@quotedesk.local")
    demo_password: str = Field(default="demo123!@#")
    demo_account_type: AccountType = Field(default=AccountType.INDIVIDUAL)
    admin_username: str = Field(default="admin@quotedesk.local")
    admin_password: str = Field(default="admin123!@#")
    admin_account_type: AccountType = Field(default=AccountType.ENTERPRISE)


class CompanySettings(BaseSettings):
    """Company block and terms printed on exported quotes."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    company_name: str = Field(default="Quotedesk")
    company_address: str = Field(default="123 Tech Street, Silicon Valley, CA 94025")
    company_phone: str = Field(default="(555) 123-4567")
    company_email: str = Field(default="sales@quotedesk.local")
    quote_terms: str = Field(
        default=(
            "1. All prices are in USD\n"
            "2. Quote valid for 30 days\n"
            "3. Delivery terms to be confirmed upon order"
        )
    )
    currency_symbol: str = Field(default="$")
    quote_validity_days: int = Field(default=30, ge=1)


class Settings(BaseSettings):
    """Root settings composing all sub-settings.

    Usage:
        settings = Settings()
        settings.storage.storage_backend
        settings.crm.api_root
        settings.company.company_name
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Composed settings (loaded from same .env)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    crm: CrmSettings = Field(default_factory=CrmSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    company: CompanySettings = Field(default_factory=CompanySettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            msg = f"Invalid log level: {v}. Must be one of {valid}"
            raise ValueError(msg)
        return upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


# Module-level singleton: import this wherever settings are needed.
settings = Settings()
