"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional
from decimal import Decimal
import re
import warnings


STATE_CODE_PATTERN = re.compile(r"^[0-9]{2}$")


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "Ledgerbook API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production

    # Database
    DATABASE_URL: str = "sqlite:///./ledgerbook.db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5000,http://127.0.0.1:5000"

    # Business tax registration
    BUSINESS_STATE_CODE: Optional[str] = None  # two-digit GST state code, e.g. "29"
    BUSINESS_GSTIN: Optional[str] = None

    # Ledger policy
    ALLOW_TRANSFER_OVERDRAFT: bool = True  # False refuses transfers that would overdraw the source

    # Statutory reporting
    B2C_LARGE_INVOICE_LIMIT: Decimal = Decimal("250000")

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def database_url(self) -> str:
        """Get properly formatted database URL"""
        url = self.DATABASE_URL
        if url.startswith("file:"):
            path = url[5:]
            return f"sqlite:///{path}"
        return url

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def business_state_code(self) -> Optional[str]:
        """State code of the business, falling back to the GSTIN prefix"""
        if self.BUSINESS_STATE_CODE:
            return self.BUSINESS_STATE_CODE
        if self.BUSINESS_GSTIN:
            return self.BUSINESS_GSTIN.strip()[:2]
        return None

    def validate_settings(self):
        """Validate tax registration settings and warn about missing values"""
        if self.BUSINESS_STATE_CODE and not STATE_CODE_PATTERN.match(self.BUSINESS_STATE_CODE):
            raise ValueError(
                f"BUSINESS_STATE_CODE must be a two-digit state code, got '{self.BUSINESS_STATE_CODE}'"
            )

        if self.BUSINESS_GSTIN:
            from ledgerbook.core.gst import validate_gstin
            if not validate_gstin(self.BUSINESS_GSTIN):
                raise ValueError(f"BUSINESS_GSTIN '{self.BUSINESS_GSTIN}' is not a valid GSTIN")
            if self.BUSINESS_STATE_CODE and self.BUSINESS_GSTIN[:2] != self.BUSINESS_STATE_CODE:
                raise ValueError("BUSINESS_STATE_CODE does not match the state code of BUSINESS_GSTIN")

        if not self.business_state_code:
            warnings.warn(
                "WARNING: No BUSINESS_STATE_CODE or BUSINESS_GSTIN configured. "
                "Every sale will be treated as intra-state.",
                UserWarning
            )

        if self.is_production and self.DEBUG:
            raise ValueError(
                "CRITICAL: DEBUG mode is enabled in production! "
                "Set DEBUG=False for production environment."
            )

        return True

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()

# Validate settings on import (but don't crash in development)
try:
    settings.validate_settings()
except ValueError as e:
    if settings.is_production:
        raise
    else:
        warnings.warn(str(e), UserWarning)
