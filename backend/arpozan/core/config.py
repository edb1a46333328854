"""
Centralized application configuration

Every value can be overridden through the environment or a .env file.
All fields carry defaults so the service starts (in fallback mode) even
when the live backend is not configured.
"""
import json
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "Arpozan API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Storefront and admin dashboard API for Arpozan"
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Live backend (Supabase). The anon key is public and read scoped,
    # the service role key must never leave the server.
    SUPABASE_URL: Optional[str] = None
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None

    # Optional direct PostgreSQL connection, used for transactional writes
    DATABASE_URL: Optional[str] = None

    # Bound for every live call (seconds)
    BACKEND_TIMEOUT_SECONDS: float = 10.0

    # Token verification for the resolved caller identity
    AUTH_SECRET: Optional[str] = None
    AUTH_ALGORITHM: str = "HS256"

    # Rate limiting (per caller identity, process local)
    RATE_LIMIT_MAX_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Cart pricing
    FREE_SHIPPING_THRESHOLD: float = 100.0
    SHIPPING_FLAT_RATE: float = 10.0
    TAX_RATE: float = 0.08

    # Dashboard aggregation
    LOW_STOCK_THRESHOLD: int = 10
    REVENUE_STATUSES: str = "delivered"

    # CORS - Can be string (comma-separated) or JSON array
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    def get_revenue_statuses(self) -> frozenset:
        """Order statuses whose totals count toward revenue"""
        return frozenset(
            status.strip().lower()
            for status in self.REVENUE_STATUSES.split(",")
            if status.strip()
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
