from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from decimal import Decimal
from typing import Dict, Optional

class Settings(BaseSettings):
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "pcshop"
    POSTGRES_USER: str = "pcshop"
    POSTGRES_PASSWORD: str = "pcshop"
    # Overrides the POSTGRES_* settings when set (e.g. sqlite for local runs)
    DATABASE_URL: Optional[str] = None

    JWT_SECRET: str = "change-me"
    JWT_ALG: str = "HS256"

    PAYMENT_WEBHOOK_SECRET: str = "whsec-change-me"
    PAYMENT_SIGNATURE_TOLERANCE: int = 300

    MAIL_SERVICE_URL: Optional[str] = None
    MAIL_TIMEOUT: float = 5.0

    # Flat rate per shipping method; methods not listed are rejected at checkout
    SHIPPING_RATES: Dict[str, Decimal] = {
        "STANDARD": Decimal("0.00"),
        "EXPRESS": Decimal("15.00"),
        "PICKUP": Decimal("0.00"),
    }
    # Promo code -> percentage off the subtotal, e.g. {"BUILD10": 10}
    PROMO_CODES: Dict[str, int] = {}

    REDIS_URL: Optional[str] = None
    PUBLIC_CACHE_TTL: int = 60

    SERVICE_NAME: str = "pcshop-service"
    SERVICE_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

@lru_cache
def get_settings() -> Settings:
    return Settings()
