"""Application configuration settings."""
from decimal import Decimal
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./db/exchange.db"

    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    enable_docs: bool = True  # Disable Swagger/ReDoc in production

    # Security (JWT Authentication)
    jwt_secret_key: str = "change-this-to-a-random-secret-key-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 1440

    # Logging
    timezone: str = "UTC"
    log_dir: str = "logs"
    log_level: str = "INFO"

    # Bonding curve defaults applied to newly created coins
    initial_price: Decimal = Decimal("0.0001")
    price_increment: Decimal = Decimal("0.00000001")
    total_supply: int = 1_000_000_000
    graduation_threshold_percent: int = 85
    sell_slippage: Decimal = Decimal("0.05")

    # Trade execution
    trade_lock_timeout_seconds: float = 10.0
    trade_max_attempts: int = 3
    trade_retry_base_delay: float = 0.05  # Doubles with each retry

    # Scheduler settings
    scheduler_enabled: bool = True
    snapshot_interval_seconds: int = 60  # Record price history every 60 seconds

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
