"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class RentalBillingConfig(BaseSettings):
    """Rental billing configuration"""

    # Storage configuration
    storage_type: str = "memory"  # memory, sqlite or postgresql
    database_url: Optional[str] = None  # SQLite path or PostgreSQL DSN
    database_pool_size: int = 10

    # Money
    currency: str = "QAR"

    # Agreement defaults
    default_term_months: int = 12  # Schedule horizon when end_date is missing

    # Late fees
    default_daily_late_fee: str = "120.00"
    late_fee_cap: str = "3000.00"

    # Reconciliation: "first_of_month" or "rent_due_day"
    reconcile_due_day_policy: str = "first_of_month"

    # Timeouts and retries
    operation_timeout_seconds: float = 15.0
    force_generate_timeout_seconds: float = 30.0
    retries: int = 2
    retry_delay_seconds: float = 1.0

    # Batch processing
    batch_size: int = 10
    max_concurrency: int = 3

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "RENTAL_BILLING_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = RentalBillingConfig()


def get_config() -> RentalBillingConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> RentalBillingConfig:
    """Reload configuration from environment"""
    global config
    config = RentalBillingConfig()
    return config
