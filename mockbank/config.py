"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class MockBankConfig(BaseSettings):
    """Mock bank configuration"""

    # Storage configuration
    storage_url: str = "sqlite:///mockbank.db"  # memory:// for tests

    # Ledger defaults (applied when nothing is persisted yet)
    default_balance: str = "3.20"
    default_user_name: str = "BABATUNDE"
    currency_symbol: str = "₦"
    top_up_bank_name: str = "Mock Bank"

    # Simulated processing delays
    transfer_delay_seconds: float = 3.0
    top_up_delay_seconds: float = 2.0
    summary_redirect_delay_seconds: float = 1.0

    # Bank directory configuration
    banks_url: str = ""  # empty = use the built-in bank list
    banks_timeout: float = 5.0

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "MOCKBANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = MockBankConfig()


def get_config() -> MockBankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> MockBankConfig:
    """Reload configuration from environment"""
    global config
    config = MockBankConfig()
    return config
