"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List


class KodBankConfig(BaseSettings):
    """KodBank service configuration"""
    
    # Database configuration
    database_path: str = "kodbank.db"
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: List[str] = ["*"]
    
    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    token_expiry_minutes: int = 60
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Business rules configuration
    currency_symbol: str = "₹"
    account_number_prefix: str = "KODA"
    account_number_attempts: int = 10
    history_limit: int = 50
    
    # Concurrency configuration
    lock_timeout_seconds: float = 5.0
    
    class Config:
        env_prefix = "KODBANK_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = KodBankConfig()


def get_config() -> KodBankConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> KodBankConfig:
    """Reload configuration from environment"""
    global config
    config = KodBankConfig()
    return config
