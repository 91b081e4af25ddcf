"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class RecaudoConfig(BaseSettings):
    """Recaudo Seguro engine configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    sqlite_path: str = "recaudo.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    api_workers: int = 1

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Business rules configuration
    default_timezone: str = "America/Bogota"

    # Concurrency configuration
    lock_timeout_seconds: float = 5.0  # Max wait for a per-credit lock

    # Reputation / financial advice service
    advisory_url: str = ""  # Empty = disabled
    advisory_timeout: float = 10.0
    advisory_api_key: str = ""
    advisory_fallback: str = "Regular"  # Recommendation returned if the service is down

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "RECAUDO_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = RecaudoConfig()


def get_config() -> RecaudoConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> RecaudoConfig:
    """Reload configuration from environment"""
    global config
    config = RecaudoConfig()
    return config
