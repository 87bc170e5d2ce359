"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class QuorumConfig(BaseSettings):
    """Approval quorum engine configuration"""

    # Storage configuration
    database_url: str = "memory://"  # memory:// or sqlite:///path/to.db

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    api_workers: int = 1  # >1 needs a shared sqlite:/// database_url

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Vote intake configuration
    max_vote_attempts: int = 5
    backoff_base_seconds: float = 0.01
    backoff_max_seconds: float = 0.5
    backoff_jitter: float = 0.25  # +/-25% of the computed delay
    vote_timeout_seconds: Optional[float] = None  # No overall deadline by default

    # Approval policy defaults (overridable per transaction)
    default_rejection_is_terminal: bool = True
    allow_revote: bool = False

    # Feature flags
    enable_audit_logging: bool = True
    enable_events: bool = True

    class Config:
        env_prefix = "QUORUM_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = QuorumConfig()


def get_config() -> QuorumConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> QuorumConfig:
    """Reload configuration from environment"""
    global config
    config = QuorumConfig()
    return config
