"""
Configuration Management Module

Ledger settings are read from ``LEDGER_``-prefixed environment variables or
a ``.env`` file. Values are checked when the settings object is built, so a
misspelled log level fails at startup instead of at the first log call.
"""

import logging
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


LOG_FORMATS = ("json", "text")


class LedgerConfig(BaseSettings):
    """Account ledger configuration"""

    # Store: sqlite:// (in memory), sqlite:///path or postgresql://...
    database_url: str = "sqlite:///ledger.db"
    auto_create_schema: bool = True

    # HTTP transport
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None  # stderr when unset

    class Config:
        env_prefix = "LEDGER_"
        env_file = ".env"
        case_sensitive = False

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        fmt = value.lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f"log format must be one of {', '.join(LOG_FORMATS)}: {value}")
        return fmt


config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
