"""
oobwatch Configuration Management

Provides process-level configuration loaded from the environment and ``.env`` files.
Semantic validation of client options happens in the ClientBuilder; the models here
only enforce shape and obvious ranges.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthScheme(str, Enum):
    """How the auth token is presented in the Authorization header."""

    SIMPLE = "simple"
    BEARER = "bearer"


class CryptoBackend(str, Enum):
    """Available crypto provider implementations."""

    NATIVE = "native"
    PORTABLE = "portable"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Logging level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size: int = Field(
        default=10_000_000, description="Max log file size in bytes"
    )
    backup_count: int = Field(default=5, description="Number of backup log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class TransportConfig(BaseModel):
    """Options for the built-in aiohttp transport."""

    timeout: float = Field(default=15.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(
        default=False, description="Verify the server's TLS certificate"
    )
    ca_bundle: Optional[str] = Field(
        default=None, description="Path to a CA bundle used for verification"
    )
    proxy: Optional[str] = Field(default=None, description="HTTP(S) proxy URL")
    dns_override: Optional[str] = Field(
        default=None, description="IP address to use instead of resolving the server"
    )

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Invalid timeout: {v}. Must be greater than zero")
        return v


class OOBWatchConfig(BaseSettings):
    """Main oobwatch configuration."""

    # Server and identity
    server: Optional[str] = Field(
        default=None, description="Interaction server host or URL"
    )
    auth_token: Optional[SecretStr] = Field(
        default=None, description="Token for authenticated servers"
    )
    auth_scheme: AuthScheme = Field(default=AuthScheme.SIMPLE)
    subdomain_override: Optional[str] = Field(default=None)
    correlation_id_length: int = Field(default=20, ge=1, le=63)
    subdomain_length: int = Field(default=33, ge=1, le=63)

    # Key material and decoding
    rsa_key_size: int = Field(
        default=2048, ge=1024, le=8192, multiple_of=256, description="RSA modulus size in bits"
    )
    crypto_backend: CryptoBackend = Field(default=CryptoBackend.NATIVE)
    parse_logs: bool = Field(default=True, description="Parse logs into typed records")

    # Component configurations
    transport: TransportConfig = Field(default_factory=TransportConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="OOBWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
    )


# Global configuration instance
_config: Optional[OOBWatchConfig] = None


def get_config() -> OOBWatchConfig:
    """
    Get the global configuration instance.

    Returns:
        The global OOBWatchConfig instance
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> OOBWatchConfig:
    """
    Load configuration from an env file and environment variables.

    Args:
        config_file: Optional path to a ``.env`` style file
        **overrides: Explicit values that take precedence over the environment

    Returns:
        Loaded configuration instance
    """
    if config_file is not None and config_file.exists():
        return OOBWatchConfig(_env_file=str(config_file), **overrides)

    return OOBWatchConfig(**overrides)


def reload_config(config_file: Optional[Path] = None) -> OOBWatchConfig:
    """
    Reload the global configuration.

    Args:
        config_file: Optional path to configuration file

    Returns:
        Reloaded configuration instance
    """
    global _config
    _config = load_config(config_file)
    return _config


def config_file_from_env() -> Optional[Path]:
    """Path named by ``OOBWATCH_CONFIG``, if set."""
    value = os.environ.get("OOBWATCH_CONFIG")
    return Path(value) if value else None
