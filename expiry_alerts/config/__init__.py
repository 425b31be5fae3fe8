"""Configuration management for the expiry alerts service."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_app_config
from .models import (
    AppConfig,
    EmailConfig,
    ExpiryJobConfig,
    JobName,
    JobsConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    RetentionConfig,
)

__all__ = [
    "load_config",
    "parse_app_config",
    "load_environment_config",
    "AppConfig",
    "JobsConfig",
    "ExpiryJobConfig",
    "RetentionConfig",
    "EmailConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    "JobName",
    "LogLevel",
    "LogFormat",
    "ConfigurationError",
]
