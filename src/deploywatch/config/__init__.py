"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_var, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging, parse_log_level
from .notifier import WebhookConfig, default_webhook_resilience, get_webhook_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .watch import DEFAULT_LABEL_SELECTOR, WatchConfig, get_watch_config

__all__ = [
    "DEFAULT_LABEL_SELECTOR",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "WatchConfig",
    "WebhookConfig",
    "configure_logging",
    "default_webhook_resilience",
    "get_database_config",
    "get_storage_config",
    "get_watch_config",
    "get_webhook_config",
    "parse_log_level",
    "require_env_var",
    "require_env_vars",
]
