"""Application configuration helpers."""

from __future__ import annotations

from .env import env_int, optional_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .google import GoogleConfig, get_google_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .oauth import OAuthConfig, get_oauth_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config
from .xero import DEFAULT_XERO_SCOPES, XeroConfig, get_xero_config

__all__ = [
    "DEFAULT_XERO_SCOPES",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "GoogleConfig",
    "MissingConfigurationError",
    "OAuthConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "XeroConfig",
    "configure_logging",
    "env_int",
    "get_database_config",
    "get_google_config",
    "get_oauth_config",
    "get_storage_config",
    "get_sync_config",
    "get_xero_config",
    "optional_env",
    "require_env_vars",
]
