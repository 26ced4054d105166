"""Application configuration helpers."""

from __future__ import annotations

from .checks import validate_settings
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .gateway import GatewayConfig, get_gateway_config
from .http_resilience import RateLimit, ResilienceConfig
from .identity import IdentityServiceConfig, get_identity_config
from .logging import configure_logging
from .signing import (
    DEFAULT_TRUSTED_ISSUERS,
    CertificateConfig,
    TrustConfig,
    get_certificate_config,
    get_trust_config,
    placeholder_signatures_allowed,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .tracking import TrackingConfig, get_tracking_config

__all__ = [
    "DEFAULT_TRUSTED_ISSUERS",
    "CertificateConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "GatewayConfig",
    "IdentityServiceConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "StorageConfig",
    "TrackingConfig",
    "TrustConfig",
    "configure_logging",
    "get_certificate_config",
    "get_database_config",
    "get_gateway_config",
    "get_identity_config",
    "get_storage_config",
    "get_tracking_config",
    "get_trust_config",
    "placeholder_signatures_allowed",
    "require_env_vars",
    "validate_settings",
]
