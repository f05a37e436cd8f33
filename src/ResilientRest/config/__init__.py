"""
ResilientRest Configuration Package

Provides:
- Pydantic v2 models for client identity, resolved transport settings and
  protected-executor policies
- Live property sources with typed, fallback-driven lookups
- File/env/override property loading
- Cascading per-operation → per-group → default resolution

Usage:
    from ResilientRest.config import ConfigResolver, load_properties

    props = load_properties("restcore.yaml")
    resolved = ConfigResolver(props).resolve("orders", "getOrder")
"""

from .loader import load_properties, load_protection_config
from .models import (
    DEFAULT_CONNECTION_REQUEST_TIMEOUT_MS,
    DEFAULT_CONNECTION_TIMEOUT_MS,
    DEFAULT_SOCKET_TIMEOUT_MS,
    DEFAULT_STALE_CONNECTION_CHECK,
    ClientSettings,
    CookiePolicy,
    IsolationStrategy,
    ProtectionConfig,
    ProtectionPolicy,
    ProxySettings,
    ResolvedConfig,
)
from .properties import MappingPropertySource, PropertySource
from .resolver import PROPERTY_PREFIX, ConfigResolver

__all__ = [
    # Models
    "ClientSettings",
    "CookiePolicy",
    "IsolationStrategy",
    "ProtectionConfig",
    "ProtectionPolicy",
    "ProxySettings",
    "ResolvedConfig",
    "DEFAULT_CONNECTION_TIMEOUT_MS",
    "DEFAULT_CONNECTION_REQUEST_TIMEOUT_MS",
    "DEFAULT_SOCKET_TIMEOUT_MS",
    "DEFAULT_STALE_CONNECTION_CHECK",
    # Properties
    "PropertySource",
    "MappingPropertySource",
    "load_properties",
    "load_protection_config",
    # Resolution
    "ConfigResolver",
    "PROPERTY_PREFIX",
]
