"""Cascading lookup of per-call transport settings.

Precedence for every timeout and the stale-connection flag::

    http.request.<command>.<field>  →  http.request.<group>.<field>  →  compiled default

Proxies are group-level only, falling back to the process-wide ``http.proxy.*``
properties, and apply only when enabled with a host and a non-zero port. The
cookie policy is group-level with ``ignoreCookies`` as the default.
"""

from __future__ import annotations

import logging
from typing import Optional

from .models import (
    DEFAULT_CONNECTION_REQUEST_TIMEOUT_MS,
    DEFAULT_CONNECTION_TIMEOUT_MS,
    DEFAULT_SOCKET_TIMEOUT_MS,
    DEFAULT_STALE_CONNECTION_CHECK,
    CookiePolicy,
    ProxySettings,
    ResolvedConfig,
)
from .properties import PropertySource

__all__ = ("ConfigResolver", "PROPERTY_PREFIX")

LOGGER = logging.getLogger(__name__)

PROPERTY_PREFIX = "http.request."
HTTP_PROXY_ENABLED = "http.proxy.enabled"
HTTP_PROXY_HOST = "http.proxy.host"
HTTP_PROXY_PORT = "http.proxy.port"


class ConfigResolver:
    """Resolve a :class:`ResolvedConfig` from an injected property source."""

    def __init__(self, properties: PropertySource) -> None:
        self.properties = properties

    def resolve(self, group_key_name: str, command_name: str) -> ResolvedConfig:
        props = self.properties
        command_prefix = f"{PROPERTY_PREFIX}{command_name}"
        group_prefix = f"{PROPERTY_PREFIX}{group_key_name}"

        def cascade_int(field: str, default: int) -> int:
            return props.get_int(
                f"{command_prefix}.{field}",
                props.get_int(f"{group_prefix}.{field}", default),
            )

        stale_check = props.get_bool(
            f"{command_prefix}.staleConnectionCheck",
            props.get_bool(f"{group_prefix}.staleConnectionCheck", DEFAULT_STALE_CONNECTION_CHECK),
        )

        return ResolvedConfig(
            connect_timeout_ms=cascade_int("connectionTimeout", DEFAULT_CONNECTION_TIMEOUT_MS),
            connection_request_timeout_ms=cascade_int(
                "connectionRequestTimeout", DEFAULT_CONNECTION_REQUEST_TIMEOUT_MS
            ),
            socket_timeout_ms=cascade_int("socketTimeout", DEFAULT_SOCKET_TIMEOUT_MS),
            stale_connection_check=stale_check,
            cookie_policy=self._cookie_policy(group_prefix),
            proxy=self._proxy(group_prefix),
        )

    def _proxy(self, group_prefix: str) -> Optional[ProxySettings]:
        # proxies can only be set at group key level
        props = self.properties
        enabled = props.get_bool(
            f"{group_prefix}.proxy.enabled", props.get_bool(HTTP_PROXY_ENABLED, False)
        )
        host = props.get_string(f"{group_prefix}.proxy.host", props.get_string(HTTP_PROXY_HOST, None))
        port = props.get_int(f"{group_prefix}.proxy.port", props.get_int(HTTP_PROXY_PORT, 0))

        if enabled and host is not None and port:
            LOGGER.debug("Using HTTP proxy Host: %s , Port: %s", host, port)
            return ProxySettings(host=host, port=port)
        return None

    def _cookie_policy(self, group_prefix: str) -> CookiePolicy:
        raw = self.properties.get_string(
            f"{group_prefix}.cookieSpec", CookiePolicy.IGNORE_COOKIES.value
        )
        try:
            return CookiePolicy(raw)
        except ValueError:
            LOGGER.warning("Unknown cookie policy %r for %s; ignoring cookies", raw, group_prefix)
            return CookiePolicy.IGNORE_COOKIES
