"""
Public REST client facades.

``RestClient`` wires the call pipeline together (property-driven config
resolution, request building, the protected executor, the HTTPX transport and
outcome classification) and exposes one method per HTTP verb. Each verb returns
the response body (``None`` for no content) or raises exactly one
:class:`~ResilientRest.errors.RestClientError` subclass.

``CachingRestClient`` wraps a ``RestClient`` and adds a ``cache_key`` argument to
every verb. Calls sharing an operation and cache key are dispatched once; any
failure evicts the entry before it is raised.

Usage:
    from ResilientRest import RestClient, load_properties

    with RestClient("orders", "https://api.example.org", properties=load_properties("rest.yaml")) as client:
        body = client.get("/orders/42", "getOrder", {"expand": "lines"})
"""

from __future__ import annotations

import logging
from typing import Hashable, Mapping, Optional

from ResilientRest.cache import CachedCallExecutor, InMemoryResultCache, ResultCache
from ResilientRest.classifier import ResponseClassifier
from ResilientRest.config.models import ClientSettings, ProtectionConfig
from ResilientRest.config.properties import MappingPropertySource, PropertySource
from ResilientRest.config.resolver import ConfigResolver
from ResilientRest.executor import CallExecutor
from ResilientRest.models import CallOutcome, HttpMethod, ResourceCall
from ResilientRest.protected import BreakerExecutor, ProtectedExecutor
from ResilientRest.querystring import DEFAULT_QUERY_ENCODING
from ResilientRest.request_builder import ResourceCallBuilder
from ResilientRest.transport import HttpExecutor, HttpxTransport

__all__ = ("RestClient", "CachingRestClient")

LOGGER = logging.getLogger(__name__)


def _body_of(outcome: CallOutcome) -> Optional[str]:
    return outcome.unwrap().body


class RestClient:
    """Resilient client for one REST endpoint and service group.

    Args:
        group_key_name: Service-level key; groups worker pools and config.
        endpoint: Base URL every resource path is appended to.
        prepend_group_key_name: Use ``"<group>.<operation>"`` as operation key.
        properties: Live property source for transport configuration.
        protection: Breaker/isolation policies for the default executor.
        protected_executor: Replacement for the default :class:`BreakerExecutor`.
        transport: Replacement for the default :class:`HttpxTransport`.
        query_encoding: Character encoding for query strings.
    """

    def __init__(
        self,
        group_key_name: str,
        endpoint: str,
        prepend_group_key_name: bool = False,
        *,
        properties: Optional[PropertySource] = None,
        protection: Optional[ProtectionConfig] = None,
        protected_executor: Optional[ProtectedExecutor] = None,
        transport: Optional[HttpExecutor] = None,
        query_encoding: str = DEFAULT_QUERY_ENCODING,
    ) -> None:
        self.group_key_name = group_key_name
        self.endpoint = endpoint
        self.prepend_group_key_name = prepend_group_key_name
        self.properties = properties if properties is not None else MappingPropertySource()

        self._owns_protected = protected_executor is None
        self._owns_transport = transport is None
        self.protected_executor = protected_executor or BreakerExecutor(protection)
        self.transport = transport or HttpxTransport()

        self.executor = CallExecutor(
            group_key_name,
            ResourceCallBuilder(endpoint, ConfigResolver(self.properties), query_encoding=query_encoding),
            self.protected_executor,
            self.transport,
            ResponseClassifier(),
            prepend_group_key_name=prepend_group_key_name,
        )
        LOGGER.debug("RestClient created for %s at %s", group_key_name, endpoint)

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs) -> "RestClient":
        return cls(
            settings.group_key_name,
            settings.endpoint,
            settings.prepend_group_key_name,
            query_encoding=settings.query_encoding,
            **kwargs,
        )

    def prepend_group_key_name_if_required(self, command_name: str) -> str:
        return self.executor.operation_identity(command_name).operation_key

    # ── Verbs ─────────────────────────────────────────────────────────────────

    def get(
        self,
        resource_path: str,
        operation_name: str,
        query_params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.GET, resource_path, query_params, headers)
        return _body_of(self.execute(call, operation_name))

    def post(
        self,
        resource_path: str,
        operation_name: str,
        body: Optional[str],
        query_params: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.POST, resource_path, query_params, headers, body, content_type)
        return _body_of(self.execute(call, operation_name))

    def put(
        self,
        resource_path: str,
        operation_name: str,
        body: Optional[str],
        query_params: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.PUT, resource_path, query_params, headers, body, content_type)
        return _body_of(self.execute(call, operation_name))

    def delete(
        self,
        resource_path: str,
        operation_name: str,
        query_params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.DELETE, resource_path, query_params, headers)
        return _body_of(self.execute(call, operation_name))

    def execute(self, call: ResourceCall, operation_name: str) -> CallOutcome:
        """Run ``call`` and return the tagged outcome without raising."""

        return self.executor.execute(call, operation_name)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def close(self) -> None:
        if self._owns_protected and isinstance(self.protected_executor, BreakerExecutor):
            self.protected_executor.shutdown(wait=False)
        if self._owns_transport and isinstance(self.transport, HttpxTransport):
            self.transport.close()

    def __enter__(self) -> "RestClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class CachingRestClient:
    """``RestClient`` variant that caches successful responses per cache key.

    A ``cache_key`` of ``None`` disables caching for that call.
    """

    def __init__(self, client: RestClient, cache: Optional[ResultCache] = None) -> None:
        self.client = client
        self.cache = cache if cache is not None else InMemoryResultCache()
        self.executor = CachedCallExecutor(client.executor, self.cache)

    def get(
        self,
        resource_path: str,
        operation_name: str,
        cache_key: Optional[Hashable],
        query_params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.GET, resource_path, query_params, headers)
        return _body_of(self.executor.execute(call, operation_name, cache_key))

    def post(
        self,
        resource_path: str,
        operation_name: str,
        body: Optional[str],
        cache_key: Optional[Hashable],
        query_params: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.POST, resource_path, query_params, headers, body, content_type)
        return _body_of(self.executor.execute(call, operation_name, cache_key))

    def put(
        self,
        resource_path: str,
        operation_name: str,
        body: Optional[str],
        cache_key: Optional[Hashable],
        query_params: Optional[Mapping[str, str]] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.PUT, resource_path, query_params, headers, body, content_type)
        return _body_of(self.executor.execute(call, operation_name, cache_key))

    def delete(
        self,
        resource_path: str,
        operation_name: str,
        cache_key: Optional[Hashable],
        query_params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[str]:
        call = ResourceCall(HttpMethod.DELETE, resource_path, query_params, headers)
        return _body_of(self.executor.execute(call, operation_name, cache_key))

    def flush(self, operation_name: str, cache_key: Hashable) -> bool:
        """Forget the cached response of ``operation_name`` under ``cache_key``."""

        return self.executor.flush(operation_name, cache_key)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "CachingRestClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
