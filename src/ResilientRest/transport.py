"""
HTTPX transport for protected REST calls.

Implements the HTTP executor capability consumed by the call executor:

- ``execute(request)`` sends one :class:`PreparedRequest` and returns a
  :class:`RestResponse` with the body decoded as text
- ``abort(request)`` and ``release(request)`` close whatever the exchange still
  holds; both are idempotent and safe before the exchange started

Architecture:
1. One pooled ``httpx.Client`` per (proxy, cookie policy) pair, built lazily
2. Per-request timeouts from the resolved config (connect, read/write, pool)
3. Streaming send so the connection can be aborted from another thread
4. Redirects are not followed; 3xx responses are returned to the caller
"""

from __future__ import annotations

import logging
import threading
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Dict, Optional, Protocol, Tuple

import httpx

from ResilientRest.config.models import CookiePolicy, ResolvedConfig
from ResilientRest.errors import ErrorScenario, ReadError
from ResilientRest.logging_utils import format_headers
from ResilientRest.models import PreparedRequest, RestResponse

__all__ = ("HttpExecutor", "HttpxTransport", "build_cookie_jar")

LOGGER = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "ResilientRest/1.0"
_EXCHANGE_KEY = "httpx.exchange"


class HttpExecutor(Protocol):
    """Capability consumed by the call executor to send requests."""

    def execute(self, request: PreparedRequest) -> Optional[RestResponse]: ...
    def abort(self, request: PreparedRequest) -> None: ...
    def release(self, request: PreparedRequest) -> None: ...


class _Exchange:
    """Per-request transport state guarded by its own lock."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.response: Optional[httpx.Response] = None
        self.aborted = False
        self.closed = False

    def close(self) -> None:
        with self.lock:
            response, self.response = self.response, None
            self.closed = True
        if response is not None:
            response.close()


def build_cookie_jar(policy: CookiePolicy) -> CookieJar:
    """Return a cookie jar that enforces ``policy``."""

    if policy is CookiePolicy.IGNORE_COOKIES:
        # an empty allow-list blocks every domain for both storing and sending
        return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
    if policy is CookiePolicy.STANDARD_STRICT:
        return CookieJar(
            policy=DefaultCookiePolicy(
                rfc2965=True, strict_ns_domain=DefaultCookiePolicy.DomainStrict
            )
        )
    if policy is CookiePolicy.NETSCAPE:
        return CookieJar(policy=DefaultCookiePolicy(rfc2965=False, netscape=True))
    return CookieJar(policy=DefaultCookiePolicy())


class HttpxTransport:
    """HTTP executor backed by pooled ``httpx.Client`` instances.

    Args:
        transport: Optional httpx transport (e.g. ``httpx.MockTransport``).
            When given, proxy settings are not applied.
        verify: TLS verification flag passed to httpx.
        user_agent: Default ``User-Agent`` header.
        max_connections: Pool size per client.
    """

    def __init__(
        self,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        verify: bool = True,
        user_agent: str = DEFAULT_USER_AGENT,
        max_connections: int = 100,
    ) -> None:
        self._transport = transport
        self._verify = verify
        self._user_agent = user_agent
        self._limits = httpx.Limits(max_connections=max_connections)
        self._clients: Dict[Tuple[Optional[str], CookiePolicy], httpx.Client] = {}
        self._lock = threading.Lock()

    # ── HttpExecutor ──────────────────────────────────────────────────────────

    def execute(self, request: PreparedRequest) -> Optional[RestResponse]:
        exchange = self._exchange(request)
        client = self._client_for(request.config)
        httpx_request = client.build_request(
            request.method.value,
            request.url,
            headers=list(request.headers),
            content=request.content,
            timeout=request.config.httpx_timeout(),
        )

        response = client.send(httpx_request, stream=True)
        with exchange.lock:
            if exchange.aborted or exchange.closed:
                abandoned = True
            else:
                exchange.response = response
                abandoned = False
        if abandoned:
            response.close()
            LOGGER.debug("Discarded response for aborted %s request", request.operation_key)
            return None

        response.read()
        LOGGER.debug("HTTP status code returned by the REST resource is --> %s", response.status_code)
        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug("%s", format_headers(response.headers.multi_items(), "Response"))
        return RestResponse(
            body=self._decode_body(response, request.operation_key),
            status_code=response.status_code,
            headers=tuple(response.headers.multi_items()),
        )

    def abort(self, request: PreparedRequest) -> None:
        exchange = self._exchange(request)
        with exchange.lock:
            exchange.aborted = True
        exchange.close()
        LOGGER.debug("HTTP Request to %s resource has been aborted.", request.operation_key)

    def release(self, request: PreparedRequest) -> None:
        self._exchange(request).close()
        LOGGER.debug("Releasing the connections associated with %s resource", request.operation_key)

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def close(self) -> None:
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()

    def __enter__(self) -> "HttpxTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ── Internals ─────────────────────────────────────────────────────────────

    @staticmethod
    def _exchange(request: PreparedRequest) -> _Exchange:
        exchange = request.state.get(_EXCHANGE_KEY)
        if exchange is None:
            exchange = request.state.setdefault(_EXCHANGE_KEY, _Exchange())
        return exchange

    def _client_for(self, config: ResolvedConfig) -> httpx.Client:
        proxy_url = config.proxy.url if config.proxy is not None else None
        key = (proxy_url, config.cookie_policy)
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._build_client(proxy_url, config.cookie_policy)
                self._clients[key] = client
            return client

    def _build_client(self, proxy_url: Optional[str], cookie_policy: CookiePolicy) -> httpx.Client:
        kwargs = {
            "cookies": build_cookie_jar(cookie_policy),
            "verify": self._verify,
            "limits": self._limits,
            "headers": {"User-Agent": self._user_agent},
            "follow_redirects": False,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
            if proxy_url:
                LOGGER.debug("Custom transport installed; ignoring proxy %s", proxy_url)
        elif proxy_url:
            kwargs["proxy"] = proxy_url
        LOGGER.debug("HTTPX client created: proxy=%s, cookies=%s", proxy_url, cookie_policy.value)
        return httpx.Client(**kwargs)

    @staticmethod
    def _decode_body(response: httpx.Response, operation_key: str) -> Optional[str]:
        content = response.content
        if response.status_code == 204 and not content:
            LOGGER.debug("Http No Content response from the %s resource with null payload.", operation_key)
            return None
        encoding = response.charset_encoding or "utf-8"
        try:
            return content.decode(encoding)
        except (LookupError, UnicodeDecodeError) as exc:
            LOGGER.error(ErrorScenario.JSON_READ_FAILED.log_message(operation_key), exc_info=exc)
            raise ReadError(scenario=ErrorScenario.JSON_READ_FAILED, cause=exc) from exc
