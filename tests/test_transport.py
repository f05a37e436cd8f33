"""HTTPX transport: decoding, headers, timeouts, cookies and release."""

from __future__ import annotations

import httpx
import pytest

from ResilientRest.config import CookiePolicy, ResolvedConfig
from ResilientRest.config.models import ProxySettings
from ResilientRest.errors import ErrorScenario, ReadError
from ResilientRest.models import HttpMethod, PreparedRequest
from ResilientRest.transport import HttpxTransport, build_cookie_jar


def _request(method=HttpMethod.GET, url="https://api.example.org/orders", **kwargs):
    kwargs.setdefault("config", ResolvedConfig())
    return PreparedRequest(method=method, url=url, operation_key="getOrder", **kwargs)


@pytest.fixture
def seen():
    return []


@pytest.fixture
def transport_factory(seen):
    created = []

    def factory(handler):
        def recording(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return handler(request)

        transport = HttpxTransport(transport=httpx.MockTransport(recording))
        created.append(transport)
        return transport

    yield factory
    for transport in created:
        transport.close()


def test_body_status_and_headers(transport_factory):
    transport = transport_factory(
        lambda request: httpx.Response(200, text="hello", headers={"X-Request-Id": "abc"})
    )

    result = transport.execute(_request())

    assert result.status_code == 200
    assert result.body == "hello"
    assert result.header("x-request-id") == "abc"
    assert "x-request-id : abc" in str(result)


def test_no_content_has_none_body(transport_factory):
    transport = transport_factory(lambda request: httpx.Response(204))

    result = transport.execute(_request(method=HttpMethod.DELETE))

    assert result.status_code == 204
    assert result.body is None


def test_error_status_is_returned_not_raised(transport_factory):
    transport = transport_factory(lambda request: httpx.Response(503, text="down"))

    result = transport.execute(_request())

    assert (result.status_code, result.body) == (503, "down")


def test_body_uses_declared_charset(transport_factory):
    transport = transport_factory(
        lambda request: httpx.Response(
            200,
            content="café".encode("latin-1"),
            headers={"Content-Type": "text/plain; charset=latin-1"},
        )
    )

    assert transport.execute(_request()).body == "café"


def test_undecodable_body_is_a_read_error(transport_factory):
    transport = transport_factory(lambda request: httpx.Response(200, content=b"\xff\xfe\xfa"))

    with pytest.raises(ReadError) as excinfo:
        transport.execute(_request())

    assert excinfo.value.scenario is ErrorScenario.JSON_READ_FAILED


def test_request_carries_method_headers_body_and_timeouts(transport_factory, seen):
    transport = transport_factory(lambda request: httpx.Response(201, text="created"))
    config = ResolvedConfig(
        connect_timeout_ms=100, socket_timeout_ms=300, connection_request_timeout_ms=50
    )
    request = _request(
        method=HttpMethod.POST,
        headers=(("Content-Type", "application/json"), ("X-Trace", "t1")),
        content=b'{"id": 1}',
        config=config,
    )

    transport.execute(request)

    (sent,) = seen
    assert sent.method == "POST"
    assert sent.headers["X-Trace"] == "t1"
    assert sent.headers["Content-Type"] == "application/json"
    assert sent.content == b'{"id": 1}'
    assert sent.extensions["timeout"] == {"connect": 0.1, "read": 0.3, "write": 0.3, "pool": 0.05}


def test_redirects_are_not_followed(transport_factory, seen):
    transport = transport_factory(
        lambda request: httpx.Response(302, headers={"Location": "https://elsewhere.example.org/"})
    )

    result = transport.execute(_request())

    assert result.status_code == 302
    assert len(seen) == 1


def test_transport_errors_propagate(transport_factory):
    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    transport = transport_factory(refuse)

    with pytest.raises(httpx.ConnectError):
        transport.execute(_request())


class TestRelease:
    def test_release_and_abort_are_idempotent(self, transport_factory):
        transport = transport_factory(lambda request: httpx.Response(200, text="ok"))
        request = _request()
        transport.execute(request)

        transport.release(request)
        transport.release(request)
        transport.abort(request)

    def test_release_before_execute_is_safe(self, transport_factory):
        transport = transport_factory(lambda request: httpx.Response(200))

        transport.abort(_request())
        transport.release(_request())

    def test_aborted_request_discards_late_response(self, transport_factory):
        transport = transport_factory(lambda request: httpx.Response(200, text="late"))
        request = _request()
        transport.abort(request)

        assert transport.execute(request) is None


class TestClients:
    def test_one_client_per_proxy_and_cookie_policy(self, transport_factory):
        transport = transport_factory(lambda request: httpx.Response(200))
        plain = ResolvedConfig()
        proxied = ResolvedConfig(proxy=ProxySettings(host="proxy", port=3128))
        cookies = ResolvedConfig(cookie_policy=CookiePolicy.STANDARD)

        for config in (plain, plain, proxied, cookies):
            transport.execute(_request(config=config))

        assert len(transport._clients) == 3


@pytest.mark.parametrize(
    ("policy", "accepts"),
    [
        (CookiePolicy.IGNORE_COOKIES, False),
        (CookiePolicy.STANDARD, True),
        (CookiePolicy.NETSCAPE, True),
    ],
)
def test_cookie_jar_policy(policy, accepts):
    jar = build_cookie_jar(policy)
    request = httpx.Request("GET", "https://api.example.org/orders")
    response = httpx.Response(200, headers={"Set-Cookie": "session=abc; Path=/"}, request=request)

    httpx.Cookies(jar).extract_cookies(response)

    assert (len(jar) == 1) is accepts


def test_standard_strict_is_rfc2965_and_domain_strict():
    policy = build_cookie_jar(CookiePolicy.STANDARD_STRICT)._policy

    assert policy.rfc2965 is True
    assert policy.strict_ns_domain == policy.DomainStrict
