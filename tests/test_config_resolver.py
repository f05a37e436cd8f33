"""Cascading transport-config resolution from live properties."""

from __future__ import annotations

import pytest

from ResilientRest.config import (
    DEFAULT_CONNECTION_TIMEOUT_MS,
    ConfigResolver,
    CookiePolicy,
    MappingPropertySource,
)


class TestTimeoutCascade:
    def test_defaults_when_nothing_is_configured(self, resolver):
        resolved = resolver.resolve("orders", "getOrder")

        assert resolved.connect_timeout_ms == DEFAULT_CONNECTION_TIMEOUT_MS
        assert resolved.connection_request_timeout_ms == 2000
        assert resolved.socket_timeout_ms == 2000
        assert resolved.stale_connection_check is True
        assert resolved.cookie_policy is CookiePolicy.IGNORE_COOKIES
        assert resolved.proxy is None

    def test_group_value_applies_to_every_operation(self, properties, resolver):
        properties.set("http.request.orders.socketTimeout", 7000)

        assert resolver.resolve("orders", "getOrder").socket_timeout_ms == 7000
        assert resolver.resolve("orders", "listOrders").socket_timeout_ms == 7000
        assert resolver.resolve("billing", "getInvoice").socket_timeout_ms == 2000

    def test_operation_value_wins_over_group_value(self, properties, resolver):
        properties.update(
            {
                "http.request.orders.connectionTimeout": 3000,
                "http.request.getOrder.connectionTimeout": 500,
                "http.request.orders.staleConnectionCheck": "false",
                "http.request.getOrder.staleConnectionCheck": "true",
            }
        )

        resolved = resolver.resolve("orders", "getOrder")

        assert resolved.connect_timeout_ms == 500
        assert resolved.stale_connection_check is True
        assert resolver.resolve("orders", "other").connect_timeout_ms == 3000
        assert resolver.resolve("orders", "other").stale_connection_check is False

    def test_prefixed_operation_key_is_the_property_root(self, properties, resolver):
        properties.set("http.request.orders.getOrder.connectionRequestTimeout", "1234")

        assert resolver.resolve("orders", "orders.getOrder").connection_request_timeout_ms == 1234
        assert resolver.resolve("orders", "getOrder").connection_request_timeout_ms == 2000

    def test_changes_are_picked_up_on_the_next_call(self, properties, resolver):
        assert resolver.resolve("orders", "getOrder").socket_timeout_ms == 2000
        properties.set("http.request.getOrder.socketTimeout", 9000)
        assert resolver.resolve("orders", "getOrder").socket_timeout_ms == 9000
        properties.remove("http.request.getOrder.socketTimeout")
        assert resolver.resolve("orders", "getOrder").socket_timeout_ms == 2000

    def test_unparseable_value_falls_back(self, properties, resolver):
        properties.set("http.request.getOrder.socketTimeout", "soon")
        properties.set("http.request.orders.socketTimeout", "4500")

        assert resolver.resolve("orders", "getOrder").socket_timeout_ms == 4500


class TestProxy:
    def test_group_proxy_applies_when_enabled(self, properties, resolver):
        properties.update(
            {
                "http.request.orders.proxy.enabled": True,
                "http.request.orders.proxy.host": "proxy.internal",
                "http.request.orders.proxy.port": 3128,
            }
        )

        proxy = resolver.resolve("orders", "getOrder").proxy

        assert proxy is not None
        assert proxy.url == "http://proxy.internal:3128"

    def test_global_proxy_is_the_fallback(self, properties, resolver):
        properties.update(
            {"http.proxy.enabled": "true", "http.proxy.host": "global", "http.proxy.port": "8080"}
        )

        assert resolver.resolve("orders", "getOrder").proxy.host == "global"

    def test_group_can_disable_global_proxy(self, properties, resolver):
        properties.update(
            {
                "http.proxy.enabled": True,
                "http.proxy.host": "global",
                "http.proxy.port": 8080,
                "http.request.orders.proxy.enabled": False,
            }
        )

        assert resolver.resolve("orders", "getOrder").proxy is None

    @pytest.mark.parametrize(
        "values",
        [
            {"http.proxy.enabled": False, "http.proxy.host": "h", "http.proxy.port": 1},
            {"http.proxy.enabled": True, "http.proxy.port": 1},
            {"http.proxy.enabled": True, "http.proxy.host": "h", "http.proxy.port": 0},
        ],
    )
    def test_incomplete_proxy_is_ignored(self, values):
        resolver = ConfigResolver(MappingPropertySource(values))

        assert resolver.resolve("orders", "getOrder").proxy is None

    def test_proxy_is_not_read_at_operation_level(self, properties, resolver):
        properties.update(
            {
                "http.request.getOrder.proxy.enabled": True,
                "http.request.getOrder.proxy.host": "op",
                "http.request.getOrder.proxy.port": 1,
            }
        )

        assert resolver.resolve("orders", "getOrder").proxy is None


class TestCookiePolicy:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("standard", CookiePolicy.STANDARD),
            ("standard-strict", CookiePolicy.STANDARD_STRICT),
            ("netscape", CookiePolicy.NETSCAPE),
            ("ignoreCookies", CookiePolicy.IGNORE_COOKIES),
            ("bogus", CookiePolicy.IGNORE_COOKIES),
        ],
    )
    def test_group_cookie_spec(self, properties, resolver, raw, expected):
        properties.set("http.request.orders.cookieSpec", raw)

        assert resolver.resolve("orders", "getOrder").cookie_policy is expected


def test_httpx_timeout_maps_socket_to_read_and_write(properties, resolver):
    properties.update(
        {
            "http.request.orders.connectionTimeout": 100,
            "http.request.orders.socketTimeout": 250,
            "http.request.orders.connectionRequestTimeout": 50,
        }
    )

    timeout = resolver.resolve("orders", "getOrder").httpx_timeout()

    assert timeout.connect == pytest.approx(0.1)
    assert timeout.read == pytest.approx(0.25)
    assert timeout.write == pytest.approx(0.25)
    assert timeout.pool == pytest.approx(0.05)
