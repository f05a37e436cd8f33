"""
Pytest Configuration

Shared fixtures for the ResilientRest suite: a live property source, a
resolver/builder pair pointed at a fixed endpoint, and scripted fakes for the
protected executor and the transport.
"""

from __future__ import annotations

import logging

import pytest

from ResilientRest.config import ConfigResolver, MappingPropertySource
from ResilientRest.executor import CallExecutor
from ResilientRest.request_builder import ResourceCallBuilder
from tests.fakes import FakeProtectedExecutor, FakeTransport

ENDPOINT = "https://api.example.org"
GROUP = "orders"


@pytest.fixture
def properties() -> MappingPropertySource:
    return MappingPropertySource()


@pytest.fixture
def resolver(properties) -> ConfigResolver:
    return ConfigResolver(properties)


@pytest.fixture
def builder(resolver) -> ResourceCallBuilder:
    return ResourceCallBuilder(ENDPOINT, resolver)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_protected() -> FakeProtectedExecutor:
    return FakeProtectedExecutor()


@pytest.fixture
def call_executor(builder, fake_protected, fake_transport) -> CallExecutor:
    return CallExecutor(GROUP, builder, fake_protected, fake_transport)


@pytest.fixture(autouse=True)
def _restore_package_logger():
    """Undo ``setup_logging`` side effects so caplog keeps seeing records."""
    logger = logging.getLogger("ResilientRest")
    level, propagate = logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if getattr(handler, "_restcore_managed", False):
            logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate
