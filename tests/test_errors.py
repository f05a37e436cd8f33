"""Failure taxonomy, scenarios and error responses."""

from __future__ import annotations

import pytest

from ResilientRest.errors import (
    ClientSideError,
    ConflictError,
    ErrorScenario,
    ErrorType,
    RestClientError,
    RestConnectionError,
    ServerSideError,
)
from ResilientRest.models import FailureKind, RestResponse


def test_scenario_codes_are_unique():
    codes = [scenario.code for scenario in ErrorScenario]

    assert len(codes) == len(set(codes))
    assert all(code.startswith("REST-") for code in codes)


def test_log_message_fills_and_pads_arguments():
    rendered = ErrorScenario.RESPONSE_FAILURE.log_message("getOrder", 503)

    assert rendered == (
        "[REST-3001] Failure response from the getOrder resource - HTTP status 503, body: ?"
    )


def test_default_message_comes_from_scenario():
    error = ServerSideError(scenario=ErrorScenario.CB_UNKNOWN_ERROR)

    assert str(error) == ErrorScenario.CB_UNKNOWN_ERROR.message


@pytest.mark.parametrize(
    ("error", "error_type"),
    [
        (ClientSideError("x"), ErrorType.WARNING),
        (ConflictError("x"), ErrorType.WARNING),
        (ServerSideError("x"), ErrorType.FATAL),
        (RestConnectionError("x"), ErrorType.FATAL),
    ],
)
def test_error_types(error, error_type):
    assert error.to_error_response().error_type is error_type


def test_error_response_dict():
    error = RestConnectionError(scenario=ErrorScenario.CB_TIMED_OUT, failure_kind=FailureKind.TIMEOUT)

    assert error.to_error_response().to_dict() == {
        "errorType": "FATAL",
        "code": "REST-4001",
        "message": "The protected call timed out",
    }


def test_repr_includes_status_and_kind():
    error = ServerSideError(
        "down", scenario=ErrorScenario.RESPONSE_FAILURE, status_code=503, failure_kind=FailureKind.UNKNOWN
    )

    assert repr(error) == (
        "ServerSideError('down', scenario=RESPONSE_FAILURE, status_code=503, failure_kind=UNKNOWN)"
    )


def test_every_taxonomy_member_is_a_rest_client_error():
    for cls in (ClientSideError, ConflictError, ServerSideError, RestConnectionError):
        assert issubclass(cls, RestClientError)


def test_response_str_lists_headers():
    response = RestResponse(body="b", status_code=200, headers=(("a", "1"), ("b", "2")))

    assert str(response) == "HttpResponse: 200, Body: b, Headers: [a : 1,b : 2]"
    assert str(RestResponse(body=None, status_code=204)) == "HttpResponse: 204, Body: None"
