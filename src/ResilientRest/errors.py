# === NAVMAP v1 ===
# {
#   "module": "ResilientRest.errors",
#   "purpose": "Typed failure taxonomy and log message templates for REST calls",
#   "sections": [
#     {
#       "id": "errorscenario",
#       "name": "ErrorScenario",
#       "anchor": "class-errorscenario",
#       "kind": "class"
#     },
#     {
#       "id": "resterrorresponse",
#       "name": "RestErrorResponse",
#       "anchor": "class-resterrorresponse",
#       "kind": "class"
#     },
#     {
#       "id": "restclienterror",
#       "name": "RestClientError",
#       "anchor": "class-restclienterror",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Caller-visible failure taxonomy for protected REST calls.

Responsibilities
----------------
- Define the closed set of exception types a caller can receive from a
  :class:`~ResilientRest.client.RestClient` call. Each failed call surfaces
  exactly one of them.
- Enumerate the :class:`ErrorScenario` values that explain *why* a failure was
  raised, together with a stable code and a log template so every failure path
  emits the same wording.
- Provide :class:`RestErrorResponse`, a small serialisable view of a failure
  suitable for returning to upstream callers.

Design Notes
------------
- The module imports nothing else from the package so that every layer (models,
  builders, executors) can raise these types without import cycles.
- ``RestConnectionError`` is the taxonomy's "connection error"; the name avoids
  shadowing the built-in :class:`ConnectionError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar, Dict, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from ResilientRest.models import FailureKind

__all__ = (
    "ErrorScenario",
    "ErrorType",
    "RestErrorResponse",
    "RestClientError",
    "ProtocolError",
    "ReadError",
    "ClientSideError",
    "ServerSideError",
    "ConflictError",
    "RestConnectionError",
    "EndpointError",
    "ConstructionError",
)


class ErrorType(str, Enum):
    """Severity attached to an error response."""

    FATAL = "FATAL"
    WARNING = "WARNING"


class ErrorScenario(str, Enum):
    """Why a call failed. Values double as stable identifiers in logs."""

    URI_CREATION_FAILED = "URI_CREATION_FAILED"
    INVALID_RESOURCE_PATH = "INVALID_RESOURCE_PATH"
    INVALID_QUERY_PARAMS = "INVALID_QUERY_PARAMS"
    NULL_REQUEST_PAYLOAD = "NULL_REQUEST_PAYLOAD"
    EMPTY_REQUEST_PAYLOAD = "EMPTY_REQUEST_PAYLOAD"
    NULL_HTTP_RESPONSE = "NULL_HTTP_RESPONSE"
    JSON_READ_FAILED = "JSON_READ_FAILED"
    RESPONSE_FAILURE = "RESPONSE_FAILURE"
    CONFLICT_HTTP_RESPONSE = "CONFLICT_HTTP_RESPONSE"
    CB_TIMED_OUT = "CB_TIMED_OUT"
    CB_SHORT_CIRCUITED = "CB_SHORT_CIRCUITED"
    CB_REJECTED_THREAD_EXECUTION = "CB_REJECTED_THREAD_EXECUTION"
    CB_REJECTED_SEMAPHORE_FALLBACK = "CB_REJECTED_SEMAPHORE_FALLBACK"
    CB_REJECTED_SEMAPHORE_EXECUTION = "CB_REJECTED_SEMAPHORE_EXECUTION"
    CB_BAD_REQUEST = "CB_BAD_REQUEST"
    CB_UNKNOWN_ERROR = "CB_UNKNOWN_ERROR"

    @property
    def code(self) -> str:
        return _SCENARIO_DETAILS[self][0]

    @property
    def message(self) -> str:
        return _SCENARIO_DETAILS[self][1]

    def log_message(self, *args: Any) -> str:
        """Render the scenario's log template with positional ``args``.

        Missing arguments render as ``?``.
        """

        template = _SCENARIO_DETAILS[self][2]
        expected = template.count("{}")
        values = list(args[:expected]) + ["?"] * max(0, expected - len(args))
        return f"[{self.code}] " + template.format(*values)


# scenario -> (code, caller message, log template)
_SCENARIO_DETAILS: Dict[ErrorScenario, Tuple[str, str, str]] = {
    ErrorScenario.URI_CREATION_FAILED: (
        "REST-1001",
        "Unable to create the request URI",
        "Failed to create URI {} - {}",
    ),
    ErrorScenario.INVALID_RESOURCE_PATH: (
        "REST-1002",
        "Resource path must start with '/'",
        "Invalid resource path {} for {} request",
    ),
    ErrorScenario.INVALID_QUERY_PARAMS: (
        "REST-1003",
        "Cannot create a query string if no query params are provided",
        "Invalid query parameters: {}",
    ),
    ErrorScenario.NULL_REQUEST_PAYLOAD: (
        "REST-1004",
        "Request payload must not be null",
        "Null payload supplied for HTTP {} request to the {} resource",
    ),
    ErrorScenario.EMPTY_REQUEST_PAYLOAD: (
        "REST-1005",
        "Request payload is empty",
        "Empty payload supplied for HTTP {} request to the {} resource",
    ),
    ErrorScenario.NULL_HTTP_RESPONSE: (
        "REST-2001",
        "No HTTP response was returned",
        "Null HTTP response returned by the {} resource",
    ),
    ErrorScenario.JSON_READ_FAILED: (
        "REST-2002",
        "Unable to read the HTTP response body",
        "Failed to read the response body returned by the {} resource",
    ),
    ErrorScenario.RESPONSE_FAILURE: (
        "REST-3001",
        "The REST resource returned a failure response",
        "Failure response from the {} resource - HTTP status {}, body: {}",
    ),
    ErrorScenario.CONFLICT_HTTP_RESPONSE: (
        "REST-3002",
        "The resource state conflicts with the request",
        "Conflict response from the {} resource - HTTP status {}, body: {}",
    ),
    ErrorScenario.CB_TIMED_OUT: (
        "REST-4001",
        "The protected call timed out",
        "Circuit breaker timed out calling the {} resource",
    ),
    ErrorScenario.CB_SHORT_CIRCUITED: (
        "REST-4002",
        "The circuit breaker is open",
        "Circuit breaker short-circuited the call to the {} resource",
    ),
    ErrorScenario.CB_REJECTED_THREAD_EXECUTION: (
        "REST-4003",
        "The worker pool rejected the call",
        "Worker pool exhausted; call to the {} resource rejected",
    ),
    ErrorScenario.CB_REJECTED_SEMAPHORE_FALLBACK: (
        "REST-4004",
        "The fallback was rejected",
        "Fallback semaphore rejected for the {} resource",
    ),
    ErrorScenario.CB_REJECTED_SEMAPHORE_EXECUTION: (
        "REST-4005",
        "The execution semaphore rejected the call",
        "Execution semaphore rejected the call to the {} resource",
    ),
    ErrorScenario.CB_BAD_REQUEST: (
        "REST-4006",
        "The request was rejected as a bad request",
        "Bad request to the {} resource - HTTP status {}, body: {}",
    ),
    ErrorScenario.CB_UNKNOWN_ERROR: (
        "REST-4007",
        "Unknown failure while calling the resource",
        "Unknown circuit breaker failure calling the {} resource",
    ),
}


@dataclass
class RestErrorResponse:
    """Serialisable description of a failed call."""

    error_type: Optional[ErrorType] = None
    code: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "errorType": self.error_type.value if self.error_type else None,
            "code": self.code,
            "message": self.message,
        }


class RestClientError(Exception):
    """Base class of every failure a REST call can surface.

    Attributes:
        scenario: Why the failure happened, when known.
        status_code: HTTP status of the response that caused it, if any.
        failure_kind: Protected-executor failure kind, if any.
        body: Raw response body, if any.
        cause: Underlying exception, also chained as ``__cause__`` by raisers.
    """

    error_type: ClassVar[ErrorType] = ErrorType.FATAL

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        scenario: Optional[ErrorScenario] = None,
        status_code: Optional[int] = None,
        failure_kind: Optional["FailureKind"] = None,
        body: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        if message is None:
            message = scenario.message if scenario is not None else self.__class__.__name__
        super().__init__(message)
        self.message = message
        self.scenario = scenario
        self.status_code = status_code
        self.failure_kind = failure_kind
        self.body = body
        self.cause = cause

    def to_error_response(self) -> RestErrorResponse:
        """Return the caller-facing summary of this failure."""

        code = self.scenario.code if self.scenario is not None else None
        return RestErrorResponse(error_type=self.error_type, code=code, message=self.message)

    def __repr__(self) -> str:
        parts = [repr(self.message)]
        if self.scenario is not None:
            parts.append(f"scenario={self.scenario.value}")
        if self.status_code is not None:
            parts.append(f"status_code={self.status_code}")
        if self.failure_kind is not None:
            parts.append(f"failure_kind={getattr(self.failure_kind, 'value', self.failure_kind)}")
        return f"{self.__class__.__name__}({', '.join(parts)})"


class ProtocolError(RestClientError):
    """Malformed call construction (null body on POST/PUT, bad resource path)."""


class ReadError(RestClientError):
    """The transport returned nothing, or the body could not be decoded."""


class ClientSideError(RestClientError):
    """The caller or the request is at fault (HTTP 400, 401-499, bad request)."""

    error_type = ErrorType.WARNING


class ServerSideError(RestClientError):
    """Remote or infrastructure fault (HTTP 5xx, unknown executor failure)."""


class ConflictError(RestClientError):
    """HTTP 409: the resource state conflicts with the request."""

    error_type = ErrorType.WARNING


class RestConnectionError(RestClientError):
    """The protected executor timed out waiting for the remote resource."""


class EndpointError(RestClientError):
    """The endpoint or its isolation boundary is unhealthy (open breaker, rejection)."""


class ConstructionError(RestClientError):
    """Input validation failure in a helper (e.g. empty query-parameter set)."""
