# === NAVMAP v1 ===
# {
#   "module": "ResilientRest.classifier",
#   "purpose": "Map HTTP statuses and protected-executor failures onto the error taxonomy",
#   "sections": [
#     {
#       "id": "responseclassifier",
#       "name": "ResponseClassifier",
#       "anchor": "class-responseclassifier",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Outcome classification for protected REST calls.

Two independent inputs are classified here:

- an HTTP response (status code and body) returned by the transport, and
- a :class:`~ResilientRest.models.FailureKind` raised by the protected executor.

Status rules, first match wins:

====================  =====================================================
Status                Result
====================  =====================================================
400                   ClientSideError, message is the raw body
409                   ConflictError carrying the raw body
401-499               ClientSideError (RESPONSE_FAILURE)
500-599               ServerSideError (RESPONSE_FAILURE)
anything else         Ok, body returned as-is (``None`` for no content)
====================  =====================================================

A missing response is always ``ReadError(NULL_HTTP_RESPONSE)``.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple, Type

from ResilientRest.errors import (
    ClientSideError,
    ConflictError,
    EndpointError,
    ErrorScenario,
    ReadError,
    RestClientError,
    RestConnectionError,
    ServerSideError,
)
from ResilientRest.models import CallOutcome, Failure, FailureKind, Ok, RestResponse

__all__ = ("ResponseClassifier", "FAILURE_KIND_TABLE")

LOGGER = logging.getLogger(__name__)

FAILURE_KIND_TABLE: Dict[FailureKind, Tuple[Type[RestClientError], ErrorScenario]] = {
    FailureKind.TIMEOUT: (RestConnectionError, ErrorScenario.CB_TIMED_OUT),
    FailureKind.SHORT_CIRCUIT: (EndpointError, ErrorScenario.CB_SHORT_CIRCUITED),
    FailureKind.REJECTED_THREAD: (EndpointError, ErrorScenario.CB_REJECTED_THREAD_EXECUTION),
    FailureKind.REJECTED_SEMAPHORE_FALLBACK: (
        EndpointError,
        ErrorScenario.CB_REJECTED_SEMAPHORE_FALLBACK,
    ),
    FailureKind.REJECTED_SEMAPHORE_EXECUTION: (
        ServerSideError,
        ErrorScenario.CB_REJECTED_SEMAPHORE_EXECUTION,
    ),
    FailureKind.COMMAND_EXCEPTION: (EndpointError, ErrorScenario.CB_BAD_REQUEST),
}


class ResponseClassifier:
    """Stateless classifier; one instance can be shared by every executor."""

    def classify(self, response: Optional[RestResponse], operation_key: str) -> CallOutcome:
        """Classify a transport response into ``Ok`` or ``Failure``."""

        if response is None:
            LOGGER.error(ErrorScenario.NULL_HTTP_RESPONSE.log_message(operation_key))
            return Failure(ReadError(scenario=ErrorScenario.NULL_HTTP_RESPONSE))

        error = self.classify_status(response.status_code, response.body, operation_key)
        if error is not None:
            return Failure(error)
        if response.body is None:
            LOGGER.debug("No content returned by the %s resource", operation_key)
        return Ok(response)

    def classify_status(
        self, status_code: int, body: Optional[str], operation_key: str = ""
    ) -> Optional[RestClientError]:
        """Return the failure for ``status_code``, or ``None`` when it is not one."""

        if status_code == 400:
            LOGGER.error(ErrorScenario.CB_BAD_REQUEST.log_message(operation_key, status_code, body))
            return ClientSideError(body, status_code=status_code, body=body)
        if status_code == 409:
            LOGGER.error(
                ErrorScenario.CONFLICT_HTTP_RESPONSE.log_message(operation_key, status_code, body)
            )
            return ConflictError(
                scenario=ErrorScenario.CONFLICT_HTTP_RESPONSE, status_code=status_code, body=body
            )
        if 401 <= status_code < 500:
            LOGGER.error(ErrorScenario.RESPONSE_FAILURE.log_message(operation_key, status_code, body))
            return ClientSideError(
                scenario=ErrorScenario.RESPONSE_FAILURE, status_code=status_code, body=body
            )
        if 500 <= status_code < 600:
            LOGGER.error(ErrorScenario.RESPONSE_FAILURE.log_message(operation_key, status_code, body))
            return ServerSideError(
                scenario=ErrorScenario.RESPONSE_FAILURE, status_code=status_code, body=body
            )
        return None

    def classify_failure_kind(
        self,
        kind: FailureKind,
        operation_key: str,
        cause: Optional[BaseException] = None,
    ) -> RestClientError:
        """Map a protected-executor failure kind onto the taxonomy."""

        error_cls, scenario = FAILURE_KIND_TABLE.get(
            kind, (ServerSideError, ErrorScenario.CB_UNKNOWN_ERROR)
        )
        LOGGER.error(scenario.log_message(operation_key), exc_info=cause)
        return error_cls(scenario=scenario, failure_kind=kind, cause=cause)

    def classify_bad_request(
        self, operation_key: str, cause: Optional[BaseException] = None
    ) -> ClientSideError:
        """The protected executor rejected the caller's input."""

        LOGGER.error(ErrorScenario.CB_BAD_REQUEST.log_message(operation_key), exc_info=cause)
        return ClientSideError(scenario=ErrorScenario.CB_BAD_REQUEST, cause=cause)
