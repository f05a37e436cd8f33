"""Single-call state machine: build, dispatch, classify, release.

A call moves ``BUILT -> DISPATCHED -> COMPLETED | FAILED`` exactly once; there
are no retries. Whatever happens after dispatch, the transport's ``release`` is
invoked exactly once for the request, and executor-level failures ``abort`` the
request first so a worker that is still running cannot keep the connection.
"""

from __future__ import annotations

import logging
from typing import Optional

from ResilientRest.classifier import ResponseClassifier
from ResilientRest.errors import RestClientError
from ResilientRest.models import (
    CallOutcome,
    Failure,
    FailureKind,
    OperationIdentity,
    PreparedRequest,
    ResourceCall,
)
from ResilientRest.protected import BadRequestError, ProtectedExecutionError, ProtectedExecutor
from ResilientRest.request_builder import ResourceCallBuilder
from ResilientRest.transport import HttpExecutor

__all__ = ("CallExecutor",)

LOGGER = logging.getLogger(__name__)


class CallExecutor:
    """Run resource calls for one service group through a protected executor.

    Args:
        group_key_name: Service-level key shared by every operation.
        builder: Turns :class:`ResourceCall` objects into transport requests.
        protected: Failure-isolating boundary the exchange runs inside.
        transport: HTTP executor performing the exchange.
        classifier: Outcome classifier; a fresh one is created when omitted.
        prepend_group_key_name: Use ``"<group>.<command>"`` as the operation key.
    """

    def __init__(
        self,
        group_key_name: str,
        builder: ResourceCallBuilder,
        protected: ProtectedExecutor,
        transport: HttpExecutor,
        classifier: Optional[ResponseClassifier] = None,
        prepend_group_key_name: bool = False,
    ) -> None:
        self.group_key_name = group_key_name
        self.builder = builder
        self.protected = protected
        self.transport = transport
        self.classifier = classifier or ResponseClassifier()
        self.prepend_group_key_name = prepend_group_key_name

    def operation_identity(self, command_name: str) -> OperationIdentity:
        return OperationIdentity(
            group_key_name=self.group_key_name,
            command_name=command_name,
            prepend_group_key_name=self.prepend_group_key_name,
        )

    def execute(self, call: ResourceCall, command_name: str) -> CallOutcome:
        """Build and dispatch ``call``; never raises a :class:`RestClientError`."""

        identity = self.operation_identity(command_name)
        try:
            request = self.builder.build(call, identity)
        except RestClientError as exc:
            return Failure(exc)
        return self.dispatch(request, identity)

    def dispatch(self, request: PreparedRequest, identity: OperationIdentity) -> CallOutcome:
        operation_key = identity.operation_key
        LOGGER.debug("Dispatching %s through the protected executor", operation_key)
        try:
            response = self.protected.execute(
                identity.group_key_name,
                operation_key,
                lambda: self.transport.execute(request),
            )
        except ProtectedExecutionError as exc:
            self.transport.abort(request)
            return Failure(
                self.classifier.classify_failure_kind(exc.kind, operation_key, exc.cause or exc)
            )
        except BadRequestError as exc:
            self.transport.abort(request)
            return Failure(self.classifier.classify_bad_request(operation_key, exc))
        except RestClientError as exc:
            return Failure(exc)
        except Exception as exc:
            self.transport.abort(request)
            return Failure(
                self.classifier.classify_failure_kind(FailureKind.UNKNOWN, operation_key, exc)
            )
        finally:
            self.transport.release(request)
        return self.classifier.classify(response, operation_key)
