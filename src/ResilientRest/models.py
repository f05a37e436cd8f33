# === NAVMAP v1 ===
# {
#   "module": "ResilientRest.models",
#   "purpose": "Immutable call, identity, response and outcome types",
#   "sections": [
#     {
#       "id": "httpmethod",
#       "name": "HttpMethod",
#       "anchor": "class-httpmethod",
#       "kind": "class"
#     },
#     {
#       "id": "failurekind",
#       "name": "FailureKind",
#       "anchor": "class-failurekind",
#       "kind": "class"
#     },
#     {
#       "id": "resourcecall",
#       "name": "ResourceCall",
#       "anchor": "class-resourcecall",
#       "kind": "class"
#     },
#     {
#       "id": "operationidentity",
#       "name": "OperationIdentity",
#       "anchor": "class-operationidentity",
#       "kind": "class"
#     },
#     {
#       "id": "restresponse",
#       "name": "RestResponse",
#       "anchor": "class-restresponse",
#       "kind": "class"
#     },
#     {
#       "id": "preparedrequest",
#       "name": "PreparedRequest",
#       "anchor": "class-preparedrequest",
#       "kind": "class"
#     },
#     {
#       "id": "ok",
#       "name": "Ok",
#       "anchor": "class-ok",
#       "kind": "class"
#     },
#     {
#       "id": "failure",
#       "name": "Failure",
#       "anchor": "class-failure",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Data model shared by the builder, executors and client facades.

Everything here is a plain dataclass. Calls, identities and responses are
frozen; :class:`PreparedRequest` carries a small mutable ``state`` dictionary
that belongs to whichever transport executes it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple, Union

from ResilientRest.errors import ErrorScenario, ProtocolError, RestClientError

if TYPE_CHECKING:  # pragma: no cover
    from ResilientRest.config.models import ResolvedConfig

__all__ = (
    "HttpMethod",
    "FailureKind",
    "ResourceCall",
    "OperationIdentity",
    "RestResponse",
    "PreparedRequest",
    "Ok",
    "Failure",
    "CallOutcome",
    "DEFAULT_CONTENT_TYPE",
)

DEFAULT_CONTENT_TYPE = "text/plain; charset=UTF-8"


class HttpMethod(str, Enum):
    """Verbs supported by the REST client."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @property
    def has_body(self) -> bool:
        return self in (HttpMethod.POST, HttpMethod.PUT)


class FailureKind(str, Enum):
    """Ways the protected executor can refuse or fail to complete a call."""

    TIMEOUT = "TIMEOUT"
    SHORT_CIRCUIT = "SHORT_CIRCUIT"
    REJECTED_THREAD = "REJECTED_THREAD"
    REJECTED_SEMAPHORE_FALLBACK = "REJECTED_SEMAPHORE_FALLBACK"
    REJECTED_SEMAPHORE_EXECUTION = "REJECTED_SEMAPHORE_EXECUTION"
    COMMAND_EXCEPTION = "COMMAND_EXCEPTION"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class ResourceCall:
    """One logical request against a REST resource.

    ``body`` is required for POST and PUT; a ``None`` body is rejected when the
    request is built, an empty string only produces a warning.
    """

    method: HttpMethod
    resource_path: str
    query_params: Mapping[str, str] = field(default_factory=dict)
    headers: Optional[Mapping[str, str]] = None
    body: Optional[str] = None
    content_type: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.method, HttpMethod):
            object.__setattr__(self, "method", HttpMethod(str(self.method).upper()))
        if not isinstance(self.resource_path, str) or not self.resource_path.startswith("/"):
            raise ProtocolError(
                f"Resource path must start with '/': {self.resource_path!r}",
                scenario=ErrorScenario.INVALID_RESOURCE_PATH,
            )
        if self.query_params is None:
            object.__setattr__(self, "query_params", {})


@dataclass(frozen=True)
class OperationIdentity:
    """Service-level group key plus operation-level command name."""

    group_key_name: str
    command_name: str
    prepend_group_key_name: bool = False

    @property
    def operation_key(self) -> str:
        """Key used for isolation, configuration lookup and caching."""

        if self.prepend_group_key_name and self.command_name is not None:
            return f"{self.group_key_name}.{self.command_name}"
        return self.command_name


@dataclass(frozen=True)
class RestResponse:
    """Status, decoded body and headers of one HTTP exchange."""

    body: Optional[str]
    status_code: int
    headers: Tuple[Tuple[str, str], ...] = ()

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def __str__(self) -> str:
        message = f"HttpResponse: {self.status_code}, Body: {self.body}"
        if self.headers:
            rendered = ",".join(f"{name} : {value}" for name, value in self.headers)
            message += f", Headers: [{rendered}]"
        return message


@dataclass
class PreparedRequest:
    """Transport-ready request produced by the resource call builder."""

    method: HttpMethod
    url: str
    operation_key: str
    config: "ResolvedConfig"
    headers: Tuple[Tuple[str, str], ...] = ()
    content: Optional[bytes] = None
    content_type: Optional[str] = None
    state: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @property
    def request_line(self) -> str:
        return f"{self.method.value} {self.url} HTTP/1.1"


@dataclass(frozen=True)
class Ok:
    """Successful outcome wrapping the classified response."""

    value: RestResponse

    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> RestResponse:
        return self.value


@dataclass(frozen=True)
class Failure:
    """Failed outcome wrapping exactly one typed failure."""

    error: RestClientError

    def is_ok(self) -> bool:
        return False

    def unwrap(self) -> RestResponse:
        raise self.error from self.error.cause


CallOutcome = Union[Ok, Failure]
