"""Public API for the ResilientRest outbound REST call core.

This facade exposes the client entry points (:class:`RestClient`,
:class:`CachingRestClient`), the lower-level pipeline pieces they are built
from, and the typed failure taxonomy every call can raise.
"""

from __future__ import annotations

from .cache import CachedCallExecutor, InMemoryResultCache, ResultCache
from .classifier import FAILURE_KIND_TABLE, ResponseClassifier
from .client import CachingRestClient, RestClient
from .config import (
    ClientSettings,
    ConfigResolver,
    CookiePolicy,
    MappingPropertySource,
    PropertySource,
    ProtectionConfig,
    ProtectionPolicy,
    ResolvedConfig,
    load_properties,
    load_protection_config,
)
from .errors import (
    ClientSideError,
    ConflictError,
    ConstructionError,
    EndpointError,
    ErrorScenario,
    ErrorType,
    ProtocolError,
    ReadError,
    RestClientError,
    RestConnectionError,
    RestErrorResponse,
    ServerSideError,
)
from .executor import CallExecutor
from .logging_utils import setup_logging
from .models import (
    CallOutcome,
    Failure,
    FailureKind,
    HttpMethod,
    Ok,
    OperationIdentity,
    PreparedRequest,
    ResourceCall,
    RestResponse,
)
from .protected import BadRequestError, BreakerExecutor, ProtectedExecutionError, ProtectedExecutor
from .querystring import encode_query_string
from .request_builder import ResourceCallBuilder
from .transport import HttpExecutor, HttpxTransport

__version__ = "0.1.0"

__all__ = [
    # Clients
    "RestClient",
    "CachingRestClient",
    # Pipeline
    "CallExecutor",
    "CachedCallExecutor",
    "InMemoryResultCache",
    "ResultCache",
    "ResourceCallBuilder",
    "ResponseClassifier",
    "FAILURE_KIND_TABLE",
    "BreakerExecutor",
    "ProtectedExecutor",
    "ProtectedExecutionError",
    "BadRequestError",
    "HttpExecutor",
    "HttpxTransport",
    "encode_query_string",
    # Models
    "HttpMethod",
    "FailureKind",
    "ResourceCall",
    "OperationIdentity",
    "PreparedRequest",
    "RestResponse",
    "Ok",
    "Failure",
    "CallOutcome",
    # Config
    "ClientSettings",
    "ConfigResolver",
    "CookiePolicy",
    "MappingPropertySource",
    "PropertySource",
    "ProtectionConfig",
    "ProtectionPolicy",
    "ResolvedConfig",
    "load_properties",
    "load_protection_config",
    # Errors
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
    # Logging
    "setup_logging",
]
