"""Assemble transport requests from resource calls.

Steps run in a fixed order: compose and validate the URI, attach headers
verbatim, attach the payload for POST/PUT, then attach the freshly resolved
transport configuration.
"""

from __future__ import annotations

import logging
import re
from typing import List, Tuple

import httpx

from ResilientRest.config.resolver import ConfigResolver
from ResilientRest.errors import (
    ClientSideError,
    ConstructionError,
    ErrorScenario,
    ProtocolError,
)
from ResilientRest.logging_utils import format_headers
from ResilientRest.models import (
    DEFAULT_CONTENT_TYPE,
    OperationIdentity,
    PreparedRequest,
    ResourceCall,
)
from ResilientRest.querystring import DEFAULT_QUERY_ENCODING, encode_query_string

__all__ = ("ResourceCallBuilder",)

LOGGER = logging.getLogger(__name__)

# Characters a strict URI parser rejects outright.
_ILLEGAL_URI_CHARS = re.compile(r"[\s<>\"{}|\\^`\x00-\x1f\x7f]")


class ResourceCallBuilder:
    """Build :class:`PreparedRequest` objects for one REST endpoint."""

    def __init__(
        self,
        endpoint: str,
        resolver: ConfigResolver,
        *,
        query_encoding: str = DEFAULT_QUERY_ENCODING,
    ) -> None:
        self.endpoint = endpoint
        self.resolver = resolver
        self.query_encoding = query_encoding

    def build(self, call: ResourceCall, identity: OperationIdentity) -> PreparedRequest:
        """Return a transport request for ``call`` under ``identity``.

        Raises:
            ClientSideError: The URI cannot be composed (URI_CREATION_FAILED).
            ProtocolError: POST/PUT without a body (NULL_REQUEST_PAYLOAD).
        """

        operation_key = identity.operation_key
        LOGGER.debug("Creating an HTTP %s request for %s resource", call.method.value, operation_key)

        url = self.create_endpoint_uri(call.resource_path, call.query_params)
        headers = self._headers(call)
        content = None
        content_type = None
        if call.method.has_body:
            content, content_type = self._payload(call, operation_key)
            if not any(name.lower() == "content-type" for name, _ in headers):
                headers.append(("Content-Type", content_type))

        request = PreparedRequest(
            method=call.method,
            url=url,
            operation_key=operation_key,
            config=self.resolver.resolve(identity.group_key_name, operation_key),
            headers=tuple(headers),
            content=content,
            content_type=content_type,
        )
        self._log_request_details(request)
        return request

    def create_endpoint_uri(self, resource_path: str, query_params) -> str:
        full_uri = self.endpoint + resource_path
        try:
            if query_params:
                full_uri += encode_query_string(query_params, self.query_encoding)
            self._validate_uri(full_uri)
        except (ConstructionError, httpx.InvalidURL, ValueError) as exc:
            LOGGER.error(ErrorScenario.URI_CREATION_FAILED.log_message(full_uri, exc))
            raise ClientSideError(scenario=ErrorScenario.URI_CREATION_FAILED, cause=exc) from exc
        return full_uri

    @staticmethod
    def _validate_uri(uri: str) -> None:
        match = _ILLEGAL_URI_CHARS.search(uri)
        if match:
            raise ValueError(f"Illegal character {match.group()!r} in URI")
        parsed = httpx.URL(uri)
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValueError("URI must be absolute http(s) with a host")

    @staticmethod
    def _headers(call: ResourceCall) -> List[Tuple[str, str]]:
        if not call.headers:
            return []
        return [(name, value) for name, value in call.headers.items()]

    @staticmethod
    def _payload(call: ResourceCall, operation_key: str) -> Tuple[bytes, str]:
        method = call.method.value
        if call.body is None:
            LOGGER.error(ErrorScenario.NULL_REQUEST_PAYLOAD.log_message(method, operation_key))
            raise ProtocolError(scenario=ErrorScenario.NULL_REQUEST_PAYLOAD)
        if call.body == "":
            LOGGER.warning(ErrorScenario.EMPTY_REQUEST_PAYLOAD.log_message(method, operation_key))

        content_type = call.content_type or DEFAULT_CONTENT_TYPE
        LOGGER.debug("Request Body --> %s", call.body)
        return call.body.encode("utf-8"), content_type

    @staticmethod
    def _log_request_details(request: PreparedRequest) -> None:
        if not LOGGER.isEnabledFor(logging.DEBUG):
            return
        LOGGER.debug("HTTP request configuration --> %s", request.config.describe())
        LOGGER.debug(request.request_line)
        LOGGER.debug("%s", format_headers(request.headers, "Request"))
