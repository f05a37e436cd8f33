"""Query-string construction for resource calls."""

from __future__ import annotations

import logging
from typing import Mapping, Optional
from urllib.parse import quote_plus

from ResilientRest.errors import ConstructionError, ErrorScenario

__all__ = ("DEFAULT_QUERY_ENCODING", "encode_query_string")

LOGGER = logging.getLogger(__name__)

DEFAULT_QUERY_ENCODING = "utf-8"
QUERY_PREFIX = "?"
QUERY_SEPARATOR = "&"


def encode_query_string(
    params: Optional[Mapping[str, str]], encoding: str = DEFAULT_QUERY_ENCODING
) -> str:
    """Return ``?k1=v1&k2=v2`` with every key and value form-encoded.

    Pairs keep the iteration order of ``params``; pass an ordered mapping for
    deterministic output.

    Raises:
        ConstructionError: ``params`` is ``None`` or empty, holds a ``None``
            key or value, or ``encoding`` cannot encode it.
    """

    if not params:
        raise ConstructionError(scenario=ErrorScenario.INVALID_QUERY_PARAMS)

    pairs = []
    for key, value in params.items():
        if key is None or value is None:
            raise ConstructionError(
                f"Query parameter {key!r} has a null key or value",
                scenario=ErrorScenario.INVALID_QUERY_PARAMS,
            )
        try:
            pairs.append(
                f"{quote_plus(str(key), encoding=encoding)}={quote_plus(str(value), encoding=encoding)}"
            )
        except (LookupError, UnicodeEncodeError) as exc:
            LOGGER.debug("Cannot encode query parameter %r with %s: %s", key, encoding, exc)
            raise ConstructionError(
                f"Cannot encode query parameter {key!r} as {encoding}",
                scenario=ErrorScenario.INVALID_QUERY_PARAMS,
                cause=exc,
            ) from exc

    return QUERY_PREFIX + QUERY_SEPARATOR.join(pairs)
