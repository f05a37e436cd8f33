"""Dynamic property sources consulted on every call.

A :class:`PropertySource` answers typed lookups with a caller-supplied
fallback, so cascades read naturally::

    props.get_int("http.request.getOrder.socketTimeout",
                  props.get_int("http.request.orders.socketTimeout", 2000))

Values may change between calls; nothing here caches a resolved value.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Mapping, Optional, Protocol

__all__ = ("PropertySource", "MappingPropertySource")

LOGGER = logging.getLogger(__name__)

_TRUE = frozenset({"true", "yes", "on", "1"})
_FALSE = frozenset({"false", "no", "off", "0"})


class PropertySource(Protocol):
    """Typed key/value lookups with live updates."""

    def get_int(self, key: str, default: Optional[int]) -> Optional[int]: ...
    def get_bool(self, key: str, default: Optional[bool]) -> Optional[bool]: ...
    def get_string(self, key: str, default: Optional[str]) -> Optional[str]: ...


class MappingPropertySource:
    """Thread-safe, in-process property store.

    Keys are case-sensitive, so ``getOrder`` and ``GetOrder`` carry separate
    settings. Values applied through :meth:`overlay` (environment variables,
    whose names arrive upper-cased) match case-insensitively instead: they
    replace every key they fold onto and answer lookups that have no exact key.
    Unparseable values are logged and treated as absent.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._lock = threading.RLock()
        self._values: Dict[str, Any] = {}
        self._folded: Dict[str, Any] = {}
        if values:
            self.update(values)

    # ── Mutation ──────────────────────────────────────────────────────────────

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key.strip()] = value

    def update(self, values: Mapping[str, Any]) -> None:
        with self._lock:
            for key, value in values.items():
                self._values[key.strip()] = value

    def overlay(self, values: Mapping[str, Any]) -> None:
        """Apply case-insensitive values on top of the exact keys."""

        with self._lock:
            for key, value in values.items():
                folded = _fold(key)
                for existing in [name for name in self._values if _fold(name) == folded]:
                    self._values[existing] = value
                self._folded[folded] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._values.pop(key.strip(), None)
            self._folded.pop(_fold(key), None)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            merged = dict(self._folded)
            merged.update(self._values)
            return merged

    # ── Lookups ───────────────────────────────────────────────────────────────

    def _raw(self, key: str) -> Any:
        key = key.strip()
        with self._lock:
            if key in self._values:
                return self._values[key]
            return self._folded.get(_fold(key))

    def get_int(self, key: str, default: Optional[int]) -> Optional[int]:
        value = self._raw(key)
        if value is None:
            return default
        if isinstance(value, bool):
            LOGGER.warning("Property %s has boolean value %r; expected int", key, value)
            return default
        try:
            return int(str(value).strip()) if isinstance(value, str) else int(value)
        except (TypeError, ValueError):
            LOGGER.warning("Property %s has non-integer value %r; using fallback", key, value)
            return default

    def get_bool(self, key: str, default: Optional[bool]) -> Optional[bool]:
        value = self._raw(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        LOGGER.warning("Property %s has non-boolean value %r; using fallback", key, value)
        return default

    def get_string(self, key: str, default: Optional[str]) -> Optional[str]:
        value = self._raw(key)
        if value is None:
            return default
        return str(value)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._raw(key) is not None

    def __len__(self) -> int:
        return len(self.snapshot())


def _fold(key: str) -> str:
    return key.strip().lower()
