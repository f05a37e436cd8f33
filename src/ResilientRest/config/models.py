"""
Pydantic v2 Configuration Models for ResilientRest

Provides strict, typed configuration for:
- Client identity and endpoint (ClientSettings)
- Per-call transport settings resolved from properties (ResolvedConfig)
- Protected-executor policies: breaker thresholds, isolation, pools (ProtectionPolicy)
- Default, per-operation and per-group protection overrides (ProtectionConfig)

All models use extra="forbid" for strict validation.
"""

from __future__ import annotations

from enum import Enum
from typing import ClassVar, Dict, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_CONNECTION_TIMEOUT_MS = 2000
DEFAULT_CONNECTION_REQUEST_TIMEOUT_MS = 2000
DEFAULT_SOCKET_TIMEOUT_MS = 2000
DEFAULT_STALE_CONNECTION_CHECK = True


class CookiePolicy(str, Enum):
    """Cookie handling applied by the transport."""

    IGNORE_COOKIES = "ignoreCookies"
    STANDARD = "standard"
    STANDARD_STRICT = "standard-strict"
    NETSCAPE = "netscape"


class IsolationStrategy(str, Enum):
    """How the protected executor bounds concurrent calls."""

    THREAD = "thread"
    SEMAPHORE = "semaphore"


class ProxySettings(BaseModel):
    """HTTP proxy used for a call."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)

    host: str
    port: int

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


class ResolvedConfig(BaseModel):
    """Transport settings for a single call. Resolved fresh on every call."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)

    connect_timeout_ms: int = DEFAULT_CONNECTION_TIMEOUT_MS
    connection_request_timeout_ms: int = DEFAULT_CONNECTION_REQUEST_TIMEOUT_MS
    socket_timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS
    stale_connection_check: bool = DEFAULT_STALE_CONNECTION_CHECK
    cookie_policy: CookiePolicy = CookiePolicy.IGNORE_COOKIES
    proxy: Optional[ProxySettings] = None

    def httpx_timeout(self) -> httpx.Timeout:
        """Map onto httpx phases: socket covers read and write, pool is acquisition."""

        socket_s = self.socket_timeout_ms / 1000.0
        return httpx.Timeout(
            connect=self.connect_timeout_ms / 1000.0,
            read=socket_s,
            write=socket_s,
            pool=self.connection_request_timeout_ms / 1000.0,
        )

    def describe(self) -> str:
        return (
            f"connectTimeout: {self.connect_timeout_ms}"
            f", connectionRequestTimeout: {self.connection_request_timeout_ms}"
            f", socketTimeout: {self.socket_timeout_ms}"
            f", staleConnectionCheck: {str(self.stale_connection_check).lower()}"
            f", cookieSpec: {self.cookie_policy.value}"
        )


class ClientSettings(BaseModel):
    """Identity and endpoint of one REST API client."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    group_key_name: str = Field(description="Service-level group key")
    endpoint: str = Field(description="Base URL prepended to every resource path")
    prepend_group_key_name: bool = Field(
        default=False, description="Prefix operation keys with the group key"
    )
    query_encoding: str = Field(default="utf-8", description="Query-string character encoding")

    @field_validator("group_key_name", "endpoint")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v


class ProtectionPolicy(BaseModel):
    """Breaker, timeout and isolation knobs for protected calls."""

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid", frozen=True)

    fail_max: int = Field(default=5, description="Consecutive failures that open the breaker")
    reset_timeout_s: float = Field(default=5.0, description="Seconds before a half-open probe")
    timeout_enabled: bool = Field(default=True, description="Enforce execution_timeout_ms")
    execution_timeout_ms: int = Field(
        default=1000,
        description="Execution timeout; semaphore mode reports an overrun once the call returns",
    )
    isolation: IsolationStrategy = Field(default=IsolationStrategy.THREAD)
    pool_size: int = Field(default=10, description="Worker threads per group (thread mode)")
    max_queue_size: int = Field(default=5, description="Queued calls per group before rejection")
    max_concurrent_requests: int = Field(
        default=10, description="Concurrent calls per operation (semaphore mode)"
    )

    @field_validator("fail_max", "pool_size", "max_concurrent_requests")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("reset_timeout_s", "execution_timeout_ms", "max_queue_size")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v


class ProtectionConfig(BaseModel):
    """
    Fully-resolved protection config:
    - defaults: applied to unknown operations and groups
    - operations: operation-key specific breaker/timeout/isolation policies
    - groups: group-key specific worker pool sizing
    """

    model_config: ClassVar[ConfigDict] = ConfigDict(extra="forbid")

    defaults: ProtectionPolicy = Field(default_factory=ProtectionPolicy)
    operations: Dict[str, ProtectionPolicy] = Field(default_factory=dict)
    groups: Dict[str, ProtectionPolicy] = Field(default_factory=dict)

    def policy_for(self, operation_key: str) -> ProtectionPolicy:
        return self.operations.get(operation_key) or self.defaults

    def pool_policy_for(self, group_key: str) -> ProtectionPolicy:
        return self.groups.get(group_key) or self.defaults
