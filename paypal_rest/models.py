"""Internal data models for paypal-rest.

All models use Pydantic v2. Everything here is immutable: a descriptor or
connection parameter set is built once per call and never edited.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Call Identity
# =============================================================================


class HttpMethod(str, Enum):
    """HTTP verbs accepted by the executor."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"

    @classmethod
    def coerce(cls, value: HttpMethod | str) -> HttpMethod:
        """Accept enum members or case-insensitive verb strings."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            raise ValueError(f"Unsupported HTTP method: {value!r}") from None


class CallContext(BaseModel):
    """Per-call identity: the access token and an optional request id.

    The request id is sent as an idempotency key so that the service can
    de-duplicate retried POSTs issued by the caller.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    access_token: str = Field(description="Value of the Authorization header")
    request_id: str | None = Field(default=None, description="Optional idempotency key")

    @field_validator("access_token")
    @classmethod
    def check_token(cls, v: str) -> str:
        if not v:
            raise ValueError("access_token must not be empty")
        return v


# =============================================================================
# Connection Parameters
# =============================================================================


class ProxyConfig(BaseModel):
    """Outbound proxy settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    host: str = Field(description="Proxy host name")
    port: int = Field(description="Proxy port")
    username: str | None = Field(default=None, description="Proxy user")
    password: str | None = Field(default=None, description="Proxy password")

    @property
    def url(self) -> str:
        if self.username:
            credentials = self.username
            if self.password:
                credentials += f":{self.password}"
            return f"http://{credentials}@{self.host}:{self.port}"
        return f"http://{self.host}:{self.port}"


class HttpConfiguration(BaseModel):
    """Connection parameters for a single call.

    Frozen and hashable so the connection provider can use the transport
    subset as a pool key.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    endpoint_url: str = Field(description="Base URL every resource path resolves against")
    http_method: HttpMethod = Field(default=HttpMethod.GET, description="Verb for this call")
    connect_timeout: float | None = Field(default=None, description="Seconds; None = httpx default")
    read_timeout: float | None = Field(default=None, description="Seconds; None = httpx default")
    max_connections: int | None = Field(default=None, description="Pool size limit")
    proxy: ProxyConfig | None = Field(default=None, description="Proxy, if enabled")
    verify_ssl: bool = Field(default=True, description="Verify server certificates")
    ca_bundle: str | None = Field(default=None, description="Path to a CA bundle")
    cert: str | None = Field(default=None, description="Client certificate (mTLS)")
    key: str | None = Field(default=None, description="Client private key (mTLS)")

    def transport_key(self) -> HttpConfiguration:
        """The parameters that shape the transport, with the verb normalised away."""
        return self.model_copy(update={"http_method": HttpMethod.GET})


# =============================================================================
# Request Descriptor
# =============================================================================


class RequestDescriptor(BaseModel):
    """Everything needed to dispatch one call, minus the payload.

    Headers are complete when the descriptor is built; nothing is added
    between building and sending.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: HttpMethod = Field(description="HTTP verb")
    resource_path: str = Field(description="Path relative to the base URL")
    headers: dict[str, str] = Field(description="Fully populated request headers")
    base_url: str = Field(description="Configured endpoint, resolved against as written")
    http_configuration: HttpConfiguration = Field(description="Connection parameters")
