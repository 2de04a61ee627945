"""Resource - Executes REST calls and deserializes their responses.

RestClient is the single funnel every call goes through: it makes sure the
configuration is loaded, builds the request descriptor, resolves the URL,
dispatches through the connection provider, records diagnostics, and decodes
the JSON reply. Whatever goes wrong along the way reaches the caller as a
RESTCallError.

The module-level functions (init_config, configure_and_execute,
get_last_request, get_last_response) operate on one process-wide default
client, for resource classes that do not carry a client of their own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Any, Generic, Self, TypeVar
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict

from paypal_rest.codec import CodecError, JSONCodec
from paypal_rest.config_store import ConfigError, ConfigSource, ConfigStore
from paypal_rest.connection import ConnectionProvider, HttpConnectionError, HttpStatusError
from paypal_rest.diagnostics import DiagnosticKind, DiagnosticsStore
from paypal_rest.models import CallContext, HttpMethod, RequestDescriptor
from paypal_rest.request_builder import build_request_descriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FailureKind(str, Enum):
    """Stage of the pipeline a RESTCallError originated in."""

    CONFIG = "config"
    CONNECTION = "connection"
    HTTP_STATUS = "http_status"
    DECODE = "decode"
    REQUEST = "request"


class RESTCallError(Exception):
    """The one error type raised by REST calls and configuration loading.

    Attributes:
        message: Message of the underlying failure.
        cause: The original exception (also chained as __cause__).
        kind: Pipeline stage that failed.
    """

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        kind: FailureKind = FailureKind.REQUEST,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.kind = kind

    @property
    def status_code(self) -> int | None:
        """HTTP status if the service answered with an error, else None."""
        if isinstance(self.cause, HttpStatusError):
            return self.cause.status_code
        return None

    @property
    def response_body(self) -> str | None:
        if isinstance(self.cause, HttpStatusError):
            return self.cause.body
        return None


def _classify(error: BaseException) -> FailureKind:
    if isinstance(error, ConfigError):
        return FailureKind.CONFIG
    if isinstance(error, HttpStatusError):
        return FailureKind.HTTP_STATUS
    if isinstance(error, HttpConnectionError):
        return FailureKind.CONNECTION
    if isinstance(error, CodecError):
        return FailureKind.DECODE
    return FailureKind.REQUEST


def _wrap(error: Exception) -> RESTCallError:
    return RESTCallError(str(error), error, _classify(error))


@dataclass
class CallResult(Generic[T]):
    """Outcome of RestClient.call(): a value or an error, plus diagnostics.

    request/response hold the raw payload sent and body received by this
    call only (None for whatever stage was not reached).
    """

    value: T | None = None
    error: RESTCallError | None = None
    request: str | None = None
    response: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T | None:
        """Return the value, raising the captured error if the call failed."""
        if self.error is not None:
            raise self.error
        return self.value


class RestClient:
    """Executes authenticated JSON calls against the configured endpoint.

    Usage:
        with RestClient() as client:
            client.init_config(Path("sdk_config.yaml"))
            payment = client.configure_and_execute(
                CallContext(access_token="Bearer A21...", request_id="r-1"),
                "GET", "v1/payments/payment/PAY-123", None, Payment,
            )

    Every collaborator is optional and defaults to the standard
    implementation; tests substitute a ConnectionProvider built on
    httpx.MockTransport.
    """

    def __init__(
        self,
        config_store: ConfigStore | None = None,
        connection_provider: ConnectionProvider | None = None,
        codec: JSONCodec | None = None,
        diagnostics: DiagnosticsStore | None = None,
    ) -> None:
        self._config_store = config_store or ConfigStore()
        self._connection_provider = connection_provider or ConnectionProvider()
        self._codec = codec or JSONCodec()
        self._diagnostics = diagnostics or DiagnosticsStore()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._connection_provider.close()

    @property
    def config_store(self) -> ConfigStore:
        return self._config_store

    def init_config(self, source: ConfigSource) -> None:
        """Load configuration from a stream, a file path, or a mapping.

        A successful load also closes the pooled HTTP clients, so the next
        call connects with the new settings.

        Raises:
            RESTCallError: If the stream or file cannot be loaded. The previous
                configuration stays in effect.
        """
        try:
            self._config_store.load(source)
        except ConfigError as e:
            raise RESTCallError(str(e), e, FailureKind.CONFIG) from e
        # Pooled clients were built for the previous configuration
        self._connection_provider.close()

    def get_last_request(self) -> str | None:
        """Payload of the last call made by the current thread."""
        return self._diagnostics.get(DiagnosticKind.REQUEST)

    def get_last_response(self) -> str | None:
        """Response body of the last call made by the current thread."""
        return self._diagnostics.get(DiagnosticKind.RESPONSE)

    def configure_and_execute(
        self,
        context: CallContext | str,
        method: HttpMethod | str,
        resource_path: str,
        payload: str | None,
        result_type: type[T],
    ) -> T | None:
        """Configure and execute a REST call.

        Args:
            context: CallContext, or a bare access token string.
            method: HTTP verb.
            resource_path: Path resolved against the configured endpoint.
                A leading '/' makes it root-relative.
            payload: Raw JSON body, or None.
            result_type: Type the response JSON is decoded into.

        Returns:
            The decoded response (None for an empty body).

        Raises:
            RESTCallError: On any failure.
        """
        return self._run(context, method, resource_path, payload, result_type, CallResult())

    def call(
        self,
        context: CallContext | str,
        method: HttpMethod | str,
        resource_path: str,
        payload: str | None,
        result_type: type[T],
    ) -> CallResult[T]:
        """Like configure_and_execute(), but returns failures instead of raising.

        The returned CallResult also carries this call's raw request and
        response, independent of the thread-scoped diagnostics.
        """
        result: CallResult[T] = CallResult()
        try:
            result.value = self._run(context, method, resource_path, payload, result_type, result)
        except RESTCallError as e:
            result.error = e
        return result

    def execute(
        self,
        descriptor: RequestDescriptor,
        payload: str | None,
        resource_path: str,
        result_type: type[T],
    ) -> T | None:
        """Execute a call described by descriptor and decode the response.

        Raises:
            RESTCallError: On any failure.
        """
        return self._execute(descriptor, payload, resource_path, result_type, CallResult())

    def _run(
        self,
        context: CallContext | str,
        method: HttpMethod | str,
        resource_path: str,
        payload: str | None,
        result_type: type[T],
        trace: CallResult[Any],
    ) -> T | None:
        try:
            if not isinstance(context, CallContext):
                context = CallContext(access_token=context)
            self._config_store.ensure_initialized()
            descriptor = build_request_descriptor(
                method,
                resource_path,
                context.access_token,
                context.request_id,
                self._config_store,
            )
        except RESTCallError:
            raise
        except Exception as e:
            raise _wrap(e) from e
        return self._execute(descriptor, payload, resource_path, result_type, trace)

    def _execute(
        self,
        descriptor: RequestDescriptor,
        payload: str | None,
        resource_path: str,
        result_type: type[T],
        trace: CallResult[Any],
    ) -> T | None:
        try:
            url = urljoin(descriptor.base_url, resource_path)

            # Recorded before sending so a failed send still shows what was attempted
            self._diagnostics.record(DiagnosticKind.REQUEST, payload)
            trace.request = payload

            params = descriptor.http_configuration
            connection = self._connection_provider.obtain(params)
            self._connection_provider.configure(connection, params)
            logger.debug("Executing %s %s", descriptor.method.value, url)
            response = connection.send(url, payload, descriptor.headers)

            self._diagnostics.record(DiagnosticKind.RESPONSE, response)
            trace.response = response

            return self._codec.decode(response, result_type)
        except RESTCallError:
            raise
        except Exception as e:
            raise _wrap(e) from e


# =============================================================================
# Process-wide default client
# =============================================================================

_default_client: RestClient | None = None
_default_client_lock = Lock()


def default_client() -> RestClient:
    """Return the process-wide client, creating it on first use."""
    global _default_client
    client = _default_client
    if client is None:
        with _default_client_lock:
            if _default_client is None:
                _default_client = RestClient()
            client = _default_client
    return client


def reset_default_client() -> None:
    """Close and forget the process-wide client and its configuration."""
    global _default_client
    with _default_client_lock:
        client, _default_client = _default_client, None
    if client is not None:
        client.close()


def init_config(source: ConfigSource) -> None:
    """Load the process-wide configuration. See RestClient.init_config()."""
    default_client().init_config(source)


def configure_and_execute(
    context: CallContext | str,
    method: HttpMethod | str,
    resource_path: str,
    payload: str | None,
    result_type: type[T],
) -> T | None:
    """Execute a call with the process-wide client. See RestClient.configure_and_execute()."""
    return default_client().configure_and_execute(
        context, method, resource_path, payload, result_type
    )


def get_last_request() -> str | None:
    return default_client().get_last_request()


def get_last_response() -> str | None:
    return default_client().get_last_response()


# =============================================================================
# Base class for REST resources
# =============================================================================


class Resource(BaseModel):
    """Base class for REST enabled resources.

    Subclasses declare their JSON fields. Unknown response fields are kept
    so newer service versions do not break older SDKs.

    Example:
        class Payment(Resource):
            id: str | None = None
            state: str | None = None

            @classmethod
            def get(cls, context: CallContext, payment_id: str) -> "Payment":
                return cls.configure_and_execute(
                    context, "GET", f"v1/payments/payment/{payment_id}"
                )
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    def to_json(self) -> str:
        return _RESOURCE_CODEC.encode(self)

    @classmethod
    def from_json(cls, body: str) -> Self:
        """Decode body into this resource type.

        Raises:
            CodecError: If body is not a JSON object of this shape.
        """
        value = _RESOURCE_CODEC.decode(body, cls)
        if value is None:
            raise CodecError(f"Empty body cannot be decoded into {cls.__name__}")
        return value

    @classmethod
    def configure_and_execute(
        cls,
        context: CallContext | str,
        method: HttpMethod | str,
        resource_path: str,
        payload: str | None = None,
        result_type: type[Any] | None = None,
    ) -> Any:
        """Execute a call with the process-wide client; decodes into cls by default."""
        return configure_and_execute(
            context, method, resource_path, payload, result_type or cls
        )


_RESOURCE_CODEC = JSONCodec()
