"""Connection - Supplies configured HTTP connections to the executor.

The ConnectionProvider pools one httpx.Client per transport-parameter set
and hands out a fresh HttpConnection handle per call. Handles are cheap and
carry the per-call settings (the HTTP verb), so concurrent calls never see
each other's configuration while still sharing keep-alive connections.
"""

from __future__ import annotations

import logging
import ssl
from threading import Lock
from typing import Any

import httpx

from paypal_rest.models import HttpConfiguration, HttpMethod

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class TransportError(Exception):
    """Base class for connection layer errors."""


class HttpConnectionError(TransportError):
    """Raised when a request fails (connection error, timeout, TLS setup, etc.)."""


class HttpStatusError(TransportError):
    """Raised when the service answers with an error status (>= 400).

    Attributes:
        status_code: HTTP status of the response.
        body: Raw response body, usually a JSON error document.
    """

    def __init__(self, message: str, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def build_timeout(params: HttpConfiguration) -> httpx.Timeout:
    return httpx.Timeout(
        DEFAULT_TIMEOUT,
        connect=params.connect_timeout or DEFAULT_TIMEOUT,
        read=params.read_timeout or DEFAULT_TIMEOUT,
    )


def build_client_kwargs(params: HttpConfiguration) -> dict[str, Any]:
    """Build kwargs for httpx.Client from connection parameters.

    Raises:
        HttpConnectionError: If the TLS material cannot be loaded.
    """
    kwargs: dict[str, Any] = {"timeout": build_timeout(params)}

    if params.max_connections:
        kwargs["limits"] = httpx.Limits(max_connections=params.max_connections)

    if params.proxy is not None:
        kwargs["proxy"] = params.proxy.url

    # Client certificate or custom CA bundle requires an SSL context
    if params.cert or params.ca_bundle:
        try:
            ssl_context = ssl.create_default_context(cafile=params.ca_bundle)
            if params.cert:
                ssl_context.load_cert_chain(params.cert, params.key)
        except (OSError, ssl.SSLError) as e:
            raise HttpConnectionError(f"Invalid TLS configuration: {e}") from e
        if not params.verify_ssl:
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        kwargs["verify"] = ssl_context
    elif not params.verify_ssl:
        kwargs["verify"] = False
    # else: use httpx default (True)

    return kwargs


class HttpConnection:
    """A per-call handle on a pooled httpx.Client.

    Usage:
        connection = provider.obtain(params)
        provider.configure(connection, params)
        body = connection.send(url, payload, headers)
    """

    def __init__(self, client: httpx.Client) -> None:
        self._client = client
        self._method = HttpMethod.GET

    @property
    def method(self) -> HttpMethod:
        return self._method

    def configure(self, params: HttpConfiguration) -> None:
        self._method = params.http_method

    def send(self, url: str, body: str | None, headers: dict[str, str]) -> str:
        """Send the request and return the response body as text.

        Args:
            url: Absolute request URL.
            body: Raw payload; omitted from the request when empty.
            headers: Complete request headers.

        Returns:
            The response body (empty string for bodiless responses).

        Raises:
            HttpConnectionError: On timeouts, connection and protocol failures.
            HttpStatusError: If the response status is 400 or above.
        """
        content = body.encode("utf-8") if body else None
        logger.debug("%s %s", self._method.value, url)

        try:
            response = self._client.request(
                method=self._method.value,
                url=url,
                content=content,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise HttpConnectionError(f"Request timeout: {e}") from e
        except httpx.ConnectError as e:
            raise HttpConnectionError(f"Connection error: {e}") from e
        except httpx.HTTPError as e:
            raise HttpConnectionError(f"Request error: {e}") from e
        except UnicodeEncodeError as e:
            raise HttpConnectionError(
                f"Encoding error: non-ASCII characters in request header or URL: "
                f"{e.object[e.start:e.end]!r}"
            ) from e

        if response.status_code >= 400:
            raise HttpStatusError(
                f"HTTP {response.status_code} from {self._method.value} {url}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.text


class ConnectionProvider:
    """Thread-safe source of HttpConnection handles.

    Usage:
        with ConnectionProvider() as provider:
            connection = provider.obtain(params)

    Args:
        transport: Optional httpx transport for every client (tests use
            httpx.MockTransport). When set, proxy and TLS settings are
            neither loaded nor applied since the transport owns the network.
    """

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport
        self._clients: dict[HttpConfiguration, httpx.Client] = {}
        self._lock = Lock()

    def __enter__(self) -> "ConnectionProvider":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def obtain(self, params: HttpConfiguration) -> HttpConnection:
        """Return a connection handle for params, creating its client if needed."""
        key = params.transport_key()
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = self._create_client(params)
                self._clients[key] = client
        return HttpConnection(client)

    def configure(self, connection: HttpConnection, params: HttpConfiguration) -> None:
        """Apply the per-call parameters to a handle returned by obtain()."""
        connection.configure(params)

    def close(self) -> None:
        """Close every pooled client."""
        with self._lock:
            clients = list(self._clients.values())
            self._clients.clear()
        for client in clients:
            client.close()

    def _create_client(self, params: HttpConfiguration) -> httpx.Client:
        if self._transport is not None:
            kwargs = {"timeout": build_timeout(params), "transport": self._transport}
        else:
            kwargs = build_client_kwargs(params)
        logger.debug("Creating HTTP client for %s", params.endpoint_url)
        return httpx.Client(**kwargs)
