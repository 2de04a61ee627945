"""Request Builder - Assembles the per-call request descriptor.

Pure: reads the active configuration, performs no I/O, and returns a
descriptor whose headers are complete.
"""

from __future__ import annotations

import platform

from paypal_rest.config_store import ConfigStore
from paypal_rest.models import HttpMethod, RequestDescriptor

# SDK ID used in User-Agent HTTP header
SDK_ID = "rest-sdk-python"

# SDK Version used in User-Agent HTTP header
SDK_VERSION = "0.1.0"

AUTHORIZATION_HEADER = "Authorization"
REQUEST_ID_HEADER = "PayPal-Request-Id"
USER_AGENT_HEADER = "User-Agent"
CONTENT_TYPE_HEADER = "Content-Type"
ACCEPT_HEADER = "Accept"
JSON_MEDIA_TYPE = "application/json"


def _build_user_agent() -> str:
    return (
        f"PayPalSDK/{SDK_ID} {SDK_VERSION} "
        f"(lang=Python;v={platform.python_version()};os={platform.system()})"
    )


USER_AGENT = _build_user_agent()


def build_headers(access_token: str, request_id: str | None = None) -> dict[str, str]:
    """Derive the request headers for one call.

    The request id header is present only when request_id is non-empty.
    """
    headers = {
        AUTHORIZATION_HEADER: access_token,
        USER_AGENT_HEADER: USER_AGENT,
        CONTENT_TYPE_HEADER: JSON_MEDIA_TYPE,
        ACCEPT_HEADER: JSON_MEDIA_TYPE,
    }
    if request_id:
        headers[REQUEST_ID_HEADER] = request_id
    return headers


def build_request_descriptor(
    method: HttpMethod | str,
    resource_path: str,
    access_token: str,
    request_id: str | None,
    store: ConfigStore,
) -> RequestDescriptor:
    """Create a RequestDescriptor from the active configuration.

    Args:
        method: HTTP verb (enum member or case-insensitive string).
        resource_path: Path relative to the configured endpoint.
        access_token: Sent verbatim as the Authorization header.
        request_id: Optional idempotency key.
        store: Initialized configuration store.

    Returns:
        Descriptor with headers, base URL and connection parameters filled in.
    """
    http_method = HttpMethod.coerce(method)
    http_configuration = store.http_configuration(http_method)
    return RequestDescriptor(
        method=http_method,
        resource_path=resource_path,
        headers=build_headers(access_token, request_id),
        base_url=http_configuration.endpoint_url,
        http_configuration=http_configuration,
    )
