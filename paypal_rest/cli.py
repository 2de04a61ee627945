"""CLI entry point for paypal-rest.

Issues a single REST call with the SDK pipeline and prints the response,
or prints the effective configuration. Useful for checking credentials and
endpoint settings without writing code.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from paypal_rest.config_store import ConfigError, ConfigStore
from paypal_rest.models import CallContext, HttpMethod
from paypal_rest.resource import RESTCallError, RestClient

# Keys whose values are never printed
_SECRET_KEY_MARKERS = ("password", "secret", "token")


@dataclass
class CallArgs:
    """Parsed arguments for call mode."""

    method: HttpMethod
    path: str
    token: str
    request_id: str | None
    config: Path | None
    data: str | None
    show_request: bool
    verbose: bool


@dataclass
class ShowConfigArgs:
    """Parsed arguments for show-config mode."""

    config: Path | None


def http_method(value: str) -> HttpMethod:
    """Argparse type for HTTP verbs (case-insensitive)."""
    try:
        return HttpMethod.coerce(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with call and show-config subcommands."""
    parser = argparse.ArgumentParser(
        prog="paypal-rest",
        description="Issue authenticated calls against the configured REST endpoint.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, help="Mode")

    # Call subcommand
    call_parser = subparsers.add_parser(
        "call",
        help="Execute one REST call and print the JSON response",
    )
    call_parser.add_argument(
        "method",
        type=http_method,
        help="HTTP method (GET, POST, PUT, PATCH, DELETE, ...)",
    )
    call_parser.add_argument(
        "path",
        help="Resource path, relative to the configured endpoint",
    )
    call_parser.add_argument(
        "--token",
        required=True,
        help="Access token, sent verbatim as the Authorization header",
    )
    call_parser.add_argument(
        "--request-id",
        default=None,
        help="Idempotency key sent as PayPal-Request-Id",
    )
    call_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (YAML). Defaults to the bundled sdk_config.yaml",
    )
    call_parser.add_argument(
        "--data",
        default=None,
        help="JSON request body, or @FILE to read it from a file",
    )
    call_parser.add_argument(
        "--show-request",
        action="store_true",
        help="Print the raw request payload to stderr before the response",
    )
    call_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    # Show-config subcommand
    show_config_parser = subparsers.add_parser(
        "show-config",
        help="Print the effective configuration and resolved endpoint",
    )
    show_config_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Configuration file (YAML). Defaults to the bundled sdk_config.yaml",
    )

    return parser


def parse_args(args: list[str] | None = None) -> CallArgs | ShowConfigArgs:
    """Parse command-line arguments and return typed args dataclass.

    Raises:
        SystemExit: If arguments are invalid (argparse behavior).
    """
    parser = build_parser()
    namespace = parser.parse_args(args)

    if namespace.command == "call":
        return CallArgs(
            method=namespace.method,
            path=namespace.path,
            token=namespace.token,
            request_id=namespace.request_id,
            config=namespace.config,
            data=namespace.data,
            show_request=namespace.show_request,
            verbose=namespace.verbose,
        )
    return ShowConfigArgs(config=namespace.config)


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    try:
        parsed = parse_args(args)

        if isinstance(parsed, CallArgs):
            return run_call(parsed)
        return run_show_config(parsed)

    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 1


def _read_payload(data: str | None) -> str | None:
    """Resolve --data, reading @FILE references."""
    if data is None:
        return None
    if data.startswith("@"):
        return Path(data[1:]).read_text(encoding="utf-8")
    return data


def run_call(args: CallArgs, client: RestClient | None = None) -> int:
    """Run call mode.

    Returns:
        0 on success, 1 if the call or argument handling failed.
    """
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        payload = _read_payload(args.data)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Error: cannot read request body: {e}", file=sys.stderr)
        return 1

    owns_client = client is None
    client = client or RestClient()
    try:
        if args.config is not None:
            client.init_config(args.config)

        context = CallContext(access_token=args.token, request_id=args.request_id)
        result = client.call(context, args.method, args.path, payload, Any)

        if args.show_request and result.request:
            print(result.request, file=sys.stderr)

        if not result.ok:
            error = result.error
            print(f"Error ({error.kind.value}): {error.message}", file=sys.stderr)
            return 1

        if result.value is not None:
            print(json.dumps(result.value, indent=2))
        return 0
    except RESTCallError as e:
        print(f"Error ({e.kind.value}): {e.message}", file=sys.stderr)
        return 1
    finally:
        if owns_client:
            client.close()


def _redact(key: str, value: str) -> str:
    if any(marker in key.lower() for marker in _SECRET_KEY_MARKERS):
        return "***"
    return value


def run_show_config(args: ShowConfigArgs) -> int:
    """Run show-config mode."""
    store = ConfigStore()
    try:
        if args.config is not None:
            store.load(args.config)
        else:
            store.ensure_initialized()
        base_url = store.base_url
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for key, value in sorted(store.as_dict().items()):
        print(f"{key} = {_redact(key, value)}")
    print(f"# resolved endpoint: {base_url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
