"""JSON codec - Converts between wire JSON and Python result types.

Decoding goes through pydantic TypeAdapter, so a result type can be a model,
a builtin (dict, list, str), or a parametrised generic such as
``list[Payment]``.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import BaseModel, PydanticUserError, TypeAdapter, ValidationError

T = TypeVar("T")


class CodecError(Exception):
    """Raised when a body cannot be decoded into, or encoded from, a type."""


@lru_cache(maxsize=256)
def _cached_adapter(result_type: Any) -> TypeAdapter:
    return TypeAdapter(result_type)


def _adapter(result_type: Any) -> TypeAdapter:
    try:
        try:
            return _cached_adapter(result_type)
        except TypeError:
            # Unhashable type expressions skip the cache
            return TypeAdapter(result_type)
    except PydanticUserError as e:
        raise CodecError(f"Unsupported result type: {result_type!r}") from e


class JSONCodec:
    """Stateless JSON encoder/decoder."""

    def decode(self, body: str | None, result_type: type[T]) -> T | None:
        """Decode body into result_type.

        An empty body (e.g. a 204 No Content reply) decodes to None whatever
        the requested type.

        Raises:
            CodecError: If the body is not JSON or does not fit result_type.
        """
        if body is None or not body.strip():
            return None
        adapter = _adapter(result_type)
        try:
            return adapter.validate_json(body)
        except ValidationError as e:
            raise CodecError(
                f"Cannot decode response into {getattr(result_type, '__name__', result_type)}: {e}"
            ) from e

    def encode(self, value: Any) -> str:
        """Encode a model or plain JSON value to a JSON string.

        Models are dumped by alias with None fields left out, which is what
        the service expects for partial objects.
        """
        if isinstance(value, BaseModel):
            return value.model_dump_json(by_alias=True, exclude_none=True)
        try:
            return json.dumps(value)
        except (TypeError, ValueError) as e:
            raise CodecError(f"Cannot encode {type(value).__name__} as JSON: {e}") from e
