"""JSON encoding of outgoing messages and pretty-printing of message bodies."""

import json
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ValidationError
from pydantic_core import PydanticSerializationError

from txn_broker.messaging.exceptions import EncodingError


def encode_message(message: BaseModel | Mapping[str, Any]) -> bytes:
    """
    Serialize a message to UTF-8 JSON bytes.

    Pydantic models are re-validated before dumping so that instances built
    with ``model_construct`` cannot smuggle values such as ``Decimal("NaN")``
    onto the wire. Plain mappings are dumped with ``allow_nan=False``.

    Raises:
        EncodingError: If the message cannot be represented as JSON.
    """
    try:
        if isinstance(message, BaseModel):
            validated = type(message).model_validate(message.model_dump())
            return validated.model_dump_json(by_alias=True).encode("utf-8")

        return json.dumps(dict(message), allow_nan=False, default=_json_default).encode("utf-8")
    except (ValidationError, PydanticSerializationError, TypeError, ValueError) as e:
        raise EncodingError(f"Failed to encode message: {e}") from e


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Out of range decimal value: {value}")
        # keep the exact precision by sending the amount as a string
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (Enum, UUID)):
        return getattr(value, "value", str(value))
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def decode_json(body: bytes | str) -> Any:
    """
    Parse a JSON body, reading every non-integer number as a ``Decimal``.

    Going through ``float`` would round amounts such as
    ``12345678901234567.123456789`` before any model sees them.

    Raises:
        ValueError: If the body is not valid UTF-8 JSON.
    """
    return json.loads(body, parse_float=Decimal)


def pretty_json(body: bytes) -> str:
    """Indent a JSON body for logging, falling back to the raw text."""
    text = body.decode("utf-8", errors="replace")
    try:
        return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
    except ValueError:
        return text
