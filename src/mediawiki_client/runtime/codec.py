"""
Request Parameter Encoding

This module converts logical parameter values into the wire strings the
MediaWiki API expects. Transport-level escaping is left to ``requests``.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from .errors import EncodingError, UnsupportedValueType

# Multi-value separator
SEPARATOR = "|"

# Alternative separator for values that themselves contain "|"
UNIT_SEPARATOR = "\x1f"


@dataclass(frozen=True)
class Blob:
    """Binary parameter value, only valid in multipart requests."""
    data: bytes
    filename: str = "file"
    content_type: str = "application/octet-stream"

    def __len__(self) -> int:
        return len(self.data)


WireValue = Union[str, bytes, Blob]


def format_timestamp(value: datetime) -> str:
    """
    Render a timestamp as ISO-8601 in UTC.

    Args:
        value: Timestamp to render; naive values are taken as UTC

    Returns:
        String of the form ``YYYY-MM-DDTHH:MM:SSZ``
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _encode_scalar(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, str):
        return value
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "1" if value else ""
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return format_timestamp(datetime(value.year, value.month, value.day, tzinfo=timezone.utc))
    if isinstance(value, (bytes, bytearray, Blob)):
        raise EncodingError("Binary values cannot be part of a multi-value parameter")
    if isinstance(value, (list, tuple, set, frozenset)):
        return _encode_sequence(value)
    raise UnsupportedValueType(value)


def _encode_sequence(values: Any) -> str:
    if isinstance(values, (set, frozenset)):
        values = sorted(values, key=str)
    parts = [_encode_scalar(item) for item in values]
    if any(SEPARATOR in part for part in parts):
        return UNIT_SEPARATOR + UNIT_SEPARATOR.join(parts)
    return SEPARATOR.join(parts)


def encode_param(value: Any, multipart: bool = False) -> WireValue:
    """
    Convert one logical parameter value to its wire representation.

    Args:
        value: The value to encode
        multipart: Whether the enclosing request is multipart

    Returns:
        The encoded string, or the binary payload for multipart requests

    Raises:
        EncodingError: If a binary value is used outside a multipart request
        UnsupportedValueType: If the value kind is not recognised
    """
    if isinstance(value, (bytes, bytearray)):
        if not multipart:
            raise EncodingError("Binary parameters require a multipart request")
        return bytes(value)
    if isinstance(value, Blob):
        if not multipart:
            raise EncodingError("Binary parameters require a multipart request")
        return value
    return _encode_scalar(value)


def encode_params(params: Optional[Mapping[str, Any]], multipart: bool = False) -> Dict[str, WireValue]:
    """
    Encode a parameter mapping, dropping unset flags.

    Keys whose value is ``None`` or ``False`` are omitted because MediaWiki
    boolean parameters are presence-based.

    Args:
        params: Logical parameters
        multipart: Whether the enclosing request is multipart

    Returns:
        Mapping of parameter name to wire value
    """
    encoded: Dict[str, WireValue] = {}
    if not params:
        return encoded
    for key, value in params.items():
        if value is None or value is False:
            continue
        encoded[key] = encode_param(value, multipart=multipart)
    return encoded


def is_binary(value: Any) -> bool:
    """Whether a value must travel as a multipart file field."""
    return isinstance(value, (bytes, bytearray, Blob))


__all__ = [
    "SEPARATOR",
    "UNIT_SEPARATOR",
    "Blob",
    "WireValue",
    "format_timestamp",
    "encode_param",
    "encode_params",
    "is_binary",
]
