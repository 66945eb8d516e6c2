"""
Shared Schema Types

Reusable annotated field types for web models.
"""

import base64
import binascii
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer


def _decode_token(value: Any) -> Any:
    # JSON bodies carry the token as base64 text
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except binascii.Error as e:
            raise ValueError("row version must be base64 encoded") from e
    return value


def _encode_token(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


# Opaque concurrency token: raw bytes in Python, base64 string in JSON
RowVersionToken = Annotated[
    bytes,
    BeforeValidator(_decode_token),
    PlainSerializer(_encode_token, return_type=str, when_used="json"),
]
