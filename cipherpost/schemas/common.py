"""
Shared schema types.
"""
import base64
import binascii
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, PlainSerializer

from cipherpost.utils.datetime_utils import ensure_utc

# 64-bit ids lose precision as JSON numbers in some clients, so they are
# written as strings. Lax validation accepts both "123" and 123 on input.
SnowflakeId = Annotated[int, PlainSerializer(str, return_type=str, when_used="json")]

# SQLite returns naive datetimes; every timestamp leaves the API as aware UTC.
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


def encode_ciphertext(content: bytes) -> str:
    """Encode stored ciphertext bytes for JSON transport."""
    return base64.b64encode(content).decode("ascii")


def decode_ciphertext(value: str) -> bytes:
    """
    Decode a base64 ciphertext received over JSON.

    Raises:
        ValueError: If the value is not valid base64
    """
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Ciphertext must be valid base64")
