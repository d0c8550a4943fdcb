"""
Proof input encoding.

Program input is sent to the service as `{"input": ["0x..", ...]}`. Each hex
string is either raw bytes (prefixed 01) or native field elements as
little-endian u32 words (prefixed 02). Callers may pass a single hex string,
raw bytes, a list of hex strings, or the full JSON object.
"""

from __future__ import annotations

import string
from typing import Any

INPUT_DOCS_URL = "https://docs.openvm.dev/book/writing-apps/overview/#inputs"

_HEX_DIGITS = set(string.hexdigits)


class InputError(ValueError):
    """Program input is not in a shape the service accepts."""


def decode_hex_input(value: str) -> bytes:
    """Validate one hex-encoded input item and return its bytes.

    Raises:
        InputError: On odd length, non-hex characters, an unknown prefix, or
            a field-element item that is not a whole number of u32 words.
    """
    s = value[2:] if value.startswith("0x") else value
    if len(s) % 2 != 0:
        raise InputError("The hex string must be of even length")
    if not all(c in _HEX_DIGITS for c in s):
        raise InputError("The hex string must consist of hex digits")
    if s.startswith("02"):
        if len(s) % 8 != 2:
            raise InputError(
                "If the hex value starts with 02, a whole number of 32-bit elements must follow"
            )
    elif not s.startswith("01"):
        raise InputError(
            f"Hex input must start with '01' (bytes) or '02' (field elements). See {INPUT_DOCS_URL}"
        )
    return bytes.fromhex(s)


def is_hex_input(value: str) -> bool:
    """True if `value` is a valid single hex input item."""
    try:
        decode_hex_input(value)
    except InputError:
        return False
    return True


def encode_input(value: Any) -> dict[str, list[str]]:
    """Normalize program input to the JSON body the service expects.

    Args:
        value: A hex string, bytes, a list of hex strings, or a dict with an
            "input" list.

    Returns:
        `{"input": [...]}` with every item validated and 0x-prefixed.

    Raises:
        InputError: If the value or any item is invalid.
    """
    if isinstance(value, (bytes, bytearray)):
        items: list[Any] = ["0x" + bytes(value).hex()]
    elif isinstance(value, str):
        items = [value.strip()]
    elif isinstance(value, list):
        items = value
    elif isinstance(value, dict):
        if set(value) != {"input"} or not isinstance(value["input"], list):
            raise InputError('Input JSON must be an object of the form {"input": [...]}')
        items = value["input"]
    else:
        raise InputError(f"Unsupported input type: {type(value).__name__}")

    encoded = []
    for item in items:
        if not isinstance(item, str):
            raise InputError("Each input item must be a hex string")
        encoded.append("0x" + decode_hex_input(item).hex())
    return {"input": encoded}
