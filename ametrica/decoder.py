"""
Decoding of the `cx` beacon payload.

The payload is URL-safe base64 of UTF-8 encoded JSON, usually without padding.
Decoding is total: every failure is turned into a decode-failure marker,

    {"__decode_error": "<message>"}

which consumers can tell apart from any successfully decoded value.
"""

import base64
import json
import math
from typing import Any

DECODE_ERROR_KEY = "__decode_error"

MAX_PAYLOAD_SIZE = 100 * 1024
"""Payloads longer than this are not decoded at all."""

DecodeResult = Any


def make_error(message: str) -> dict[str, str]:
    return {DECODE_ERROR_KEY: message}


def decode_error(decoded: DecodeResult) -> str | None:
    """Return the failure message if `decoded` is a decode-failure marker."""
    if isinstance(decoded, dict) and DECODE_ERROR_KEY in decoded:
        return str(decoded[DECODE_ERROR_KEY])
    return None


def is_decode_error(decoded: DecodeResult) -> bool:
    return decode_error(decoded) is not None


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Invalid JSON constant: {name}")


def _parse_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"JSON number out of range: {text}")
    return value


def decode(raw: str | bytes | None) -> DecodeResult:
    """
    Decode a raw `cx` value into the JSON value it carries.

    Returns the parsed JSON value (of any shape) or a decode-failure marker.
    Never raises.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("latin-1")
    if not raw:
        return make_error("payload missing")
    if len(raw) > MAX_PAYLOAD_SIZE:
        return make_error("payload too large to decode")

    try:
        data = raw.replace("-", "+").replace("_", "/")
        if pad := len(data) % 4:
            data += "=" * (4 - pad)
        text = base64.b64decode(data).decode("utf-8")
        return json.loads(
            text, parse_float=_parse_float, parse_constant=_reject_constant
        )
    except (ValueError, RecursionError) as e:
        # binascii.Error, UnicodeDecodeError and JSONDecodeError are all ValueErrors.
        return make_error(str(e) or type(e).__name__)


def encode(value: Any) -> str:
    """
    Encode a JSON-serializable value the way beacons carry it in `cx`:
    URL-safe base64 of compact UTF-8 JSON, without padding.
    """
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")
