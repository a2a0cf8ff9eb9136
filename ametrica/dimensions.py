from collections.abc import Mapping
from typing import Any

from ametrica import decoder

SCHEMA_MARKER = "custom_dimension"

DIMENSION_KEYS = tuple(str(i) for i in range(1, 51))
"""Custom dimensions are numbered 1 to 50. Everything else is ignored."""


def filter_dimensions(data: Any) -> dict[str, Any] | None:
    """
    Keep only the numbered dimension keys that carry a value.

    `None` and the empty string count as "no value", while falsy values such as 0
    or False are kept. Keys are returned in numeric order.
    """
    if not isinstance(data, Mapping):
        return None

    result = {}
    for key in DIMENSION_KEYS:
        if key in data:
            value = data[key]
            if value is not None and value != "":
                result[key] = value
    return result or None


def extract(decoded: decoder.DecodeResult) -> list[dict[str, Any]] | None:
    """
    Extract the custom dimension entries from a decoded `cx` payload.

    Returns `None` if there is nothing to show, otherwise a non-empty list of
    `{"schema": ..., "data": ...}` entries in payload order.
    """
    if not isinstance(decoded, Mapping) or decoder.is_decode_error(decoded):
        return None

    entries = decoded.get("data")
    if not isinstance(entries, list):
        return None

    matches = []
    for item in entries:
        if not isinstance(item, Mapping):
            continue
        schema = item.get("schema")
        if not isinstance(schema, str) or SCHEMA_MARKER not in schema:
            continue
        data = filter_dimensions(item.get("data"))
        if data:
            matches.append({"schema": schema, "data": data})

    return matches or None
