import math
import time
from dataclasses import dataclass
from dataclasses import fields
from typing import Any

from ametrica import beacon
from ametrica import decoder

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Human-readable names for the `e` parameter.
EVENT_TYPES = {
    "pv": "page view",
    "pp": "page ping",
    "se": "structured event",
    "ue": "unstructured event",
    "tr": "transaction",
    "ti": "transaction item",
    "sv": "screen view",
}


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def capture_time(state: Any) -> int | None:
    """
    Return the capture time of a persisted event state,
    or None if the state is not a mapping with a finite numeric `captured_at_ms`.
    """
    if not isinstance(state, dict):
        return None
    value = state.get("captured_at_ms")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return int(value)


@dataclass(frozen=True)
class Event:
    """A single captured beacon."""

    captured_at: str
    """Local wall-clock time of the capture, for display only."""
    captured_at_ms: int
    """Capture time in milliseconds since the epoch. Used for ordering and expiry."""
    event_id: str = ""
    event_type: str = ""
    structured_category: str = ""
    structured_action: str = ""
    structured_label: str = ""
    page_url: str = ""
    referrer_url: str = ""
    platform: str = ""
    application_id: str = ""
    client_pin: str = ""
    document_url: str = ""
    resource_type: str = ""
    raw_payload: str = ""
    decoded_payload: Any = None
    """The decoded `cx` value or a decode-failure marker."""
    custom_dimensions: list[dict[str, Any]] | None = None

    @classmethod
    def make(
        cls,
        params: beacon.BeaconParams,
        info: beacon.RequestInfo,
        decoded: decoder.DecodeResult,
        custom_dimensions: list[dict[str, Any]] | None,
        timestamp: float | None = None,
    ) -> "Event":
        if timestamp is None:
            timestamp = time.time()
        return cls(
            captured_at=time.strftime(TIMESTAMP_FORMAT, time.localtime(timestamp)),
            captured_at_ms=int(timestamp * 1000),
            event_id=params.eid,
            event_type=params.e,
            structured_category=params.se_ca,
            structured_action=params.se_ac,
            structured_label=params.se_la,
            page_url=params.url,
            referrer_url=params.refr,
            platform=params.p,
            application_id=params.aid,
            client_pin=params.uid,
            document_url=info.document_url,
            resource_type=info.resource_type,
            raw_payload=params.cx,
            decoded_payload=decoded,
            custom_dimensions=custom_dimensions or None,
        )

    @property
    def decode_error(self) -> str | None:
        return decoder.decode_error(self.decoded_payload)

    @property
    def title(self) -> str:
        if self.event_type:
            label = EVENT_TYPES.get(self.event_type, "event")
            return f"e: {self.event_type} - {label}"
        return "e: -"

    def get_state(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_state(cls, state: dict[str, Any]) -> "Event":
        """
        Restore an event from its persisted state.

        Persisted data may come from older versions or have been edited by hand,
        so missing or mistyped fields fall back to their defaults instead of failing.
        """
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            value = state.get(f.name)
            if f.name == "captured_at_ms":
                kwargs[f.name] = capture_time(state) or 0
            elif f.name == "decoded_payload":
                kwargs[f.name] = value
            elif f.name == "custom_dimensions":
                kwargs[f.name] = value if isinstance(value, list) and value else None
            else:
                kwargs[f.name] = _str(value)
        return cls(**kwargs)
