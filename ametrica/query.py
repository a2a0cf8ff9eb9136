"""
Selecting and rendering captured events for display.
"""

import json
import os
from collections.abc import Iterable
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ametrica import event

MAX_VISIBLE_EVENTS = 50

EXPORT_FILENAME = "alpha-metrics-events-%Y%m%d-%H%M.json"

PAGE_PING = "pp"


def _filter_fields(ev: event.Event) -> tuple[str, ...]:
    return (
        ev.captured_at,
        ev.event_type,
        ev.structured_category,
        ev.structured_action,
        ev.structured_label,
        ev.page_url,
        ev.referrer_url,
        ev.document_url,
        ev.resource_type,
    )


def matches(ev: event.Event, value: str) -> bool:
    """True if any of the displayed fields of ev is exactly value."""
    return any(field == value for field in _filter_fields(ev))


def select(
    events: Iterable[event.Event],
    value: str = "",
    hide_page_pings: bool = False,
    limit: int | None = MAX_VISIBLE_EVENTS,
) -> list[event.Event]:
    selected = []
    for ev in events:
        if hide_page_pings and ev.event_type == PAGE_PING:
            continue
        if value and not matches(ev, value):
            continue
        selected.append(ev)
        if limit is not None and len(selected) >= limit:
            break
    return selected


def summary(ev: event.Event) -> str:
    """A single line describing ev."""
    parts = [ev.captured_at, ev.title]
    if ev.event_id:
        parts.append(f"id={ev.event_id}")
    if ev.custom_dimensions:
        parts.append(f"custom dimensions: {len(ev.custom_dimensions)}")
    elif ev.decode_error:
        parts.append(f"cx error: {ev.decode_error}")
    return "  ".join(parts)


def _line(label: str, value: str) -> str:
    return f"    {label}: {value or '-'}"


def _dump(value: Any) -> list[str]:
    return [
        "        " + line
        for line in json.dumps(value, indent=2, ensure_ascii=False).splitlines()
    ]


def format_event(ev: event.Event, show_decoded: bool = False) -> str:
    lines = [ev.title, _line("ts", ev.captured_at), _line("id", ev.event_id)]

    if (
        ev.structured_category
        or ev.structured_action
        or ev.structured_label
        or ev.event_type == "se"
    ):
        lines.append(_line("se_ca (event_category)", ev.structured_category))
        lines.append(_line("se_ac (event_label)", ev.structured_action))
        lines.append(_line("se_la (event_name)", ev.structured_label))

    lines.append(_line("url", ev.page_url))
    lines.append(_line("pageUrl", ev.document_url))
    lines.append(_line("refr", ev.referrer_url))

    if ev.custom_dimensions:
        lines.append("    custom dimensions:")
        lines.extend(_dump(ev.custom_dimensions))
    elif ev.decode_error:
        lines.append(f"    cx error: {ev.decode_error}")
        if ev.raw_payload:
            lines.append(_line("cxRaw", ev.raw_payload))
    else:
        lines.append("    no custom dimensions")

    if show_decoded and ev.decoded_payload is not None:
        lines.append("    cx decoded:")
        lines.extend(_dump(ev.decoded_payload))

    return "\n".join(lines)


def format_events(events: Sequence[event.Event], show_decoded: bool = False) -> str:
    if not events:
        return "No events found."
    blocks = [f"Showing {len(events)} events"]
    blocks.extend(format_event(ev, show_decoded) for ev in events)
    return "\n\n".join(blocks)


def to_json(events: Iterable[event.Event]) -> str:
    """Serialize events the way they are exported to files."""
    return json.dumps([ev.get_state() for ev in events], indent=2, ensure_ascii=False)


def export_path(path: str, now: datetime | None = None) -> str:
    """
    Resolve the file to export to. Directories get a timestamped file name.
    """
    path = os.path.expanduser(path)
    if os.path.isdir(path):
        path = os.path.join(path, (now or datetime.now()).strftime(EXPORT_FILENAME))
    return path
