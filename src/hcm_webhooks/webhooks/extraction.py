"""Payload inspection: configured field extraction and identifier detection.

All functions are pure and tolerant of unexpected shapes; a payload or
field list of the wrong type produces an empty result rather than an error.
"""

from typing import Any

UNKNOWN_EVENT_TYPE = "unknown"

# Candidate keys in priority order, compared case-insensitively
EVENT_TYPE_KEYS = ("eventtype", "event_type", "action", "type")
COMPANY_ID_KEYS = ("companyid", "company_id")
EVENT_ID_KEYS = ("eventid", "event_id", "id")


def extract_fields(payload: Any, fields: Any) -> dict[str, Any]:
    """Reduce a payload to the configured top-level keys.

    Keys missing from the payload are omitted, not defaulted. Entries of
    ``fields`` that are not strings are ignored.

    Args:
        payload: Parsed request body
        fields: Configured field names

    Returns:
        Mapping of each configured key present on the payload to its value
    """
    if not isinstance(payload, dict) or not isinstance(fields, (list, tuple)):
        return {}
    return {name: payload[name] for name in fields if isinstance(name, str) and name in payload}


def _first_value(payload: Any, candidates: tuple[str, ...]) -> str | None:
    if not isinstance(payload, dict):
        return None

    by_lower: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(key, str):
            by_lower.setdefault(key.lower(), value)

    for candidate in candidates:
        value = by_lower.get(candidate)
        if value is None or value == "" or isinstance(value, (dict, list)):
            continue
        return str(value)
    return None


def detect_event_type(payload: Any) -> str:
    """Return the first present event-type-shaped value, or ``"unknown"``."""
    return _first_value(payload, EVENT_TYPE_KEYS) or UNKNOWN_EVENT_TYPE


def detect_company_id(payload: Any) -> str | None:
    """Return the sender-reported company identifier, if any."""
    return _first_value(payload, COMPANY_ID_KEYS)


def detect_event_id(payload: Any) -> str | None:
    """Return the sender-reported event identifier, if any."""
    return _first_value(payload, EVENT_ID_KEYS)
