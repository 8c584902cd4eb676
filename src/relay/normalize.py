"""Map inbound Hyperliquid user-stream messages onto uniform relay events."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from common.models import EVENT_MODELS, EventKind, NormalizedEvent

logger = logging.getLogger(__name__)

ADDRESS_ALIASES = ("user", "wallet")
LEDGER_LIST_KEYS = ("updates", "nonFundingLedgerUpdates")
PONG_MARKERS = ("channel", "method", "type")


def is_subscription_ack(payload: Any) -> bool:
    """Return ``True`` for subscription acknowledgements, which are never relayed."""

    if not isinstance(payload, Mapping):
        return False
    if "subscription" in payload and "channel" in payload:
        return True
    return payload.get("channel") == "subscriptionResponse"


def is_pong(payload: Any) -> bool:
    if not isinstance(payload, Mapping):
        return False
    return any(str(payload.get(key, "")).lower() == "pong" for key in PONG_MARKERS)


def normalize_message(payload: Any) -> list[NormalizedEvent]:
    """Expand one parsed message into zero or more events, preserving order."""

    payload, default_address = _unwrap_channel(payload)
    candidates = _expand(payload)
    events: list[NormalizedEvent] = []
    for kind, record in candidates:
        _fill_address(record, default_address)
        events.append(_build(kind, record))
    return events


def _unwrap_channel(payload: Any) -> tuple[Any, Optional[str]]:
    """Strip Hyperliquid ``{"channel": ..., "data": ...}`` framing.

    The account named on the container becomes the default address for every
    event expanded from ``data``.
    """

    if not isinstance(payload, Mapping) or is_pong(payload):
        return payload, None
    if "channel" not in payload or not isinstance(payload.get("data"), (Mapping, list)):
        return payload, None
    data = payload["data"]
    default_address = None
    if isinstance(data, Mapping):
        default_address = _first_address(data)
    return data, default_address


def _expand(payload: Any) -> list[tuple[EventKind, dict[str, Any]]]:
    if isinstance(payload, list):
        return [_classify_element(item) for item in payload]

    if not isinstance(payload, Mapping):
        return [(EventKind.RAW, {"value": payload})]

    if isinstance(payload.get("fills"), list):
        return _tagged(EventKind.FILL, payload["fills"], payload)
    if isinstance(payload.get("fill"), Mapping):
        return _tagged(EventKind.FILL, [payload["fill"]], payload)
    if "events" in payload:
        return _tagged(EventKind.EVENT, _as_list(payload["events"]), payload)
    if "event" in payload:
        return _tagged(EventKind.EVENT, _as_list(payload["event"]), payload)
    for key in LEDGER_LIST_KEYS:
        if key in payload:
            return _tagged(EventKind.LEDGER, _as_list(payload[key]), payload)
    if "update" in payload:
        return _tagged(EventKind.LEDGER, _as_list(payload["update"]), payload)
    if is_pong(payload):
        return []
    return [(EventKind.RAW, dict(payload))]


def _tagged(
    kind: EventKind, items: Iterable[Any], container: Mapping[str, Any]
) -> list[tuple[EventKind, dict[str, Any]]]:
    container_address = _first_address(container)
    tagged = []
    for item in items:
        record = _as_record(item)
        _fill_address(record, container_address)
        tagged.append((kind, record))
    return tagged


def _classify_element(item: Any) -> tuple[EventKind, dict[str, Any]]:
    record = _as_record(item)
    declared = record.get("kind")
    try:
        return EventKind(declared), record
    except ValueError:
        pass
    if "oid" in record or ("px" in record and "sz" in record):
        return EventKind.FILL, record
    return EventKind.RAW, record


def _fill_address(record: dict[str, Any], default_address: Optional[str]) -> None:
    if not record.get("address"):
        alias = _first_address(record, include_address=False) or default_address
        if alias:
            record["address"] = alias
    if record.get("address") is not None and not isinstance(record["address"], str):
        record["address"] = str(record["address"])


def _first_address(record: Mapping[str, Any], include_address: bool = True) -> Optional[str]:
    keys = (("address",) if include_address else ()) + ADDRESS_ALIASES
    for key in keys:
        value = record.get(key)
        if value:
            return str(value)
    return None


def _build(kind: EventKind, record: dict[str, Any]) -> NormalizedEvent:
    preserve_source_kind(record, kind)
    time_value = record.get("time")
    if time_value is not None and not isinstance(time_value, (int, float, str)):
        record["time"] = str(time_value)
    return EVENT_MODELS[kind].model_validate(record)


def preserve_source_kind(record: dict[str, Any], kind: EventKind) -> None:
    """Move an upstream ``kind`` field aside so it cannot clash with the tag.

    A value that differs from the assigned tag is kept as ``sourceKind``.
    """

    source_kind = record.pop("kind", None)
    if source_kind is not None and source_kind != kind.value:
        record["sourceKind"] = source_kind


def _as_record(item: Any) -> dict[str, Any]:
    if isinstance(item, Mapping):
        return dict(item)
    return {"value": item}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    if value is None:
        return []
    return [value]


__all__ = ["is_pong", "is_subscription_ack", "normalize_message", "preserve_source_kind"]
