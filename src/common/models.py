"""Shared data models for relayed account events."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Enumeration of normalised account event kinds."""

    FILL = "fill"
    EVENT = "event"
    LEDGER = "ledger"
    RAW = "raw"


class NormalizedEvent(BaseModel):
    """Uniform record produced from any inbound message shape.

    Only ``kind``, ``address`` and ``time`` are declared. Every other field the
    source sent (``txHash``, ``oid``, ``coin``, ``px``, ...) is kept verbatim in
    the model's extra fields so unknown upstream additions survive the relay.
    """

    model_config = ConfigDict(extra="allow")

    kind: EventKind
    address: Optional[str] = Field(
        None, description="Account address the event belongs to (partition key)"
    )
    time: Optional[Union[int, float, str]] = Field(
        None, description="Source event time, normally epoch milliseconds"
    )

    def lookup(self, *names: str) -> Any:
        """Return the first non-empty value among ``names``."""

        extra = self.model_extra or {}
        for name in names:
            if name in type(self).model_fields:
                value = getattr(self, name)
            else:
                value = extra.get(name)
            if value is not None and value != "":
                return value
        return None

    def to_payload(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        for key in ("address", "time"):
            if data.get(key) is None:
                data.pop(key, None)
        return data


class FillEvent(NormalizedEvent):
    kind: Literal[EventKind.FILL] = EventKind.FILL


class AccountEvent(NormalizedEvent):
    kind: Literal[EventKind.EVENT] = EventKind.EVENT


class LedgerEvent(NormalizedEvent):
    kind: Literal[EventKind.LEDGER] = EventKind.LEDGER


class RawEvent(NormalizedEvent):
    kind: Literal[EventKind.RAW] = EventKind.RAW


RelayEvent = Annotated[
    Union[FillEvent, AccountEvent, LedgerEvent, RawEvent],
    Field(discriminator="kind"),
]

EVENT_MODELS: dict[EventKind, type[NormalizedEvent]] = {
    EventKind.FILL: FillEvent,
    EventKind.EVENT: AccountEvent,
    EventKind.LEDGER: LedgerEvent,
    EventKind.RAW: RawEvent,
}


class Envelope(BaseModel):
    """Outer object wrapping a normalised event for delivery."""

    model_config = ConfigDict(populate_by_name=True)

    source: Literal["stream", "poll"] = Field(..., description="Path that observed the event")
    received_at: int = Field(
        ..., alias="receivedAt", description="Wall clock receipt time in milliseconds"
    )
    event: RelayEvent

    def to_payload(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "receivedAt": self.received_at,
            "event": self.event.to_payload(),
        }


__all__ = [
    "AccountEvent",
    "EVENT_MODELS",
    "Envelope",
    "EventKind",
    "FillEvent",
    "LedgerEvent",
    "NormalizedEvent",
    "RawEvent",
    "RelayEvent",
]
