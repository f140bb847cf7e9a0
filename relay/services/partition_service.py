"""Grouping of batched webhook events into per-conversation partitions.

Under load Facebook coalesces messages from many users into one delivery.
Events sharing a sender/recipient pair belong to one conversation and must be
dispatched in timestamp order; different pairs are independent.

    U1 -> P1 @ T1, U2 -> P1 @ T3, U1 -> P1 @ T2
        =>  {"U1_P1": [T1, T2], "U2_P1": [T3]}
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

# Missing sender/recipient ids still produce a key; the event then fails at dispatch time.
MISSING_ID_PLACEHOLDER = "undefined"


def _participant_id(raw_event: dict, role: str) -> Optional[str]:
    participant = raw_event.get(role)
    if not isinstance(participant, dict):
        return None
    value = participant.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _coerce_timestamp(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class EventRecord:
    sender_id: Optional[str]
    recipient_id: Optional[str]
    timestamp: Optional[int]
    payload: dict = field(default_factory=dict, hash=False)

    @classmethod
    def from_raw(cls, raw_event: dict) -> "EventRecord":
        return cls(
            sender_id=_participant_id(raw_event, "sender"),
            recipient_id=_participant_id(raw_event, "recipient"),
            timestamp=_coerce_timestamp(raw_event.get("timestamp")),
            payload=raw_event,
        )


def flatten_entries(entries: Iterable[Any]) -> list[EventRecord]:
    """Concatenate the `messaging` lists of all entries, preserving delivery order."""
    events: list[EventRecord] = []
    for entry in entries:
        messaging = entry.get("messaging") if isinstance(entry, dict) else entry.messaging
        for raw_event in messaging or []:
            events.append(EventRecord.from_raw(raw_event))
    return events


def partition_key(event: EventRecord) -> str:
    sender = event.sender_id if event.sender_id is not None else MISSING_ID_PLACEHOLDER
    recipient = event.recipient_id if event.recipient_id is not None else MISSING_ID_PLACEHOLDER
    return f"{sender}_{recipient}"


def partition_events(events: Iterable[EventRecord]) -> dict[str, list[EventRecord]]:
    partitions: dict[str, list[EventRecord]] = {}
    for event in events:
        partitions.setdefault(partition_key(event), []).append(event)

    # list.sort is stable, so equal timestamps keep arrival order.
    for bucket in partitions.values():
        bucket.sort(key=lambda e: e.timestamp if e.timestamp is not None else 0)
    return partitions
