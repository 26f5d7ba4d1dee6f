"""Keystroke batch validation.

Every batch passes through here before it reaches the store. A batch is
accepted or rejected as a whole; field errors are reported with dotted
locations such as ``events.3.cursor_position``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Sequence

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from signify.errors import ValidationError
from signify.models import KeystrokeBatchRequest, KeystrokeEvent, NewKeystroke, OwnerRef

logger = logging.getLogger(__name__)

_EVENTS_ADAPTER = TypeAdapter(list[KeystrokeEvent])

# Thresholds for interpreting numeric client timestamps
EPOCH_MS_THRESHOLD = 10_000_000_000
EPOCH_S_THRESHOLD = 1_000_000_000


def field_errors(exc: PydanticValidationError, prefix: str = "") -> dict[str, list[str]]:
    """Flatten pydantic errors into {"dotted.location": [messages]}."""
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        parts = [prefix] if prefix else []
        parts.extend(str(part) for part in error["loc"])
        key = ".".join(parts) or "owner"
        fields.setdefault(key, []).append(error["msg"])
    return fields


def resolve_timestamp(value: float, anchor: datetime) -> float:
    """Turn a client timestamp into seconds since the epoch.

    Large values are absolute (epoch milliseconds or seconds); anything
    smaller is an offset in milliseconds from ``anchor``.
    """
    if value > EPOCH_MS_THRESHOLD:
        return value / 1000.0
    if value > EPOCH_S_THRESHOLD:
        return float(value)
    if anchor.tzinfo is None:
        anchor = anchor.replace(tzinfo=timezone.utc)
    return anchor.timestamp() + value / 1000.0


class Sequencer:
    """Guards ownership, shape and uniqueness of keystroke batches."""

    def validate_batch(
        self,
        payload: Mapping[str, Any],
        max_events: Optional[int] = None,
    ) -> KeystrokeBatchRequest:
        """Validate a raw ingestion payload (owner reference plus events)."""
        try:
            batch = KeystrokeBatchRequest.model_validate(payload)
        except PydanticValidationError as exc:
            fields = field_errors(exc)
            logger.warning("Rejected keystroke batch: %s", sorted(fields))
            raise ValidationError("Invalid keystroke batch", fields) from exc

        self.check_batch(batch.events, max_events)
        return batch

    def validate_events(
        self,
        owner: OwnerRef,
        raw_events: Sequence[Any],
        max_events: Optional[int] = None,
    ) -> list[KeystrokeEvent]:
        """Validate events whose owner is already known (embedded batches)."""
        try:
            events = _EVENTS_ADAPTER.validate_python(list(raw_events))
        except PydanticValidationError as exc:
            fields = field_errors(exc, prefix="events")
            logger.warning("Rejected keystroke batch for %s: %s", owner, sorted(fields))
            raise ValidationError("Invalid keystroke batch", fields) from exc

        self.check_batch(events, max_events)
        return events

    def check_batch(self, events: Sequence[KeystrokeEvent], max_events: Optional[int]) -> None:
        if max_events is not None and len(events) > max_events:
            raise ValidationError(
                "Too many keystrokes in one batch",
                {"events": [f"at most {max_events} events per batch"]},
            )

        seen: dict[int, int] = {}
        fields: dict[str, list[str]] = {}
        for index, event in enumerate(events):
            if event.sequence_number in seen:
                fields[f"events.{index}.sequence_number"] = [
                    f"duplicates events.{seen[event.sequence_number]}.sequence_number"
                ]
            else:
                seen[event.sequence_number] = index

        if fields:
            raise ValidationError("Duplicate sequence numbers in batch", fields)

    def prepare(self, events: Sequence[KeystrokeEvent], anchor: datetime) -> list[NewKeystroke]:
        """Resolve timestamps so events are ready for the store."""
        return [
            NewKeystroke(
                event_type=event.event_type,
                key_code=event.key_code,
                character=event.character,
                timestamp=resolve_timestamp(event.timestamp, anchor),
                cursor_position=event.cursor_position,
                sequence_number=event.sequence_number,
            )
            for event in events
        ]


# Singleton instance
sequencer = Sequencer()
