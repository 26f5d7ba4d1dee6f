"""Pydantic models for keystroke data."""

import re
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_UNSAFE_CHARS = re.compile(r"[<>\"'&]")

# Column width of the integer keystroke fields.
MAX_INT32 = 2**31 - 1


class OwnerKind(str, Enum):
    DOCUMENT = "document"
    VERIFICATION = "verification"


class OwnerRef(BaseModel):
    """The aggregate a keystroke belongs to: exactly one document or verification."""

    model_config = ConfigDict(frozen=True)

    document_id: Optional[UUID] = None
    verification_id: Optional[UUID] = None

    @model_validator(mode="after")
    def _exactly_one_owner(self) -> "OwnerRef":
        if (self.document_id is None) == (self.verification_id is None):
            raise ValueError("exactly one of document_id or verification_id is required")
        return self

    @classmethod
    def for_document(cls, document_id: UUID) -> "OwnerRef":
        return cls(document_id=document_id)

    @classmethod
    def for_verification(cls, verification_id: UUID) -> "OwnerRef":
        return cls(verification_id=verification_id)

    @property
    def kind(self) -> OwnerKind:
        return OwnerKind.DOCUMENT if self.document_id is not None else OwnerKind.VERIFICATION

    @property
    def id(self) -> UUID:
        return self.document_id if self.document_id is not None else self.verification_id  # type: ignore[return-value]

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class KeystrokeEvent(BaseModel):
    """Single keystroke event from client."""

    model_config = ConfigDict(extra="ignore")

    event_type: Literal["keydown", "keyup"]
    key_code: str = Field(..., min_length=1, max_length=32)
    character: Optional[str] = Field(None, max_length=16)
    timestamp: float = Field(
        ...,
        ge=0,
        description="Epoch milliseconds, epoch seconds, or milliseconds since capture start",
    )
    cursor_position: int = Field(..., ge=0, le=MAX_INT32)
    sequence_number: int = Field(..., ge=0, le=MAX_INT32)

    @field_validator("key_code", mode="before")
    @classmethod
    def _key_code_to_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(int(value))
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("character", mode="before")
    @classmethod
    def _sanitize_character(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            return value
        # Whitespace is a legitimate keystroke character; only strip markup chars
        cleaned = _UNSAFE_CHARS.sub("", value)
        return cleaned or None


class KeystrokeBatchRequest(BaseModel):
    """Batch of keystroke events for one owner."""

    document_id: Optional[UUID] = None
    verification_id: Optional[UUID] = None
    started_at: Optional[datetime] = Field(
        None, description="Capture start; anchors relative timestamps"
    )
    events: list[KeystrokeEvent] = Field(..., min_length=1)

    @model_validator(mode="after")
    def _exactly_one_owner(self) -> "KeystrokeBatchRequest":
        if (self.document_id is None) == (self.verification_id is None):
            raise ValueError("exactly one of document_id or verification_id is required")
        return self

    @property
    def owner(self) -> OwnerRef:
        return OwnerRef(document_id=self.document_id, verification_id=self.verification_id)


class KeystrokeBatchResponse(BaseModel):
    """Response after processing keystroke batch."""

    owner_type: OwnerKind
    owner_id: UUID
    events_processed: int
    keystroke_count: int


class NewKeystroke(BaseModel):
    """Validated event with its timestamp resolved to epoch seconds."""

    event_type: Literal["keydown", "keyup"]
    key_code: str
    character: Optional[str]
    timestamp: float
    cursor_position: int
    sequence_number: int


class StoredKeystroke(BaseModel):
    """Keystroke row as persisted."""

    id: int
    document_id: Optional[UUID] = None
    verification_id: Optional[UUID] = None
    event_type: str
    key_code: str
    character: Optional[str]
    timestamp: float  # seconds since epoch
    cursor_position: int
    sequence_number: int
    created_at: datetime

    @property
    def timestamp_ms(self) -> int:
        return int(round(self.timestamp * 1000))


class EventPage(BaseModel):
    """One page of stored events, in canonical order."""

    events: list[StoredKeystroke]
    page: int
    page_size: int
    has_more: bool


class ReplayKeystroke(BaseModel):
    """Public view of a keystroke. Only these fields ever leave the server."""

    event_type: str
    key_code: str
    character: Optional[str]
    cursor_position: int
    sequence_number: int
    timestamp: int  # milliseconds since epoch

    @classmethod
    def from_stored(cls, stored: StoredKeystroke) -> "ReplayKeystroke":
        return cls(
            event_type=stored.event_type,
            key_code=stored.key_code,
            character=stored.character,
            cursor_position=stored.cursor_position,
            sequence_number=stored.sequence_number,
            timestamp=stored.timestamp_ms,
        )


class Pagination(BaseModel):
    current_page: int
    per_page: int
    has_more: bool
    total_keystrokes: Optional[int] = None


class KeystrokePage(BaseModel):
    keystrokes: list[ReplayKeystroke]
    pagination: Pagination
