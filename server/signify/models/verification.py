"""Pydantic models for extension verifications."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class VerificationStatus(str, Enum):
    HUMAN_WRITTEN = "human_written"
    MIXED = "mixed"


class PasteEvents(BaseModel):
    """Paste summary reported by the capturing client.

    Only boolean true or the exact string "true" mean a paste occurred; any
    other value (including "yes", 1 or "TRUE") reads as false.
    """

    model_config = ConfigDict(extra="ignore")

    occurred: bool = False
    count: int = Field(0, ge=0)

    @field_validator("occurred", mode="before")
    @classmethod
    def _strict_occurred(cls, value: Any) -> bool:
        return value is True or value == "true"


class KeystrokeStats(BaseModel):
    """Client-reported capture statistics; total_keystrokes is overwritten server-side."""

    model_config = ConfigDict(extra="ignore")

    total_keystrokes: int = Field(0, ge=0)
    duration_ms: Optional[int] = Field(None, ge=0)


class VerificationCreate(BaseModel):
    platform: str = Field(..., min_length=1, max_length=32)
    content_hash: str = Field(..., min_length=1, max_length=255)
    keystroke_stats: KeystrokeStats = Field(default_factory=KeystrokeStats)
    paste: PasteEvents = Field(
        default_factory=PasteEvents,
        validation_alias=AliasChoices("paste", "paste_events"),
    )
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    keystrokes: list[dict[str, Any]] = Field(default_factory=list)


class VerificationRequest(BaseModel):
    """Envelope sent by the browser extension."""

    verification: VerificationCreate


class Verification(BaseModel):
    """Verification row as persisted."""

    id: UUID
    user_id: UUID
    public_id: str
    platform: str
    content_hash: str
    status: VerificationStatus
    keystroke_stats: KeystrokeStats
    paste: PasteEvents
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    created_at: datetime

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.start_at is None or self.end_at is None:
            return None
        return int((self.end_at - self.start_at).total_seconds())


class VerificationCreated(BaseModel):
    id: str
    status: VerificationStatus
    public_url: str
