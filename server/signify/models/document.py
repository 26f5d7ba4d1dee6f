"""Pydantic models for documents."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DocumentStatus(str, Enum):
    DRAFT = "draft"
    READY_TO_PUBLISH = "ready_to_publish"
    PUBLISHED = "published"


class Document(BaseModel):
    """Document row as persisted."""

    id: UUID
    user_id: UUID
    title: str
    content: str
    slug: str
    public_slug: Optional[str] = None
    status: DocumentStatus
    hidden_from_public: bool = False
    word_count: int = 0
    reading_time_minutes: int = 0
    keystroke_count: int = 0
    kudos_count: int = 0
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_published(self) -> bool:
        return self.status == DocumentStatus.PUBLISHED

    @property
    def is_public(self) -> bool:
        return self.is_published and not self.hidden_from_public and self.public_slug is not None


class DocumentCreate(BaseModel):
    title: str = Field("", max_length=255)
    content: str = ""


class DocumentUpdate(BaseModel):
    """Partial update; keystrokes are validated separately as a batch."""

    title: Optional[str] = Field(None, max_length=255)
    content: Optional[str] = None
    status: Optional[DocumentStatus] = None
    started_at: Optional[datetime] = None
    keystrokes: Optional[list[dict[str, Any]]] = None


class DocumentResponse(BaseModel):
    """Owner-facing document representation."""

    id: UUID
    title: str
    slug: str
    public_slug: Optional[str]
    status: DocumentStatus
    content: str
    word_count: int
    reading_time_minutes: int
    keystroke_count: int
    kudos_count: int
    hidden_from_public: bool
    published_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentResponse":
        return cls(**document.model_dump(exclude={"user_id"}))
