"""Keystroke data exports (JSON and CSV)."""

import csv
import io
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from signify.models import Document, OwnerRef, StoredKeystroke
from signify.services.keystroke_service import keystroke_service

CSV_COLUMNS = [
    "sequence_number",
    "event_type",
    "key_code",
    "character",
    "timestamp",
    "cursor_position",
    "created_at",
]


def _keystroke_row(keystroke: StoredKeystroke) -> dict[str, Any]:
    return {
        "sequence_number": keystroke.sequence_number,
        "event_type": keystroke.event_type,
        "key_code": keystroke.key_code,
        "character": keystroke.character,
        "timestamp": keystroke.timestamp,
        "cursor_position": keystroke.cursor_position,
        "created_at": keystroke.created_at.isoformat(),
    }


class ExportService:
    async def keystrokes(self, session: AsyncSession, document: Document) -> list[StoredKeystroke]:
        owner = OwnerRef.for_document(document.id)
        return [k async for k in keystroke_service.iter_ordered(session, owner)]

    async def as_json(
        self,
        session: AsyncSession,
        document: Document,
        author_display_name: Optional[str],
    ) -> dict[str, Any]:
        keystrokes = await self.keystrokes(session, document)
        return {
            "document": {
                "id": str(document.id),
                "title": document.title,
                "public_slug": document.public_slug,
                "status": document.status.value,
                "published_at": document.published_at.isoformat() if document.published_at else None,
                "word_count": document.word_count,
                "reading_time_minutes": document.reading_time_minutes,
                "keystroke_count": len(keystrokes),
                "character_count": len(document.content or ""),
                "author": {"display_name": author_display_name},
            },
            "keystrokes": [_keystroke_row(k) for k in keystrokes],
            "data_format": {
                "version": "1.0",
                "timestamp_unit": "seconds_since_epoch",
                "total_keystrokes": len(keystrokes),
                "exported_at": datetime.now(timezone.utc).isoformat(),
            },
        }

    async def as_csv(self, session: AsyncSession, document: Document) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        owner = OwnerRef.for_document(document.id)
        async for keystroke in keystroke_service.iter_ordered(session, owner):
            writer.writerow(_keystroke_row(keystroke))
        return buffer.getvalue()

    def filename(self, document: Document, extension: str) -> str:
        stem = document.public_slug or document.slug
        return f"{stem}-keystrokes-{datetime.now(timezone.utc):%Y%m%d}.{extension}"


# Singleton instance
export_service = ExportService()
