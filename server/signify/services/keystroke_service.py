"""Keystroke event store."""

import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signify.db.tables import keystrokes_table
from signify.errors import DuplicateSequence
from signify.models import EventPage, NewKeystroke, OwnerKind, OwnerRef, StoredKeystroke

logger = logging.getLogger(__name__)

# Keep IN (...) lists well under driver parameter limits
_LOOKUP_CHUNK = 500


def _owner_column(owner: OwnerRef):
    if owner.kind == OwnerKind.DOCUMENT:
        return keystrokes_table.c.document_id
    return keystrokes_table.c.verification_id


def _ordered(owner: OwnerRef):
    return (
        select(keystrokes_table)
        .where(_owner_column(owner) == owner.id)
        .order_by(
            keystrokes_table.c.sequence_number.asc(),
            keystrokes_table.c.timestamp.asc(),
        )
    )


class KeystrokeService:
    """Durable, ordered storage of keystroke events scoped to an owner.

    Writes happen inside the caller's transaction; the caller commits or
    rolls back. Owner statistics are never touched here.
    """

    async def append(
        self,
        session: AsyncSession,
        owner: OwnerRef,
        keystrokes: Sequence[NewKeystroke],
    ) -> int:
        """Insert a batch of events for one owner.

        Raises DuplicateSequence without writing anything if any sequence
        number is already stored for the owner.
        """
        if not keystrokes:
            return 0

        numbers = [k.sequence_number for k in keystrokes]
        existing = await self.existing_sequence_numbers(session, owner, numbers)
        if existing:
            logger.warning(
                "Duplicate sequence numbers for %s: %s", owner, existing[:10]
            )
            raise DuplicateSequence(existing)

        now = datetime.now(timezone.utc)
        rows = [
            {
                "document_id": owner.document_id,
                "verification_id": owner.verification_id,
                "event_type": k.event_type,
                "key_code": k.key_code,
                "character": k.character,
                "timestamp": k.timestamp,
                "cursor_position": k.cursor_position,
                "sequence_number": k.sequence_number,
                "created_at": now,
            }
            for k in keystrokes
        ]

        try:
            await session.execute(insert(keystrokes_table), rows)
        except IntegrityError as exc:
            # A concurrent writer claimed one of the numbers first
            logger.warning("Sequence collision while appending for %s", owner)
            raise DuplicateSequence(numbers) from exc

        logger.info("Appended %d keystrokes for %s", len(rows), owner)
        return len(rows)

    async def existing_sequence_numbers(
        self,
        session: AsyncSession,
        owner: OwnerRef,
        numbers: Sequence[int],
    ) -> list[int]:
        """Return the subset of ``numbers`` already stored for the owner."""
        column = _owner_column(owner)
        found: list[int] = []
        unique = sorted(set(numbers))
        for start in range(0, len(unique), _LOOKUP_CHUNK):
            chunk = unique[start:start + _LOOKUP_CHUNK]
            result = await session.execute(
                select(keystrokes_table.c.sequence_number).where(
                    column == owner.id,
                    keystrokes_table.c.sequence_number.in_(chunk),
                )
            )
            found.extend(result.scalars())
        return sorted(found)

    async def list_ordered(
        self,
        session: AsyncSession,
        owner: OwnerRef,
        page: int = 1,
        page_size: int = 1000,
    ) -> EventPage:
        """Read one page of events ordered by (sequence_number, timestamp).

        Fetches a single look-ahead row to decide ``has_more`` instead of
        counting the whole set.
        """
        page = max(page, 1)
        stmt = _ordered(owner).offset((page - 1) * page_size).limit(page_size + 1)
        result = await session.execute(stmt)
        rows = result.mappings().all()

        has_more = len(rows) > page_size
        events = [StoredKeystroke.model_validate(dict(row)) for row in rows[:page_size]]
        return EventPage(events=events, page=page, page_size=page_size, has_more=has_more)

    async def iter_ordered(
        self,
        session: AsyncSession,
        owner: OwnerRef,
        chunk_size: int = 1000,
    ) -> AsyncIterator[StoredKeystroke]:
        """Yield every event in canonical order, one page at a time."""
        page = 1
        while True:
            batch = await self.list_ordered(session, owner, page, chunk_size)
            for event in batch.events:
                yield event
            if not batch.has_more:
                return
            page += 1

    async def count(self, session: AsyncSession, owner: OwnerRef) -> int:
        result = await session.execute(
            select(func.count()).select_from(keystrokes_table).where(
                _owner_column(owner) == owner.id
            )
        )
        return int(result.scalar_one())

    async def delete_for_owner(self, session: AsyncSession, owner: OwnerRef) -> int:
        """Remove every event of an owner (used when the owner is destroyed)."""
        result = await session.execute(
            delete(keystrokes_table).where(_owner_column(owner) == owner.id)
        )
        return result.rowcount or 0


# Singleton instance
keystroke_service = KeystrokeService()
