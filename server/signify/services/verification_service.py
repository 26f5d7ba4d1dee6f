"""Verifications submitted by the browser extension."""

import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signify.config import Settings, get_settings
from signify.db.tables import verifications_table
from signify.errors import Conflict, OwnerNotFound, ValidationError
from signify.models import (
    KeystrokeEvent,
    KeystrokeStats,
    OwnerRef,
    PasteEvents,
    Verification,
    VerificationCreate,
)
from signify.services.aggregator import aggregator
from signify.services.keystroke_service import keystroke_service
from signify.services.sequencer import sequencer

logger = logging.getLogger(__name__)

PUBLIC_ID_ALPHABET = string.ascii_lowercase + string.digits
PUBLIC_ID_LENGTH = 10


def _row_to_verification(row: Any) -> Verification:
    data = dict(row)
    data["keystroke_stats"] = KeystrokeStats.model_validate(data.get("keystroke_stats") or {})
    data["paste"] = PasteEvents.model_validate(data.pop("paste_events", None) or {})
    return Verification.model_validate(data)


class VerificationService:
    """Creates verifications and attaches their keystroke logs."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def configure(self, settings: Settings) -> None:
        self._settings = settings

    def generate_public_id(self) -> str:
        return "".join(secrets.choice(PUBLIC_ID_ALPHABET) for _ in range(PUBLIC_ID_LENGTH))

    async def get(self, session: AsyncSession, verification_id: UUID) -> Verification:
        result = await session.execute(
            select(verifications_table).where(verifications_table.c.id == verification_id)
        )
        row = result.mappings().first()
        if row is None:
            raise OwnerNotFound("Verification not found")
        return _row_to_verification(row)

    async def get_owned(
        self, session: AsyncSession, user_id: UUID, verification_id: UUID
    ) -> Verification:
        verification = await self.get(session, verification_id)
        if verification.user_id != user_id:
            raise OwnerNotFound("Verification not found")
        return verification

    async def list_for_user(self, session: AsyncSession, user_id: UUID) -> list[Verification]:
        """A user's verifications, newest first."""
        result = await session.execute(
            select(verifications_table)
            .where(verifications_table.c.user_id == user_id)
            .order_by(verifications_table.c.created_at.desc())
        )
        return [_row_to_verification(row) for row in result.mappings()]

    async def get_public(self, session: AsyncSession, public_id: str) -> Verification:
        result = await session.execute(
            select(verifications_table).where(verifications_table.c.public_id == public_id)
        )
        row = result.mappings().first()
        if row is None:
            raise OwnerNotFound("Verification not found")
        return _row_to_verification(row)

    async def create(
        self,
        session: AsyncSession,
        user_id: UUID,
        data: VerificationCreate,
    ) -> Verification:
        """Persist a verification and its keystrokes in one transaction."""
        settings = self._settings
        if data.platform not in settings.allowed_platforms:
            raise ValidationError(
                "Validation failed", {"platform": ["is not included in the list"]}
            )

        verification_id = uuid4()
        owner = OwnerRef.for_verification(verification_id)
        events = sequencer.validate_events(
            owner, data.keystrokes, max_events=settings.verification_batch_limit
        )
        status = aggregator.derive_verification_status(data.paste)
        public_id = await self._unique_public_id(session)
        now = datetime.now(timezone.utc)

        try:
            await session.execute(
                insert(verifications_table).values(
                    id=verification_id,
                    user_id=user_id,
                    public_id=public_id,
                    platform=data.platform,
                    content_hash=data.content_hash,
                    status=status.value,
                    keystroke_stats=data.keystroke_stats.model_dump(mode="json"),
                    paste_events=data.paste.model_dump(mode="json"),
                    start_at=data.start_at,
                    end_at=data.end_at,
                    created_at=now,
                )
            )
            if events:
                anchor = data.start_at or now
                await keystroke_service.append(session, owner, sequencer.prepare(events, anchor))
            await self._refresh_stats(session, verification_id, data.keystroke_stats)
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise Conflict("Could not allocate a public id, retry") from exc
        except Exception:
            await session.rollback()
            raise

        logger.info(
            "Created verification %s (%s) with %d keystrokes",
            public_id,
            status.value,
            len(events),
        )
        return await self.get(session, verification_id)

    async def append_keystrokes(
        self,
        session: AsyncSession,
        user_id: UUID,
        verification_id: UUID,
        events: Sequence[KeystrokeEvent],
        started_at: Optional[datetime] = None,
    ) -> Verification:
        verification = await self.get_owned(session, user_id, verification_id)
        owner = OwnerRef.for_verification(verification.id)
        anchor = started_at or verification.start_at or verification.created_at

        try:
            await keystroke_service.append(session, owner, sequencer.prepare(events, anchor))
            await self._refresh_stats(session, verification.id, verification.keystroke_stats)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

        return await self.get(session, verification_id)

    async def _refresh_stats(
        self,
        session: AsyncSession,
        verification_id: UUID,
        reported: KeystrokeStats,
    ) -> KeystrokeStats:
        """Overwrite total_keystrokes with the live count of stored events."""
        total = await aggregator.compute_keystroke_count(
            session, OwnerRef.for_verification(verification_id)
        )
        stats = reported.model_copy(update={"total_keystrokes": total})
        await session.execute(
            update(verifications_table)
            .where(verifications_table.c.id == verification_id)
            .values(keystroke_stats=stats.model_dump(mode="json"))
        )
        return stats

    async def _unique_public_id(self, session: AsyncSession) -> str:
        while True:
            candidate = self.generate_public_id()
            result = await session.execute(
                select(verifications_table.c.id).where(
                    verifications_table.c.public_id == candidate
                )
            )
            if result.first() is None:
                return candidate


# Singleton instance
verification_service = VerificationService()
