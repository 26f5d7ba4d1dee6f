"""Kudos on published posts, one per visitor."""

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signify.config import Settings, get_settings
from signify.db.tables import documents_table, kudos_table

logger = logging.getLogger(__name__)

VISITOR_COOKIE = "signify_visitor_id"


class KudosService:
    """Records kudos and keeps documents.kudos_count in step with them.

    Visitors are anonymous: a random id held in a signed cookie.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def configure(self, settings: Settings) -> None:
        self._settings = settings

    # ==================== VISITOR COOKIE ====================

    def new_visitor_id(self) -> str:
        return str(uuid4())

    def _signature(self, visitor_id: str) -> str:
        key = self._settings.secret_key.encode("utf-8")
        return hmac.new(key, visitor_id.encode("utf-8"), hashlib.sha256).hexdigest()

    def sign_visitor(self, visitor_id: str) -> str:
        return f"{visitor_id}.{self._signature(visitor_id)}"

    def read_visitor(self, cookie: Optional[str]) -> Optional[str]:
        """Visitor id from a signed cookie, or None if missing or tampered."""
        if not cookie or "." not in cookie:
            return None
        visitor_id, signature = cookie.rsplit(".", 1)
        if not visitor_id or not hmac.compare_digest(signature, self._signature(visitor_id)):
            return None
        return visitor_id

    # ==================== KUDOS ====================

    async def has_given(self, session: AsyncSession, document_id: UUID, visitor_id: str) -> bool:
        result = await session.execute(
            select(kudos_table.c.id).where(
                kudos_table.c.document_id == document_id,
                kudos_table.c.visitor_id == visitor_id,
            )
        )
        return result.first() is not None

    async def count(self, session: AsyncSession, document_id: UUID) -> int:
        result = await session.execute(
            select(func.count()).select_from(kudos_table).where(kudos_table.c.document_id == document_id)
        )
        return result.scalar_one()

    async def give(self, session: AsyncSession, document_id: UUID, visitor_id: str) -> tuple[int, bool]:
        """Record a kudo; returns (kudos_count, created).

        Giving twice is not an error: the second call reports created=False.
        """
        if await self.has_given(session, document_id, visitor_id):
            return await self.count(session, document_id), False

        try:
            await session.execute(
                insert(kudos_table).values(
                    document_id=document_id,
                    visitor_id=visitor_id,
                    created_at=datetime.now(timezone.utc),
                )
            )
            kudos_count = await self.count(session, document_id)
            await session.execute(
                update(documents_table)
                .where(documents_table.c.id == document_id)
                .values(kudos_count=kudos_count)
            )
            await session.commit()
        except IntegrityError:
            # Concurrent request from the same visitor got there first
            await session.rollback()
            return await self.count(session, document_id), False
        except Exception:
            await session.rollback()
            raise

        logger.info("Kudos for document %s, now %d", document_id, kudos_count)
        return kudos_count, True


# Singleton instance
kudos_service = KudosService()
