"""Ordered, paginated keystroke replay for public and author views."""

import logging
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from signify.config import Settings, get_settings
from signify.models import KeystrokePage, OwnerRef, Pagination, ReplayKeystroke
from signify.services.document_service import document_service
from signify.services.keystroke_service import keystroke_service
from signify.services.verification_service import verification_service

logger = logging.getLogger(__name__)


class ReplayService:
    """Serves a page-stable view of an owner's events.

    Public callers can only reach published, visible documents and existing
    verifications; every other lookup fails as not found.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def configure(self, settings: Settings) -> None:
        self._settings = settings

    async def page(
        self,
        session: AsyncSession,
        owner: OwnerRef,
        page: int = 1,
        per_page: Optional[int] = None,
        include_total: bool = True,
    ) -> KeystrokePage:
        per_page = per_page or self._settings.replay_page_size
        page = max(page, 1)
        events = await keystroke_service.list_ordered(session, owner, page, per_page)
        logger.debug("Replay %s page %d: %d events", owner, page, len(events.events))

        total = await keystroke_service.count(session, owner) if include_total else None
        return KeystrokePage(
            keystrokes=[ReplayKeystroke.from_stored(event) for event in events.events],
            pagination=Pagination(
                current_page=page,
                per_page=per_page,
                has_more=events.has_more,
                total_keystrokes=total,
            ),
        )

    async def sample(self, session: AsyncSession, owner: OwnerRef, limit: int = 50) -> list[ReplayKeystroke]:
        events = await keystroke_service.list_ordered(session, owner, 1, limit)
        return [ReplayKeystroke.from_stored(event) for event in events.events]

    async def replay_post(
        self,
        session: AsyncSession,
        public_slug: str,
        page: int = 1,
        per_page: Optional[int] = None,
        include_total: bool = True,
    ) -> KeystrokePage:
        document = await document_service.get_public(session, public_slug)
        return await self.page(
            session, OwnerRef.for_document(document.id), page, per_page, include_total
        )

    async def replay_own_document(
        self,
        session: AsyncSession,
        user_id: UUID,
        document_id: UUID,
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> KeystrokePage:
        """Author path: drafts included."""
        document = await document_service.get_owned(session, user_id, document_id)
        return await self.page(session, OwnerRef.for_document(document.id), page, per_page)

    async def replay_verification(
        self,
        session: AsyncSession,
        public_id: str,
        page: int = 1,
        per_page: Optional[int] = None,
        include_total: bool = True,
    ) -> KeystrokePage:
        verification = await verification_service.get_public(session, public_id)
        return await self.page(
            session, OwnerRef.for_verification(verification.id), page, per_page, include_total
        )


# Singleton instance
replay_service = ReplayService()
