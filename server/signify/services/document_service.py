"""Document lifecycle: editing, keystroke capture, publishing."""

import logging
import re
import unicodedata
from datetime import datetime, timezone
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

from bs4 import BeautifulSoup
from sqlalchemy import delete, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signify.config import Settings, get_settings
from signify.db.tables import documents_table
from signify.errors import (
    Conflict,
    DocumentLocked,
    OwnerNotFound,
    OwnerNotPublic,
    PublishRequirementsNotMet,
)
from signify.models import (
    Document,
    DocumentCreate,
    DocumentStatus,
    DocumentUpdate,
    KeystrokeEvent,
    OwnerRef,
)
from signify.services.aggregator import DocumentStats, aggregator
from signify.services.keystroke_service import keystroke_service
from signify.services.sequencer import sequencer

logger = logging.getLogger(__name__)

ALLOWED_TAGS = {"p", "br", "strong", "b", "em", "i", "u", "ol", "ul", "li", "blockquote"}
DROPPED_TAGS = {"script", "style", "iframe", "object", "embed"}

_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")
_UNSAFE_TITLE_CHARS = re.compile(r"[<>\"'&]")


# ==================== CONTENT HELPERS ====================

def parameterize(text: str) -> str:
    """URL-safe slug: lowercase ASCII words joined by hyphens."""
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return _SLUG_SEPARATORS.sub("-", ascii_text.lower()).strip("-")


def sanitize_title(title: str) -> str:
    text = BeautifulSoup(title, "html.parser").get_text()
    return _UNSAFE_TITLE_CHARS.sub("", text).strip()[:255]


def sanitize_content(content: str) -> str:
    """Keep basic formatting tags, drop attributes and everything else."""
    soup = BeautifulSoup(content, "html.parser")
    for tag in soup.find_all(list(DROPPED_TAGS)):
        if not tag.decomposed:
            tag.decompose()
    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
        else:
            tag.attrs = {}
    return str(soup)


def excerpt(content: Optional[str], length: int = 200) -> str:
    stripped = " ".join(aggregator.strip_markup(content).split())
    if len(stripped) > length:
        return f"{stripped[:length]}..."
    return stripped


def _row_to_document(row: Any) -> Document:
    return Document.model_validate(dict(row))


class DocumentService:
    """Authenticated document editing and publishing."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def configure(self, settings: Settings) -> None:
        self._settings = settings

    # ==================== LOOKUPS ====================

    async def get_owned(self, session: AsyncSession, user_id: UUID, document_id: UUID) -> Document:
        result = await session.execute(
            select(documents_table).where(
                documents_table.c.id == document_id,
                documents_table.c.user_id == user_id,
            )
        )
        row = result.mappings().first()
        if row is None:
            raise OwnerNotFound("Document not found")
        return _row_to_document(row)

    async def list_for_user(self, session: AsyncSession, user_id: UUID) -> list[Document]:
        result = await session.execute(
            select(documents_table)
            .where(documents_table.c.user_id == user_id)
            .order_by(documents_table.c.updated_at.desc())
        )
        return [_row_to_document(row) for row in result.mappings()]

    async def get_public(self, session: AsyncSession, public_slug: str) -> Document:
        """Resolve a published, visible document; anything else is not found."""
        result = await session.execute(
            select(documents_table).where(documents_table.c.public_slug == public_slug)
        )
        row = result.mappings().first()
        if row is None:
            raise OwnerNotFound("Post not found")
        document = _row_to_document(row)
        if not document.is_public:
            raise OwnerNotPublic("Post not found")
        return document

    async def list_public(
        self,
        session: AsyncSession,
        search: Optional[str] = None,
        limit: int = 20,
    ) -> list[Document]:
        stmt = select(documents_table).where(
            documents_table.c.status == DocumentStatus.PUBLISHED.value,
            documents_table.c.hidden_from_public.is_(False),
            documents_table.c.public_slug.is_not(None),
        )
        if search:
            term = f"%{search}%"
            stmt = stmt.where(
                or_(
                    documents_table.c.title.ilike(term),
                    documents_table.c.content.ilike(term),
                )
            )
        stmt = stmt.order_by(
            documents_table.c.kudos_count.desc(), documents_table.c.published_at.desc()
        ).limit(limit)
        result = await session.execute(stmt)
        return [_row_to_document(row) for row in result.mappings()]

    # ==================== WRITES ====================

    async def create(self, session: AsyncSession, user_id: UUID, data: DocumentCreate) -> Document:
        title = sanitize_title(data.title)
        content = sanitize_content(data.content)
        document_id = uuid4()
        now = datetime.now(timezone.utc)

        try:
            slug = await self._unique_value(session, "slug", parameterize(title) or "untitled")
            stats = await aggregator.document_stats(session, OwnerRef.for_document(document_id), content)
            await session.execute(
                insert(documents_table).values(
                    id=document_id,
                    user_id=user_id,
                    title=title,
                    content=content,
                    slug=slug,
                    status=DocumentStatus.DRAFT.value,
                    hidden_from_public=False,
                    created_at=now,
                    updated_at=now,
                    **stats.as_row(),
                )
            )
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise Conflict("Document slug already taken, retry") from exc
        except Exception:
            await session.rollback()
            raise

        logger.info("Created document %s for user %s", document_id, user_id)
        return await self.get_owned(session, user_id, document_id)

    async def update(
        self,
        session: AsyncSession,
        user_id: UUID,
        document_id: UUID,
        changes: DocumentUpdate,
    ) -> Document:
        """Apply edits and an optional keystroke batch atomically.

        Statistics are recomputed on every update, even when content is
        unchanged.
        """
        document = await self.get_owned(session, user_id, document_id)
        owner = OwnerRef.for_document(document.id)

        title = sanitize_title(changes.title) if changes.title is not None else document.title
        content = sanitize_content(changes.content) if changes.content is not None else document.content
        status = changes.status or document.status

        if document.is_published:
            locked = []
            if title != document.title:
                locked.append("title")
            if content != document.content:
                locked.append("content")
            if status != DocumentStatus.PUBLISHED:
                locked.append("status")
            if changes.keystrokes:
                locked.append("keystrokes")
            if locked:
                raise DocumentLocked(
                    "Published documents cannot be edited",
                    {field: ["cannot change after publishing"] for field in locked},
                )

        events: list[KeystrokeEvent] = []
        if changes.keystrokes:
            events = sequencer.validate_events(
                owner, changes.keystrokes, max_events=self._settings.document_batch_limit
            )

        try:
            if events:
                await self._append(session, document, events, changes.started_at)

            values: dict[str, Any] = {
                "title": title,
                "content": content,
                "updated_at": datetime.now(timezone.utc),
            }
            if status != DocumentStatus.PUBLISHED:
                values["status"] = status.value

            stats = await aggregator.document_stats(session, owner, content)
            values.update(stats.as_row())
            await session.execute(
                update(documents_table).where(documents_table.c.id == document.id).values(**values)
            )

            if status == DocumentStatus.PUBLISHED and not document.is_published:
                await self._publish(session, document.id, title, content, stats.keystroke_count)

            await session.commit()
        except Exception:
            await session.rollback()
            raise

        return await self.get_owned(session, user_id, document_id)

    async def append_keystrokes(
        self,
        session: AsyncSession,
        user_id: UUID,
        document_id: UUID,
        events: Sequence[KeystrokeEvent],
        started_at: Optional[datetime] = None,
    ) -> Document:
        """Store a validated batch for a draft and refresh its statistics."""
        document = await self.get_owned(session, user_id, document_id)
        if document.is_published:
            raise DocumentLocked("Published documents do not accept new keystrokes")

        try:
            await self._append(session, document, events, started_at)
            await self._refresh_stats(session, document)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

        return await self.get_owned(session, user_id, document_id)

    async def publish(self, session: AsyncSession, user_id: UUID, document_id: UUID) -> Document:
        document = await self.get_owned(session, user_id, document_id)
        if document.is_published:
            raise DocumentLocked("Document is already published")

        try:
            stats = await self._refresh_stats(session, document)
            await self._publish(
                session, document.id, document.title, document.content, stats.keystroke_count
            )
            await session.commit()
        except Exception:
            await session.rollback()
            raise

        logger.info("Published document %s", document_id)
        return await self.get_owned(session, user_id, document_id)

    async def delete(self, session: AsyncSession, user_id: UUID, document_id: UUID) -> str:
        """Hard-delete drafts; published documents are only hidden.

        Returns "deleted" or "hidden".
        """
        document = await self.get_owned(session, user_id, document_id)

        try:
            if document.is_published:
                await session.execute(
                    update(documents_table)
                    .where(documents_table.c.id == document.id)
                    .values(hidden_from_public=True, updated_at=datetime.now(timezone.utc))
                )
                outcome = "hidden"
            else:
                removed = await keystroke_service.delete_for_owner(
                    session, OwnerRef.for_document(document.id)
                )
                await session.execute(
                    delete(documents_table).where(documents_table.c.id == document.id)
                )
                logger.info("Deleted document %s with %d keystrokes", document.id, removed)
                outcome = "deleted"
            await session.commit()
        except Exception:
            await session.rollback()
            raise

        return outcome

    # ==================== INTERNALS ====================

    async def _append(
        self,
        session: AsyncSession,
        document: Document,
        events: Sequence[KeystrokeEvent],
        started_at: Optional[datetime],
    ) -> int:
        anchor = started_at or document.created_at
        prepared = sequencer.prepare(events, anchor)
        return await keystroke_service.append(session, OwnerRef.for_document(document.id), prepared)

    async def _refresh_stats(self, session: AsyncSession, document: Document) -> DocumentStats:
        stats = await aggregator.document_stats(
            session, OwnerRef.for_document(document.id), document.content
        )
        await session.execute(
            update(documents_table)
            .where(documents_table.c.id == document.id)
            .values(updated_at=datetime.now(timezone.utc), **stats.as_row())
        )
        return stats

    async def _publish(
        self,
        session: AsyncSession,
        document_id: UUID,
        title: str,
        content: str,
        keystroke_count: int,
    ) -> None:
        missing: dict[str, list[str]] = {}
        if not title.strip():
            missing["title"] = ["can't be blank"]
        if not aggregator.strip_markup(content).strip():
            missing["content"] = ["can't be blank"]
        if keystroke_count == 0:
            missing["keystrokes"] = ["at least one recorded keystroke is required"]
        if missing:
            raise PublishRequirementsNotMet("Document doesn't meet publishing requirements", missing)

        public_slug = await self._unique_value(
            session, "public_slug", parameterize(title) or "post", exclude_id=document_id
        )
        await session.execute(
            update(documents_table)
            .where(documents_table.c.id == document_id)
            .values(
                status=DocumentStatus.PUBLISHED.value,
                public_slug=public_slug,
                published_at=datetime.now(timezone.utc),
            )
        )

    async def _unique_value(
        self,
        session: AsyncSession,
        column_name: str,
        base: str,
        exclude_id: Optional[UUID] = None,
    ) -> str:
        """First of base, base-1, base-2, ... not used by another document."""
        column = documents_table.c[column_name]
        stmt = select(column).where(or_(column == base, column.like(f"{base}-%")))
        if exclude_id is not None:
            stmt = stmt.where(documents_table.c.id != exclude_id)
        taken = set((await session.execute(stmt)).scalars())

        candidate = base
        counter = 1
        while candidate in taken:
            candidate = f"{base}-{counter}"
            counter += 1
        return candidate


# Singleton instance
document_service = DocumentService()
