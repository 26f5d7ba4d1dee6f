"""Public pages: published posts, verification receipts and replay."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from pydantic import BaseModel

from signify.api.deps import RequestContext, get_context
from signify.errors import OwnerNotFound
from signify.models import (
    KeystrokePage,
    KeystrokeStats,
    OwnerRef,
    PasteEvents,
    ReplayKeystroke,
    VerificationStatus,
)
from signify.services.auth_service import auth_service
from signify.services.document_service import document_service, excerpt
from signify.services.kudos_service import VISITOR_COOKIE, kudos_service
from signify.services.replay_service import replay_service
from signify.services.verification_service import verification_service

router = APIRouter(tags=["public"])

SAMPLE_SIZE = 50
VISITOR_COOKIE_MAX_AGE = 20 * 365 * 24 * 3600


class PostSummary(BaseModel):
    id: UUID
    title: str
    public_slug: str
    excerpt: str
    word_count: int
    reading_time_minutes: int
    kudos_count: int
    published_at: Optional[datetime]


class PostDetail(BaseModel):
    id: UUID
    title: str
    public_slug: str
    content: str
    author_display_name: Optional[str]
    word_count: int
    reading_time_minutes: int
    keystroke_count: int
    kudos_count: int
    kudos_given: bool
    published_at: Optional[datetime]
    sample_keystrokes: list[ReplayKeystroke]


class VerificationDetail(BaseModel):
    public_id: str
    platform: str
    content_hash: str
    status: VerificationStatus
    paste: PasteEvents
    keystroke_stats: KeystrokeStats
    duration_seconds: Optional[int]
    author_display_name: Optional[str]
    created_at: datetime


class KudosResult(BaseModel):
    kudos_count: int
    given: bool


class FeedAuthor(BaseModel):
    display_name: str
    member_since: datetime


class FeedItem(BaseModel):
    id: str
    status: VerificationStatus
    platform: str
    created_at: datetime
    paste: PasteEvents
    public_url: str


class UserFeed(BaseModel):
    user: FeedAuthor
    verifications: list[FeedItem]


async def _kudos_given(ctx: RequestContext, request: Request, document_id: UUID) -> bool:
    visitor_id = kudos_service.read_visitor(request.cookies.get(VISITOR_COOKIE))
    if visitor_id is None:
        return False
    return await kudos_service.has_given(ctx.session, document_id, visitor_id)


def _ensure_visitor(request: Request, response: Response) -> str:
    """Visitor id from the cookie, issuing a new cookie when absent or invalid."""
    visitor_id = kudos_service.read_visitor(request.cookies.get(VISITOR_COOKIE))
    if visitor_id is None:
        visitor_id = kudos_service.new_visitor_id()
        response.set_cookie(
            VISITOR_COOKIE,
            kudos_service.sign_visitor(visitor_id),
            max_age=VISITOR_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return visitor_id


@router.get("/posts", response_model=list[PostSummary])
async def list_posts(
    search: Optional[str] = Query(None, max_length=200),
    ctx: RequestContext = Depends(get_context),
) -> list[PostSummary]:
    documents = await document_service.list_public(ctx.session, search=search)
    return [
        PostSummary(
            id=document.id,
            title=document.title,
            public_slug=document.public_slug,
            excerpt=excerpt(document.content),
            word_count=document.word_count,
            reading_time_minutes=document.reading_time_minutes,
            kudos_count=document.kudos_count,
            published_at=document.published_at,
        )
        for document in documents
    ]


@router.get("/posts/{public_slug}", response_model=PostDetail)
async def show_post(
    public_slug: str,
    request: Request,
    ctx: RequestContext = Depends(get_context),
) -> PostDetail:
    document = await document_service.get_public(ctx.session, public_slug)
    sample = await replay_service.sample(
        ctx.session, OwnerRef.for_document(document.id), SAMPLE_SIZE
    )
    return PostDetail(
        id=document.id,
        title=document.title,
        public_slug=document.public_slug,
        content=document.content,
        author_display_name=await auth_service.display_name(ctx.session, document.user_id),
        word_count=document.word_count,
        reading_time_minutes=document.reading_time_minutes,
        keystroke_count=document.keystroke_count,
        kudos_count=document.kudos_count,
        kudos_given=await _kudos_given(ctx, request, document.id),
        published_at=document.published_at,
        sample_keystrokes=sample,
    )


@router.get("/posts/{public_slug}/keystrokes", response_model=KeystrokePage)
async def post_keystrokes(
    public_slug: str,
    page: int = Query(1, ge=1),
    ctx: RequestContext = Depends(get_context),
) -> KeystrokePage:
    """Replay page of a published post; drafts and hidden posts are 404."""
    return await replay_service.replay_post(ctx.session, public_slug, page)


@router.post("/posts/{public_slug}/kudos", response_model=KudosResult)
async def give_kudos(
    public_slug: str,
    request: Request,
    response: Response,
    ctx: RequestContext = Depends(get_context),
) -> KudosResult:
    """
    Give kudos to a published post, once per visitor.

    201 when recorded, 200 when this visitor had already given kudos.
    """
    document = await document_service.get_public(ctx.session, public_slug)
    visitor_id = _ensure_visitor(request, response)
    kudos_count, created = await kudos_service.give(ctx.session, document.id, visitor_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return KudosResult(kudos_count=kudos_count, given=True)


@router.get("/p/{public_id}", response_model=VerificationDetail)
async def show_verification(
    public_id: str,
    ctx: RequestContext = Depends(get_context),
) -> VerificationDetail:
    verification = await verification_service.get_public(ctx.session, public_id)
    return VerificationDetail(
        public_id=verification.public_id,
        platform=verification.platform,
        content_hash=verification.content_hash,
        status=verification.status,
        paste=verification.paste,
        keystroke_stats=verification.keystroke_stats,
        duration_seconds=verification.duration_seconds,
        author_display_name=await auth_service.display_name(ctx.session, verification.user_id),
        created_at=verification.created_at,
    )


@router.get("/p/{public_id}/keystrokes", response_model=KeystrokePage)
async def verification_keystrokes(
    public_id: str,
    page: int = Query(1, ge=1),
    ctx: RequestContext = Depends(get_context),
) -> KeystrokePage:
    return await replay_service.replay_verification(ctx.session, public_id, page)


@router.get("/u/{user_id}", response_model=UserFeed)
async def user_feed(
    user_id: UUID,
    ctx: RequestContext = Depends(get_context),
) -> UserFeed:
    """A user's public verification feed, newest first."""
    user = await auth_service.find_user(ctx.session, user_id)
    if user is None:
        raise OwnerNotFound("User not found")

    verifications = await verification_service.list_for_user(ctx.session, user.id)
    base_url = ctx.settings.public_base_url.rstrip("/")
    return UserFeed(
        user=FeedAuthor(display_name=user.display_name, member_since=user.created_at),
        verifications=[
            FeedItem(
                id=verification.public_id,
                status=verification.status,
                platform=verification.platform,
                created_at=verification.created_at,
                paste=verification.paste,
                public_url=f"{base_url}/p/{verification.public_id}",
            )
            for verification in verifications
        ],
    )
