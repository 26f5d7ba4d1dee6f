"""Published post data and integrity API routes."""

from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from signify.api.deps import RequestContext, get_context
from signify.services.auth_service import auth_service
from signify.services.document_service import document_service
from signify.services.export_service import export_service
from signify.services.integrity_analyzer import integrity_analyzer

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/{public_slug}/data")
async def post_data(
    public_slug: str,
    format: Literal["json", "csv"] = Query("json"),
    ctx: RequestContext = Depends(get_context),
):
    """Download the full ordered keystroke log of a published post."""
    document = await document_service.get_public(ctx.session, public_slug)
    if format == "csv":
        body = await export_service.as_csv(ctx.session, document)
        return Response(
            content=body,
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{export_service.filename(document, "csv")}"'
            },
        )

    author = await auth_service.display_name(ctx.session, document.user_id)
    return await export_service.as_json(ctx.session, document, author)


@router.get("/{public_slug}/verify")
async def verify_post(
    public_slug: str,
    ctx: RequestContext = Depends(get_context),
) -> dict[str, Any]:
    """Integrity and authenticity report over the stored keystrokes."""
    document = await document_service.get_public(ctx.session, public_slug)
    keystrokes = await export_service.keystrokes(ctx.session, document)
    author = await auth_service.display_name(ctx.session, document.user_id)

    document_info = {
        "title": document.title,
        "author": author,
        "published_at": document.published_at.isoformat() if document.published_at else None,
        "word_count": document.word_count,
        "character_count": len(document.content or ""),
        "keystroke_count": len(keystrokes),
    }
    return integrity_analyzer.report(keystrokes, len(document.content or ""), document_info)
