"""Document editing API routes (author only)."""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from pydantic import BaseModel

from signify.api.deps import RequestContext, get_authenticated_context
from signify.models import (
    DocumentCreate,
    DocumentResponse,
    DocumentUpdate,
    KeystrokePage,
)
from signify.services.auth_service import auth_service
from signify.services.document_service import document_service
from signify.services.export_service import export_service
from signify.services.replay_service import replay_service

router = APIRouter(prefix="/documents", tags=["documents"])


class DocumentDeleted(BaseModel):
    id: UUID
    outcome: Literal["deleted", "hidden"]


@router.get("", response_model=list[DocumentResponse])
async def list_documents(
    ctx: RequestContext = Depends(get_authenticated_context),
) -> list[DocumentResponse]:
    documents = await document_service.list_for_user(ctx.session, ctx.user_id)
    return [DocumentResponse.from_document(document) for document in documents]


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def create_document(
    request: DocumentCreate,
    ctx: RequestContext = Depends(get_authenticated_context),
) -> DocumentResponse:
    document = await document_service.create(ctx.session, ctx.user_id, request)
    return DocumentResponse.from_document(document)


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: UUID,
    ctx: RequestContext = Depends(get_authenticated_context),
) -> DocumentResponse:
    document = await document_service.get_owned(ctx.session, ctx.user_id, document_id)
    return DocumentResponse.from_document(document)


@router.patch("/{document_id}", response_model=DocumentResponse)
async def update_document(
    document_id: UUID,
    request: DocumentUpdate,
    ctx: RequestContext = Depends(get_authenticated_context),
) -> DocumentResponse:
    """
    Save title/content edits, optionally with a keystroke batch.

    Edits and keystrokes are stored together or not at all.
    """
    document = await document_service.update(ctx.session, ctx.user_id, document_id, request)
    return DocumentResponse.from_document(document)


@router.post("/{document_id}/publish", response_model=DocumentResponse)
async def publish_document(
    document_id: UUID,
    ctx: RequestContext = Depends(get_authenticated_context),
) -> DocumentResponse:
    document = await document_service.publish(ctx.session, ctx.user_id, document_id)
    return DocumentResponse.from_document(document)


@router.delete("/{document_id}", response_model=DocumentDeleted)
async def delete_document(
    document_id: UUID,
    ctx: RequestContext = Depends(get_authenticated_context),
) -> DocumentDeleted:
    outcome = await document_service.delete(ctx.session, ctx.user_id, document_id)
    return DocumentDeleted(id=document_id, outcome=outcome)


@router.get("/{document_id}/keystrokes", response_model=KeystrokePage)
async def document_keystrokes(
    document_id: UUID,
    page: int = Query(1, ge=1),
    ctx: RequestContext = Depends(get_authenticated_context),
) -> KeystrokePage:
    """Author replay; includes drafts."""
    return await replay_service.replay_own_document(ctx.session, ctx.user_id, document_id, page)


@router.get("/{document_id}/export")
async def export_document(
    document_id: UUID,
    format: Literal["json", "csv"] = Query("json"),
    ctx: RequestContext = Depends(get_authenticated_context),
):
    document = await document_service.get_owned(ctx.session, ctx.user_id, document_id)
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
