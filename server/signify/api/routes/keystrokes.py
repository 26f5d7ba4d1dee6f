"""Keystroke ingestion API routes."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, status

from signify.api.deps import RequestContext, get_authenticated_context
from signify.models import KeystrokeBatchResponse, OwnerKind
from signify.services.document_service import document_service
from signify.services.sequencer import sequencer
from signify.services.verification_service import verification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/keystrokes", tags=["keystrokes"])


@router.post("", response_model=KeystrokeBatchResponse, status_code=status.HTTP_201_CREATED)
async def ingest_keystrokes(
    payload: dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_authenticated_context),
) -> KeystrokeBatchResponse:
    """
    Append a batch of keystroke events to a document or verification.

    The batch is stored in full or rejected in full: malformed events
    yield 422, already-recorded sequence numbers yield 409.
    """
    settings = ctx.settings
    # Owner kind is only known after validation; the larger limit is the outer bound
    batch = sequencer.validate_batch(payload, max_events=settings.verification_batch_limit)
    owner = batch.owner

    if owner.kind == OwnerKind.DOCUMENT:
        sequencer.check_batch(batch.events, settings.document_batch_limit)
        document = await document_service.append_keystrokes(
            ctx.session, ctx.user_id, owner.id, batch.events, batch.started_at
        )
        keystroke_count = document.keystroke_count
    else:
        verification = await verification_service.append_keystrokes(
            ctx.session, ctx.user_id, owner.id, batch.events, batch.started_at
        )
        keystroke_count = verification.keystroke_stats.total_keystrokes

    logger.info("Stored %d keystrokes for %s", len(batch.events), owner)
    return KeystrokeBatchResponse(
        owner_type=owner.kind,
        owner_id=owner.id,
        events_processed=len(batch.events),
        keystroke_count=keystroke_count,
    )
