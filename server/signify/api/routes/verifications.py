"""Verification API routes used by the browser extension."""

from fastapi import APIRouter, Depends, status

from signify.api.deps import RequestContext, get_authenticated_context
from signify.models.verification import VerificationCreated, VerificationRequest
from signify.services.verification_service import verification_service

router = APIRouter(prefix="/verifications", tags=["verification"])


@router.post("", response_model=VerificationCreated, status_code=status.HTTP_201_CREATED)
async def create_verification(
    request: VerificationRequest,
    ctx: RequestContext = Depends(get_authenticated_context),
) -> VerificationCreated:
    """
    Record a verification with its keystroke log.

    Status is derived from the paste summary: any reported paste makes it
    "mixed", otherwise "human_written".
    """
    verification = await verification_service.create(
        ctx.session, ctx.user_id, request.verification
    )
    base_url = ctx.settings.public_base_url.rstrip("/")
    return VerificationCreated(
        id=verification.public_id,
        status=verification.status,
        public_url=f"{base_url}/p/{verification.public_id}",
    )
