"""Request-scoped context passed explicitly to every handler."""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from signify.config import Settings
from signify.db import get_session
from signify.errors import Unauthorized
from signify.models.user import UserResponse
from signify.services.auth_service import auth_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestContext:
    """Per-request session and settings plus the caller's identity, if any."""

    session: AsyncSession
    settings: Settings
    user: Optional[UserResponse] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_id(self) -> UUID:
        if self.user is None:
            raise Unauthorized("Authentication required")
        return self.user.id


async def _resolve_user(
    session: AsyncSession,
    authorization: Optional[str],
    api_token: Optional[str],
) -> Optional[UserResponse]:
    if authorization:
        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise Unauthorized("Invalid authorization header format")

        token = parts[1]
        payload = auth_service.verify_access_token(token)
        if payload is not None:
            return await auth_service.get_user(session, UUID(payload.sub))

        # Extensions send their API token as a bearer token too
        user = await auth_service.get_user_by_api_token(session, token)
        if user is None:
            raise Unauthorized("Invalid or expired token")
        return user

    if api_token:
        user = await auth_service.get_user_by_api_token(session, api_token)
        if user is None:
            raise Unauthorized("Invalid API token")
        return user

    return None


async def get_context(
    request: Request,
    session: AsyncSession = Depends(get_session),
    authorization: Optional[str] = Header(None),
    x_api_token: Optional[str] = Header(None),
) -> RequestContext:
    """Context for routes that work with or without a signed-in user."""
    try:
        user = await _resolve_user(session, authorization, x_api_token)
    except Unauthorized:
        logger.debug("Optional auth failed, treating caller as guest")
        user = None
    return RequestContext(session=session, settings=request.app.state.settings, user=user)


async def get_authenticated_context(
    request: Request,
    session: AsyncSession = Depends(get_session),
    authorization: Optional[str] = Header(None),
    x_api_token: Optional[str] = Header(None),
) -> RequestContext:
    """Context for routes that require a signed-in user."""
    user = await _resolve_user(session, authorization, x_api_token)
    if user is None:
        raise Unauthorized("Missing authorization header")
    return RequestContext(session=session, settings=request.app.state.settings, user=user)
