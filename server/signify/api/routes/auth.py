"""Authentication API routes."""

from fastapi import APIRouter, Depends, status

from signify.api.deps import RequestContext, get_authenticated_context, get_context
from signify.models.user import (
    ApiTokenResponse,
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from signify.services.auth_service import auth_service

router = APIRouter(prefix="/auth", tags=["authentication"])


def _token_for(user: UserResponse) -> TokenResponse:
    return TokenResponse(
        access_token=auth_service.create_access_token(user.id),
        expires_in=auth_service.access_token_expire_seconds,
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    ctx: RequestContext = Depends(get_context),
) -> AuthResponse:
    """Register a new user account."""
    user = await auth_service.register(
        ctx.session, request.email, request.password, request.display_name
    )
    return AuthResponse(user=user, token=_token_for(user))


@router.post("/login", response_model=AuthResponse)
async def login(
    request: LoginRequest,
    ctx: RequestContext = Depends(get_context),
) -> AuthResponse:
    """Login with email and password."""
    user = await auth_service.authenticate(ctx.session, request.email, request.password)
    return AuthResponse(user=user, token=_token_for(user))


@router.get("/me", response_model=UserResponse)
async def me(ctx: RequestContext = Depends(get_authenticated_context)) -> UserResponse:
    """Get current user info."""
    return ctx.user


@router.post("/api-token", response_model=ApiTokenResponse, status_code=status.HTTP_201_CREATED)
async def regenerate_api_token(
    ctx: RequestContext = Depends(get_authenticated_context),
) -> ApiTokenResponse:
    """Issue a new extension API token, invalidating the previous one."""
    token = await auth_service.regenerate_api_token(ctx.session, ctx.user_id)
    return ApiTokenResponse(api_token=token)
