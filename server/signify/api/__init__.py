"""API module."""

from fastapi import APIRouter

from signify.api.routes import auth, documents, keystrokes, posts, public, verifications

router = APIRouter(prefix="/api/v1")

router.include_router(auth.router)
router.include_router(documents.router)
router.include_router(keystrokes.router)
router.include_router(verifications.router)
router.include_router(posts.router)

public_router = public.router

__all__ = ["public_router", "router"]
