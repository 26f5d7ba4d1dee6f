"""Authentication service for Signify.

Handles:
- Password hashing with bcrypt
- JWT access token generation and verification
- Per-user API tokens for the browser extension
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

import bcrypt
import jwt
from pydantic import BaseModel
from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from signify.config import Settings, get_settings
from signify.db.tables import users_table
from signify.errors import Conflict, Unauthorized
from signify.models.user import UserResponse

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """JWT token payload."""
    sub: str  # user_id
    exp: datetime
    iat: datetime
    type: str


def _row_to_user(row: Any) -> UserResponse:
    return UserResponse(
        id=row["id"],
        email=row["email"],
        display_name=row["display_name"],
        created_at=row["created_at"],
    )


class AuthService:
    """Authentication service singleton."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()

    def configure(self, settings: Settings) -> None:
        """Switch to the application's settings (secrets, token lifetime)."""
        self._settings = settings

    # ==================== PASSWORD HASHING ====================

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt."""
        salt = bcrypt.gensalt(rounds=12)
        hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
        return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed: str) -> bool:
        """Verify a password against its hash."""
        try:
            return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))
        except ValueError:
            return False

    # ==================== JWT TOKENS ====================

    @property
    def access_token_expire_seconds(self) -> int:
        return self._settings.access_token_expire_minutes * 60

    def create_access_token(self, user_id: UUID) -> str:
        """Create a JWT access token."""
        now = datetime.now(timezone.utc)
        expire = now + timedelta(minutes=self._settings.access_token_expire_minutes)

        payload = {
            "sub": str(user_id),
            "exp": expire,
            "iat": now,
            "type": "access",
        }
        return jwt.encode(
            payload,
            self._settings.jwt_secret_key,
            algorithm=self._settings.jwt_algorithm,
        )

    def verify_access_token(self, token: str) -> Optional[TokenPayload]:
        """Verify and decode an access token."""
        try:
            payload = jwt.decode(
                token,
                self._settings.jwt_secret_key,
                algorithms=[self._settings.jwt_algorithm],
            )
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

        if payload.get("type") != "access":
            return None

        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            type=payload["type"],
        )

    # ==================== API TOKENS ====================

    def create_api_token(self) -> tuple[str, str]:
        """
        Create an API token for the extension.

        Returns:
            tuple of (raw_token, token_hash)
        """
        raw_token = secrets.token_urlsafe(32)
        return raw_token, self.hash_token(raw_token)

    def hash_token(self, token: str) -> str:
        """Hash a token for lookup."""
        return hashlib.sha256(token.encode()).hexdigest()

    # ==================== USERS ====================

    async def register(
        self,
        session: AsyncSession,
        email: str,
        password: str,
        display_name: str,
    ) -> UserResponse:
        email = email.strip().lower()
        user_id = uuid4()
        try:
            await session.execute(
                insert(users_table).values(
                    id=user_id,
                    email=email,
                    password_hash=self.hash_password(password),
                    display_name=display_name.strip(),
                    created_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise Conflict("Email already registered") from exc

        logger.info("Registered user %s", user_id)
        return await self.get_user(session, user_id)

    async def authenticate(self, session: AsyncSession, email: str, password: str) -> UserResponse:
        result = await session.execute(
            select(users_table).where(users_table.c.email == email.strip().lower())
        )
        row = result.mappings().first()
        if row is None or not self.verify_password(password, row["password_hash"]):
            raise Unauthorized("Invalid email or password")
        return _row_to_user(row)

    async def find_user(self, session: AsyncSession, user_id: UUID) -> Optional[UserResponse]:
        result = await session.execute(select(users_table).where(users_table.c.id == user_id))
        row = result.mappings().first()
        return _row_to_user(row) if row is not None else None

    async def get_user(self, session: AsyncSession, user_id: UUID) -> UserResponse:
        user = await self.find_user(session, user_id)
        if user is None:
            raise Unauthorized("User not found")
        return user

    async def get_user_by_api_token(self, session: AsyncSession, token: str) -> Optional[UserResponse]:
        result = await session.execute(
            select(users_table).where(users_table.c.api_token_hash == self.hash_token(token))
        )
        row = result.mappings().first()
        return _row_to_user(row) if row is not None else None

    async def regenerate_api_token(self, session: AsyncSession, user_id: UUID) -> str:
        raw_token, token_hash = self.create_api_token()
        await session.execute(
            update(users_table).where(users_table.c.id == user_id).values(api_token_hash=token_hash)
        )
        await session.commit()
        return raw_token

    async def display_name(self, session: AsyncSession, user_id: UUID) -> Optional[str]:
        result = await session.execute(
            select(users_table.c.display_name).where(users_table.c.id == user_id)
        )
        return result.scalar_one_or_none()


# Singleton instance
auth_service = AuthService()
