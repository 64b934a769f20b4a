"""Account service — registration, login, profile, password change.

Learn: Service layer separates business logic from HTTP routing.
API routes call services, services call the database. Services raise
threadstocks.errors exceptions; the app's exception handler turns them
into status codes.

Login deliberately returns the same "invalid credentials" error for an
unknown email and for a wrong password, and spends the same bcrypt time
on both, so the endpoint can't be used to probe which emails exist.
"""

import asyncio

import structlog
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from threadstocks.auth.jwt import create_session_token
from threadstocks.auth.password import dummy_hash, hash_password, verify_password
from threadstocks.config import Settings
from threadstocks.db.models import User
from threadstocks.errors import AuthError, ConflictError, NotFoundError, ValidationError

logger = structlog.get_logger()

INVALID_CREDENTIALS = "invalid credentials"
PASSWORDS_DO_NOT_MATCH = "passwords do not match"


class AccountService:
    """Business logic for user accounts and sessions."""

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    # ─── Password helpers ───────────────────────────────

    async def hash(self, password: str) -> str:
        return await asyncio.to_thread(hash_password, password, self.settings.bcrypt_rounds)

    async def check(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(verify_password, password, password_hash)

    # ─── Register ───────────────────────────────────────

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        confirm_password: str,
    ) -> tuple[User, str]:
        """Create an account and return it with a fresh session token."""
        if password != confirm_password:
            raise ValidationError(PASSWORDS_DO_NOT_MATCH)

        result = await self.db.execute(
            select(User.id).where(or_(User.username == username, User.email == email))
        )
        if result.first() is not None:
            raise ConflictError("username or email already registered")

        user = User(
            username=username,
            email=email,
            password_hash=await self.hash(password),
        )
        self.db.add(user)
        try:
            await self.db.flush()
        except IntegrityError:
            # Lost a race with a concurrent registration
            await self.db.rollback()
            raise ConflictError("username or email already registered")

        await self.db.commit()
        await self.db.refresh(user)
        logger.info("auth.registered", user_id=user.id)
        return user, create_session_token(user.id, self.settings)

    # ─── Login ──────────────────────────────────────────

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """Check credentials and return the user with a new session token."""
        user = await self.get_by_email(email)

        if user is None:
            decoy = await asyncio.to_thread(dummy_hash, self.settings.bcrypt_rounds)
            await self.check(password, decoy)
            logger.info("auth.login_failed", reason="unknown_email")
            raise AuthError(INVALID_CREDENTIALS)

        if not await self.check(password, user.password_hash):
            logger.info("auth.login_failed", reason="bad_password", user_id=user.id)
            raise AuthError(INVALID_CREDENTIALS)

        logger.info("auth.login", user_id=user.id)
        return user, create_session_token(user.id, self.settings)

    # ─── Lookups ────────────────────────────────────────

    async def get_user(self, user_id: int) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalars().first()

    # ─── Password change ────────────────────────────────

    async def update_password(
        self,
        user_id: int,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> User:
        """Change the password of a logged-in user.

        Learn: Existing session tokens stay valid — there is no revocation
        list. Only the next login needs the new password.
        """
        if new_password != confirm_password:
            raise ValidationError(PASSWORDS_DO_NOT_MATCH)

        user = await self.get_user(user_id)
        if not await self.check(current_password, user.password_hash):
            logger.info("auth.password_change_rejected", user_id=user_id)
            raise AuthError("invalid current password")

        user.password_hash = await self.hash(new_password)
        await self.db.commit()
        logger.info("auth.password_changed", user_id=user_id)
        return user
