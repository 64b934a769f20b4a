"""Password reset service — forgot-password and reset-password flows.

Learn: The flow is:
1. forgot_password(email) → delete the user's old tokens, store a new one
   (1 hour TTL), queue an email with the reset link
2. reset_password(token, ...) → look the token up, check expiry, set the
   new password, delete the user's tokens

Only a SHA-256 digest of each token is stored. Unknown emails get the
same (silent) success as known ones — the caller learns nothing.
"""

import asyncio
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from threadstocks.auth.password import hash_password
from threadstocks.config import Settings
from threadstocks.db.models import PasswordResetToken, User, utcnow
from threadstocks.errors import AuthError, ValidationError
from threadstocks.services.account_service import PASSWORDS_DO_NOT_MATCH
from threadstocks.services.email_service import EmailService
from threadstocks.services.mail_worker import MailWorker

logger = structlog.get_logger()


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PasswordResetService:
    """Issues and consumes password reset tokens."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        mailer: MailWorker,
        emails: EmailService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings
        self.mailer = mailer
        self.emails = emails
        self.clock = clock

    async def forgot_password(self, email: str) -> None:
        """Start a reset for email. Always returns normally."""
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalars().first()
        if user is None:
            logger.info("password_reset.unknown_email", email=email)
            return

        token = secrets.token_hex(self.settings.reset_token_bytes)

        await self._purge_tokens(user.id)
        self.db.add(
            PasswordResetToken(
                user_id=user.id,
                token_hash=hash_reset_token(token),
                expires_at=self.clock()
                + timedelta(minutes=self.settings.reset_token_expire_minutes),
            )
        )
        await self.db.commit()
        logger.info("password_reset.issued", user_id=user.id)

        self.mailer.enqueue(self.emails.build_password_reset(user.email, user.username, token))

    async def reset_password(
        self,
        token: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        """Consume a reset token and set the new password."""
        if new_password != confirm_password:
            raise ValidationError(PASSWORDS_DO_NOT_MATCH)

        result = await self.db.execute(
            select(PasswordResetToken).where(
                PasswordResetToken.token_hash == hash_reset_token(token)
            )
        )
        reset = result.scalars().first()
        if reset is None:
            logger.info("password_reset.unknown_token", token_prefix=token[:8])
            raise AuthError("invalid or expired token")

        now = self.clock()
        if _as_utc(reset.expires_at) < now:
            logger.warning(
                "password_reset.expired",
                user_id=reset.user_id,
                expires_at=reset.expires_at.isoformat(),
            )
            await self._purge_tokens(reset.user_id)
            await self.db.commit()
            raise AuthError("token expired")

        user = await self.db.get(User, reset.user_id)
        if user is None:
            raise AuthError("invalid or expired token")

        user.password_hash = await asyncio.to_thread(
            hash_password, new_password, self.settings.bcrypt_rounds
        )
        await self._purge_tokens(user.id)
        await self.db.commit()
        logger.info("password_reset.completed", user_id=user.id)

    async def _purge_tokens(self, user_id: int) -> None:
        await self.db.execute(
            delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id)
        )
