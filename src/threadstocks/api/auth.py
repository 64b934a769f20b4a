"""Auth API — registration, login, logout, password reset, contact.

Learn: Routes for the open (no session required) side of the API:
- POST /register → create account, set session cookie
- POST /login → email/password → session cookie (+ token in body)
- POST /logout → clear the session cookie
- POST /forgot-password → always 200, reset email sent in the background
- POST /reset-password → token + new password
- POST /contact → relay a message to the operator mailbox

Logout is client-side only: the token is not revoked, it simply stops
being sent. A copy of it stays valid until it expires.
"""

import structlog
from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from threadstocks.api.decoding import decode_body
from threadstocks.auth.cookies import clear_session_cookie, set_session_cookie
from threadstocks.config import Settings, get_settings
from threadstocks.db.engine import get_db
from threadstocks.schemas.auth import (
    ContactRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    RegisterResponse,
    ResetPasswordRequest,
    SessionResponse,
    UserRead,
)
from threadstocks.services.account_service import AccountService
from threadstocks.services.email_service import EmailService
from threadstocks.services.mail_worker import MailWorker, get_mail_worker
from threadstocks.services.password_reset_service import PasswordResetService

logger = structlog.get_logger()

router = APIRouter()


def _account_svc(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AccountService:
    return AccountService(db, settings)


def _reset_svc(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    mailer: MailWorker = Depends(get_mail_worker),
) -> PasswordResetService:
    return PasswordResetService(db, settings, mailer, EmailService(settings))


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    svc: AccountService = Depends(_account_svc),
):
    """Create a new account and start a session."""
    user, token = await svc.register(
        username=body.username,
        email=body.email,
        password=body.password,
        confirm_password=body.confirm_password,
    )
    set_session_cookie(response, token, svc.settings)
    return RegisterResponse(user=UserRead.model_validate(user), access_token=token)


# ─── Login / logout ─────────────────────────────────────


@router.post("/login", response_model=SessionResponse)
async def login(
    body: LoginRequest,
    response: Response,
    svc: AccountService = Depends(_account_svc),
):
    """Login with email and password → session cookie."""
    _, token = await svc.login(body.email, body.password)
    set_session_cookie(response, token, svc.settings)
    return SessionResponse(access_token=token)


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response, settings: Settings = Depends(get_settings)):
    clear_session_cookie(response, settings)
    return MessageResponse(message="logged out")


# ─── Password reset ─────────────────────────────────────


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    svc: PasswordResetService = Depends(_reset_svc),
):
    """Start a password reset. The answer is the same whether or not the email exists."""
    await svc.forgot_password(body.email)
    return MessageResponse(
        message="If an account exists for this email, a reset link has been sent"
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    svc: PasswordResetService = Depends(_reset_svc),
):
    await svc.reset_password(body.token, body.new_password, body.confirm_password)
    return MessageResponse(message="password updated")


# ─── Contact ────────────────────────────────────────────


@router.post("/contact", response_model=MessageResponse, status_code=202)
async def contact(
    request: Request,
    settings: Settings = Depends(get_settings),
    mailer: MailWorker = Depends(get_mail_worker),
):
    """Relay a contact form message (JSON, or multipart with an optional attachment)."""
    decoded = await decode_body(
        request,
        ContactRequest,
        max_upload_bytes=settings.max_upload_bytes,
        file_fields=("attachment",),
    )
    form = decoded.data

    if not settings.contact_email:
        logger.warning("contact.no_recipient_configured", sender=form.email)
    else:
        email = EmailService(settings).build_contact(
            name=form.name,
            email=form.email,
            subject=form.subject,
            message=form.message,
            attachment=decoded.attachments.get("attachment"),
        )
        mailer.enqueue(email)

    return MessageResponse(message="message received")
