"""User API — the logged-in user's own account.

Protected router: api/__init__.py mounts it behind get_current_user.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from threadstocks.auth.dependencies import CurrentIdentity, get_current_user
from threadstocks.config import Settings, get_settings
from threadstocks.db.engine import get_db
from threadstocks.errors import AuthError, ValidationError
from threadstocks.schemas.auth import MessageResponse, UpdatePasswordRequest, UserRead
from threadstocks.services.account_service import AccountService

router = APIRouter(prefix="/users")


def _svc(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AccountService:
    return AccountService(db, settings)


@router.get("/me", response_model=UserRead)
async def get_me(
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(_svc),
):
    """Get the current authenticated user's info."""
    return await svc.get_user(identity.user_id)


@router.put("/update-password", response_model=MessageResponse)
async def update_password(
    body: UpdatePasswordRequest,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: AccountService = Depends(_svc),
):
    """Change password. A wrong current password is a 400, not a 401 —
    the session itself is fine, and clients treat 401 as "logged out"."""
    try:
        await svc.update_password(
            user_id=identity.user_id,
            current_password=body.current_password,
            new_password=body.new_password,
            confirm_password=body.confirm_new_password,
        )
    except AuthError as e:
        raise ValidationError(e.message)
    return MessageResponse(message="password updated")
