"""Pydantic schemas for accounts, sessions, password flows and contact.

Learn: Pydantic v2 models validate request/response data. Separate
request schemas (input) from "Read" schemas (output) for clean APIs.
UserRead has no password field at all, so a hash can't leak by accident.

Password fields only have to be present and non-empty. The services
compare password and confirmation first, so a mismatch is always a 400.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Register / login ───────────────────────────────────

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1)
    confirm_password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UserRead(BaseModel):
    id: int
    username: str
    email: str
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SessionResponse(BaseModel):
    """Login response. The same token is also set as the session cookie."""
    access_token: str
    token_type: str = "bearer"


class RegisterResponse(SessionResponse):
    user: UserRead


# ─── Password flows ─────────────────────────────────────

class ForgotPasswordRequest(BaseModel):
    email: str


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)
    confirm_password: str


class UpdatePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=1)
    confirm_new_password: str


# ─── Contact form ───────────────────────────────────────

class ContactRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=255)
    subject: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=10_000)


class MessageResponse(BaseModel):
    message: str
