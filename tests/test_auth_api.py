"""Accounts and sessions tests.

Learn: Tests cover:
1. Registration + duplicate prevention + password confirmation
2. Login → session cookie and token in the body
3. Logout clears the cookie
4. Token transport: cookie first, then Authorization: Bearer
5. Token rejection (expired, wrong key, wrong algorithm, wrong issuer)
6. Password change for a logged-in user
"""

import base64
import json
import threading
import uuid
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from sqlalchemy import select

from threadstocks.auth import password as password_module
from threadstocks.auth.jwt import create_session_token, verify_token
from threadstocks.db.models import User
from threadstocks.errors import AuthError
from threadstocks.services.account_service import AccountService
from conftest import register


def _new_user_body(password="password_123", confirm=None):
    name = f"user-{uuid.uuid4().hex[:8]}"
    return {
        "username": name,
        "email": f"{name}@example.com",
        "password": password,
        "confirm_password": password if confirm is None else confirm,
    }


# ═══════════════════════════════════════════════════════════
# Registration
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_register_user(client):
    """Register returns the user, a token, and sets the session cookie."""
    body = _new_user_body()
    r = await client.post("/api/v1/register", json=body)
    assert r.status_code == 201
    data = r.json()
    assert data["user"]["username"] == body["username"]
    assert data["user"]["email"] == body["email"]
    assert "password" not in data["user"]
    assert "password_hash" not in data["user"]
    assert data["token_type"] == "bearer"
    assert data["access_token"]

    cookie = r.headers["set-cookie"].lower()
    assert cookie.startswith("token=")
    assert "httponly" in cookie
    assert "max-age=86400" in cookie
    assert "path=/" in cookie
    assert "samesite=lax" in cookie


@pytest.mark.asyncio
async def test_register_password_mismatch(client):
    r = await client.post(
        "/api/v1/register", json=_new_user_body(confirm="something_else")
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "passwords do not match"


@pytest.mark.asyncio
async def test_register_short_mismatched_password(client):
    """Mismatch wins over any shape check: short passwords still get the 400."""
    r = await client.post(
        "/api/v1/register", json=_new_user_body(password="abc", confirm="abd")
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "passwords do not match"


@pytest.mark.asyncio
async def test_register_empty_password(client):
    r = await client.post("/api/v1/register", json=_new_user_body(password=""))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_register_duplicate_email(client):
    """Can't register with the same email twice."""
    body = _new_user_body()
    r1 = await client.post("/api/v1/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post(
        "/api/v1/register", json={**body, "username": body["username"] + "-2"}
    )
    assert r2.status_code == 409


@pytest.mark.asyncio
async def test_register_duplicate_username(client):
    body = _new_user_body()
    r1 = await client.post("/api/v1/register", json=body)
    assert r1.status_code == 201

    r2 = await client.post(
        "/api/v1/register", json={**body, "email": "other-" + body["email"]}
    )
    assert r2.status_code == 409


@pytest.mark.asyncio
async def test_register_malformed_json(client):
    r = await client.post(
        "/api/v1/register",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert r.status_code in (400, 422)


# ═══════════════════════════════════════════════════════════
# Login / logout
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_login_success(client, settings):
    """Login with valid credentials returns a token and sets the cookie."""
    user = await register(client)
    r = await client.post(
        "/api/v1/login", json={"email": user["email"], "password": user["password"]}
    )
    assert r.status_code == 200
    data = r.json()
    assert data["token_type"] == "bearer"
    assert r.cookies.get("token") == data["access_token"]

    payload = verify_token(data["access_token"], settings)
    assert payload["sub"] == str(user["id"])
    assert payload["iss"] == "threadStocks"


@pytest.mark.asyncio
async def test_login_wrong_password(client):
    user = await register(client)
    r = await client.post(
        "/api/v1/login", json={"email": user["email"], "password": "wrong_password"}
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid credentials"
    assert "set-cookie" not in r.headers


@pytest.mark.asyncio
async def test_login_unknown_email_same_answer(client):
    """Unknown email and wrong password are indistinguishable."""
    r = await client.post(
        "/api/v1/login",
        json={"email": "nobody@example.com", "password": "password_123"},
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid credentials"


@pytest.mark.asyncio
async def test_logout_clears_cookie(client):
    r = await client.post("/api/v1/logout")
    assert r.status_code == 200
    assert r.json()["message"] == "logged out"
    cookie = r.headers["set-cookie"].lower()
    assert cookie.startswith("token=")
    assert "max-age=0" in cookie


# ═══════════════════════════════════════════════════════════
# Session transport
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_me_with_bearer(client):
    user = await register(client)
    r = await client.get("/api/v1/users/me", headers=user["headers"])
    assert r.status_code == 200
    assert r.json()["id"] == user["id"]
    assert r.json()["email"] == user["email"]


@pytest.mark.asyncio
async def test_me_with_cookie(client):
    user = await register(client)
    client.cookies.set("token", user["token"])
    r = await client.get("/api/v1/users/me")
    assert r.status_code == 200
    assert r.json()["id"] == user["id"]


@pytest.mark.asyncio
async def test_cookie_wins_over_bearer(client):
    alice = await register(client)
    bob = await register(client)
    client.cookies.set("token", alice["token"])
    r = await client.get("/api/v1/users/me", headers=bob["headers"])
    assert r.status_code == 200
    assert r.json()["id"] == alice["id"]


@pytest.mark.asyncio
async def test_me_without_token(client):
    r = await client.get("/api/v1/users/me")
    assert r.status_code == 401
    assert r.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_me_with_non_bearer_scheme(client):
    user = await register(client)
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Basic {user['token']}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_expired_token_rejected(client, settings):
    user = await register(client)
    old = datetime.now(timezone.utc) - timedelta(hours=settings.token_expire_hours + 1)
    token = create_session_token(user["id"], settings, now=old)
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_token_signed_with_other_key_rejected(client, settings):
    user = await register(client)
    forged = create_session_token(
        user["id"], settings.model_copy(update={"jwt_secret": "another-secret"})
    )
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {forged}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_token_with_other_algorithm_rejected(client, settings):
    """Only the configured algorithm is accepted, even with the right key."""
    user = await register(client)
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {
            "sub": str(user["id"]),
            "iss": settings.jwt_issuer,
            "iat": now,
            "exp": now + timedelta(hours=1),
        },
        settings.jwt_secret,
        algorithm="HS512",
    )
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_token_with_other_issuer_rejected(client, settings):
    user = await register(client)
    token = create_session_token(
        user["id"], settings.model_copy(update={"jwt_issuer": "someone-else"})
    )
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_token_for_missing_user(client, settings):
    """A valid token for a user that no longer exists gets 404 from /me."""
    token = create_session_token(999_999, settings)
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 404


# ═══════════════════════════════════════════════════════════
# Password change
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_password(client):
    user = await register(client)
    r = await client.put(
        "/api/v1/users/update-password",
        headers=user["headers"],
        json={
            "current_password": user["password"],
            "new_password": "brand_new_pw",
            "confirm_new_password": "brand_new_pw",
        },
    )
    assert r.status_code == 200
    assert r.json()["message"] == "password updated"

    old = await client.post(
        "/api/v1/login", json={"email": user["email"], "password": user["password"]}
    )
    assert old.status_code == 401
    new = await client.post(
        "/api/v1/login", json={"email": user["email"], "password": "brand_new_pw"}
    )
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_update_password_wrong_current(client):
    """Wrong current password is a 400: the session itself is still fine."""
    user = await register(client)
    r = await client.put(
        "/api/v1/users/update-password",
        headers=user["headers"],
        json={
            "current_password": "not_my_password",
            "new_password": "brand_new_pw",
            "confirm_new_password": "brand_new_pw",
        },
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "invalid current password"


@pytest.mark.asyncio
async def test_update_password_mismatch(client):
    user = await register(client)
    r = await client.put(
        "/api/v1/users/update-password",
        headers=user["headers"],
        json={
            "current_password": user["password"],
            "new_password": "brand_new_pw",
            "confirm_new_password": "brand_new_pX",
        },
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "passwords do not match"


@pytest.mark.asyncio
async def test_update_password_requires_session(client):
    r = await client.put(
        "/api/v1/users/update-password",
        json={
            "current_password": "a",
            "new_password": "brand_new_pw",
            "confirm_new_password": "brand_new_pw",
        },
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_unsigned_token_rejected(client, settings):
    """alg=none tokens never authenticate."""
    user = await register(client)

    def b64(data: dict) -> str:
        raw = json.dumps(data, separators=(",", ":")).encode()
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()

    now = int(datetime.now(timezone.utc).timestamp())
    token = ".".join(
        [
            b64({"alg": "none", "typ": "JWT"}),
            b64(
                {
                    "sub": str(user["id"]),
                    "iss": settings.jwt_issuer,
                    "iat": now,
                    "exp": now + 3600,
                }
            ),
            "",
        ]
    )
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_register_mismatch_creates_no_user(client, db_session):
    body = _new_user_body(confirm="something_else")
    r = await client.post("/api/v1/register", json=body)
    assert r.status_code == 400

    result = await db_session.execute(select(User).where(User.email == body["email"]))
    assert result.scalars().first() is None


@pytest.mark.asyncio
async def test_update_password_short_mismatch(client):
    user = await register(client)
    r = await client.put(
        "/api/v1/users/update-password",
        headers=user["headers"],
        json={
            "current_password": user["password"],
            "new_password": "abc",
            "confirm_new_password": "abd",
        },
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "passwords do not match"


@pytest.mark.asyncio
async def test_rejected_token_detail_is_generic(client, settings):
    """Clients see one fixed message; the library's reason stays in the logs."""
    user = await register(client)
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {
            "sub": str(user["id"]),
            "iss": settings.jwt_issuer,
            "iat": now,
            "exp": now + timedelta(hours=1),
        },
        settings.jwt_secret,
        algorithm="HS384",
    )
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "invalid or expired token"

    old = datetime.now(timezone.utc) - timedelta(hours=settings.token_expire_hours + 1)
    expired = create_session_token(user["id"], settings, now=old)
    r = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {expired}"}
    )
    assert r.json()["detail"] == "invalid or expired token"


@pytest.mark.asyncio
async def test_unknown_email_login_hashes_off_the_event_loop(db_session, settings, monkeypatch):
    """The decoy bcrypt hash for unknown emails is built in a worker thread."""
    seen = []
    real_hash = password_module.hash_password

    def spy(password, rounds):
        seen.append(threading.current_thread() is threading.main_thread())
        return real_hash(password, rounds)

    monkeypatch.setattr(password_module, "hash_password", spy)
    password_module.dummy_hash.cache_clear()
    try:
        with pytest.raises(AuthError):
            await AccountService(db_session, settings).login(
                "nobody@example.com", "password_123"
            )
    finally:
        password_module.dummy_hash.cache_clear()

    assert seen == [False]
