"""Thread API routes.

Learn: Every route scopes by the caller's user id; the service does the
ownership checks. Create and single update accept JSON or a multipart
form (see api/decoding.py).

Key patterns:
- GET /threads?brand=... lists only the caller's threads
- POST /threads restores a previously deleted thread_id instead of failing
- PUT /threads and DELETE /threads are all-or-nothing batches
- Static paths are declared before /threads/{thread_pk}
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from threadstocks.api.decoding import decode_body
from threadstocks.auth.dependencies import CurrentIdentity, get_current_user
from threadstocks.config import Settings, get_settings
from threadstocks.db.engine import get_db
from threadstocks.schemas.thread import (
    ThreadBulkUpdateItem,
    ThreadCreate,
    ThreadIds,
    ThreadRead,
    ThreadUpdate,
)
from threadstocks.services.thread_service import ThreadService

router = APIRouter(prefix="/threads")


def _svc(db: AsyncSession = Depends(get_db)) -> ThreadService:
    return ThreadService(db)


# ═══════════════════════════════════════════════════════════
# Collection
# ═══════════════════════════════════════════════════════════


@router.get("", response_model=list[ThreadRead])
async def list_threads(
    brand: Optional[str] = Query(None, description="Only threads of this brand"),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ThreadService = Depends(_svc),
):
    return await svc.list_threads(identity.user_id, brand=brand)


@router.post("", response_model=ThreadRead, status_code=201)
async def create_thread(
    request: Request,
    identity: CurrentIdentity = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    svc: ThreadService = Depends(_svc),
):
    """Create a thread (or bring back a deleted one with the same thread_id)."""
    decoded = await decode_body(
        request, ThreadCreate, max_upload_bytes=settings.max_upload_bytes
    )
    return await svc.create_thread(identity.user_id, decoded.data.model_dump())


@router.put("", response_model=list[ThreadRead])
async def update_threads(
    body: list[ThreadBulkUpdateItem] = Body(..., min_length=1),
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ThreadService = Depends(_svc),
):
    """Bulk partial update. Fails as a whole on the first missing or foreign id."""
    changes = [
        (item.id, item.model_dump(exclude_unset=True, exclude={"id"}))
        for item in body
    ]
    return await svc.update_threads(identity.user_id, changes)


@router.delete("", status_code=204)
async def delete_threads(
    body: ThreadIds,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ThreadService = Depends(_svc),
):
    """Bulk delete. Fails as a whole on the first missing or foreign id."""
    await svc.delete_threads(body.ids, identity.user_id)
    return Response(status_code=204)


# ═══════════════════════════════════════════════════════════
# Single thread
# ═══════════════════════════════════════════════════════════


@router.get("/{thread_pk}", response_model=ThreadRead)
async def get_thread(
    thread_pk: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ThreadService = Depends(_svc),
):
    return await svc.get_thread(thread_pk, identity.user_id)


@router.api_route("/{thread_pk}", methods=["PATCH", "PUT"], response_model=ThreadRead)
async def update_thread(
    thread_pk: int,
    request: Request,
    identity: CurrentIdentity = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
    svc: ThreadService = Depends(_svc),
):
    """Partially update a thread — only the fields sent are changed."""
    decoded = await decode_body(
        request, ThreadUpdate, max_upload_bytes=settings.max_upload_bytes
    )
    fields = decoded.data.model_dump(exclude_unset=True)
    return await svc.update_thread(thread_pk, identity.user_id, fields)


@router.delete("/{thread_pk}", status_code=204)
async def delete_thread(
    thread_pk: int,
    identity: CurrentIdentity = Depends(get_current_user),
    svc: ThreadService = Depends(_svc),
):
    await svc.delete_thread(thread_pk, identity.user_id)
    return Response(status_code=204)
