"""Thread service — ownership-scoped CRUD for thread records.

Learn: Every operation takes the acting user's id. Reads and writes
first resolve the record, then check it belongs to that user:

  missing / soft-deleted   → NotFoundError
  owned by someone else    → AuthorizationError

Deletes are soft (deleted_at is set). A later create with the same
thread_id for the same owner brings the old row back instead of
inserting a second one.

Bulk update and bulk delete are all-or-nothing: every id in the batch
is resolved and ownership-checked before the first write, and the batch
is committed once.
"""

from typing import Any, Iterable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from threadstocks.db.models import Thread, utcnow
from threadstocks.errors import AuthorizationError, ConflictError, NotFoundError

logger = structlog.get_logger()

# Columns a client may set. user_id and the timestamps are never client-writable.
MUTABLE_FIELDS = ("thread_id", "is_e", "is_c", "is_s", "brand", "thread_count")


class ThreadService:
    """Business logic for a user's thread inventory."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ─── Create ──────────────────────────────────────────

    async def create_thread(self, owner_id: int, fields: dict[str, Any]) -> Thread:
        """Create a thread, or restore a soft-deleted one with the same thread_id.

        Learn: The unique constraint covers soft-deleted rows too, so the
        restore path is what lets a user re-add a thread they removed.
        """
        result = await self.db.execute(
            select(Thread).where(
                Thread.user_id == owner_id,
                Thread.thread_id == fields["thread_id"],
            )
        )
        existing = result.scalars().first()

        if existing is not None:
            if existing.deleted_at is None:
                raise ConflictError("thread already exists")
            existing.deleted_at = None
            self._apply(existing, fields)
            await self.db.commit()
            await self.db.refresh(existing)
            logger.info("thread.restored", thread_pk=existing.id)
            return existing

        thread = Thread(user_id=owner_id)
        self._apply(thread, fields)
        self.db.add(thread)
        await self._flush_or_conflict()
        await self.db.commit()
        await self.db.refresh(thread)
        logger.info("thread.created", thread_pk=thread.id)
        return thread

    # ─── Read ────────────────────────────────────────────

    async def get_thread(self, thread_pk: int, owner_id: int) -> Thread:
        thread = await self._get_active(thread_pk)
        if thread is None:
            raise NotFoundError("Thread not found")
        self._check_owner(thread, owner_id)
        return thread

    async def list_threads(self, owner_id: int, brand: Optional[str] = None) -> list[Thread]:
        """List the owner's active threads, optionally for one brand."""
        query = (
            select(Thread)
            .where(Thread.user_id == owner_id, Thread.deleted_at.is_(None))
            .order_by(Thread.id)
        )
        if brand is not None:
            query = query.where(Thread.brand == brand)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ─── Update ──────────────────────────────────────────

    async def update_thread(
        self, thread_pk: int, owner_id: int, fields: dict[str, Any]
    ) -> Thread:
        """Merge the given fields into one thread."""
        thread = await self.get_thread(thread_pk, owner_id)
        self._apply(thread, fields)
        await self._flush_or_conflict()
        await self.db.commit()
        await self.db.refresh(thread)
        return thread

    async def update_threads(
        self, owner_id: int, changes: list[tuple[int, dict[str, Any]]]
    ) -> list[Thread]:
        """Apply (id, fields) pairs as one batch. Nothing is written if any id fails."""
        threads = await self._resolve_batch([pk for pk, _ in changes], owner_id)

        for pk, fields in changes:
            self._apply(threads[pk], fields)
        await self._flush_or_conflict()
        await self.db.commit()

        updated = []
        for pk, _ in changes:
            await self.db.refresh(threads[pk])
            updated.append(threads[pk])
        logger.info("thread.bulk_updated", count=len(threads))
        return updated

    # ─── Delete ──────────────────────────────────────────

    async def delete_thread(self, thread_pk: int, owner_id: int) -> None:
        thread = await self.get_thread(thread_pk, owner_id)
        thread.deleted_at = utcnow()
        await self.db.commit()
        logger.info("thread.deleted", thread_pk=thread_pk)

    async def delete_threads(self, thread_pks: Iterable[int], owner_id: int) -> int:
        """Soft-delete a batch. Nothing is deleted if any id fails."""
        threads = await self._resolve_batch(list(thread_pks), owner_id)

        now = utcnow()
        for thread in threads.values():
            thread.deleted_at = now
        await self.db.commit()
        logger.info("thread.bulk_deleted", count=len(threads))
        return len(threads)

    # ─── Helpers ─────────────────────────────────────────

    async def _get_active(self, thread_pk: int) -> Thread | None:
        result = await self.db.execute(
            select(Thread).where(Thread.id == thread_pk, Thread.deleted_at.is_(None))
        )
        return result.scalars().first()

    async def _resolve_batch(self, thread_pks: list[int], owner_id: int) -> dict[int, Thread]:
        """Load every id of a batch and ownership-check it, in request order."""
        result = await self.db.execute(
            select(Thread).where(
                Thread.id.in_(set(thread_pks)), Thread.deleted_at.is_(None)
            )
        )
        found = {t.id: t for t in result.scalars().all()}

        for pk in thread_pks:
            thread = found.get(pk)
            if thread is None:
                raise NotFoundError(f"Thread {pk} not found")
            self._check_owner(thread, owner_id)
        return found

    def _check_owner(self, thread: Thread, owner_id: int) -> None:
        if thread.user_id != owner_id:
            logger.warning(
                "thread.ownership_denied", thread_pk=thread.id, owner_id=thread.user_id
            )
            raise AuthorizationError("You do not own this thread")

    def _apply(self, thread: Thread, fields: dict[str, Any]) -> None:
        for name in MUTABLE_FIELDS:
            if name in fields and fields[name] is not None:
                setattr(thread, name, fields[name])

    async def _flush_or_conflict(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("thread already exists")
