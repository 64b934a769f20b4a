"""Mail worker — delivers queued emails in the background.

Learn: Request handlers never talk to the mail provider. They enqueue an
OutboundEmail and return; this worker drains the queue:

  enqueue() → asyncio.Queue → run_loop() → EmailService.send() in a thread

The outcome is only logged (email.sent / email.send_failed) — the HTTP
response that triggered the email has long been sent. Each job carries
a copy of the structlog context from enqueue time, so worker log lines
keep the originating request_id and user_id.

Runs as a task started in the FastAPI lifespan. stop() queues a sentinel
and waits for the task, so shutdown flushes what is already queued.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import structlog
from fastapi import Request

from threadstocks.services.email_service import EmailService, OutboundEmail

logger = structlog.get_logger()


@dataclass
class MailJob:
    email: OutboundEmail
    context: dict[str, Any] = field(default_factory=dict)


class MailWorker:
    """Background consumer of outbound emails.

    Usage:
        worker = MailWorker(EmailService(settings))
        worker.start()
        worker.enqueue(email)
        await worker.stop()
    """

    def __init__(self, transport: EmailService, max_queue: int = 100, stop_timeout: float = 10.0):
        self.transport = transport
        self.stop_timeout = stop_timeout
        self._queue: asyncio.Queue[Optional[MailJob]] = asyncio.Queue(maxsize=max_queue)
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, email: OutboundEmail) -> bool:
        """Queue an email without blocking. Returns False if it was dropped."""
        job = MailJob(email=email, context=structlog.contextvars.get_contextvars())
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.error("email.queue_full", kind=email.kind, to=email.to)
            return False
        logger.debug("email.queued", kind=email.kind, to=email.to)
        return True

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_loop())
        return self._task

    async def run_loop(self) -> None:
        """Main worker loop — deliver jobs until the stop sentinel arrives."""
        logger.info("mail_worker.started")
        while True:
            job = await self._queue.get()
            try:
                if job is None:
                    break
                await self.deliver(job)
            finally:
                self._queue.task_done()
        logger.info("mail_worker.stopped")

    async def deliver(self, job: MailJob) -> bool:
        """Send one job; log the outcome. Never raises."""
        with structlog.contextvars.bound_contextvars(**job.context):
            log = logger.bind(kind=job.email.kind, to=job.email.to)
            try:
                await asyncio.to_thread(self.transport.send, job.email)
            except Exception:
                log.exception("email.send_failed")
                return False
            log.info("email.sent")
            return True

    async def join(self) -> None:
        """Wait until everything queued so far has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Signal the worker to stop after draining, and wait for it."""
        if self._task is None:
            return
        logger.info("mail_worker.stopping", pending=self.pending)
        await self._queue.put(None)
        try:
            await asyncio.wait_for(self._task, timeout=self.stop_timeout)
        except asyncio.TimeoutError:
            logger.warning("mail_worker.stop_timeout", pending=self.pending)
            self._task.cancel()
        self._task = None


def get_mail_worker(request: Request) -> MailWorker:
    """FastAPI dependency — the worker started in the app lifespan."""
    return request.app.state.mail_worker
