import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Seconds stop() waits for queued mails before giving up on them
DRAIN_TIMEOUT = 10.0

async def _send_mail(to: str, subject: str, text: str, html: Optional[str] = None, **_):
    from app.modules.notifications import mailer
    # smtplib blocks; keep it off the event loop
    await asyncio.to_thread(mailer.send_mail, to, subject, text, html)

JobHandler = Callable[..., Awaitable[Any]]

JOB_HANDLERS: Dict[str, JobHandler] = {
    "send_mail": _send_mail,
}

class Worker:
    """
    In-process queue for work that must not hold up a request (outgoing mail).
    Jobs are fire-and-forget: a failed job is logged and dropped.
    """

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.is_running = False
        self._task = None

    async def start(self):
        if self.is_running:
            return
        self.is_running = True
        self._task = asyncio.create_task(self._process_queue())
        logger.info("[Worker] Started.")

    async def stop(self):
        """Lets pending jobs finish (bounded by DRAIN_TIMEOUT), then cancels the loop."""
        if self._task:
            try:
                await asyncio.wait_for(self.queue.join(), timeout=DRAIN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(f"[Worker] {self.queue.qsize()} job(s) dropped on shutdown")
        self.is_running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[Worker] Stopped.")

    async def enqueue_job(self, task_name: str, **kwargs):
        if task_name not in JOB_HANDLERS:
            logger.warning(f"[Worker] Refusing unknown job: {task_name}")
            return
        logger.info(f"[Worker] Enqueuing job: {task_name} | Args: {_redact(kwargs)}")
        await self.queue.put((task_name, kwargs))

    async def run_job(self, task_name: str, kwargs: Dict[str, Any]):
        handler = JOB_HANDLERS.get(task_name)
        if handler is None:
            logger.warning(f"[Worker] Unknown job: {task_name}")
            return
        await handler(**kwargs)

    async def _process_queue(self):
        while self.is_running:
            try:
                task_name, kwargs = await self.queue.get()
            except asyncio.CancelledError:
                break

            logger.info(f"[Worker] Processing: {task_name}")
            try:
                await self.run_job(task_name, kwargs)
            except Exception as e:
                logger.error(f"[Worker] Job {task_name} failed: {e}", exc_info=True)
            finally:
                self.queue.task_done()

def _redact(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    # Mail bodies carry one-time survey links
    return {k: ("..." if k in ("text", "html") else v) for k, v in kwargs.items()}

worker = Worker()
