"""Status publisher: latest-snapshot broadcast to subscribers and notification target."""

import asyncio
import base64
import logging
from typing import Optional

from provisioner.api.models import StatusEvent
from provisioner.models.status import EventKind
from provisioner.services.reporter import ReportService


class StatusPublisher:
    """Singleton status channel for provisioning jobs.

    Manages:
    - The latest published event (snapshot, for GET /status and late subscribers)
    - One bounded queue per connected subscriber (for the WebSocket stream)
    - Best-effort pushes to the current job's notification URL
    """

    _instance: Optional["StatusPublisher"] = None

    def __new__(cls, *args, **kwargs):
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, reporter: Optional[ReportService] = None, queue_size: int = 100):
        """Initialize publisher (only once due to singleton).

        Args:
            reporter: ReportService for notification pushes (created if None)
            queue_size: Max events buffered per subscriber before the oldest is dropped
        """
        if self._initialized:
            return

        self.logger = logging.getLogger("provisioner.publisher")
        self.reporter = reporter or ReportService()
        self.queue_size = queue_size

        self._snapshot = self._ready_event()
        self._subscribers: set[asyncio.Queue] = set()
        self._notify_url: Optional[str] = None
        self._pending: set[asyncio.Task] = set()

        self._initialized = True
        self.logger.info("StatusPublisher initialized")

    @staticmethod
    def _ready_event() -> StatusEvent:
        return StatusEvent(kind=EventKind.PROGRESS, message="Provisioner ready", percent=0)

    def get_status(self) -> StatusEvent:
        """Return the latest published event."""
        return self._snapshot

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self) -> asyncio.Queue:
        """Register a subscriber; its queue starts with the current snapshot."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        queue.put_nowait(self._snapshot)
        self._subscribers.add(queue)
        self.logger.debug(f"Subscriber added ({len(self._subscribers)} connected)")
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)
        self.logger.debug(f"Subscriber removed ({len(self._subscribers)} connected)")

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    def begin(self, notify_url: Optional[str] = None) -> None:
        """Start publishing for a new job, optionally pushing to ``notify_url``."""
        self._notify_url = notify_url

    def end(self) -> None:
        """Stop pushing to the finished job's notification URL."""
        self._notify_url = None

    def publish(self, event: StatusEvent) -> None:
        """Replace the snapshot and fan the event out without blocking."""
        self._snapshot = event
        self.logger.debug(
            f"Status: kind={event.kind.value}, percent={event.percent}%, message={event.message}"
        )

        for queue in list(self._subscribers):
            self._offer(queue, event)

        if self._notify_url:
            self._schedule_notification(self._notify_url, event)

    def _offer(self, queue: asyncio.Queue, event: StatusEvent) -> None:
        # A slow subscriber loses its oldest events, never the latest one.
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(event)

    def _schedule_notification(self, notify_url: str, event: StatusEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.logger.warning("No running event loop, notification skipped")
            return
        task = loop.create_task(self.reporter.report_event(notify_url, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for in-flight notifications to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    def progress(self, label: str, percent: Optional[int] = None) -> None:
        """Publish a progress event; ``percent=None`` keeps the previous value."""
        if percent is None:
            percent = self._snapshot.percent if self._snapshot.kind == EventKind.PROGRESS else 0
        self.publish(StatusEvent(kind=EventKind.PROGRESS, message=label, percent=percent))

    def error(
        self,
        message: str,
        screenshot: Optional[bytes] = None,
        error_type: Optional[str] = None,
    ) -> None:
        """Publish a failure, attaching the screenshot base64-encoded."""
        encoded = base64.b64encode(screenshot).decode("ascii") if screenshot else None
        self.publish(
            StatusEvent(
                kind=EventKind.ERROR,
                message=message,
                percent=self._snapshot.percent,
                screenshot=encoded,
                error_type=error_type,
            )
        )

    def cancelled(self, message: str = "Provisioning cancelled") -> None:
        self.publish(
            StatusEvent(
                kind=EventKind.CANCELLED,
                message=message,
                percent=self._snapshot.percent,
                error_type="CancellationError",
            )
        )

    def success(self, message: str = "Provisioning successful") -> None:
        self.publish(StatusEvent(kind=EventKind.SUCCESS, message=message, percent=100))


    def reset(self) -> None:
        """Reset the snapshot to the ready event, dropping the previous outcome."""
        self._snapshot = self._ready_event()
        self._notify_url = None
        self.logger.debug("Status reset to ready")
