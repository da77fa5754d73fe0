"""Job coordinator: single-flight provisioning runs with cooperative cancellation."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional

import aiofiles

from provisioner.api.models import StatusEvent
from provisioner.models.errors import (
    AlreadyProvisioningError,
    CancelAlreadyRequestedError,
    CancellationError,
    ConnectivityFatalError,
    NotProvisioningError,
    ProvisioningError,
)
from provisioner.models.job import Credentials, ProvisioningRequest
from provisioner.models.status import DEFAULT_STAGES, RESET_STAGES, JobState, Stage
from provisioner.services.cancellation import CancellationToken
from provisioner.services.connection import ConnectionEstablisher
from provisioner.services.publisher import StatusPublisher
from provisioner.services.session import PlaywrightSession, UISession
from provisioner.services.workflow import WorkflowEngine
from provisioner.utils.config import Settings, get_settings

SessionFactory = Callable[[], Awaitable[UISession]]


class JobCoordinator:
    """Singleton owner of the one provisioning job the process may run.

    Manages:
    - Job state (idle → running → cancelRequested → idle)
    - The UI session, created per job and closed on every exit path
    - The cancellation token shared with the running workflow
    """

    _instance: Optional["JobCoordinator"] = None

    def __new__(cls, *args, **kwargs):
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(
        self,
        publisher: Optional[StatusPublisher] = None,
        session_factory: Optional[SessionFactory] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize coordinator (only once due to singleton).

        Args:
            publisher: StatusPublisher instance (uses singleton if None)
            session_factory: Coroutine function returning a fresh UISession
                (launches Playwright Chromium if None)
            settings: Service settings (loaded from the environment if None)
        """
        if self._initialized:
            return

        self.logger = logging.getLogger("provisioner.coordinator")
        self.settings = settings or get_settings()
        self.publisher = publisher or StatusPublisher()
        self.session_factory = session_factory or self._launch_browser
        self.token = CancellationToken()

        self._state: JobState = JobState.IDLE
        self._last_outcome: Optional[JobState] = None
        self._task: Optional[asyncio.Task] = None
        # Outcome decided, cleanup in progress; cancel requests are refused.
        self._finishing = False

        self._initialized = True
        self.logger.info("JobCoordinator initialized")

    async def _launch_browser(self) -> UISession:
        return await PlaywrightSession.launch(
            headless=self.settings.headless,
            default_timeout=self.settings.default_timeout,
        )

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def last_outcome(self) -> Optional[JobState]:
        return self._last_outcome

    @property
    def busy(self) -> bool:
        return self._state != JobState.IDLE

    def current_status(self) -> StatusEvent:
        """Latest status event of the current or previous job."""
        return self.publisher.get_status()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def submit(
        self,
        request: ProvisioningRequest,
        notify_url: Optional[str] = None,
        stages: Iterable[Stage] = DEFAULT_STAGES,
    ) -> asyncio.Task:
        """Start a provisioning job in the background.

        Args:
            request: Hostname, Wi-Fi settings and passwords
            notify_url: Optional notification target for this job
            stages: Stage queue to run

        Returns:
            The asyncio task running the job; it resolves to the terminal JobState

        Raises:
            AlreadyProvisioningError: If a job is already running
        """
        return self._start(request, tuple(stages), notify_url)

    def factory_reset(
        self, credentials: Credentials, notify_url: Optional[str] = None
    ) -> asyncio.Task:
        """Start a job that logs in and resets the router to factory defaults."""
        return self._start(credentials, RESET_STAGES, notify_url)

    def cancel(self) -> None:
        """Request cooperative cancellation of the running job.

        Raises:
            NotProvisioningError: If no job is running or it is already finishing
            CancelAlreadyRequestedError: If cancellation is already pending
        """
        if self._state == JobState.IDLE or self._finishing:
            raise NotProvisioningError()
        if self._state == JobState.CANCEL_REQUESTED:
            raise CancelAlreadyRequestedError()
        self.token.request()
        self._state = JobState.CANCEL_REQUESTED
        self.publisher.progress("Cancelling")

    async def shutdown(self) -> None:
        """Abort a running job (application shutdown) and flush notifications."""
        if self._task is not None and not self._task.done():
            self.logger.warning("Shutting down with a job in progress, aborting it")
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        if self._state != JobState.IDLE:
            # Cancelled before its first step, so _run never reached its cleanup.
            self.token.clear()
            self._state = JobState.IDLE
            self._finishing = False
            self._last_outcome = JobState.CANCELLED
            self.publisher.cancelled("Provisioning aborted")
            self.publisher.end()
        await self.publisher.drain()

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    def _start(
        self,
        credentials: Credentials,
        stages: tuple[Stage, ...],
        notify_url: Optional[str],
    ) -> asyncio.Task:
        if self._state != JobState.IDLE:
            self.logger.warning(f"Request rejected, job is {self._state.value}")
            raise AlreadyProvisioningError()

        self.token.clear()
        self._state = JobState.RUNNING
        self._finishing = False
        self.publisher.reset()
        self.publisher.begin(notify_url)
        self.logger.info(f"Job accepted: stages={[s.value for s in stages]}")
        self._task = asyncio.get_running_loop().create_task(self._run(credentials, stages))
        return self._task

    async def _run(self, credentials: Credentials, stages: tuple[Stage, ...]) -> JobState:
        session: Optional[UISession] = None
        outcome = JobState.FAILED
        try:
            self.publisher.progress("Opening browser", 0)
            session = await self.session_factory()

            self.publisher.progress("Connecting to router", 1)
            establisher = ConnectionEstablisher(
                session,
                self.token,
                max_attempts=self.settings.connect_attempts,
                attempt_timeout=self.settings.connect_timeout,
                backoff=self.settings.connect_backoff,
            )
            await establisher.connect(self.settings.router_url)

            engine = WorkflowEngine(
                session,
                credentials,
                self.token,
                self.publisher,
                region=self.settings.region,
                timezone=self.settings.timezone,
                mask_timeout=self.settings.mask_timeout,
            )
            await engine.run(stages)

            outcome = JobState.SUCCESS
            self.logger.info("All tasks done; success")
            self.publisher.success()

        except CancellationError as e:
            outcome = JobState.CANCELLED
            self.logger.info("Job cancelled")
            self.publisher.cancelled(str(e))
        except ConnectivityFatalError as e:
            self.logger.error(f"Job failed: {e}")
            self.publisher.error(str(e), error_type=type(e).__name__)
        except ProvisioningError as e:
            self._finishing = True
            self.logger.error(f"Job failed ({type(e).__name__}): {e}")
            screenshot = await self._capture(session)
            self.publisher.error(str(e), screenshot, type(e).__name__)
        except asyncio.CancelledError:
            outcome = JobState.CANCELLED
            self.publisher.cancelled("Provisioning aborted")
            raise
        except Exception as e:
            self._finishing = True
            self.logger.error(f"Unexpected error during provisioning: {e}", exc_info=True)
            screenshot = await self._capture(session)
            self.publisher.error(str(e) or type(e).__name__, screenshot, "UnclassifiedError")
        finally:
            self._finishing = True
            if session is not None:
                await self._release(session)
            self.token.clear()
            self._state = JobState.IDLE
            self._finishing = False
            self._last_outcome = outcome
            self.publisher.end()
            self.logger.info(f"Job finished: {outcome.value}")

        return outcome

    async def _release(self, session: UISession) -> None:
        try:
            await session.close()
        except Exception as e:
            self.logger.warning(f"Failed to close UI session: {e}")

    async def _capture(self, session: Optional[UISession]) -> Optional[bytes]:
        """Take a diagnostic screenshot; None if there is no usable page."""
        if session is None:
            return None
        try:
            data = await session.screenshot()
        except Exception as e:
            self.logger.warning(f"Could not capture diagnostic screenshot: {e}")
            return None
        await self._save_screenshot(data)
        return data

    async def _save_screenshot(self, data: bytes) -> Optional[Path]:
        if not self.settings.screenshot_dir:
            return None
        directory = Path(self.settings.screenshot_dir)
        path = directory / f"failure-{datetime.now():%Y%m%dT%H%M%S}.png"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            self.logger.warning(f"Could not save screenshot to {path}: {e}")
            return None
        self.logger.info(f"Diagnostic screenshot saved to {path}")
        return path
