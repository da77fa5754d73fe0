"""Connection establisher: reach the router's web UI, retrying transient failures."""

import logging

from provisioner.models.errors import (
    ConnectivityFatalError,
    ConnectivityTransientError,
    NavigationError,
)
from provisioner.services.cancellation import CancellationToken
from provisioner.services.session import UISession


class ConnectionEstablisher:
    """Navigates a session to the router until the UI answers.

    The router is usually still booting when a job starts, so "address
    unreachable" and navigation timeouts are retried with a fixed backoff.
    """

    def __init__(
        self,
        session: UISession,
        token: CancellationToken,
        max_attempts: int = 10,
        attempt_timeout: float = 3.0,
        backoff: float = 0.5,
    ):
        """Initialize connection establisher.

        Args:
            session: UI session to navigate
            token: Cancellation token sampled before every attempt
            max_attempts: Transient failures tolerated before giving up
            attempt_timeout: Per-attempt navigation timeout in seconds
            backoff: Delay between attempts in seconds
        """
        self.logger = logging.getLogger("provisioner.connection")
        self.session = session
        self.token = token
        self.max_attempts = max_attempts
        self.attempt_timeout = attempt_timeout
        self.backoff = backoff

    async def connect(self, url: str) -> int:
        """Navigate to ``url``.

        Returns:
            Number of attempts it took

        Raises:
            CancellationError: If cancellation is requested between attempts
            ConnectivityFatalError: On a non-transient failure, or after
                ``max_attempts`` transient failures
        """
        failures = 0
        while True:
            self.token.check()
            try:
                await self.session.navigate(url, timeout=self.attempt_timeout)
                self.logger.info(f"Connected to {url} after {failures + 1} attempt(s)")
                return failures + 1
            except ConnectivityTransientError as e:
                failures += 1
                self.logger.info(f"Attempt {failures}/{self.max_attempts} failed: {e}")
                if failures >= self.max_attempts:
                    self.logger.error("Cannot connect to router")
                    raise ConnectivityFatalError("Cannot connect to router") from e
            except NavigationError as e:
                self.logger.error(f"Navigation to {url} failed: {e}")
                raise ConnectivityFatalError(str(e)) from e
            await self.token.sleep(self.backoff)
