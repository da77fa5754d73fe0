"""Cooperative cancellation signal sampled at every suspension point."""

import asyncio
import logging

from provisioner.models.errors import CancellationError


class CancellationToken:
    """Cancellation flag shared between the coordinator and a running job.

    The coordinator sets the flag; the job samples it through ``check()`` and
    ``sleep()``. A positive sample clears the flag before raising, so each
    request is delivered as exactly one ``CancellationError``.
    """

    def __init__(self):
        self.logger = logging.getLogger("provisioner.cancellation")
        self._requested = False

    @property
    def requested(self) -> bool:
        return self._requested

    def request(self) -> None:
        self._requested = True
        self.logger.info("Cancellation requested")

    def clear(self) -> None:
        self._requested = False

    def check(self) -> None:
        """Raise CancellationError if cancellation was requested."""
        if self._requested:
            self._requested = False
            self.logger.info("Cancellation observed, aborting run")
            raise CancellationError("Provisioning cancelled")

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds``, sampling cancellation before and after."""
        self.check()
        await asyncio.sleep(seconds)
        self.check()
