"""Best-effort delivery of status events to a caller-supplied notification URL."""

import logging

import httpx

from provisioner.api.models import StatusEvent


class ReportService:
    """Pushes status events to an external notification target."""

    def __init__(self, timeout: float = 5.0):
        """Initialize report service.

        Args:
            timeout: Per-request timeout in seconds (default: 5.0)
        """
        self.logger = logging.getLogger("provisioner.reporter")
        self.timeout = timeout

    async def report_event(self, notify_url: str, event: StatusEvent) -> None:
        """POST ``event`` as JSON to ``notify_url``.

        Args:
            notify_url: Caller-supplied notification target
            event: Status event to deliver

        Note:
            Failures are logged but not raised or retried; the job never
            waits on or fails because of the notification target.
        """
        self.logger.debug(
            f"Notifying {notify_url}: kind={event.kind.value}, percent={event.percent}%"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    notify_url,
                    json=event.model_dump(mode="json"),
                )
                response.raise_for_status()
                self.logger.debug("Notification sent successfully")

        except httpx.HTTPError as e:
            self.logger.warning(
                f"Failed to notify {notify_url}: {e}. Continuing provisioning..."
            )
        except Exception as e:
            self.logger.error(
                f"Unexpected error notifying {notify_url}: {e}",
                exc_info=True,
            )
