"""Unit tests for StatusPublisher."""

import asyncio
import base64

import pytest
from unittest.mock import AsyncMock, MagicMock

from provisioner.models.status import EventKind
from provisioner.services.publisher import StatusPublisher


@pytest.fixture
def reporter():
    return MagicMock(report_event=AsyncMock())


@pytest.fixture
def publisher(reporter):
    return StatusPublisher(reporter=reporter)


@pytest.mark.unit
class TestStatusPublisher:
    """Test snapshot, fan-out and notification behaviour."""

    def test_singleton_pattern(self, publisher):
        assert StatusPublisher() is publisher

    def test_initial_snapshot(self, publisher):
        status = publisher.get_status()
        assert status.kind == EventKind.PROGRESS
        assert status.message == "Provisioner ready"
        assert status.percent == 0

    def test_progress_updates_snapshot(self, publisher):
        publisher.progress("Set hostname", 40)

        status = publisher.get_status()
        assert status.message == "Set hostname"
        assert status.percent == 40

    def test_progress_without_percent_keeps_previous(self, publisher):
        publisher.progress("Create password", 5)
        publisher.progress("Password created")

        assert publisher.get_status().percent == 5

    def test_late_subscriber_gets_latest_snapshot_only(self, publisher):
        publisher.progress("Log in", 10)
        publisher.progress("Set region", 15)

        queue = publisher.subscribe()

        assert queue.qsize() == 1
        assert queue.get_nowait().message == "Set region"

    def test_events_fan_out_to_all_subscribers(self, publisher):
        first = publisher.subscribe()
        second = publisher.subscribe()

        publisher.progress("Go to admin", 80)

        for queue in (first, second):
            queue.get_nowait()  # snapshot
            assert queue.get_nowait().message == "Go to admin"

    def test_unsubscribe(self, publisher):
        queue = publisher.subscribe()
        publisher.unsubscribe(queue)

        publisher.progress("Set SSID & PSK", 70)

        assert publisher.subscriber_count == 0
        assert queue.qsize() == 1

    def test_full_queue_drops_oldest(self):
        publisher = StatusPublisher(queue_size=3)
        queue = publisher.subscribe()

        for percent in range(10, 60, 10):
            publisher.progress("step", percent)

        assert [queue.get_nowait().percent for _ in range(3)] == [30, 40, 50]

    def test_error_encodes_screenshot(self, publisher):
        publisher.progress("Log in", 10)
        publisher.error("Invalid password", b"\x89PNG", "AuthenticationError")

        status = publisher.get_status()
        assert status.kind == EventKind.ERROR
        assert status.message == "Invalid password"
        assert base64.b64decode(status.screenshot) == b"\x89PNG"
        assert status.error_type == "AuthenticationError"
        assert status.percent == 10

    def test_error_without_screenshot(self, publisher):
        publisher.error("Cannot connect to router")
        assert publisher.get_status().screenshot is None

    def test_success_is_terminal_100(self, publisher):
        publisher.success()

        status = publisher.get_status()
        assert status.kind == EventKind.SUCCESS
        assert status.percent == 100

    def test_cancelled_is_distinct_kind(self, publisher):
        publisher.cancelled()

        status = publisher.get_status()
        assert status.kind == EventKind.CANCELLED
        assert status.error_type == "CancellationError"

    def test_reset(self, publisher):
        publisher.begin("http://controller/hook")
        publisher.error("Invalid password")

        publisher.reset()

        assert publisher.get_status().message == "Provisioner ready"
        assert publisher.get_status().kind == EventKind.PROGRESS

    def test_no_notification_outside_event_loop(self, publisher, reporter):
        publisher.begin("http://controller/hook")
        publisher.progress("Opening browser", 0)

        reporter.report_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_notifies_target_for_current_job(self, publisher, reporter):
        publisher.begin("http://controller/hook")
        publisher.progress("Opening browser", 0)
        publisher.success()
        await publisher.drain()

        assert reporter.report_event.await_count == 2
        url, event = reporter.report_event.call_args_list[-1].args
        assert url == "http://controller/hook"
        assert event.kind == EventKind.SUCCESS

    @pytest.mark.asyncio
    async def test_no_notification_without_target(self, publisher, reporter):
        publisher.begin(None)
        publisher.progress("Opening browser", 0)
        await publisher.drain()

        reporter.report_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_end_stops_notifications(self, publisher, reporter):
        publisher.begin("http://controller/hook")
        publisher.end()
        publisher.progress("Provisioner ready", 0)
        await publisher.drain()

        reporter.report_event.assert_not_called()

    @pytest.mark.asyncio
    async def test_slow_target_does_not_block_publish(self, publisher, reporter):
        release = asyncio.Event()

        async def slow(url, event):
            await release.wait()

        reporter.report_event = slow
        publisher.begin("http://slow/hook")
        queue = publisher.subscribe()

        for percent in (10, 20, 30):
            publisher.progress("step", percent)

        assert publisher.get_status().percent == 30
        assert queue.qsize() == 4

        release.set()
        await publisher.drain()
