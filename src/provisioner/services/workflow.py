"""Workflow engine driving the router UI through the configuration stages."""

import logging
from collections import deque
from typing import Awaitable, Callable, Iterable, Optional

from provisioner.models.errors import AuthenticationError, UnrecognizedPageError
from provisioner.models.job import Credentials, ProvisioningRequest
from provisioner.models.status import DEFAULT_STAGES, LoginPage, Stage
from provisioner.services.cancellation import CancellationToken
from provisioner.services.session import UISession
from provisioner.services.widgets import (
    select_by_text,
    select_by_value,
    toggle_switch_to,
    wait_for_mask_off,
)

# Login screens in classification priority order; first visible marker wins.
LOGIN_MARKERS: tuple[tuple[LoginPage, str], ...] = (
    (LoginPage.CREATE_PASSWORD, "#pc-setPwd-new"),
    (LoginPage.ENTER_PASSWORD, "#pc-login-password"),
    (LoginPage.REGION, "#t_regionNote"),
    (LoginPage.QUICK_SETUP, "#wan_next"),
    (LoginPage.ADVANCED, "#advanced"),
)

LOGIN_CONFIRM_TEXT = "Log in"
SECURITY_MODE = "WPA-PSK[TKIP]+WPA2-PSK[AES]"
WIDE_CHANNEL_MODEL = "HX510"
NARROW_WIDTH = "20MHz"
WIDE_WIDTH = "40MHz"

StageHandler = Callable[[], Awaitable[bool]]


def menu_link(level: int, page: str) -> str:
    """Selector of a navigation menu entry (level 1 = section, 2 = page)."""
    return f".ml{level} > a[url='{page}']"


def channel_widths(hardware_version: Optional[str]) -> tuple[str, str]:
    """Return the (2.4 GHz, 5 GHz) channel widths for a hardware version string."""
    if hardware_version is not None and WIDE_CHANNEL_MODEL in hardware_version:
        return NARROW_WIDTH, WIDE_WIDTH
    return NARROW_WIDTH, NARROW_WIDTH


class WorkflowEngine:
    """Runs a FIFO queue of stages against a connected UI session.

    Each loop iteration waits for the page to settle, then calls the handler
    of the stage at the queue head. A handler returns True when its stage is
    done (the stage is dequeued) and False when the UI moved to another
    screen of the same stage (the loop re-enters without advancing).
    """

    def __init__(
        self,
        session: UISession,
        credentials: Credentials,
        token: CancellationToken,
        publisher,
        region: str = "United States",
        timezone: str = "-07:00",
        mask_timeout: float = 60.0,
    ):
        """Initialize workflow engine.

        Args:
            session: Connected UI session
            credentials: Passwords; a ProvisioningRequest for configuration stages
            token: Cancellation token sampled at every suspension point
            publisher: StatusPublisher receiving progress events
            region: Region option picked on the first-run region screen
            timezone: Timezone ``data-val`` picked on the region screen
            mask_timeout: Deadline for each busy-overlay wait, in seconds
        """
        self.logger = logging.getLogger("provisioner.workflow")
        self.session = session
        self.credentials = credentials
        self.token = token
        self.publisher = publisher
        self.region = region
        self.timezone = timezone
        self.mask_timeout = mask_timeout

        self.handlers: dict[Stage, StageHandler] = {
            Stage.LOGIN: self.login,
            Stage.HOSTNAME: self.set_hostname,
            Stage.WIFI: self.set_wifi,
            Stage.ADMIN: self.set_admin,
            Stage.RESET: self.reset,
        }
        self._login_handlers: dict[LoginPage, StageHandler] = {
            LoginPage.CREATE_PASSWORD: self._create_password,
            LoginPage.ENTER_PASSWORD: self._enter_password,
            LoginPage.REGION: self._set_region,
            LoginPage.QUICK_SETUP: self._skip_quick_setup,
            LoginPage.ADVANCED: self._open_advanced,
        }

    async def run(self, stages: Iterable[Stage] = DEFAULT_STAGES) -> None:
        """Process ``stages`` in order until the queue is empty.

        Raises:
            ProvisioningError: Whatever a handler raises; nothing is caught here
        """
        queue = deque(stages)
        self.logger.info(f"Running stages: {[s.value for s in queue]}")
        while queue:
            await self.settle()
            stage = queue[0]
            if await self.handlers[stage]():
                queue.popleft()
                self.logger.info(f"Stage {stage.value} complete")
        self.logger.info("All stages done")

    async def settle(self) -> None:
        """Wait for navigation and network activity to finish."""
        self.token.check()
        await self.session.wait_for_load()
        self.token.check()
        await self.session.wait_for_idle()
        self.token.check()

    async def _wait_mask(self) -> None:
        await wait_for_mask_off(self.session, self.token, timeout=self.mask_timeout)

    def _progress(self, label: str, percent: Optional[int] = None) -> None:
        self.publisher.progress(label, percent)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def classify_login_page(self) -> LoginPage:
        """Return the first login screen whose marker is visible.

        Raises:
            UnrecognizedPageError: If no marker is visible
        """
        for page, selector in LOGIN_MARKERS:
            if await self.session.is_visible(selector):
                return page
        raise UnrecognizedPageError("Unknown page while trying to log in")

    async def login(self) -> bool:
        page = await self.classify_login_page()
        self.logger.debug(f"Login page: {page.value}")
        return await self._login_handlers[page]()

    async def _create_password(self) -> bool:
        self._progress("Create password", 5)
        self.logger.info("Create password")
        await self.session.fill("#pc-setPwd-new", self.credentials.password)
        await self.session.fill("#pc-setPwd-confirm", self.credentials.password)
        await self.session.click("#pc-setPwd-btn")
        self.logger.info("Password created")
        self._progress("Password created")
        return False

    async def _enter_password(self) -> bool:
        self._progress("Log in", 10)
        candidates = self.credentials.candidates
        for index, password in enumerate(candidates, start=1):
            self.logger.info(f"Log in with password {index}/{len(candidates)}")
            await self.session.fill("#pc-login-password", password)
            await self.session.click("#pc-login-btn")
            await self.settle()
            await self.token.sleep(0.25)
            # Another admin session is active; the router asks to take over.
            if await self.session.is_visible("#confirm-yes"):
                if await self.session.text_content("#confirm-yes") == LOGIN_CONFIRM_TEXT:
                    await self.session.click("#confirm-yes")
                    await self.settle()
                    await self.token.sleep(0.25)
            if await self.session.is_visible("#pc-login-password"):
                self.logger.info("Wrong password")
                continue
            self.logger.info("Log in successful")
            self._progress("Logged in")
            return False
        raise AuthenticationError("Invalid password")

    async def _set_region(self) -> bool:
        self._progress("Set region", 15)
        self.logger.info(f"Set region to {self.region}, timezone {self.timezone}")
        await select_by_text(self.session, self.token, "_region", self.region)
        await select_by_value(self.session, self.token, "_timezone", self.timezone)
        await self.session.click("#next")
        await self._wait_mask()
        self._progress("Region set")
        return False

    async def _skip_quick_setup(self) -> bool:
        self._progress("Skip quick setup", 20)
        self.logger.info("Skip quick setup")
        await self.session.click("#wan_next")
        await self._wait_mask()
        percent = 21
        while await self.session.is_hidden("#advanced"):
            self._progress("Skip quick setup", percent)
            percent = min(percent + 1, 29)
            await self.session.click("#next")
            await self._wait_mask()
        self.logger.info("Quick setup skipped")
        self._progress("Quick setup successful", 30)
        await self.session.click("#advanced")
        await self.token.sleep(0.5)
        return True

    async def _open_advanced(self) -> bool:
        self._progress("Click advanced", 30)
        self.logger.info("Click Advanced")
        await self.session.click("#advanced")
        await self.token.sleep(0.5)
        return True

    # ------------------------------------------------------------------
    # Configuration stages
    # ------------------------------------------------------------------

    def _request(self) -> ProvisioningRequest:
        if not isinstance(self.credentials, ProvisioningRequest):
            raise TypeError("Configuration stages need a ProvisioningRequest")
        return self.credentials

    async def set_hostname(self) -> bool:
        hostname = self._request().hostname
        self._progress("Go to WAN page", 35)
        await self.session.click(menu_link(1, "ethWan.htm"))
        await self.session.click(menu_link(2, "ethWan.htm"))
        await self.token.sleep(1)

        self._progress("Set hostname", 40)
        await self.session.click("#multiWanBody span.edit-modify-icon")
        await self.session.click("#multiWanEdit span.advanced-icon")
        await self.session.fill("#hostname", hostname)
        await self.session.click("#saveConnBtn")
        await self._wait_mask()
        await self.token.sleep(1)
        self.logger.info(f"Hostname set to {hostname}")
        self._progress("Hostname set")
        return True

    async def set_wifi(self) -> bool:
        request = self._request()
        self._progress("Go to wireless page", 45)
        page = "wirelessSettings.htm"
        if await self.session.is_hidden(menu_link(2, page)):
            await self.session.click(menu_link(1, page))
            await self.token.sleep(0.5)
        await self.session.click(menu_link(2, page))
        await self.token.sleep(1)

        for switch_id, label, percent in (
            ("enableOfdma", "Enable OFDMA", 50),
            ("enableTwt", "Enable TWT", 60),
        ):
            if await self.session.is_visible(f"#{switch_id}"):
                self._progress(label, percent)
                if await toggle_switch_to(
                    self.session, self.token, switch_id, True, self.mask_timeout
                ):
                    self.logger.info(f"{label}: switched on")

        self._progress("Set SSID & PSK", 70)
        self.logger.info(f"Set SSID to {request.ssid}")
        await self.session.fill("#ssid", request.ssid)
        await select_by_text(self.session, self.token, "_sec", SECURITY_MODE)
        await self.session.fill("#wpa2PersonalPwd", request.psk)

        self._progress("Set channel width", 75)
        hardware_version = await self.session.text_content("#bot_hver")
        width_2g, width_5g = channel_widths(hardware_version)
        self.logger.info(f"Set channel width to {width_2g} (2.4GHz), {width_5g} (5GHz)")
        await self.session.click("#dynAdvClick")
        await select_by_value(self.session, self.token, "_chnwidth_adv_2g", width_2g)
        await select_by_value(self.session, self.token, "_chnwidth_adv_5g", width_5g)

        await self.session.click("#save")
        await self._wait_mask()
        self.logger.info("Wireless settings saved")
        return True

    async def set_admin(self) -> bool:
        self._progress("Go to admin", 80)
        await self._open_system_page("manageCtrl.htm")

        self._progress("Set remote access", 90)
        if not await self.session.is_checked("#remoteHttpEn"):
            self.logger.info("Set remote http access on")
            await self.session.click("label[for=remoteHttpEn]")
            await self.session.click("#t_save3")
            await self._wait_mask()
            await self.token.sleep(1)

        self._progress("Set remote ping", 95)
        if not await self.session.is_checked("#pingRemote"):
            self.logger.info("Set remote ping on")
            await self.session.click("label[for=pingRemote]")
            await self.session.click("#t_save4")
            await self._wait_mask()
        self.logger.info("Remote administration enabled")
        return True

    async def reset(self) -> bool:
        self._progress("Reset to factory defaults", 50)
        self.logger.info("Reset to factory defaults")
        await self._open_system_page("backNRestore.htm")
        await self.session.click("button#resetBtn")
        await self.token.sleep(0.25)
        await self.session.click_role("button", "Yes")
        await self.token.sleep(1)
        self.logger.info("Factory reset triggered")
        self._progress("Factory reset triggered", 95)
        return True

    async def _open_system_page(self, page: str) -> None:
        # System tools pages hang below the section whose entry page is time.htm.
        if await self.session.is_hidden(menu_link(2, page)):
            await self.session.click(menu_link(1, "time.htm"))
            await self.token.sleep(0.5)
        await self.session.click(menu_link(2, page))
        await self.token.sleep(1)
