"""Global pytest fixtures and configuration."""

import asyncio
import os
import sys
from pathlib import Path
from typing import Callable, Iterable, Optional

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

os.environ.setdefault("MAIN_PASSWORD", "main-pw")

from provisioner.services import cancellation  # noqa: E402
from provisioner.services.coordinator import JobCoordinator  # noqa: E402
from provisioner.services.publisher import StatusPublisher  # noqa: E402
from provisioner.utils.config import get_settings  # noqa: E402

FAKE_PNG = b"\x89PNG\r\n\x1a\nfake-screenshot"


class FakeRouterUI:
    """Scriptable stand-in for the router web UI, implementing UISession.

    ``page`` is one of: create_password, login, region, quick_setup, home,
    advanced, blank. Clicks move between pages the way the real first-run
    wizard does; every interaction is recorded for assertions.
    """

    PAGE_MARKERS = {
        "create_password": {"#pc-setPwd-new"},
        "login": {"#pc-login-password"},
        "region": {"#t_regionNote"},
        "quick_setup": {"#wan_next"},
        "home": {"#advanced"},
        "advanced": set(),
        "blank": set(),
    }
    MASKED_BUTTONS = {"#saveConnBtn", "#save", "#t_save3", "#t_save4", "#next", "#wan_next"}

    def __init__(
        self,
        page: str = "create_password",
        passwords: Iterable[str] = ("main-pw",),
        after_login: str = "region",
        wizard_steps: int = 2,
        hardware_version: Optional[str] = "Archer AX23 v1.0",
        remote_http: bool = False,
        remote_ping: bool = False,
        switches: Optional[dict] = None,
        confirm_dialog: bool = False,
        navigate_errors: Iterable[Exception] = (),
        mask_polls: int = 0,
        extra_visible: Iterable[str] = (),
        on_click: Optional[Callable[[str], None]] = None,
        on_navigate: Optional[Callable[[str], None]] = None,
        broken_selectors: Iterable[str] = (),
    ):
        self.page = page
        self.passwords = list(passwords)
        self.after_login = after_login
        self.wizard_steps = wizard_steps
        self.hardware_version = hardware_version
        self.checked = {"#remoteHttpEn": remote_http, "#pingRemote": remote_ping}
        self.switches = dict(switches or {})
        self.confirm_dialog = confirm_dialog
        self.navigate_errors = list(navigate_errors)
        self.mask_polls = mask_polls
        self.mask_always = False
        self.extra_visible = set(extra_visible)
        self.on_click = on_click
        self.on_navigate = on_navigate
        self.broken_selectors = set(broken_selectors)

        self.mask_left = 0
        self.mask_checks = 0
        self.confirm_pending = False
        self.navigations: list[str] = []
        self.clicks: list[str] = []
        self.fills: dict[str, str] = {}
        self.fill_log: list[tuple[str, str]] = []
        self.evaluations: list[tuple[str, object]] = []
        self.load_waits = 0
        self.idle_waits = 0
        self.screenshots_taken = 0
        self.closed = False

    # -- visibility -----------------------------------------------------

    def _visible(self, selector: str) -> bool:
        if selector == "div#mask":
            self.mask_checks += 1
            if self.mask_always:
                return True
            if self.mask_left > 0:
                self.mask_left -= 1
                return True
            return False
        if selector in self.extra_visible:
            return True
        if selector == "#confirm-yes":
            return self.confirm_pending
        if self.page == "quick_setup" and selector == "#advanced":
            return self.wizard_steps == 0
        if self.page == "advanced":
            if selector.startswith(".ml"):
                return True
            if selector.lstrip("#") in self.switches:
                return True
        return selector in self.PAGE_MARKERS[self.page]

    async def is_visible(self, selector):
        return self._visible(selector)

    async def is_hidden(self, selector):
        return not self._visible(selector)

    async def is_checked(self, selector):
        return self.checked[selector]

    # -- actions --------------------------------------------------------

    async def navigate(self, url, timeout):
        self.navigations.append(url)
        if self.on_navigate:
            self.on_navigate(url)
        if self.navigate_errors:
            raise self.navigate_errors.pop(0)

    async def fill(self, selector, text):
        self.fills[selector] = text
        self.fill_log.append((selector, text))

    async def click(self, selector):
        self.clicks.append(selector)
        if selector in self.broken_selectors:
            raise RuntimeError(f"Element not clickable: {selector}")
        if self.on_click:
            self.on_click(selector)

        if selector == "#pc-setPwd-btn":
            if self.fills.get("#pc-setPwd-new") == self.fills.get("#pc-setPwd-confirm"):
                self.passwords = [self.fills["#pc-setPwd-new"]]
                self.page = "login"
        elif selector == "#pc-login-btn":
            if self.fills.get("#pc-login-password") in self.passwords:
                if self.confirm_dialog:
                    self.confirm_pending = True
                else:
                    self.page = self.after_login
        elif selector == "#confirm-yes":
            self.confirm_pending = False
            self.page = self.after_login
        elif selector == "#next" and self.page == "region":
            self.page = "quick_setup"
        elif selector in ("#next", "#wan_next") and self.page == "quick_setup":
            self.wizard_steps = max(0, self.wizard_steps - 1)
        elif selector == "#advanced":
            self.page = "advanced"
        elif selector.startswith("label[for="):
            key = "#" + selector[len("label[for="):-1]
            self.checked[key] = not self.checked[key]
        elif selector.endswith(" div.button-group-wrap"):
            key = selector[1:-len(" div.button-group-wrap")]
            self.switches[key] = not self.switches[key]

        if selector in self.MASKED_BUTTONS:
            self.mask_left = self.mask_polls

    async def click_role(self, role, name):
        self.clicks.append(f"role={role}[name={name}]")

    async def evaluate(self, script, arg=None):
        self.evaluations.append((script, arg))
        if arg in self.switches:
            return self.switches[arg]
        return None

    async def text_content(self, selector):
        if selector == "#bot_hver":
            return self.hardware_version
        if selector == "#confirm-yes":
            return "Log in"
        return None

    async def screenshot(self):
        self.screenshots_taken += 1
        return FAKE_PNG

    async def wait_for_load(self):
        self.load_waits += 1

    async def wait_for_idle(self):
        self.idle_waits += 1

    async def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singletons and cached settings between tests."""
    JobCoordinator._instance = None
    StatusPublisher._instance = None
    get_settings.cache_clear()
    yield
    JobCoordinator._instance = None
    StatusPublisher._instance = None
    get_settings.cache_clear()


@pytest.fixture
def fast_sleep(monkeypatch):
    """Make every token sleep return immediately; records requested delays."""
    delays = []
    real_sleep = asyncio.sleep

    async def _sleep(seconds, *args, **kwargs):
        delays.append(seconds)
        await real_sleep(0)

    monkeypatch.setattr(cancellation.asyncio, "sleep", _sleep)
    return delays


@pytest.fixture
def fake_router():
    """Factory for FakeRouterUI instances."""
    return FakeRouterUI
