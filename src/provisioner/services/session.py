"""UI automation session used to drive the router's web interface.

The workflow only depends on the ``UISession`` protocol. ``PlaywrightSession``
implements it with a headless Chromium page.
"""

import logging
from typing import Any, Optional, Protocol

from playwright.async_api import Browser, Error as PlaywrightError, Page, Playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from provisioner.models.errors import ConnectivityTransientError, NavigationError

UNREACHABLE_MARKER = "net::ERR_ADDRESS_UNREACHABLE"


class UISession(Protocol):
    """Capabilities the workflow needs from a browser automation backend."""

    async def navigate(self, url: str, timeout: float) -> None: ...

    async def is_visible(self, selector: str) -> bool: ...

    async def is_hidden(self, selector: str) -> bool: ...

    async def is_checked(self, selector: str) -> bool: ...

    async def fill(self, selector: str, text: str) -> None: ...

    async def click(self, selector: str) -> None: ...

    async def click_role(self, role: str, name: str) -> None: ...

    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    async def text_content(self, selector: str) -> Optional[str]: ...

    async def screenshot(self) -> bytes: ...

    async def wait_for_load(self) -> None: ...

    async def wait_for_idle(self) -> None: ...

    async def close(self) -> None: ...


class PlaywrightSession:
    """UISession backed by a Playwright Chromium page."""

    def __init__(self, playwright: Playwright, browser: Browser, page: Page):
        self.logger = logging.getLogger("provisioner.session")
        self._playwright = playwright
        self._browser = browser
        self.page = page

    @classmethod
    async def launch(
        cls, headless: bool = True, default_timeout: float = 30.0
    ) -> "PlaywrightSession":
        """Start Chromium and open a single page.

        Args:
            headless: Run the browser without a window
            default_timeout: Timeout for every page action, in seconds
        """
        playwright = await async_playwright().start()
        try:
            browser = await playwright.chromium.launch(headless=headless)
            page = await browser.new_page(viewport={"width": 1280, "height": 1280})
        except Exception:
            await playwright.stop()
            raise
        page.set_default_timeout(default_timeout * 1000)
        return cls(playwright, browser, page)

    async def navigate(self, url: str, timeout: float) -> None:
        """Open ``url``, translating failures into navigation errors.

        Raises:
            ConnectivityTransientError: Address unreachable or timeout
            NavigationError: Any other navigation failure
        """
        try:
            await self.page.goto(url, timeout=timeout * 1000)
        except PlaywrightTimeoutError as e:
            raise ConnectivityTransientError(f"Navigation timeout: {url}") from e
        except PlaywrightError as e:
            if UNREACHABLE_MARKER in e.message:
                raise ConnectivityTransientError(f"Address unreachable: {url}") from e
            raise NavigationError(e.message) from e

    async def is_visible(self, selector: str) -> bool:
        return await self.page.is_visible(selector)

    async def is_hidden(self, selector: str) -> bool:
        return await self.page.is_hidden(selector)

    async def is_checked(self, selector: str) -> bool:
        return await self.page.is_checked(selector)

    async def fill(self, selector: str, text: str) -> None:
        await self.page.fill(selector, text)

    async def click(self, selector: str) -> None:
        await self.page.click(selector)

    async def click_role(self, role: str, name: str) -> None:
        await self.page.get_by_role(role, name=name).click()

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self.page.evaluate(script, arg)

    async def text_content(self, selector: str) -> Optional[str]:
        return await self.page.text_content(selector)

    async def screenshot(self) -> bytes:
        return await self.page.screenshot(type="png")

    async def wait_for_load(self) -> None:
        await self.page.wait_for_load_state()

    async def wait_for_idle(self) -> None:
        await self.page.wait_for_load_state("networkidle")

    async def close(self) -> None:
        """Close the browser and stop Playwright."""
        try:
            await self._browser.close()
        finally:
            await self._playwright.stop()
        self.logger.debug("Browser closed")
