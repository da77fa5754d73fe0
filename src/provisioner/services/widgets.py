"""Interaction protocols for the router's custom UI widgets.

The router UI renders a full-page busy overlay (``div#mask``) while it talks
to the device, and uses custom ``.tp-select`` dropdowns and on/off button
groups instead of native form controls.
"""

import asyncio
import logging

from provisioner.models.errors import StageTimeoutError
from provisioner.services.cancellation import CancellationToken
from provisioner.services.session import UISession

MASK_SELECTOR = "div#mask"

SCROLL_XPATH_INTO_VIEW = """xpath => {
    const e = document.evaluate(
        xpath, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null
    ).singleNodeValue;
    if (e) e.scrollIntoView();
}"""
SCROLL_SELECTOR_INTO_VIEW = """selector => {
    const e = document.querySelector(selector);
    if (e) e.scrollIntoView();
}"""
SWITCH_IS_ON = "id => document.getElementById(id).classList.contains('on')"

logger = logging.getLogger("provisioner.widgets")


async def wait_for_mask_off(
    session: UISession,
    token: CancellationToken,
    timeout: float = 60.0,
    interval: float = 0.05,
    settle_checks: int = 10,
    appear_checks: int = 40,
) -> None:
    """Wait until the busy overlay has come and gone.

    First polls up to ``appear_checks`` times for the overlay to show up (an
    overlay that never appears is not an error), then polls until it has been
    absent for ``settle_checks`` consecutive checks.

    Args:
        session: Active UI session
        token: Cancellation token, sampled at every poll
        timeout: Overall deadline in seconds
        interval: Delay between polls in seconds
        settle_checks: Consecutive absent checks required
        appear_checks: Polls allowed for the overlay to appear

    Raises:
        StageTimeoutError: If the overlay is still busy at the deadline
    """

    async def _poll() -> None:
        for _ in range(appear_checks):
            if await session.is_visible(MASK_SELECTOR):
                break
            await token.sleep(interval)

        absent = 0
        while absent < settle_checks:
            await token.sleep(interval)
            if await session.is_visible(MASK_SELECTOR):
                absent = 0
            else:
                absent += 1

    try:
        await asyncio.wait_for(_poll(), timeout)
    except asyncio.TimeoutError as e:
        raise StageTimeoutError(f"Busy overlay still visible after {timeout:g}s") from e


def _xpath_literal(text: str) -> str:
    if "'" not in text:
        return f"'{text}'"
    if '"' not in text:
        return f'"{text}"'
    parts = text.split("'")
    return "concat(" + ", \"'\", ".join(f"'{p}'" for p in parts) + ")"


async def select_by_text(
    session: UISession, token: CancellationToken, dropdown_id: str, text: str
) -> None:
    """Pick the option of a custom dropdown whose visible text is ``text``."""
    xpath = f"//*[@id='{dropdown_id}']//li[text()={_xpath_literal(text)}]"
    logger.debug(f"Select '{text}' in #{dropdown_id}")
    await session.click(f"#{dropdown_id} > .tp-select")
    await session.evaluate(SCROLL_XPATH_INTO_VIEW, xpath)
    await token.sleep(0.25)
    await session.click(xpath)
    await token.sleep(0.5)


async def select_by_value(
    session: UISession, token: CancellationToken, dropdown_id: str, value: str
) -> None:
    """Pick the option of a custom dropdown whose ``data-val`` is ``value``."""
    escaped = value.replace("'", "\\'")
    selector = f"#{dropdown_id} li[data-val='{escaped}']"
    logger.debug(f"Select value '{value}' in #{dropdown_id}")
    await session.click(f"#{dropdown_id} > .tp-select")
    await session.evaluate(SCROLL_SELECTOR_INTO_VIEW, selector)
    await token.sleep(0.25)
    await session.click(selector)
    await token.sleep(0.5)


async def toggle_switch_to(
    session: UISession,
    token: CancellationToken,
    switch_id: str,
    state: bool,
    mask_timeout: float = 60.0,
) -> bool:
    """Flip an on/off button group to ``state`` if it is not already there.

    Returns:
        True if the switch was clicked, False if it already had ``state``
    """
    is_on = bool(await session.evaluate(SWITCH_IS_ON, switch_id))
    if is_on == state:
        return False
    await session.click(f"#{switch_id} div.button-group-wrap")
    await wait_for_mask_off(session, token, timeout=mask_timeout)
    return True
