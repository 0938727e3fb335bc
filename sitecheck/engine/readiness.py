"""Page readiness gate — bounded waits for structural or network stability."""

from __future__ import annotations

import logging

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sitecheck.errors import TimeoutExceeded

logger = logging.getLogger(__name__)

READINESS_STATES = ("domcontentloaded", "load", "networkidle")


async def wait_until_ready(
    page: Page,
    state: str = "domcontentloaded",
    timeout_ms: int = 30000,
    tolerate_timeout: bool = False,
) -> bool:
    """Block until the page reaches ``state``.

    ``domcontentloaded`` is the fast structural check, ``networkidle`` the
    thorough one (no requests for 500ms). Returns True when the state was
    reached. On timeout raises ``TimeoutExceeded`` unless ``tolerate_timeout``
    is set, in which case False is returned.
    """
    if state not in READINESS_STATES:
        raise ValueError(f"Unknown readiness state: {state}")
    try:
        await page.wait_for_load_state(state, timeout=timeout_ms)
        return True
    except PlaywrightTimeoutError:
        if tolerate_timeout:
            logger.debug("Readiness '%s' not reached in %dms, continuing", state, timeout_ms)
            return False
        raise TimeoutExceeded(f"page state '{state}'", timeout_ms)


async def settle(page: Page, ms: int) -> None:
    """Give animations and lazy content a fixed quiet period."""
    if ms > 0:
        await page.wait_for_timeout(ms)


async def scroll_to_bottom(page: Page) -> None:
    await page.evaluate("window.scrollTo(0, document.body.scrollHeight)")
