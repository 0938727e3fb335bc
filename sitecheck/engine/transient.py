"""Best-effort interaction with elements that may or may not appear (consent overlays)."""

from __future__ import annotations

import asyncio
import logging
import time

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

logger = logging.getLogger(__name__)

ACTIONS = ("click", "hover")

# Extra wall-clock allowance on top of the budget for the host call to return.
_GRACE_SECONDS = 0.05


class InteractionAttempt:
    """A locate-and-act request bounded by a wait budget."""

    def __init__(self, selectors: list[str], budget_ms: int = 3000, action: str = "click"):
        if action not in ACTIONS:
            raise ValueError(f"Unsupported transient action: {action}")
        self.selectors = [s for s in selectors if s]
        self.budget_ms = budget_ms
        self.action = action

    @property
    def combined_selector(self) -> str:
        # Playwright treats a comma-separated list as "any of"
        return ", ".join(self.selectors)


class InteractionOutcome:
    """Either "acted" or "absent". Never an error."""

    def __init__(self, status: str, selector: str, elapsed_ms: int, reason: str = ""):
        self.status = status
        self.selector = selector
        self.elapsed_ms = elapsed_ms
        self.reason = reason

    @property
    def acted(self) -> bool:
        return self.status == "acted"

    def __repr__(self) -> str:
        return f"InteractionOutcome({self.status!r}, {self.elapsed_ms}ms)"


async def resolve_transient(page: Page, attempt: InteractionAttempt) -> InteractionOutcome:
    """Try to act on the first candidate that becomes actionable within the budget.

    Absence is the expected case on repeat visits, so every failure to
    locate or act is folded into an ``absent`` outcome.
    """
    start = time.monotonic()
    selector = attempt.combined_selector

    def _elapsed() -> int:
        return int((time.monotonic() - start) * 1000)

    if not selector:
        return InteractionOutcome("absent", "", 0, "no candidate selectors")

    locator = page.locator(selector).first
    try:
        if attempt.action == "hover":
            call = locator.hover(timeout=attempt.budget_ms)
        else:
            call = locator.click(timeout=attempt.budget_ms)
        await asyncio.wait_for(call, timeout=attempt.budget_ms / 1000 + _GRACE_SECONDS)
    except (PlaywrightError, asyncio.TimeoutError) as e:
        logger.debug("Transient element absent after %dms (%s): %s",
                     _elapsed(), selector, str(e).splitlines()[0] if str(e) else type(e).__name__)
        return InteractionOutcome("absent", selector, _elapsed(), str(e))

    logger.debug("Transient element handled via '%s' in %dms", selector, _elapsed())
    return InteractionOutcome("acted", selector, _elapsed())


async def dismiss_consent(page: Page, selectors: list[str], budget_ms: int = 3000) -> InteractionOutcome:
    """Dismiss a cookie consent banner if one is shown."""
    outcome = await resolve_transient(page, InteractionAttempt(selectors, budget_ms=budget_ms))
    if outcome.acted:
        logger.info("Cookie consent dismissed")
    else:
        logger.debug("No cookie consent banner within %dms", budget_ms)
    return outcome
