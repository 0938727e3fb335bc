"""Browser launch and context helpers — one isolated context per scenario."""

from __future__ import annotations

from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

_STEALTH_INIT_SCRIPT = """
// Hide navigator.webdriver so consent managers render the same banner as for users
Object.defineProperty(navigator, 'webdriver', { get: () => false });

if (!window.chrome) {
    window.chrome = {};
}
if (!window.chrome.runtime) {
    window.chrome.runtime = {};
}
"""


async def launch_browser(playwright: Playwright, headless: bool = True) -> Browser:
    """Launch Chromium with automation flags suppressed."""
    return await playwright.chromium.launch(
        headless=headless,
        args=[
            "--disable-blink-features=AutomationControlled",
        ],
    )


async def create_context(
    browser: Browser,
    viewport: dict,
    locale: str = "de-DE",
    user_agent: Optional[str] = None,
    action_timeout_ms: Optional[int] = None,
    navigation_timeout_ms: Optional[int] = None,
) -> BrowserContext:
    """Create a fresh browser context; nothing is shared between scenarios."""
    language = locale.split("-")[0]
    context = await browser.new_context(
        viewport=viewport,
        user_agent=user_agent or DEFAULT_USER_AGENT,
        locale=locale,
        extra_http_headers={
            "Accept-Language": f"{locale},{language};q=0.9",
        },
    )
    await context.add_init_script(_STEALTH_INIT_SCRIPT)
    if action_timeout_ms:
        context.set_default_timeout(action_timeout_ms)
    if navigation_timeout_ms:
        context.set_default_navigation_timeout(navigation_timeout_ms)
    return context
