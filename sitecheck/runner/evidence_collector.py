"""Evidence collector — captures console output and failure screenshots."""

from __future__ import annotations

import logging
from pathlib import Path

from playwright.async_api import Page

logger = logging.getLogger(__name__)


class EvidenceCollector:
    """Collects per-scenario evidence (console messages, page errors, screenshots)."""

    def __init__(self, evidence_dir: Path):
        self.evidence_dir = evidence_dir
        self.evidence_dir.mkdir(parents=True, exist_ok=True)
        self.console_logs: list[str] = []
        self.artifacts: list[str] = []

    def setup_listeners(self, page: Page) -> None:
        """Attach console and uncaught-error listeners to a page."""
        page.on("console", lambda msg: self.console_logs.append(
            f"[{msg.type}] {msg.text}"
        ))
        page.on("pageerror", lambda err: self.console_logs.append(f"[pageerror] {err}"))

    @property
    def console_errors(self) -> list[str]:
        return [line for line in self.console_logs if line.startswith(("[error]", "[pageerror]"))]

    async def take_screenshot(self, page: Page, label: str) -> str:
        """Capture a viewport screenshot and return the file path ("" on failure)."""
        path = self.evidence_dir / f"{label}.png"
        try:
            await page.screenshot(path=str(path), full_page=False)
        except Exception as e:
            logger.warning("Screenshot failed: %s", e)
            return ""
        self.artifacts.append(str(path))
        return str(path)

    def save_logs(self) -> str:
        """Persist console output; returns the log path, or "" when nothing was logged or writing failed."""
        if not self.console_logs:
            return ""
        console_path = self.evidence_dir / "console.log"
        try:
            with open(console_path, "w") as f:
                f.write("\n".join(self.console_logs))
        except OSError as e:
            logger.warning("Could not save console log: %s", e)
            return ""
        self.artifacts.append(str(console_path))
        return str(console_path)
