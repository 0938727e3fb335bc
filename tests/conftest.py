"""Pytest configuration and shared fixtures."""

import asyncio
import re
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, Mock
from urllib.parse import urlparse

import pytest
from PIL import Image

from sitecheck.models.config import HarnessConfig, ViewportConfig
from sitecheck.models.snapshot import PageSnapshot


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def harness_config(tmp_path: Path) -> HarnessConfig:
    """Create a test harness configuration rooted in tmp_path."""
    return HarnessConfig(
        base_url="https://example.de",
        viewport=ViewportConfig(width=1280, height=720, name="desktop"),
        consent_budget_ms=500,
        navigation_timeout_ms=5000,
        baselines_dir=str(tmp_path / "baselines"),
        artifacts_dir=str(tmp_path / "artifacts"),
        report_output_dir=str(tmp_path / "reports"),
        credentials={"gorest": "secret"},
    )


# ============================================================================
# Page Fixtures
# ============================================================================


def make_mock_page(
    url: str = "https://example.de/",
    title: str = "Example Page",
    content: str = "<html><body></body></html>",
    counts: dict[str, int] | None = None,
) -> MagicMock:
    """Create a mock Playwright page with async methods where Playwright has them."""
    page = MagicMock()
    page.url = url
    page.title = AsyncMock(return_value=title)
    page.content = AsyncMock(return_value=content)
    page.goto = AsyncMock()
    page.screenshot = AsyncMock()
    page.evaluate = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    page.set_viewport_size = AsyncMock()
    page.on = Mock()

    counts = counts or {}
    locators: dict[str, MagicMock] = {}

    def _locator(selector: str) -> MagicMock:
        if selector not in locators:
            loc = MagicMock()
            loc.count = AsyncMock(return_value=counts.get(selector, 0))
            loc.first = MagicMock()
            loc.first.click = AsyncMock()
            loc.first.hover = AsyncMock()
            loc.first.screenshot = AsyncMock()
            locators[selector] = loc
        return locators[selector]

    page.locator = Mock(side_effect=_locator)
    page.locators = locators
    return page


@pytest.fixture
def mock_page() -> MagicMock:
    return make_mock_page()


@pytest.fixture
def snapshot() -> PageSnapshot:
    return PageSnapshot(
        url="https://www.mercedes-benz.de/passengercars.html",
        title="Mercedes-Benz PKW | Mercedes-Benz",
        content=(
            "<html><body><header>Fahrzeuge</header>"
            "<footer><a href='/privacy'>Datenschutz</a></footer></body></html>"
        ),
        element_counts={"img[src]": 12, "nav": 0},
        visible_counts={"header": 1, "nav": 0},
    )


# ============================================================================
# Image Helpers
# ============================================================================


def solid_image(size: tuple[int, int] = (10, 10), color=(0, 0, 0)) -> Image.Image:
    return Image.new("RGB", size, color)


def write_image(path: Path, image: Image.Image) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path, format="PNG")
    return path


def screenshot_writer(image: Image.Image):
    """Side effect for a mocked ``screenshot(path=...)`` that writes ``image``."""
    async def _write(*args, **kwargs):
        write_image(Path(kwargs["path"]), image)
        return b""
    return _write


# ============================================================================
# Remote Service Fakes
# ============================================================================


class FakeResponse:
    def __init__(self, status: int, body: Any = None):
        self.status = status
        self._body = body

    async def json(self) -> Any:
        if self._body is None:
            raise ValueError("Response has no JSON body")
        return self._body


class FakeUserService:
    """In-memory stand-in for a token-protected users API, driven via ``fetch``."""

    def __init__(self, token: str = "secret", next_id: int = 42):
        self.token = token
        self.next_id = next_id
        self.users: dict[int, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.created = 0
        self.deleted = 0
        self.delete_status: int | None = None  # force a status for DELETE
        self.keep_on_delete = False
        self.hang_once: tuple[str, str] | None = None

    async def fetch(self, url: str, method: str = "GET", headers=None, data=None, timeout=None):
        path = urlparse(url).path
        self.calls.append((method, path))
        if self.hang_once == (method, path):
            self.hang_once = None
            await asyncio.sleep(10)

        authed = (headers or {}).get("Authorization") == f"Bearer {self.token}"

        if path == "/users" and method == "POST":
            if not authed:
                return FakeResponse(401, {"message": "Authentication failed"})
            uid = self.next_id
            self.next_id += 1
            self.users[uid] = dict(data or {}, id=uid)
            self.created += 1
            return FakeResponse(201, self.users[uid])

        match = re.fullmatch(r"/users/(\d+)", path)
        if match:
            uid = int(match.group(1))
            if uid not in self.users:
                return FakeResponse(404, {"message": "Resource not found"})
            if method == "GET":
                return FakeResponse(200, self.users[uid])
            if method == "DELETE":
                if not authed:
                    return FakeResponse(401, {"message": "Authentication failed"})
                if self.delete_status is not None:
                    return FakeResponse(self.delete_status, {"message": "Server error"})
                if not self.keep_on_delete:
                    del self.users[uid]
                self.deleted += 1
                return FakeResponse(204)

        return FakeResponse(404, {"message": "Not found"})


@pytest.fixture
def user_service() -> FakeUserService:
    return FakeUserService()
