import asyncio
import datetime
import io

import pytest
from PIL import Image
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from page_capture.config import DaemonConfig
from page_capture.models import CaptureTarget, LoginDescriptor, Viewport


def make_jpeg(width=320, height=200) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), (200, 30, 30)).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


def make_config(url="https://example.com", viewport=None, login=None,
                interval=datetime.timedelta(hours=1), chat_id=-100123) -> DaemonConfig:
    return DaemonConfig(
        target=CaptureTarget(url=url, viewport=viewport),
        interval=interval,
        telegram_bot_token="123:ABC",
        telegram_chat_id=chat_id,
        login=login,
    )


def make_login(**overrides) -> LoginDescriptor:
    values = dict(url="https://example.com/login", username="alice", password="s3cret",
                  wait_after_login=0.5)
    values.update(overrides)
    return LoginDescriptor(**values)


class FakeDelivery:
    """Records what would have been posted to Telegram."""

    def __init__(self, error=None):
        self.sent = []
        self.error = error

    def send_photo(self, chat_id, image, filename, caption):
        data = image if isinstance(image, bytes) else image.read()
        self.sent.append({
            "chat_id": chat_id,
            "filename": filename,
            "caption": caption,
            "data": data,
            "path": getattr(image, "name", None),
        })
        if self.error is not None:
            raise self.error
        return {"message_id": len(self.sent)}


class FakePage:
    """
    Async stand-in for a Playwright page.

    With ``block_on_missing`` a wait for a hidden selector sleeps for its whole
    timeout before failing, the way a real page does.
    """

    def __init__(self, visible=(), unreachable=(), screenshot=None, screenshot_error=None,
                 goto_delay=0.0, block_on_missing=False):
        self.visible = set(visible)
        self.unreachable = set(unreachable)
        self.screenshot_bytes = screenshot if screenshot is not None else make_jpeg()
        self.screenshot_error = screenshot_error
        self.goto_delay = goto_delay
        self.block_on_missing = block_on_missing
        self.calls = []

    def set_default_timeout(self, timeout):
        self.calls.append(("set_default_timeout", timeout))

    async def goto(self, url, **kwargs):
        self.calls.append(("goto", url))
        if self.goto_delay:
            await asyncio.sleep(self.goto_delay)
        if url in self.unreachable:
            raise PlaywrightError(f"net::ERR_NAME_NOT_RESOLVED at {url}")

    async def wait_for_selector(self, selector, state=None, timeout=None):
        self.calls.append(("wait_for_selector", selector, state))
        if selector in self.visible:
            return object()
        if self.block_on_missing and timeout:
            await asyncio.sleep(timeout / 1000)
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def fill(self, selector, value, **kwargs):
        self.calls.append(("fill", selector, value))

    async def click(self, selector, **kwargs):
        self.calls.append(("click", selector))

    async def wait_for_timeout(self, timeout):
        self.calls.append(("wait_for_timeout", timeout))

    async def set_viewport_size(self, size):
        self.calls.append(("set_viewport_size", size))

    async def screenshot(self, **kwargs):
        self.calls.append(("screenshot", kwargs))
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return self.screenshot_bytes

    def visited(self):
        return [call[1] for call in self.calls if call[0] == "goto"]


class FakeContext:
    def __init__(self, page):
        self.page = page

    async def new_page(self):
        return self.page


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.contexts = []
        self.closed = False

    async def new_context(self, **kwargs):
        self.contexts.append(kwargs)
        return FakeContext(self.page)

    async def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser):
        self.browser = browser
        self.launches = []

    async def launch(self, **kwargs):
        self.launches.append(kwargs)
        return self.browser


class FakePlaywright:
    """Callable replacement for ``async_playwright``."""

    def __init__(self, page):
        self.page = page
        self.browser = FakeBrowser(page)
        self.chromium = FakeChromium(self.browser)
        self.sessions = 0

    def __call__(self):
        self.sessions += 1
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start=1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


class StopScheduler(Exception):
    pass


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def viewport():
    return Viewport(1280, 720)
