import asyncio
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from .errors import AuthenticationFailed, CaptureError, NavigationError
from .login import LoginSequence
from .models import CaptureTarget, LoginDescriptor

logger = logging.getLogger(__name__)

SESSION_TIMEOUT = 60.0  # seconds, whole session including login
SETTLE_DELAY = 2.5  # seconds after navigation before the capture
JPEG_QUALITY = 90

BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-gpu',
    '--disable-dev-shm-usage',
]


async def _create_isolated_page(browser, target: CaptureTarget, timeout_ms: float):
    """Create a fresh context (no shared cookies or cache) and a page in it."""
    context = await browser.new_context(
        viewport=target.effective_viewport.as_dict(),
        ignore_https_errors=True,
    )
    page = await context.new_page()
    page.set_default_timeout(timeout_ms)
    return page


async def _navigate(page, url: str, timeout_ms: float):
    logger.debug("Navigating to %s", url)
    try:
        await page.goto(url, wait_until="load", timeout=timeout_ms)
    except PlaywrightError as e:
        raise NavigationError(f"could not load {url}: {e}") from e


async def _screenshot(page, target: CaptureTarget) -> bytes:
    try:
        # Navigation can reset the viewport; force it back before capturing.
        await page.set_viewport_size(target.effective_viewport.as_dict())
        return await page.screenshot(full_page=True, type="jpeg", quality=JPEG_QUALITY)
    except PlaywrightError as e:
        raise CaptureError(f"screenshot of {target.url} failed: {e}") from e


class _Session:
    """Tracks the login sequence while it runs so a timeout can be attributed to it."""

    def __init__(self):
        self.login: Optional[LoginSequence] = None


async def _run_session(session: _Session, target: CaptureTarget, login: Optional[LoginDescriptor],
                       timeout: float, settle_delay: float, playwright_factory) -> bytes:
    timeout_ms = timeout * 1000
    async with playwright_factory() as p:
        browser = await p.chromium.launch(headless=True, args=BROWSER_ARGS)
        try:
            page = await _create_isolated_page(browser, target, timeout_ms)

            if login is not None:
                logger.info("Logging in at %s", login.url)
                session.login = LoginSequence(page, login, timeout_ms)
                await session.login.run()
                session.login = None

            await _navigate(page, target.url, timeout_ms)
            await page.wait_for_timeout(settle_delay * 1000)
            return await _screenshot(page, target)
        finally:
            await browser.close()


async def capture_page(target: CaptureTarget,
                       login: Optional[LoginDescriptor] = None,
                       timeout: float = SESSION_TIMEOUT,
                       settle_delay: float = SETTLE_DELAY,
                       playwright_factory=async_playwright) -> bytes:
    """
    Render ``target`` in a throwaway headless Chromium and return a full-page JPEG.

    When ``login`` is given the login form is completed first; if it fails the
    target page is never opened. The browser is closed on every exit path.

    Args:
        target: URL and optional viewport to capture
        login: Optional login form to complete before navigating
        timeout: Wall-clock bound for the whole session, in seconds
        settle_delay: Pause after navigation for asynchronous content, in seconds
        playwright_factory: Callable returning the Playwright async context manager

    Returns:
        Encoded JPEG bytes

    Raises:
        AuthenticationFailed: The login sequence did not complete, including
            when the session timed out while it was still running
        NavigationError: The target could not be loaded, or the session timed
            out after login
        CaptureError: The screenshot itself failed
    """
    session = _Session()
    try:
        return await asyncio.wait_for(
            _run_session(session, target, login, timeout, settle_delay, playwright_factory),
            timeout,
        )
    except asyncio.TimeoutError:
        if session.login is not None and session.login.in_progress:
            state = session.login.abort()
            raise AuthenticationFailed(
                f"login timed out at {state.value} after {timeout:g}s", state=state
            ) from None
        raise NavigationError(f"capture of {target.url} timed out after {timeout:g}s") from None
