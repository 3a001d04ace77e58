"""
Login sequence run before a protected capture.

The form is driven through an explicit state machine so every step, and the
step a failure happened at, shows up in the logs:

    NAVIGATE_LOGIN -> AWAIT_USERNAME_FIELD -> FILL_USERNAME
    -> AWAIT_PASSWORD_FIELD -> FILL_PASSWORD -> AWAIT_SUBMIT_CONTROL
    -> SUBMIT -> POST_LOGIN_WAIT -> DONE

Any step that raises moves the machine to FAILED and raises
AuthenticationFailed. Reaching DONE does not prove the credentials were
accepted; the page after submit is not inspected.
"""

import enum
import logging
from typing import List

from playwright.async_api import Error as PlaywrightError

from .errors import AuthenticationFailed
from .models import LoginDescriptor

logger = logging.getLogger(__name__)


class LoginState(enum.Enum):
    NAVIGATE_LOGIN = "navigate_login"
    AWAIT_USERNAME_FIELD = "await_username_field"
    FILL_USERNAME = "fill_username"
    AWAIT_PASSWORD_FIELD = "await_password_field"
    FILL_PASSWORD = "fill_password"
    AWAIT_SUBMIT_CONTROL = "await_submit_control"
    SUBMIT = "submit"
    POST_LOGIN_WAIT = "post_login_wait"
    DONE = "done"
    FAILED = "failed"


_ORDER = [
    LoginState.NAVIGATE_LOGIN,
    LoginState.AWAIT_USERNAME_FIELD,
    LoginState.FILL_USERNAME,
    LoginState.AWAIT_PASSWORD_FIELD,
    LoginState.FILL_PASSWORD,
    LoginState.AWAIT_SUBMIT_CONTROL,
    LoginState.SUBMIT,
    LoginState.POST_LOGIN_WAIT,
    LoginState.DONE,
]


class LoginSequence:
    """
    Drives one login form on an already open Playwright page.

    Args:
        page: Playwright page (async API)
        descriptor: Login URL, credentials and selectors
        timeout_ms: Upper bound for navigation and each field wait
    """

    def __init__(self, page, descriptor: LoginDescriptor, timeout_ms: float):
        self.page = page
        self.descriptor = descriptor
        self.timeout_ms = timeout_ms
        self.state = LoginState.NAVIGATE_LOGIN
        self.history: List[LoginState] = []
        self._handlers = {
            LoginState.NAVIGATE_LOGIN: self._navigate,
            LoginState.AWAIT_USERNAME_FIELD: lambda: self._await_visible(self.descriptor.username_selector),
            LoginState.FILL_USERNAME: lambda: self._fill(self.descriptor.username_selector, self.descriptor.username),
            LoginState.AWAIT_PASSWORD_FIELD: lambda: self._await_visible(self.descriptor.password_selector),
            LoginState.FILL_PASSWORD: lambda: self._fill(self.descriptor.password_selector, self.descriptor.password),
            LoginState.AWAIT_SUBMIT_CONTROL: lambda: self._await_visible(self.descriptor.submit_selector),
            LoginState.SUBMIT: self._submit,
            LoginState.POST_LOGIN_WAIT: self._post_login_wait,
        }

    async def run(self) -> None:
        """Walk every state in order. Raises AuthenticationFailed on the first failing step."""
        for state in _ORDER:
            self.state = state
            self.history.append(state)
            if state is LoginState.DONE:
                break
            try:
                await self._handlers[state]()
            except (PlaywrightError, AuthenticationFailed) as e:
                self.state = LoginState.FAILED
                self.history.append(LoginState.FAILED)
                logger.warning("Login failed at %s: %s", state.value, e)
                raise AuthenticationFailed(
                    f"login did not complete at {state.value}: {e}", state=state
                ) from e
            logger.debug("Login step %s complete", state.value)

        logger.info("Login sequence finished for %s", self.descriptor.url)

    async def _navigate(self):
        await self.page.goto(self.descriptor.url, timeout=self.timeout_ms)

    async def _await_visible(self, selector: str):
        element = await self.page.wait_for_selector(selector, state="visible", timeout=self.timeout_ms)
        if element is None:
            raise AuthenticationFailed(f"element {selector!r} never became visible")

    async def _fill(self, selector: str, value: str):
        await self.page.fill(selector, value, timeout=self.timeout_ms)

    async def _submit(self):
        await self.page.click(self.descriptor.submit_selector, timeout=self.timeout_ms)

    async def _post_login_wait(self):
        # Let redirects and session cookies settle.
        await self.page.wait_for_timeout(self.descriptor.wait_after_login * 1000)

    @property
    def in_progress(self) -> bool:
        return self.state not in (LoginState.DONE, LoginState.FAILED)

    def abort(self) -> LoginState:
        """
        Mark the sequence FAILED after it was cancelled from outside.

        Returns the state that was running when the session was cut off.
        """
        interrupted = self.state
        if self.in_progress:
            self.state = LoginState.FAILED
            self.history.append(LoginState.FAILED)
            logger.warning("Login interrupted at %s", interrupted.value)
        return interrupted
