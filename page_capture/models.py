"""Value objects shared by the config loader, the browser session and the processor."""

import datetime
from dataclasses import dataclass, field
from typing import Optional

MIN_DIMENSION = 100
MAX_DIMENSION = 10000


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int

    def as_dict(self) -> dict:
        """Playwright's viewport shape."""
        return {'width': self.width, 'height': self.height}

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


DEFAULT_VIEWPORT = Viewport(1920, 1080)


@dataclass(frozen=True)
class CaptureTarget:
    """The page to capture. ``viewport`` is None when no resolution was configured."""

    url: str
    viewport: Optional[Viewport] = None

    @property
    def effective_viewport(self) -> Viewport:
        return self.viewport or DEFAULT_VIEWPORT


@dataclass(frozen=True)
class LoginDescriptor:
    """
    Everything needed to drive a login form before the capture.

    Built only when login URL, username and password are all present
    (see ``config.build_login``); never mutated afterwards.
    """

    url: str
    username: str
    password: str = field(repr=False)
    username_selector: str = 'input[name="username"], input[name="login"], input[name="email"], input[type="email"]'
    password_selector: str = 'input[type="password"]'
    submit_selector: str = 'button[type="submit"], input[type="submit"]'
    wait_after_login: float = 3.0


@dataclass(frozen=True)
class CaptureArtifact:
    """One encoded screenshot plus the metadata used for its caption."""

    data: bytes = field(repr=False)
    url: str
    authenticated: bool
    viewport: Optional[Viewport]
    width: int
    height: int
    captured_at: datetime.datetime

    @property
    def size(self) -> int:
        return len(self.data)
