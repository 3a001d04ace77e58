"""
Error taxonomy for the capture daemon.

Startup errors (ConfigurationError, and a DeliveryError raised while the
delivery channel is being initialised) stop the process. Everything raised
during a tick is caught by the CaptureProcessor, logged, and the tick is
abandoned.
"""


class PageCaptureError(Exception):
    """Base class for all daemon errors."""

    kind = "PageCaptureError"


class ConfigurationError(PageCaptureError):
    """Configuration is missing or invalid. Fatal at startup."""

    kind = "ConfigurationError"


class CaptureFailure(PageCaptureError):
    """A browser session did not produce an image for this tick."""

    kind = "CaptureFailure"


class AuthenticationFailed(CaptureFailure):
    """The login sequence did not reach completion."""

    kind = "AuthenticationFailed"

    def __init__(self, message: str, state=None):
        super().__init__(message)
        self.state = state


class NavigationError(CaptureFailure):
    """Target unreachable, or the overall session timeout expired."""

    kind = "NavigationError"


class CaptureError(CaptureFailure):
    """The page was reached but the image could not be produced."""

    kind = "CaptureError"


class DeliveryError(PageCaptureError):
    """The chat API rejected or never received the photo."""

    kind = "DeliveryError"
