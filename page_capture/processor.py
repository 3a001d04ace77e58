import datetime
import io
import logging
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Optional

from PIL import Image, UnidentifiedImageError

from .browser import SESSION_TIMEOUT, capture_page
from .config import DaemonConfig
from .errors import CaptureError, CaptureFailure, DeliveryError
from .log_sink import LogRotationGuard
from .models import CaptureArtifact

logger = logging.getLogger(__name__)

PHOTO_FILENAME = "screenshot.jpg"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
PUBLIC_STATUS = "public"
PROTECTED_STATUS = "protected — authentication required"


def build_caption(artifact: CaptureArtifact) -> str:
    """Caption text sent along with the photo."""
    lines = [
        f"Screenshot: {artifact.url}",
        f"Access: {PROTECTED_STATUS if artifact.authenticated else PUBLIC_STATUS}",
    ]
    if artifact.viewport is not None:
        lines.append(f"Resolution: {artifact.viewport}")
    lines.append(f"Time: {artifact.captured_at.strftime(TIMESTAMP_FORMAT)}")
    return "\n".join(lines)


class CaptureProcessor:
    """
    Runs one capture-and-deliver cycle per tick.

    ``run_one_tick`` never raises: every failure is logged and the tick is
    dropped, so the scheduler keeps going. A temporary file holds the image
    for the length of the tick and is removed on every exit path.
    """

    def __init__(self, config: DaemonConfig, delivery,
                 capture: Callable[..., Awaitable[bytes]] = capture_page,
                 rotation_guard: Optional[LogRotationGuard] = None,
                 temp_dir: Optional[Path] = None,
                 now: Callable[[], datetime.datetime] = datetime.datetime.now,
                 session_timeout: float = SESSION_TIMEOUT):
        self.config = config
        self.delivery = delivery
        self.capture = capture
        self.rotation_guard = rotation_guard
        self.temp_dir = temp_dir
        self.now = now
        self.session_timeout = session_timeout

    def _build_artifact(self, data: bytes) -> CaptureArtifact:
        """Decode the image to confirm it is usable and read its real dimensions."""
        # Full-page captures of long pages legitimately exceed Pillow's
        # decompression-bomb limit; the bytes come from our own browser.
        max_pixels = Image.MAX_IMAGE_PIXELS
        Image.MAX_IMAGE_PIXELS = None
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
                width, height = img.size
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise CaptureError(f"captured image could not be decoded: {e}") from e
        finally:
            Image.MAX_IMAGE_PIXELS = max_pixels

        return CaptureArtifact(
            data=data,
            url=self.config.target.url,
            authenticated=self.config.login is not None,
            viewport=self.config.target.viewport,
            width=width,
            height=height,
            captured_at=self.now(),
        )

    def _check_log_size(self):
        if self.rotation_guard is None:
            return
        try:
            self.rotation_guard.check()
        except Exception:
            logger.exception("Log rotation check failed; continuing with the capture")

    async def _capture_and_send(self, sink) -> CaptureArtifact:
        data = await self.capture(self.config.target, self.config.login, timeout=self.session_timeout)
        artifact = self._build_artifact(data)

        try:
            sink.write(artifact.data)
            sink.flush()
            sink.seek(0)
        except OSError as e:
            raise CaptureError(f"could not write screenshot to {sink.name}: {e}") from e

        self.delivery.send_photo(
            self.config.telegram_chat_id,
            sink,
            PHOTO_FILENAME,
            build_caption(artifact),
        )
        return artifact

    async def run_one_tick(self) -> None:
        """Capture the target once and deliver the result. Never raises."""
        self._check_log_size()

        url = self.config.target.url
        logger.info("Taking screenshot of %s", url)

        try:
            with tempfile.NamedTemporaryFile(prefix="screenshot-", suffix=".jpg", dir=self.temp_dir) as sink:
                artifact = await self._capture_and_send(sink)
        except (CaptureFailure, DeliveryError) as e:
            logger.error("Tick for %s failed with %s: %s", url, e.kind, e)
            return
        except Exception:
            logger.exception("Tick for %s failed with an unexpected error", url)
            return

        logger.info("Screenshot of %s sent to Telegram (%dx%d, %d bytes)",
                    url, artifact.width, artifact.height, artifact.size)
