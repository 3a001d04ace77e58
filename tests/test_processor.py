import asyncio
import datetime
import logging
import os
import re

import pytest
from PIL import Image

from conftest import FakeDelivery, make_config, make_jpeg, make_login
from page_capture.errors import AuthenticationFailed, CaptureError, DeliveryError, NavigationError
from page_capture.log_sink import LogRotationGuard
from page_capture.models import CaptureArtifact, Viewport
from page_capture.processor import CaptureProcessor, build_caption

FIXED_NOW = datetime.datetime(2026, 3, 14, 9, 26, 53)


def capture_returning(data):
    calls = []

    async def capture(target, login, timeout):
        calls.append((target, login, timeout))
        return data

    capture.calls = calls
    return capture


def capture_raising(error):
    calls = []

    async def capture(target, login, timeout):
        calls.append((target, login, timeout))
        raise error

    capture.calls = calls
    return capture


def make_processor(tmp_path, delivery, capture, config=None, **kwargs):
    return CaptureProcessor(config or make_config(), delivery, capture=capture, temp_dir=tmp_path,
                            now=lambda: FIXED_NOW, **kwargs)


def test_successful_tick_delivers_once_with_caption(tmp_path, delivery):
    image = make_jpeg(640, 480)
    capture = capture_returning(image)
    processor = make_processor(tmp_path, delivery, capture)

    asyncio.run(processor.run_one_tick())

    assert len(capture.calls) == 1
    assert len(delivery.sent) == 1
    sent = delivery.sent[0]
    assert sent["chat_id"] == -100123
    assert sent["filename"] == "screenshot.jpg"
    assert sent["data"] == image
    assert "https://example.com" in sent["caption"]
    assert "public" in sent["caption"]
    assert re.search(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", sent["caption"])
    assert "2026-03-14 09:26:53" in sent["caption"]
    assert list(tmp_path.iterdir()) == []


def test_delivery_reads_from_temp_file_that_is_removed_afterwards(tmp_path, delivery):
    seen = {}

    class CheckingDelivery(FakeDelivery):
        def send_photo(self, chat_id, image, filename, caption):
            seen["path"] = image.name
            seen["existed"] = os.path.exists(image.name)
            return super().send_photo(chat_id, image, filename, caption)

    processor = make_processor(tmp_path, CheckingDelivery(), capture_returning(make_jpeg()))
    asyncio.run(processor.run_one_tick())

    assert seen["existed"]
    assert os.path.dirname(seen["path"]) == str(tmp_path)
    assert not os.path.exists(seen["path"])


@pytest.mark.parametrize("error", [
    NavigationError("could not load https://example.com"),
    AuthenticationFailed("login did not complete"),
    CaptureError("screenshot failed"),
    RuntimeError("browser crashed"),
])
def test_failed_capture_skips_delivery_and_cleans_up(tmp_path, delivery, error, caplog):
    processor = make_processor(tmp_path, delivery, capture_raising(error))

    with caplog.at_level(logging.ERROR):
        asyncio.run(processor.run_one_tick())

    assert delivery.sent == []
    assert list(tmp_path.iterdir()) == []
    assert any("https://example.com" in record.getMessage() for record in caplog.records)


def test_failure_kind_is_logged(tmp_path, delivery, caplog):
    processor = make_processor(tmp_path, delivery, capture_raising(NavigationError("unreachable")))
    with caplog.at_level(logging.ERROR):
        asyncio.run(processor.run_one_tick())
    assert "NavigationError" in caplog.text


def test_undecodable_image_is_a_capture_error(tmp_path, delivery, caplog):
    processor = make_processor(tmp_path, delivery, capture_returning(b"not an image"))
    with caplog.at_level(logging.ERROR):
        asyncio.run(processor.run_one_tick())
    assert delivery.sent == []
    assert "CaptureError" in caplog.text
    assert list(tmp_path.iterdir()) == []


def test_image_above_pillow_pixel_limit_is_still_delivered(tmp_path, delivery, monkeypatch):
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)
    processor = make_processor(tmp_path, delivery, capture_returning(make_jpeg(320, 200)))

    asyncio.run(processor.run_one_tick())

    assert len(delivery.sent) == 1
    assert Image.MAX_IMAGE_PIXELS == 1000


def test_delivery_error_is_logged_and_swallowed(tmp_path, caplog):
    delivery = FakeDelivery(error=DeliveryError("Telegram sendPhoto error: 400 - chat not found"))
    processor = make_processor(tmp_path, delivery, capture_returning(make_jpeg()))

    with caplog.at_level(logging.ERROR):
        asyncio.run(processor.run_one_tick())

    assert len(delivery.sent) == 1
    assert "DeliveryError" in caplog.text
    assert list(tmp_path.iterdir()) == []


def test_capture_receives_target_login_and_session_timeout(tmp_path, delivery):
    login = make_login()
    config = make_config(viewport=Viewport(1280, 720), login=login)
    capture = capture_returning(make_jpeg())
    processor = make_processor(tmp_path, delivery, capture, config=config)

    asyncio.run(processor.run_one_tick())

    target, passed_login, timeout = capture.calls[0]
    assert target.viewport == Viewport(1280, 720)
    assert passed_login is login
    assert timeout == 60.0
    assert "protected — authentication required" in delivery.sent[0]["caption"]
    assert "Resolution: 1280x720" in delivery.sent[0]["caption"]


def test_caption_without_configured_resolution():
    artifact = CaptureArtifact(data=b"", url="https://example.com", authenticated=False, viewport=None,
                               width=1920, height=3000, captured_at=FIXED_NOW)
    assert build_caption(artifact) == (
        "Screenshot: https://example.com\n"
        "Access: public\n"
        "Time: 2026-03-14 09:26:53"
    )


def test_rotation_guard_failure_does_not_abort_tick(tmp_path, delivery):
    class BrokenGuard:
        def check(self):
            raise PermissionError("read-only filesystem")

    processor = make_processor(tmp_path, delivery, capture_returning(make_jpeg()), rotation_guard=BrokenGuard())
    asyncio.run(processor.run_one_tick())
    assert len(delivery.sent) == 1


def test_oversized_log_is_truncated_before_tick_lines(tmp_path, delivery):
    log_path = tmp_path / "daemon.log"
    log_path.write_bytes(b"x" * 2048)
    handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger = logging.getLogger("page_capture")
    previous_level = package_logger.level
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.INFO)

    temp_dir = tmp_path / "tmp"
    temp_dir.mkdir()
    try:
        processor = make_processor(temp_dir, delivery, capture_returning(make_jpeg()),
                                   rotation_guard=LogRotationGuard(log_path, max_bytes=1024))
        asyncio.run(processor.run_one_tick())
    finally:
        package_logger.removeHandler(handler)
        package_logger.setLevel(previous_level)
        handler.close()

    content = log_path.read_text(encoding="utf-8")
    assert "x" * 10 not in content
    assert "Taking screenshot of https://example.com" in content
