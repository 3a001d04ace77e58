"""
Page Capture Module

Periodically renders a web page in headless Chromium, optionally logging in
first, and hands the full-page screenshot to a delivery channel.

Key Features:
- One isolated Playwright session per capture, bounded by a 60 second timeout
- Explicit login state machine for protected pages
- Tick processor that logs failures instead of raising them
- Fixed-grid scheduler that fires immediately and then on every interval

Usage:
    from page_capture import load_config, CaptureProcessor, Scheduler

    config = load_config(config_path)
    processor = CaptureProcessor(config, delivery)
    await Scheduler(config.interval).run(processor.run_one_tick)
"""

from .browser import capture_page
from .config import DaemonConfig, load_config, parse_interval, parse_screen
from .errors import (AuthenticationFailed, CaptureError, ConfigurationError, DeliveryError,
                     NavigationError)
from .login import LoginSequence, LoginState
from .models import CaptureArtifact, CaptureTarget, LoginDescriptor, Viewport
from .processor import CaptureProcessor, build_caption
from .scheduler import Scheduler

__all__ = [
    'capture_page',
    'DaemonConfig', 'load_config', 'parse_interval', 'parse_screen',
    'AuthenticationFailed', 'CaptureError', 'ConfigurationError', 'DeliveryError', 'NavigationError',
    'LoginSequence', 'LoginState',
    'CaptureArtifact', 'CaptureTarget', 'LoginDescriptor', 'Viewport',
    'CaptureProcessor', 'build_caption',
    'Scheduler',
]
