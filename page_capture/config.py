"""
Configuration management for the capture daemon.

Settings are read once at startup from a YAML file (``config.yaml`` by
default, or the path in ``SCREENSHOT_DAEMON_CONFIG``) and resolved into an
immutable ``DaemonConfig``. Telegram credentials may also come from the
environment or a ``.env`` file so they can stay out of the config file.
"""

import datetime
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .models import MAX_DIMENSION, MIN_DIMENSION, CaptureTarget, LoginDescriptor, Viewport

DEFAULT_CONFIG_PATH = 'config.yaml'

SCREEN_SEPARATORS = re.compile(r'[xX×]')
SCREEN_DIMENSION = re.compile(r'[0-9]+')

_UNIT_SECONDS = {
    'ns': 1e-9,
    'us': 1e-6,
    'µs': 1e-6,  # U+00B5
    'μs': 1e-6,  # U+03BC
    'ms': 1e-3,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
}
_COMPONENT = r'([0-9]+\.?[0-9]*|\.[0-9]+)(ns|us|µs|μs|ms|s|m|h)'
_DURATION = re.compile(rf'([+-]?)((?:{_COMPONENT})+)')
_DURATION_COMPONENT = re.compile(_COMPONENT)


@dataclass(frozen=True)
class DaemonConfig:
    """Validated settings; read-only for the rest of the process."""

    target: CaptureTarget
    interval: datetime.timedelta
    telegram_bot_token: str = field(repr=False)
    telegram_chat_id: int
    login: Optional[LoginDescriptor] = None
    log_level: str = 'INFO'


def parse_interval(text: str) -> datetime.timedelta:
    """
    Parse a duration such as ``"1h"``, ``"90m"`` or ``"2h30m"``.

    Accepts the Go duration grammar: a sequence of decimal numbers, each with
    a unit suffix (h, m, s, ms, us/µs, ns). The result is the sum of the
    components and must be positive.
    """
    if not isinstance(text, str) or not text.strip():
        raise ConfigurationError("interval is empty")
    text = text.strip()

    match = _DURATION.fullmatch(text)
    if match is None:
        raise ConfigurationError(f"invalid interval {text!r}: expected e.g. '1h', '30m', '2h30m'")

    sign, body = match.group(1), match.group(2)
    seconds = sum(float(number) * _UNIT_SECONDS[unit]
                  for number, unit in _DURATION_COMPONENT.findall(body))
    if sign == '-':
        seconds = -seconds

    try:
        interval = datetime.timedelta(seconds=seconds)
    except (OverflowError, ValueError):
        raise ConfigurationError(f"interval {text!r} is out of range") from None
    if interval <= datetime.timedelta(0):
        raise ConfigurationError(f"interval must be positive, got {text!r}")
    return interval


def parse_screen(text: str) -> Viewport:
    """Parse ``"<width>x<height>"`` (``x``, ``X`` or ``×``) into a Viewport."""
    parts = SCREEN_SEPARATORS.split(str(text).strip())
    if len(parts) != 2:
        raise ConfigurationError(f"invalid screen resolution {text!r}: expected '<width>x<height>'")

    parts = [part.strip() for part in parts]
    if not all(SCREEN_DIMENSION.fullmatch(part) for part in parts):
        raise ConfigurationError(f"invalid screen resolution {text!r}: width and height must be integers")
    width, height = (int(part) for part in parts)

    for name, value in (('width', width), ('height', height)):
        if not MIN_DIMENSION <= value <= MAX_DIMENSION:
            raise ConfigurationError(
                f"screen {name} {value} out of range [{MIN_DIMENSION}, {MAX_DIMENSION}]"
            )
    return Viewport(width, height)


def _text(raw: Dict[str, Any], key: str) -> str:
    value = raw.get(key)
    if value is None:
        return ''
    return str(value).strip()


def build_login(raw: Dict[str, Any]) -> Optional[LoginDescriptor]:
    """
    Build a LoginDescriptor when login URL, username and password are all set.

    Any one of the three missing means public capture: None is returned and
    the optional selector/wait keys are ignored.
    """
    url = _text(raw, 'login_url')
    username = _text(raw, 'login_username')
    # Passwords are used verbatim; surrounding whitespace may be significant.
    password = raw.get('login_password')
    password = '' if password is None else str(password)
    if not (url and username and password.strip()):
        return None

    overrides = {}
    for key, attr in (('login_username_selector', 'username_selector'),
                      ('login_password_selector', 'password_selector'),
                      ('login_submit_selector', 'submit_selector')):
        selector = _text(raw, key)
        if selector:
            overrides[attr] = selector

    wait = _text(raw, 'login_wait_seconds')
    if wait:
        try:
            wait_seconds = float(wait)
        except ValueError:
            raise ConfigurationError(f"login_wait_seconds must be a number, got {wait!r}") from None
        if wait_seconds < 0:
            raise ConfigurationError("login_wait_seconds must not be negative")
        overrides['wait_after_login'] = wait_seconds

    return LoginDescriptor(url=url, username=username, password=password, **overrides)


def _read_yaml(config_path: Path) -> Dict[str, Any]:
    """Load the configuration mapping from a YAML file."""
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found at {config_path}")
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {config_path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping of settings")
    return data


def config_from_mapping(raw: Dict[str, Any]) -> DaemonConfig:
    """Validate a raw settings mapping, collecting every missing required key."""
    errors = []

    url = _text(raw, 'url')
    if not url:
        errors.append("url is not set")

    time_text = _text(raw, 'time') or _text(raw, 'interval')
    if not time_text:
        errors.append("time is not set")

    bot_token = _text(raw, 'telegram_bot_token') or os.getenv('TELEGRAM_BOT_TOKEN', '').strip()
    if not bot_token:
        errors.append("telegram_bot_token is not set")

    chat_id_text = _text(raw, 'telegram_chat_id') or os.getenv('TELEGRAM_CHAT_ID', '').strip()
    if not chat_id_text:
        errors.append("telegram_chat_id is not set")

    if errors:
        raise ConfigurationError(f"Configuration errors: {'; '.join(errors)}")

    try:
        chat_id = int(chat_id_text)
    except ValueError:
        raise ConfigurationError(f"telegram_chat_id must be an integer, got {chat_id_text!r}") from None

    screen = _text(raw, 'screen')
    viewport = parse_screen(screen) if screen else None

    log_level = (_text(raw, 'log_level') or os.getenv('LOG_LEVEL', 'INFO')).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigurationError(f"unknown log_level {log_level!r}")

    return DaemonConfig(
        target=CaptureTarget(url=url, viewport=viewport),
        interval=parse_interval(time_text),
        telegram_bot_token=bot_token,
        telegram_chat_id=chat_id,
        login=build_login(raw),
        log_level=log_level,
    )


def load_config(config_path: Optional[Path] = None) -> DaemonConfig:
    """Load ``.env``, then the YAML file, and return the validated settings."""
    load_dotenv()
    config_path = config_path or os.getenv('SCREENSHOT_DAEMON_CONFIG', DEFAULT_CONFIG_PATH)
    return config_from_mapping(_read_yaml(Path(config_path)))
