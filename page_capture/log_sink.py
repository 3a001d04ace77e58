"""
Log file selection, logging setup and the size guard run before each tick.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Iterable, Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
MAX_LOG_BYTES = 100 * 1024 * 1024


def default_log_candidates() -> list:
    """System path first, then the user's home, then the working directory."""
    return [
        Path('/var/log/screenshot-daemon/daemon.log'),
        Path.home() / '.screenshot-daemon' / 'daemon.log',
        Path('screenshot-daemon.log'),
    ]


def select_log_path(candidates: Optional[Iterable[Path]] = None) -> Path:
    """Return the first candidate log file that can be opened for append."""
    tried = []
    for candidate in (candidates if candidates is not None else default_log_candidates()):
        candidate = Path(candidate)
        try:
            candidate.parent.mkdir(parents=True, exist_ok=True)
            with open(candidate, 'a', encoding='utf-8'):
                pass
        except OSError as e:
            tried.append(f"{candidate}: {e.strerror or e}")
            continue
        return candidate

    raise ConfigurationError(f"No writable log file location ({'; '.join(tried) or 'no candidates'})")


def configure_logging(log_path: Path, level: str = 'INFO') -> None:
    """Send all records to ``log_path`` (append) and to stderr."""
    handlers = [
        logging.FileHandler(log_path, mode='a', encoding='utf-8'),
        logging.StreamHandler(sys.stderr),
    ]
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


class LogRotationGuard:
    """
    Truncates the active log file in place once it reaches ``max_bytes``.

    The FileHandler keeps its append-mode descriptor, so records written after
    a truncate land at the start of the now empty file.
    """

    def __init__(self, log_path: Path, max_bytes: int = MAX_LOG_BYTES):
        self.log_path = Path(log_path)
        self.max_bytes = max_bytes

    def check(self) -> bool:
        """Truncate if at or over the limit. Returns True when the file was truncated."""
        try:
            size = self.log_path.stat().st_size
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not stat log file %s: %s", self.log_path, e)
            return False

        if size < self.max_bytes:
            return False

        try:
            os.truncate(self.log_path, 0)
        except OSError as e:
            logger.warning("Could not truncate log file %s: %s", self.log_path, e)
            return False

        logger.info("Log file %s reached %d bytes and was truncated", self.log_path, size)
        return True
