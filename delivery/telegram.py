"""
Telegram Bot API delivery.

Only two endpoints are used: ``getMe`` to check the token at startup and
``sendPhoto`` to post a screenshot with its caption.
"""

import logging
from typing import BinaryIO, Optional, Union

import requests

from page_capture.errors import DeliveryError

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class TelegramDelivery:
    """
    Sends photos to a Telegram chat through a bot.

    Args:
        bot_token: Token issued by BotFather
        session: Optional requests session (a new one is created if omitted)
        timeout: Per-request timeout in seconds
        api_base: Bot API root URL
    """

    def __init__(self, bot_token: str, session: Optional[requests.Session] = None,
                 timeout: float = 30, api_base: str = TELEGRAM_API_BASE):
        if not bot_token:
            raise DeliveryError("Telegram bot token is empty")
        self._bot_token = bot_token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_base = api_base.rstrip('/')
        self.bot_username = None

    def _endpoint(self, method: str) -> str:
        return f"{self.api_base}/bot{self._bot_token}/{method}"

    def _redact(self, text: str) -> str:
        return text.replace(self._bot_token, "<token>")

    def _call(self, method: str, http_method: str = "post", **kwargs) -> dict:
        """Call a Bot API method and return its ``result`` payload."""
        try:
            response = getattr(self.session, http_method)(
                self._endpoint(method), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise DeliveryError(f"Telegram {method} request failed: {self._redact(str(e))}") from None

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code != 200 or not payload.get("ok"):
            description = payload.get("description") or self._redact(response.text[:200])
            raise DeliveryError(f"Telegram {method} error: {response.status_code} - {description}")

        return payload.get("result") or {}

    def connect(self) -> dict:
        """Check the token with ``getMe``. Raises DeliveryError if the bot is unusable."""
        bot_info = self._call("getMe", http_method="get")
        self.bot_username = bot_info.get("username")
        logger.info("Authorized on Telegram bot account %s", self.bot_username)
        return bot_info

    def send_photo(self, chat_id: int, image: Union[bytes, BinaryIO], filename: str, caption: str) -> dict:
        """Post ``image`` to ``chat_id`` with ``caption``. Raises DeliveryError on failure."""
        data = {'chat_id': str(chat_id), 'caption': caption}
        files = {'photo': (filename, image)}
        message = self._call("sendPhoto", data=data, files=files)
        logger.debug("Telegram accepted photo as message %s", message.get("message_id"))
        return message
