"""
Delivery Module

Sends captured screenshots to a chat destination.

Usage:
    from delivery import TelegramDelivery

    delivery = TelegramDelivery(bot_token)
    delivery.connect()
    delivery.send_photo(chat_id, image_bytes, "screenshot.jpg", caption)
"""

from .telegram import TelegramDelivery

__all__ = ['TelegramDelivery']
