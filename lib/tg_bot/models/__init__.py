"""
Telegram Bot API models used by the update runtime.
"""

from .base import BaseTelegramModel
from .message import Message
from .queries import CallbackQuery, ChosenInlineResult, InlineQuery, PreCheckoutQuery, ShippingQuery
from .update import Update, UpdateList, UpdatePayload, UpdateType
from .user import Chat, User

__all__ = [
    "BaseTelegramModel",
    "CallbackQuery",
    "Chat",
    "ChosenInlineResult",
    "InlineQuery",
    "Message",
    "PreCheckoutQuery",
    "ShippingQuery",
    "Update",
    "UpdateList",
    "UpdatePayload",
    "UpdateType",
    "User",
]
