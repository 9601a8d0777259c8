"""
Query models for Telegram Bot API.

This module contains the non-message update payloads: callback queries from
inline keyboard buttons, inline queries and their chosen results, and the
payment shipping/pre-checkout queries.
"""

from typing import Any, Dict, Optional

from .base import BaseTelegramModel
from .message import Message
from .user import User


def _parseUser(data: Dict[str, Any]) -> User:
    return User.from_dict(data.get("from", None) or {})


class CallbackQuery(BaseTelegramModel):
    """
    Incoming callback query from a callback button in an inline keyboard
    """

    __slots__ = (
        "id",
        "from_user",
        "message",
        "inline_message_id",
        "chat_instance",
        "data",
        "game_short_name",
    )

    FIELD_ALIASES = {"from_user": "from"}

    def __init__(
        self,
        *,
        id: str,
        from_user: User,
        chat_instance: str = "",
        message: Optional[Message] = None,
        inline_message_id: Optional[str] = None,
        data: Optional[str] = None,
        game_short_name: Optional[str] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.id: str = id
        self.from_user: User = from_user
        self.message: Optional[Message] = message
        """Message with the callback button, may be absent if it is too old"""
        self.inline_message_id: Optional[str] = inline_message_id
        self.chat_instance: str = chat_instance
        self.data: Optional[str] = data
        """Data associated with the callback button"""
        self.game_short_name: Optional[str] = game_short_name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CallbackQuery":
        """Create CallbackQuery instance from API dictionary."""
        message: Optional[Message] = None
        if isinstance(data.get("message", None), dict):
            message = Message.from_dict(data["message"])

        return cls(
            id=data.get("id", ""),
            from_user=_parseUser(data),
            chat_instance=data.get("chat_instance", ""),
            message=message,
            inline_message_id=data.get("inline_message_id", None),
            data=data.get("data", None),
            game_short_name=data.get("game_short_name", None),
            api_kwargs=cls._getExtraKwargs(data),
        )


class InlineQuery(BaseTelegramModel):
    """
    Incoming inline query
    """

    __slots__ = ("id", "from_user", "query", "offset", "chat_type")

    FIELD_ALIASES = {"from_user": "from"}

    def __init__(
        self,
        *,
        id: str,
        from_user: User,
        query: str = "",
        offset: str = "",
        chat_type: Optional[str] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.id: str = id
        self.from_user: User = from_user
        self.query: str = query
        """Text of the query (up to 256 characters)"""
        self.offset: str = offset
        self.chat_type: Optional[str] = chat_type

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InlineQuery":
        """Create InlineQuery instance from API dictionary."""
        return cls(
            id=data.get("id", ""),
            from_user=_parseUser(data),
            query=data.get("query", ""),
            offset=data.get("offset", ""),
            chat_type=data.get("chat_type", None),
            api_kwargs=cls._getExtraKwargs(data),
        )


class ChosenInlineResult(BaseTelegramModel):
    """
    Result of an inline query that was chosen by a user and sent to their chat partner
    """

    __slots__ = ("result_id", "from_user", "query", "inline_message_id")

    FIELD_ALIASES = {"from_user": "from"}

    def __init__(
        self,
        *,
        result_id: str,
        from_user: User,
        query: str = "",
        inline_message_id: Optional[str] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.result_id: str = result_id
        self.from_user: User = from_user
        self.query: str = query
        self.inline_message_id: Optional[str] = inline_message_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChosenInlineResult":
        """Create ChosenInlineResult instance from API dictionary."""
        return cls(
            result_id=data.get("result_id", ""),
            from_user=_parseUser(data),
            query=data.get("query", ""),
            inline_message_id=data.get("inline_message_id", None),
            api_kwargs=cls._getExtraKwargs(data),
        )


class ShippingQuery(BaseTelegramModel):
    """
    Incoming shipping query, only for invoices with flexible price
    """

    __slots__ = ("id", "from_user", "invoice_payload", "shipping_address")

    FIELD_ALIASES = {"from_user": "from"}

    def __init__(
        self,
        *,
        id: str,
        from_user: User,
        invoice_payload: str = "",
        shipping_address: Optional[Dict[str, Any]] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.id: str = id
        self.from_user: User = from_user
        self.invoice_payload: str = invoice_payload
        self.shipping_address: Dict[str, Any] = shipping_address or {}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShippingQuery":
        """Create ShippingQuery instance from API dictionary."""
        return cls(
            id=data.get("id", ""),
            from_user=_parseUser(data),
            invoice_payload=data.get("invoice_payload", ""),
            shipping_address=data.get("shipping_address", None),
            api_kwargs=cls._getExtraKwargs(data),
        )


class PreCheckoutQuery(BaseTelegramModel):
    """
    Incoming pre-checkout query, must be answered before the payment is charged
    """

    __slots__ = ("id", "from_user", "currency", "total_amount", "invoice_payload", "shipping_option_id")

    FIELD_ALIASES = {"from_user": "from"}

    def __init__(
        self,
        *,
        id: str,
        from_user: User,
        currency: str = "",
        total_amount: int = 0,
        invoice_payload: str = "",
        shipping_option_id: Optional[str] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.id: str = id
        self.from_user: User = from_user
        self.currency: str = currency
        self.total_amount: int = total_amount
        """Total price in the smallest units of the currency"""
        self.invoice_payload: str = invoice_payload
        self.shipping_option_id: Optional[str] = shipping_option_id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreCheckoutQuery":
        """Create PreCheckoutQuery instance from API dictionary."""
        return cls(
            id=data.get("id", ""),
            from_user=_parseUser(data),
            currency=data.get("currency", ""),
            total_amount=data.get("total_amount", 0),
            invoice_payload=data.get("invoice_payload", ""),
            shipping_option_id=data.get("shipping_option_id", None),
            api_kwargs=cls._getExtraKwargs(data),
        )
