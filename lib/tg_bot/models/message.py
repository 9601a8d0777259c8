"""
Message model for Telegram Bot API.

Used for the message, edited_message, channel_post and edited_channel_post
update variants.
"""

from typing import Any, Dict, Optional

from .base import BaseTelegramModel
from .user import Chat, User


class Message(BaseTelegramModel):
    """
    Message (or channel post) delivered in an update
    """

    __slots__ = ("message_id", "date", "chat", "from_user", "text", "caption", "edit_date")

    FIELD_ALIASES = {"from_user": "from"}

    def __init__(
        self,
        *,
        message_id: int,
        date: int,
        chat: Chat,
        from_user: Optional[User] = None,
        text: Optional[str] = None,
        caption: Optional[str] = None,
        edit_date: Optional[int] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.message_id: int = message_id
        self.date: int = date
        """Unix time the message was sent"""
        self.chat: Chat = chat
        self.from_user: Optional[User] = from_user
        """Sender, empty for messages sent to channels"""
        self.text: Optional[str] = text
        self.caption: Optional[str] = caption
        self.edit_date: Optional[int] = edit_date

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Create Message instance from API dictionary."""
        fromUser: Optional[User] = None
        if isinstance(data.get("from", None), dict):
            fromUser = User.from_dict(data["from"])

        return cls(
            message_id=data.get("message_id", 0),
            date=data.get("date", 0),
            chat=Chat.from_dict(data.get("chat", None) or {}),
            from_user=fromUser,
            text=data.get("text", None),
            caption=data.get("caption", None),
            edit_date=data.get("edit_date", None),
            api_kwargs=cls._getExtraKwargs(data),
        )
