"""
User and chat models for Telegram Bot API.
"""

from typing import Any, Dict, Optional

from .base import BaseTelegramModel


class User(BaseTelegramModel):
    """
    Telegram user or bot
    """

    __slots__ = ("id", "is_bot", "first_name", "last_name", "username", "language_code")

    def __init__(
        self,
        *,
        id: int,
        first_name: str,
        is_bot: bool = False,
        last_name: Optional[str] = None,
        username: Optional[str] = None,
        language_code: Optional[str] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.id: int = id
        self.is_bot: bool = is_bot
        self.first_name: str = first_name
        self.last_name: Optional[str] = last_name
        self.username: Optional[str] = username
        self.language_code: Optional[str] = language_code

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        """Create User instance from API dictionary."""
        return cls(
            id=data.get("id", 0),
            is_bot=data.get("is_bot", False),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", None),
            username=data.get("username", None),
            language_code=data.get("language_code", None),
            api_kwargs=cls._getExtraKwargs(data),
        )


class Chat(BaseTelegramModel):
    """
    Chat the message belongs to
    """

    __slots__ = ("id", "type", "title", "username")

    def __init__(
        self,
        *,
        id: int,
        type: str,
        title: Optional[str] = None,
        username: Optional[str] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.id: int = id
        self.type: str = type
        """One of "private", "group", "supergroup" or "channel" """
        self.title: Optional[str] = title
        self.username: Optional[str] = username

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Chat":
        """Create Chat instance from API dictionary."""
        return cls(
            id=data.get("id", 0),
            type=data.get("type", "private"),
            title=data.get("title", None),
            username=data.get("username", None),
            api_kwargs=cls._getExtraKwargs(data),
        )
