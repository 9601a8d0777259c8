"""
Base model class for Telegram Bot API objects.

Provides the BaseTelegramModel class that serves as the foundation for all
update payload models: slots-based attributes, dict conversion and keeping
fields this runtime does not model in ``api_kwargs``.
"""

from typing import Any, Dict, Iterator, Optional


class BaseTelegramModel:
    """
    Base Class for all models from Telegram Bot API
    """

    __slots__ = ("api_kwargs",)

    api_kwargs: Dict[str, Any]
    """Raw API fields not mapped onto attributes"""

    # Attributes whose Bot API name differs from the python one
    FIELD_ALIASES: Dict[str, str] = {}

    def __init__(self, *, api_kwargs: Optional[Dict[str, Any]] = None):
        if api_kwargs is None:
            api_kwargs = {}
        self.api_kwargs = api_kwargs

    def _getAttrsNames(self, includePrivate: bool) -> Iterator[str]:
        """Get attribute names from __slots__ hierarchy."""
        return self._getClassAttrsNames(includePrivate)

    @classmethod
    def _getClassAttrsNames(cls, includePrivate: bool) -> Iterator[str]:
        """Get class attribute names from __slots__ hierarchy.

        Args:
            includePrivate: Whether to include private attributes (starting with _)

        Returns:
            Iterator of attribute names from the class hierarchy
        """
        allSlots: Iterator[str] = (s for c in cls.__mro__[:-1] for s in c.__dict__.get("__slots__", ()))

        if includePrivate:
            return allSlots
        return (attr for attr in allSlots if not attr.startswith("_"))

    def to_dict(self, recursive: bool = False) -> Dict[str, Any]:
        """Convert model instance to dictionary representation.

        Args:
            recursive: Whether to recursively convert nested models to dicts

        Returns:
            Dictionary with non-None attributes, keyed by python attribute names
        """
        data: Dict[str, Any] = {}

        for key in self._getAttrsNames(includePrivate=False):
            value = getattr(self, key, None)

            # Do not put empty api_kwargs into resulting dict
            if key == "api_kwargs" and not value:
                continue
            if value is None:
                continue
            if recursive and isinstance(value, BaseTelegramModel):
                data[key] = value.to_dict(recursive=True)
            else:
                data[key] = value

        return data

    def __repr__(self) -> str:
        asDict = self.to_dict(recursive=False)
        asDict.pop("api_kwargs", None)
        contents = ", ".join(f"{k}={asDict[k]!r}" for k in sorted(asDict.keys()))
        return f"{self.__class__.__name__}({contents})"

    def __str__(self) -> str:
        return self.__repr__()

    @classmethod
    def _getExtraKwargs(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Extract API fields which are not defined in class __slots__.

        Args:
            data: Dictionary of all API data

        Returns:
            Dictionary of fields that are not defined class attributes
        """
        knownArgs = set(cls._getClassAttrsNames(includePrivate=True))
        knownArgs.update(cls.FIELD_ALIASES.values())
        return {k: v for k, v in data.items() if k not in knownArgs}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaseTelegramModel":
        """Create instance from API dictionary."""
        return cls(api_kwargs=data)
