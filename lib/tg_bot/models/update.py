"""
Update models for Telegram Bot API.

An Update is a tagged union: exactly one variant payload is populated per
instance. This module contains the UpdateType enum, the Update container and
the UpdateList helper used for getUpdates results.
"""

import logging
from enum import StrEnum
from typing import Any, Callable, Dict, Final, List, Optional, Union

from ..exceptions import MalformedDeliveryError
from .base import BaseTelegramModel
from .message import Message
from .queries import CallbackQuery, ChosenInlineResult, InlineQuery, PreCheckoutQuery, ShippingQuery

logger = logging.getLogger(__name__)


class UpdateType(StrEnum):
    """
    Update variant enum, values are the Bot API field names
    """

    UNKNOWN = "unknown"

    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_RESULT = "chosen_inline_result"
    CALLBACK_QUERY = "callback_query"
    SHIPPING_QUERY = "shipping_query"
    PRE_CHECKOUT_QUERY = "pre_checkout_query"


UpdatePayload = Union[Message, InlineQuery, ChosenInlineResult, CallbackQuery, ShippingQuery, PreCheckoutQuery]

PAYLOAD_PARSERS: Final[Dict[UpdateType, Callable[[Dict[str, Any]], UpdatePayload]]] = {
    UpdateType.MESSAGE: Message.from_dict,
    UpdateType.EDITED_MESSAGE: Message.from_dict,
    UpdateType.CHANNEL_POST: Message.from_dict,
    UpdateType.EDITED_CHANNEL_POST: Message.from_dict,
    UpdateType.INLINE_QUERY: InlineQuery.from_dict,
    UpdateType.CHOSEN_INLINE_RESULT: ChosenInlineResult.from_dict,
    UpdateType.CALLBACK_QUERY: CallbackQuery.from_dict,
    UpdateType.SHIPPING_QUERY: ShippingQuery.from_dict,
    UpdateType.PRE_CHECKOUT_QUERY: PreCheckoutQuery.from_dict,
}


class Update(BaseTelegramModel):
    """
    Incoming update. ``update_id`` is the platform-assigned sequence number
    used as the polling cursor.
    """

    __slots__ = ("update_id", "update_type", "payload")

    def __init__(
        self,
        *,
        update_id: int,
        update_type: UpdateType,
        payload: Optional[UpdatePayload] = None,
        api_kwargs: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(api_kwargs=api_kwargs)
        self.update_id: int = update_id
        self.update_type: UpdateType = update_type
        self.payload: Optional[UpdatePayload] = payload
        """Populated variant object, None only for UNKNOWN updates"""

    def _payloadIf(self, *updateTypes: UpdateType) -> Any:
        if self.update_type in updateTypes:
            return self.payload
        return None

    @property
    def message(self) -> Optional[Message]:
        return self._payloadIf(UpdateType.MESSAGE)

    @property
    def edited_message(self) -> Optional[Message]:
        return self._payloadIf(UpdateType.EDITED_MESSAGE)

    @property
    def channel_post(self) -> Optional[Message]:
        return self._payloadIf(UpdateType.CHANNEL_POST)

    @property
    def edited_channel_post(self) -> Optional[Message]:
        return self._payloadIf(UpdateType.EDITED_CHANNEL_POST)

    @property
    def inline_query(self) -> Optional[InlineQuery]:
        return self._payloadIf(UpdateType.INLINE_QUERY)

    @property
    def chosen_inline_result(self) -> Optional[ChosenInlineResult]:
        return self._payloadIf(UpdateType.CHOSEN_INLINE_RESULT)

    @property
    def callback_query(self) -> Optional[CallbackQuery]:
        return self._payloadIf(UpdateType.CALLBACK_QUERY)

    @property
    def shipping_query(self) -> Optional[ShippingQuery]:
        return self._payloadIf(UpdateType.SHIPPING_QUERY)

    @property
    def pre_checkout_query(self) -> Optional[PreCheckoutQuery]:
        return self._payloadIf(UpdateType.PRE_CHECKOUT_QUERY)

    @classmethod
    def from_dict(cls, data: Any) -> "Update":
        """Create Update instance from API dictionary.

        Args:
            data: Decoded JSON object of a single update

        Returns:
            Update with exactly one populated variant, or an UNKNOWN update if
            the object carries only variants this runtime does not model

        Raises:
            MalformedDeliveryError: If data is not an object, has no integer
                update_id, has a malformed variant payload or more than one
                known variant
        """
        if not isinstance(data, dict):
            raise MalformedDeliveryError(f"Update must be a JSON object, got {type(data).__name__}")

        updateId = data.get("update_id", None)
        # bool is an int subclass, but never a valid id
        if not isinstance(updateId, int) or isinstance(updateId, bool):
            raise MalformedDeliveryError(f"Update has no valid update_id: {updateId!r}")

        present = [updateType for updateType in PAYLOAD_PARSERS if updateType.value in data]
        if len(present) > 1:
            raise MalformedDeliveryError(
                f"Update#{updateId} has more than one variant: {', '.join(t.value for t in present)}"
            )

        extraKwargs = {k: v for k, v in data.items() if k not in ("update_id", *PAYLOAD_PARSERS.keys())}
        if not present:
            logger.debug(f"Update#{updateId} has no supported variant, keys: {list(extraKwargs.keys())}")
            return cls(update_id=updateId, update_type=UpdateType.UNKNOWN, api_kwargs=extraKwargs)

        updateType = present[0]
        rawPayload = data[updateType.value]
        if not isinstance(rawPayload, dict):
            raise MalformedDeliveryError(f"Update#{updateId} {updateType.value} payload must be an object")

        try:
            payload = PAYLOAD_PARSERS[updateType](rawPayload)
        except (AttributeError, TypeError, ValueError) as e:
            raise MalformedDeliveryError(
                f"Update#{updateId} {updateType.value} payload is malformed: {type(e).__name__}#{e}"
            ) from e

        return cls(
            update_id=updateId,
            update_type=updateType,
            payload=payload,
            api_kwargs=extraKwargs,
        )


class UpdateList:
    """
    Parsed result of getUpdates.

    ``maxUpdateId`` covers every received id, including entries that could not
    be parsed, so the cursor moves past them instead of refetching them forever.
    """

    __slots__ = ("updates", "maxUpdateId", "skipped")

    def __init__(self, updates: List[Update], maxUpdateId: Optional[int] = None, skipped: int = 0):
        self.updates: List[Update] = updates
        self.maxUpdateId: Optional[int] = maxUpdateId
        self.skipped: int = skipped

    def __len__(self) -> int:
        return len(self.updates)

    def __repr__(self) -> str:
        return f"UpdateList(updates={len(self.updates)}, maxUpdateId={self.maxUpdateId}, skipped={self.skipped})"

    @classmethod
    def from_list(cls, data: Any) -> "UpdateList":
        """Create UpdateList from the ``result`` array of a getUpdates response."""
        if not isinstance(data, list):
            raise MalformedDeliveryError(f"getUpdates result must be an array, got {type(data).__name__}")

        updates: List[Update] = []
        maxUpdateId: Optional[int] = None
        skipped = 0
        for item in data:
            rawId = item.get("update_id", None) if isinstance(item, dict) else None
            if isinstance(rawId, int) and not isinstance(rawId, bool):
                maxUpdateId = rawId if maxUpdateId is None else max(maxUpdateId, rawId)
            try:
                updates.append(Update.from_dict(item))
            except MalformedDeliveryError as e:
                skipped += 1
                logger.warning(f"Skipping malformed update: {e}")

        updates.sort(key=lambda u: u.update_id)
        return cls(updates, maxUpdateId, skipped)
