"""
Bot command parsing.

A command is a message text starting with ``/`` followed by a token of
letters, digits and underscores, an optional ``@botname`` suffix, and an
optional free-form argument separated by whitespace.
"""

import re
from dataclasses import dataclass
from typing import Optional

from . import constants

COMMAND_RE = re.compile(
    "^" + re.escape(constants.COMMAND_MARKER) + r"([A-Za-z0-9_]+)(?:@([A-Za-z0-9_]+))?(?:\s+(.*))?$",
    re.DOTALL,
)


@dataclass(frozen=True)
class ParsedCommand:
    """
    Command extracted from a message text.

    Attributes:
        command: Registry key with the marker, e.g. ``/start``
        argument: Text after the command, None if there is none
        targetUsername: Explicit ``@botname`` suffix, None if absent
    """

    command: str
    argument: Optional[str] = None
    targetUsername: Optional[str] = None


def parseCommand(text: Optional[str], botUsername: Optional[str] = None) -> Optional[ParsedCommand]:
    """Parse a message text into a command addressed to this bot.

    Args:
        text: Message text
        botUsername: This bot's username without ``@``. When the text names
            another bot the result is None

    Returns:
        ParsedCommand or None if the text is not a command for this bot

    Example:
        >>> parseCommand("/start hello", "MyBot")
        ParsedCommand(command='/start', argument='hello', targetUsername=None)
        >>> parseCommand("/start@OtherBot hello", "MyBot") is None
        True
    """
    if not isinstance(text, str) or not text:
        return None

    match = COMMAND_RE.match(text)
    if match is None:
        return None

    token, targetUsername, argument = match.groups()
    if targetUsername is not None and (botUsername is None or targetUsername.lower() != botUsername.lower()):
        return None

    if argument is not None:
        argument = argument.strip() or None

    return ParsedCommand(
        command=constants.COMMAND_MARKER + token,
        argument=argument,
        targetUsername=targetUsername,
    )
