"""
Unit tests for Telegram Bot HandlerRegistry

This module contains unit tests for handler registration: validation of
commands, callback data and inline queries, replacement and removal semantics.
"""

import pytest

from .exceptions import ValidationError
from .handlers import HandlerRegistry, normalizeCommand
from .models import UpdateType


def noop(*args):
    pass


def otherNoop(*args):
    pass


@pytest.fixture
def registry():
    """Create empty handler registry."""
    return HandlerRegistry()


class TestNormalizeCommand:
    """Test suite for command key validation."""

    def test_plain_command(self):
        """Test plain command is kept as is, dood!"""
        assert normalizeCommand("/start") == "/start"

    def test_command_with_bot_suffix(self):
        """Test @botname suffix is stripped from the key, dood!"""
        assert normalizeCommand("/start@MyBot") == "/start"

    @pytest.mark.parametrize(
        "command",
        ["start", "/", "", "/start now", "/st-art", "/" + "a" * 33, "/start@", "/start@bad name"],
    )
    def test_invalid_commands(self, command):
        """Test malformed commands are rejected, dood!"""
        with pytest.raises(ValidationError):
            normalizeCommand(command)

    def test_max_length_command(self):
        """Test 32 character command token is accepted, dood!"""
        command = "/" + "a" * 32
        assert normalizeCommand(command) == command


class TestTypeHandlers:
    """Test suite for generic per-type handlers."""

    def test_set_and_get(self, registry):
        """Test type handler registration, dood!"""
        registry.setTypeHandler(UpdateType.MESSAGE, noop)

        assert registry.getTypeHandler(UpdateType.MESSAGE) is noop
        assert registry.getTypeHandler(UpdateType.EDITED_MESSAGE) is None

    def test_replace(self, registry):
        """Test second registration replaces the first, dood!"""
        registry.setTypeHandler(UpdateType.MESSAGE, noop)
        registry.setTypeHandler(UpdateType.MESSAGE, otherNoop)

        assert registry.getTypeHandler(UpdateType.MESSAGE) is otherNoop
        assert registry.snapshot()["type_handlers"] == 1

    def test_accepts_string_type(self, registry):
        """Test update type given by its API name, dood!"""
        registry.setTypeHandler("callback_query", noop)

        assert registry.getTypeHandler(UpdateType.CALLBACK_QUERY) is noop

    def test_unknown_type_rejected(self, registry):
        """Test handler for unknown updates can not be registered, dood!"""
        with pytest.raises(ValidationError):
            registry.setTypeHandler(UpdateType.UNKNOWN, noop)

    def test_not_callable_rejected(self, registry):
        """Test non-callable handler is rejected, dood!"""
        with pytest.raises(ValidationError):
            registry.setTypeHandler(UpdateType.MESSAGE, "not a handler")

    def test_clear_absent_is_noop(self, registry):
        """Test removing a missing handler does nothing, dood!"""
        registry.clearTypeHandler(UpdateType.MESSAGE)

        assert registry.getTypeHandler(UpdateType.MESSAGE) is None


class TestCommandHandlers:
    """Test suite for command handlers."""

    def test_set_returns_key(self, registry):
        """Test command registration returns the normalized key, dood!"""
        assert registry.setCommandHandler("/start@MyBot", noop) == "/start"
        assert registry.getCommandHandler("/start") is noop

    def test_invalid_command_leaves_registry_unchanged(self, registry):
        """Test failed registration does not mutate the registry, dood!"""
        registry.setCommandHandler("/start", noop)

        with pytest.raises(ValidationError):
            registry.setCommandHandler("start", otherNoop)

        assert registry.getCommandHandler("/start") is noop
        assert registry.snapshot()["commands"] == 1

    def test_commands_are_case_sensitive(self, registry):
        """Test command lookup is exact, dood!"""
        registry.setCommandHandler("/start", noop)

        assert registry.getCommandHandler("/Start") is None

    def test_clear(self, registry):
        """Test command removal, including malformed names, dood!"""
        registry.setCommandHandler("/start", noop)
        registry.clearCommandHandler("bogus")
        registry.clearCommandHandler("/start")

        assert registry.getCommandHandler("/start") is None


class TestCallbackHandlers:
    """Test suite for callback data handlers."""

    def test_set_and_get(self, registry):
        """Test callback data registration, dood!"""
        registry.setCallbackHandler("buy", noop)

        assert registry.getCallbackHandler("buy") is noop
        assert registry.getCallbackHandler("sell") is None

    @pytest.mark.parametrize("data", ["", "x" * 65])
    def test_invalid_length(self, registry, data):
        """Test callback data must be 1 to 64 characters, dood!"""
        with pytest.raises(ValidationError):
            registry.setCallbackHandler(data, noop)

    def test_boundary_length(self, registry):
        """Test 64 character callback data is accepted, dood!"""
        registry.setCallbackHandler("x" * 64, noop)

        assert registry.getCallbackHandler("x" * 64) is noop


class TestInlineQueryHandlers:
    """Test suite for inline query handlers."""

    def test_empty_query_allowed(self, registry):
        """Test empty inline query text is a valid key, dood!"""
        registry.setInlineQueryHandler("", noop)

        assert registry.getInlineQueryHandler("") is noop

    def test_too_long_query(self, registry):
        """Test inline query text over 512 characters is rejected, dood!"""
        registry.setInlineQueryHandler("q" * 512, noop)

        with pytest.raises(ValidationError):
            registry.setInlineQueryHandler("q" * 513, noop)

    def test_clear(self, registry):
        """Test inline query handler removal, dood!"""
        registry.setInlineQueryHandler("cats", noop)
        registry.clearInlineQueryHandler("cats")

        assert registry.getInlineQueryHandler("cats") is None


class TestAnyUpdateHandler:
    """Test suite for the fallback handler and bulk operations."""

    def test_set_clear(self, registry):
        """Test any-update handler lifecycle, dood!"""
        registry.setAnyUpdateHandler(noop)
        assert registry.getAnyUpdateHandler() is noop

        registry.clearAnyUpdateHandler()
        assert registry.getAnyUpdateHandler() is None

    def test_clear_all(self, registry):
        """Test clearAll empties every table, dood!"""
        registry.setTypeHandler(UpdateType.MESSAGE, noop)
        registry.setCommandHandler("/start", noop)
        registry.setCallbackHandler("buy", noop)
        registry.setInlineQueryHandler("", noop)
        registry.setAnyUpdateHandler(noop)

        assert registry.snapshot() == {
            "type_handlers": 1,
            "commands": 1,
            "callbacks": 1,
            "inline_queries": 1,
            "any_update": 1,
        }

        registry.clearAll()

        assert set(registry.snapshot().values()) == {0}
