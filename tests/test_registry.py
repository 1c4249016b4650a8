"""
Tests for the command registry and the default command set.
"""
import pytest

from agentscript.commands import default_registry
from agentscript.errors import UnknownCommand
from agentscript.registry import CommandRegistry
from agentscript.retry import AGGRESSIVE_RETRY, DEFAULT_RETRY, RetryConfig


def test_register_and_lookup_case_insensitive():
    reg = CommandRegistry()
    reg.register("Echo", lambda ctx, a, b, i: a)
    assert "echo" in reg
    assert "ECHO" in reg
    assert reg.get("eCHo").name == "echo"


def test_decorator_keeps_function_and_docstring():
    reg = CommandRegistry()

    @reg.command("shout")
    def shout(ctx, a, b, i):
        """shout - upper-case the input."""
        return i.upper()

    assert shout(None, "", "", "hi") == "HI"
    assert reg.get("shout").help == "shout - upper-case the input."


def test_unknown_command():
    with pytest.raises(UnknownCommand) as exc_info:
        CommandRegistry().get("teleport")
    assert exc_info.value.action == "teleport"


def test_retry_only_for_remote_commands():
    reg = CommandRegistry()
    custom = RetryConfig(max_attempts=7)
    reg.register("local", lambda ctx, a, b, i: i)
    reg.register("search", lambda ctx, a, b, i: i, remote=True)
    reg.register("custom", lambda ctx, a, b, i: i, remote=True, retry=custom)
    assert reg.get("local").retry_config is None
    assert reg.get("search").retry_config is AGGRESSIVE_RETRY
    assert reg.get("custom").retry_config is custom


def test_copy_is_independent():
    reg = CommandRegistry()
    reg.register("a", lambda ctx, a, b, i: i)
    other = reg.copy()
    other.register("b", lambda ctx, a, b, i: i)
    assert len(reg) == 1
    assert len(other) == 2
    assert [spec.name for spec in other] == ["a", "b"]


def test_default_registry():
    reg = default_registry()
    assert reg.names() == [
        "analyze", "ask", "crypto", "echo", "list", "merge", "read", "save", "set", "stdin",
        "summarize", "translate", "weather",
    ]
    assert reg.get("weather").retry_config is DEFAULT_RETRY
    assert reg.get("ask").retry_config is AGGRESSIVE_RETRY
    assert reg.get("crypto").retry_config.initial_delay == 5.0
    assert reg.get("save").remote is False
