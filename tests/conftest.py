"""
Test configuration and fixtures for the AgentScript test suite.
"""
import asyncio
import sys
from pathlib import Path
from typing import List

import pytest
from loguru import logger

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agentscript.commands import core
from agentscript.config import Settings
from agentscript.context import ExecutionContext
from agentscript.registry import CommandRegistry
from agentscript.runtime import Runtime


@pytest.fixture(autouse=True)
def isolated_cache_dir(tmp_path, monkeypatch):
    """Keep every test away from ~/.agentscript."""
    cache_dir = tmp_path / "cache"
    monkeypatch.setenv("AGENTSCRIPT_CACHE_DIR", str(cache_dir))
    return cache_dir


@pytest.fixture(autouse=True)
def quiet_library_logs():
    """configure_logging() enables the library globally; undo it after each test."""
    logger.disable("agentscript")
    yield
    logger.disable("agentscript")


@pytest.fixture
def settings(isolated_cache_dir) -> Settings:
    return Settings(cache_dir=isolated_cache_dir, cache_enabled=False, foreach_delay=0.0)


@pytest.fixture
def ctx(settings) -> ExecutionContext:
    return ExecutionContext(settings=settings)


@pytest.fixture
def completed() -> List[str]:
    """Order in which `slow` commands finished."""
    return []


@pytest.fixture
def registry(completed) -> CommandRegistry:
    reg = CommandRegistry()
    reg.register("echo", core.echo)
    reg.register("merge", core.merge)
    reg.register("set", core.set_variable)

    @reg.command("upper")
    def upper(ctx, _a, _b, input):
        return input.upper()

    @reg.command("append")
    def append(ctx, suffix, _b, input):
        return input + (suffix or "!")

    @reg.command("fail")
    def fail(ctx, msg, _b, input):
        raise ValueError(msg or "boom")

    @reg.command("slow")
    async def slow(ctx, seconds, label, input):
        await asyncio.sleep(float(seconds))
        completed.append(label)
        return label

    @reg.command("picky")
    def picky(ctx, _a, _b, input):
        if input == "b":
            raise ValueError("no b allowed")
        return input.upper()

    return reg


@pytest.fixture
def runtime(registry, settings) -> Runtime:
    return Runtime(registry=registry, settings=settings)
