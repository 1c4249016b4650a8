"""Built-in collaborators and the default command registry."""
from ..registry import CommandRegistry
from . import core, crypto, llm, weather


def default_registry() -> CommandRegistry:
    reg = CommandRegistry()
    # local commands
    reg.register("merge", core.merge)
    reg.register("echo", core.echo)
    reg.register("set", core.set_variable)
    reg.register("save", core.save)
    reg.register("read", core.read)
    reg.register("list", core.list_dir)
    reg.register("stdin", core.stdin)
    # remote, retried and cached
    reg.register("weather", weather.weather, remote=True)
    reg.register("crypto", crypto.crypto, remote=True)
    reg.register("ask", llm.ask, remote=True)
    reg.register("summarize", llm.summarize, remote=True)
    reg.register("analyze", llm.analyze, remote=True)
    reg.register("translate", llm.translate, remote=True)
    return reg


__all__ = ["default_registry"]
