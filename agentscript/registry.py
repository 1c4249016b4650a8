from __future__ import annotations
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterator, List, Optional, Protocol, Union

from .context import ExecutionContext
from .errors import UnknownCommand
from .retry import RetryConfig, retry_config_for


class Collaborator(Protocol):
    """Shape every command implementation must have: (ctx, arg1, arg2, input) -> str."""

    def __call__(self, ctx: ExecutionContext, arg1: str, arg2: str, input: str) -> Union[str, Awaitable[str]]: ...


@dataclass(frozen=True)
class CommandSpec:
    name: str
    fn: Collaborator
    remote: bool = False
    retry: Optional[RetryConfig] = None
    help: str = ""

    @property
    def retry_config(self) -> Optional[RetryConfig]:
        """Retry policy applied by the runtime; None for local commands."""
        if not self.remote:
            return None
        return self.retry or retry_config_for(self.name)


class CommandRegistry:
    """Maps command names to collaborators.

    Usable directly (`registry.register("echo", fn)`) or as a decorator::

        @registry.command("weather", remote=True)
        def weather(ctx, city, _arg2, _input): ...
    """

    def __init__(self) -> None:
        self._commands: Dict[str, CommandSpec] = {}

    def register(self, name: str, fn: Collaborator, *, remote: bool = False,
                 retry: Optional[RetryConfig] = None, help: str = "") -> CommandSpec:
        key = name.lower()
        spec = CommandSpec(name=key, fn=fn, remote=remote, retry=retry, help=help or (fn.__doc__ or "").strip())
        self._commands[key] = spec
        return spec

    def command(self, name: str, *, remote: bool = False, retry: Optional[RetryConfig] = None,
                help: str = "") -> Callable[[Collaborator], Collaborator]:
        def deco(fn: Collaborator) -> Collaborator:
            self.register(name, fn, remote=remote, retry=retry, help=help)
            return fn
        return deco

    def get(self, name: str) -> CommandSpec:
        spec = self._commands.get(name.lower())
        if spec is None:
            raise UnknownCommand(name)
        return spec

    def names(self) -> List[str]:
        return sorted(self._commands)

    def copy(self) -> "CommandRegistry":
        other = CommandRegistry()
        other._commands = dict(self._commands)
        return other

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._commands

    def __iter__(self) -> Iterator[CommandSpec]:
        return iter(self._commands[n] for n in self.names())

    def __len__(self) -> int:
        return len(self._commands)
