from __future__ import annotations
import sys
from pathlib import Path

from loguru import logger

from ..context import ExecutionContext


def merge(ctx: ExecutionContext, _arg1: str, _arg2: str, input: str) -> str:
    """merge - combine parallel results (parallel already merges, so this passes input through)."""
    return input


def echo(ctx: ExecutionContext, text: str, _arg2: str, input: str) -> str:
    """echo "text" - emit text, or the piped input when no text is given."""
    return text if text else input


def set_variable(ctx: ExecutionContext, name: str, value: str, input: str) -> str:
    """set "name" ["value"] - store a variable for later `if` conditions; passes input through."""
    if not name:
        raise ValueError("set requires a variable name")
    ctx.variables[name] = value if value else input
    return input


def save(ctx: ExecutionContext, path: str, _arg2: str, input: str) -> str:
    """save "path" - write the piped input to a file and return the path."""
    if not path:
        raise ValueError("save requires a file path")
    p = Path(path)
    if p.parent != Path("."):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(input, encoding="utf-8")
    logger.info("[save] {} bytes to {}", len(input), p)
    return str(p)


def read(ctx: ExecutionContext, path: str, _arg2: str, input: str) -> str:
    """read "path" - return a file's contents."""
    if not path:
        raise ValueError("read requires a file path")
    return Path(path).read_text(encoding="utf-8")


def list_dir(ctx: ExecutionContext, path: str, _arg2: str, input: str) -> str:
    """list "path" - list directory entries."""
    root = Path(path or ".")
    lines = []
    for entry in sorted(root.iterdir(), key=lambda e: e.name):
        prefix = "📁" if entry.is_dir() else "📄"
        lines.append(f"{prefix} {entry.name}")
    return "\n".join(lines)


def stdin(ctx: ExecutionContext, prompt: str, _arg2: str, input: str) -> str:
    """stdin "prompt" - read text from standard input."""
    print(f"{prompt}: " if prompt else "Enter text (Ctrl+D to end): ", end="", file=sys.stderr, flush=True)
    return sys.stdin.read().strip()
