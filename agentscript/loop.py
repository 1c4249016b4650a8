from __future__ import annotations
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

from loguru import logger

from .context import ExecutionContext
from .errors import ExecutionCancelled


@dataclass
class LoopConfig:
    separator: str = "line"
    delay: float = 0.5  # seconds between iterations
    max_items: int = 0  # 0 = unlimited


@dataclass
class ForEachResult:
    index: int
    item: str
    output: str = ""
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_for_each_args(arg: str, delay: float = 0.5, max_items: int = 0) -> LoopConfig:
    separator = arg.strip().strip("\"'").lower() if arg else ""
    return LoopConfig(separator=separator or "line", delay=delay, max_items=max_items)


def parse_loop_items(input: str, strategy: str = "line") -> List[str]:
    strategy = strategy or "line"
    items: List[str] = []

    if strategy in ("line", "lines", "\n"):
        for line in input.split("\n"):
            line = line.strip()
            if not line or line == "---" or line.startswith("#"):
                continue
            # markdown table header separators
            if line.startswith(("|--", "| #", "| -")):
                continue
            items.append(line)

    elif strategy in ("section", "sections"):
        items = [s.strip() for s in input.split("---") if s.strip()]

    elif strategy in ("csv", ","):
        items = [s.strip() for s in input.split(",") if s.strip()]

    elif strategy in ("paragraph", "paragraphs"):
        items = [p.strip() for p in input.split("\n\n") if p.strip()]

    elif strategy in ("table", "rows"):
        for line in input.split("\n"):
            line = line.strip()
            if not line.startswith("|") or "---" in line:
                continue
            items.append(line)

    else:
        items = input.split(strategy)

    return items


async def execute_for_each(
    ctx: ExecutionContext,
    items: List[str],
    config: LoopConfig,
    process: Callable[[ExecutionContext, str, int], Union[str, Awaitable[str]]],
) -> List[ForEachResult]:
    """Run `process` over `items` one at a time.

    A failing item is recorded and the loop moves on. Cancellation of `ctx`
    stops the loop and raises `ExecutionCancelled` carrying the results so far.
    """
    if config.max_items > 0:
        items = items[:config.max_items]

    results: List[ForEachResult] = []
    for i, item in enumerate(items):
        if ctx.cancelled:
            raise ExecutionCancelled("execution cancelled during foreach", results=results)
        logger.debug("[foreach] item {}/{}: {}", i + 1, len(items), truncate(item, 60))
        try:
            out: Any = process(ctx, item, i)
            if inspect.isawaitable(out):
                out = await out
            results.append(ForEachResult(index=i, item=item, output=out))
        except ExecutionCancelled as e:
            raise ExecutionCancelled(str(e), results=results) from e
        except Exception as e:
            logger.warning("[foreach] item {} error: {}", i + 1, e)
            results.append(ForEachResult(index=i, item=item, error=e))

        if i < len(items) - 1 and config.delay > 0:
            try:
                await ctx.sleep(config.delay, where="foreach")
            except ExecutionCancelled as e:
                raise ExecutionCancelled(str(e), results=results) from e

    return results


def format_for_each_results(results: List[ForEachResult]) -> str:
    parts: List[str] = [f"# Processed {len(results)} items\n\n"]
    successes = failures = 0
    for r in results:
        if r.error is not None:
            failures += 1
            parts.append(f"## Item {r.index + 1} ❌\n")
            parts.append(f"Input: {truncate(r.item, 100)}\n")
            parts.append(f"Error: {r.error}\n\n")
        else:
            successes += 1
            parts.append(f"## Item {r.index + 1} ✓\n")
            if r.output:
                parts.append(r.output + "\n\n")
        parts.append("---\n\n")

    summary = f"**Summary:** {successes} succeeded, {failures} failed out of {len(results)} total\n\n"
    return summary + "".join(parts)


def truncate(s: str, limit: int) -> str:
    s = s.replace("\n", " ")
    if len(s) > limit:
        return s[:limit - 3] + "..."
    return s
