from __future__ import annotations
import asyncio
import inspect
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple

from loguru import logger
from opentelemetry import trace

from .ast import Command, ForEach, If, Parallel, Program, Statement
from .cache import TTLCache
from .conditions import parse_condition
from .config import Settings
from .context import ExecutionContext
from .errors import AgentScriptError, CommandError, ExecutionCancelled, ParallelBranchError
from .loop import execute_for_each, format_for_each_results, parse_for_each_args, parse_loop_items
from .parser import parse
from .registry import CommandRegistry, CommandSpec
from .retry import with_retry

_tracer = trace.get_tracer(__name__)


def merge_branches(results: List[str]) -> str:
    return "\n\n".join(f"=== Branch {i + 1} ===\n{res}" for i, res in enumerate(results))


class Runtime:
    """Interprets AgentScript programs against a command registry.

    The pipeline value is always a string. Sequential stages run on the
    caller's task; each `parallel` branch runs as its own asyncio task and
    synchronous collaborators are pushed to worker threads.
    """

    def __init__(self, registry: Optional[CommandRegistry] = None, settings: Optional[Settings] = None,
                 cache: Optional[TTLCache] = None):
        self.settings = settings or Settings.from_env()
        if cache is None and self.settings.cache_enabled:
            cache = TTLCache(self.settings.cache_dir)
        self.cache = cache
        if registry is None:
            from .commands import default_registry
            registry = default_registry()
        self.registry = registry
        self.program: Optional[Program] = None
        self.metrics: Dict[str, Any] = {}
        self.reset_metrics()
        # parallel siblings left running after a branch failed
        self._background: Set[asyncio.Task] = set()

    def reset_metrics(self) -> None:
        """Counters accumulate over every execution on this runtime until reset.

        `command_ms` and `command_calls` hold per-action totals.
        """
        self.metrics = {"commands": 0, "parallel": 0, "conditions": {"true": 0, "false": 0}, "foreach_items": 0,
                        "command_ms": {}, "command_calls": {}}

    def load(self, source: str | Path) -> Program:
        self.program = parse(source)
        return self.program

    def new_context(self) -> ExecutionContext:
        return ExecutionContext(cache=self.cache, settings=self.settings)

    def run(self, source: str | Path | Program | None = None, ctx: Optional[ExecutionContext] = None) -> str:
        """Synchronous entry point: parse if needed and execute on a fresh event loop."""
        if source is None:
            if self.program is None:
                raise AgentScriptError("No program loaded")
            program = self.program
        elif isinstance(source, Program):
            program = source
        else:
            program = self.load(source)
        return asyncio.run(self.execute(program, ctx))

    # ---------- Execution entry ----------
    async def execute(self, program: Program, ctx: Optional[ExecutionContext] = None) -> str:
        ctx = ctx or self.new_context()
        with _tracer.start_as_current_span("program") as span:
            span.set_attribute("agentscript.statements", len(program.statements))
            result = await self._exec_body(ctx, program.statements, "")
        logger.debug("[metrics] {}", self.metrics)
        return result

    async def _exec_body(self, ctx: ExecutionContext, statements: Tuple[Statement, ...], input: str) -> str:
        result = input
        for stmt in statements:
            result = await self.execute_statement(ctx, stmt, result)
        return result

    async def execute_statement(self, ctx: ExecutionContext, stmt: Statement, input: str) -> str:
        current: Optional[Statement] = stmt
        value = input
        while current is not None:
            ctx.raise_if_cancelled()
            match current.node:
                case Command() as cmd:
                    value = await self._exec_command(ctx, cmd, value)
                case Parallel() as par:
                    value = await self._exec_parallel(ctx, par, value)
                case If() as cond:
                    value = await self._exec_if(ctx, cond, value)
                case ForEach() as loop:
                    value = await self._exec_foreach(ctx, loop, value)
                case other:
                    raise AgentScriptError(f"Unsupported statement: {type(other).__name__}")
            # follow the pipe chain with this stage's result
            current = current.next
        return value

    # ---------- Commands ----------
    async def _exec_command(self, ctx: ExecutionContext, cmd: Command, input: str) -> str:
        spec = self.registry.get(cmd.action)
        logger.debug("[command] {} {!r} {!r} (input: {} bytes)", cmd.action, cmd.arg1, cmd.arg2, len(input))
        t0 = time.perf_counter()
        with _tracer.start_as_current_span(f"command:{cmd.action}"):
            try:
                retry = spec.retry_config
                if retry is not None:
                    result = await with_retry(ctx, retry, cmd.action, lambda: self._invoke(spec, ctx, cmd, input))
                else:
                    result = await self._invoke(spec, ctx, cmd, input)
            except ExecutionCancelled:
                raise
            except Exception as e:
                raise CommandError(cmd.action, e) from e
        dt_ms = (time.perf_counter() - t0) * 1000.0
        self.metrics["commands"] += 1
        self.metrics["command_ms"][cmd.action] = self.metrics["command_ms"].get(cmd.action, 0.0) + dt_ms
        self.metrics["command_calls"][cmd.action] = self.metrics["command_calls"].get(cmd.action, 0) + 1
        result = "" if result is None else str(result)
        logger.debug("[command.done] {} -> {} bytes in {:.2f} ms", cmd.action, len(result), dt_ms)
        return result

    async def _invoke(self, spec: CommandSpec, ctx: ExecutionContext, cmd: Command, input: str) -> Any:
        if inspect.iscoroutinefunction(spec.fn):
            return await spec.fn(ctx, cmd.arg1, cmd.arg2, input)
        out = await asyncio.to_thread(spec.fn, ctx, cmd.arg1, cmd.arg2, input)
        if inspect.isawaitable(out):
            out = await out
        return out

    # ---------- Parallel ----------
    async def _exec_parallel(self, ctx: ExecutionContext, par: Parallel, input: str) -> str:
        n = len(par.branches)
        logger.debug("[parallel] begin: {} branches", n)
        self.metrics["parallel"] += 1
        with _tracer.start_as_current_span("parallel") as span:
            span.set_attribute("agentscript.branches", n)
            tasks = [
                asyncio.create_task(self.execute_statement(ctx, branch, input), name=f"branch-{i + 1}")
                for i, branch in enumerate(par.branches)
            ]
            position = {t: i for i, t in enumerate(tasks)}
            # slots keep declaration order regardless of completion order
            results: List[str] = [""] * n
            pending: Set[asyncio.Task] = set(tasks)
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in sorted(done, key=position.__getitem__):
                    exc = task.exception()
                    if exc is not None:
                        self._abandon(pending)
                        if isinstance(exc, ExecutionCancelled):
                            raise exc
                        raise ParallelBranchError(position[task], exc) from exc
                    results[position[task]] = task.result()
        logger.debug("[parallel] end: {} branches finished", n)
        return merge_branches(results)

    def _abandon(self, tasks: Set[asyncio.Task]) -> None:
        if self.settings.cancel_parallel_siblings:
            for t in tasks:
                t.cancel()
            return
        for t in tasks:
            self._background.add(t)
            t.add_done_callback(self._reap)

    def _reap(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("[parallel] abandoned {} failed: {}", task.get_name(), exc)

    # ---------- Conditionals ----------
    async def _exec_if(self, ctx: ExecutionContext, node: If, input: str) -> str:
        cond = parse_condition(node.condition)
        if cond.evaluate(input, ctx.variables):
            self.metrics["conditions"]["true"] += 1
            logger.debug("[if] {!r} -> true", node.condition)
            return await self._exec_body(ctx, node.then, input)
        self.metrics["conditions"]["false"] += 1
        logger.debug("[if] {!r} -> false, passing input through", node.condition)
        return input

    # ---------- Iteration ----------
    async def _exec_foreach(self, ctx: ExecutionContext, node: ForEach, input: str) -> str:
        config = parse_for_each_args(node.strategy, delay=self.settings.foreach_delay,
                                     max_items=self.settings.foreach_max_items)
        items = parse_loop_items(input, config.separator)
        logger.debug("[foreach] {} items (strategy={})", len(items), config.separator)

        async def process(c: ExecutionContext, item: str, _index: int) -> str:
            return await self._exec_body(c, node.body, item)

        results = await execute_for_each(ctx, items, config, process)
        self.metrics["foreach_items"] += len(results)
        return format_for_each_results(results)
