"""
Tests for the AgentScript runtime: pipes, parallel fan-out, conditionals and loops.
"""
import asyncio
import time

import pytest

from agentscript.context import ExecutionContext
from agentscript.errors import (
    AgentScriptError,
    CommandError,
    ConditionParseError,
    ExecutionCancelled,
    ParallelBranchError,
    RetryExhausted,
    UnknownCommand,
)
from agentscript.parser import parse
from agentscript.registry import CommandRegistry
from agentscript.runtime import Runtime, merge_branches
from agentscript.retry import RetryConfig

FAST_RETRY = RetryConfig(max_attempts=3, initial_delay=0.01, max_delay=0.05, jitter_pct=0)


class TestSequential:

    def test_pipe_threads_output_to_next_stage(self, runtime):
        assert runtime.run('echo "hi" -> upper -> append') == "HI!"

    def test_top_level_statements_chain(self, runtime):
        assert runtime.run('echo "a"\nupper\nappend "?"') == "A?"

    def test_first_stage_receives_empty_input(self, runtime):
        assert runtime.run("echo") == ""

    def test_unknown_command_is_not_wrapped(self, runtime):
        with pytest.raises(UnknownCommand) as exc_info:
            runtime.run('echo "x" -> nope')
        assert str(exc_info.value) == "UnknownCommand: nope"

    def test_command_failure_is_wrapped(self, runtime):
        with pytest.raises(CommandError) as exc_info:
            runtime.run('echo "x" -> fail "boom" -> append')
        err = exc_info.value
        assert err.action == "fail"
        assert isinstance(err.cause, ValueError)
        assert str(err) == "fail failed: boom"

    def test_none_result_becomes_empty_string(self, registry, settings):
        registry.register("nothing", lambda ctx, a, b, i: None)
        assert Runtime(registry=registry, settings=settings).run('echo "x" -> nothing') == ""

    def test_run_loaded_program(self, runtime):
        runtime.load('echo "loaded"')
        assert runtime.run() == "loaded"

    def test_run_without_program(self, runtime):
        with pytest.raises(AgentScriptError, match="No program loaded"):
            runtime.run()

    def test_metrics_count_commands(self, runtime):
        runtime.run('echo "a" -> upper')
        assert runtime.metrics["commands"] == 2
        assert set(runtime.metrics["command_ms"]) == {"echo", "upper"}

    def test_metrics_accumulate_until_reset(self, runtime):
        runtime.run('echo "a" -> upper')
        runtime.run('echo "b"')
        assert runtime.metrics["commands"] == 3
        assert runtime.metrics["command_calls"] == {"echo": 2, "upper": 1}
        assert runtime.metrics["command_ms"]["echo"] >= 0.0
        runtime.reset_metrics()
        assert runtime.metrics["commands"] == 0
        assert runtime.metrics["command_ms"] == {}

    def test_long_pipe_chain_runs(self, runtime):
        result = runtime.run('echo "x"' + ' -> append "."' * 1000)
        assert result == "x" + "." * 1000
        assert runtime.metrics["commands"] == 1001


class TestParallel:

    def test_results_keep_declaration_order(self, runtime, completed):
        result = runtime.run('parallel { slow "0.3" "A" slow "0.2" "B" slow "0.1" "C" }')
        assert completed == ["C", "B", "A"]
        assert result == "=== Branch 1 ===\nA\n\n=== Branch 2 ===\nB\n\n=== Branch 3 ===\nC"

    def test_branches_run_concurrently(self, runtime):
        t0 = time.perf_counter()
        runtime.run('parallel { slow "0.3" "A" slow "0.3" "B" slow "0.3" "C" }')
        assert time.perf_counter() - t0 < 0.8

    def test_each_branch_gets_the_same_input(self, runtime):
        result = runtime.run('echo "x" -> parallel { upper append "1" append "2" }')
        assert result == merge_branches(["X", "x1", "x2"])

    def test_fan_in_pipeline(self, runtime, registry):
        registry.register("cmda", lambda ctx, a, b, i: f"A:{a}")
        registry.register("cmdb", lambda ctx, a, b, i: f"B:{a}")
        registry.register("cmdc", lambda ctx, a, b, i: i + "|C")
        result = runtime.run('parallel { cmda "x" cmdb "y" } -> merge -> cmdc')
        assert result == "=== Branch 1 ===\nA:x\n\n=== Branch 2 ===\nB:y|C"

    def test_branch_failure_does_not_wait_for_siblings(self, runtime):
        program = parse('parallel { slow "1.0" "A" fail "bad branch" }')

        async def go():
            t0 = time.perf_counter()
            with pytest.raises(ParallelBranchError) as exc_info:
                await runtime.execute(program, runtime.new_context())
            return time.perf_counter() - t0, exc_info.value

        elapsed, err = asyncio.run(go())
        assert elapsed < 0.8
        assert err.index == 1
        assert isinstance(err.cause, CommandError)
        assert str(err).startswith("parallel branch 2 failed:")

    @pytest.mark.parametrize("cancel_siblings, expected", [(False, ["A"]), (True, [])])
    def test_sibling_policy_after_failure(self, registry, settings, completed, cancel_siblings, expected):
        settings = settings.model_copy(update={"cancel_parallel_siblings": cancel_siblings})
        runtime = Runtime(registry=registry, settings=settings)
        program = parse('parallel { slow "0.2" "A" fail }')

        async def go():
            with pytest.raises(ParallelBranchError):
                await runtime.execute(program, runtime.new_context())
            await asyncio.sleep(0.4)

        asyncio.run(go())
        assert completed == expected

    def test_metrics_count_parallel_blocks(self, runtime):
        runtime.run('parallel { echo "a" echo "b" }')
        assert runtime.metrics["parallel"] == 1


class TestConditionals:

    def test_true_condition_runs_body(self, runtime):
        result = runtime.run("""echo "I love golang" -> if 'contains "golang"' { upper }""")
        assert result == "I LOVE GOLANG"

    def test_false_condition_passes_input_through(self, runtime):
        result = runtime.run("""echo "rust" -> if 'contains "golang"' { fail } -> append""")
        assert result == "rust!"

    def test_numeric_condition_on_text(self, runtime):
        result = runtime.run('echo "Rain%: 85%" -> if "rain > 50" { echo "umbrella" }')
        assert result == "umbrella"

    def test_condition_reads_variables(self, runtime):
        result = runtime.run('set "mood" "happy" -> if "mood == happy" { echo "yay" }')
        assert result == "yay"
        assert runtime.metrics["conditions"] == {"true": 1, "false": 0}

    def test_set_defaults_to_input(self, runtime):
        ctx = runtime.new_context()
        asyncio.run(runtime.execute(parse('echo "42" -> set "answer"'), ctx))
        assert ctx.variables == {"answer": "42"}

    def test_body_with_multiple_statements(self, runtime):
        result = runtime.run('echo "x" -> if "x" { upper append "?" }')
        assert result == "X?"

    def test_bad_condition_raises(self, runtime):
        with pytest.raises(ConditionParseError):
            runtime.run('echo "x" -> if "  " { upper }')


class TestForEach:

    def test_each_item_runs_the_body(self, runtime):
        result = runtime.run('echo "a, b, c" -> foreach "csv" { upper }')
        assert result.startswith("**Summary:** 3 succeeded, 0 failed out of 3 total")
        assert "## Item 1 ✓\nA" in result
        assert "## Item 3 ✓\nC" in result

    def test_failing_item_is_recorded(self, runtime):
        result = runtime.run('echo "a\nb\nc" -> foreach { picky }')
        assert "2 succeeded, 1 failed out of 3 total" in result
        assert "## Item 2 ❌" in result
        assert "no b allowed" in result
        assert runtime.metrics["foreach_items"] == 3

    def test_max_items_from_settings(self, registry, settings):
        settings = settings.model_copy(update={"foreach_max_items": 2})
        result = Runtime(registry=registry, settings=settings).run('echo "a,b,c" -> foreach "csv" { upper }')
        assert "out of 2 total" in result


class TestRetryAndCancellation:

    def test_remote_command_is_retried(self, registry, settings):
        calls = []

        def flaky(ctx, a, b, i):
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("429 Too Many Requests")
            return "ok"

        registry.register("flaky", flaky, remote=True, retry=FAST_RETRY)
        assert Runtime(registry=registry, settings=settings).run("flaky") == "ok"
        assert len(calls) == 3

    def test_local_command_is_not_retried(self, registry, settings):
        calls = []

        def flaky(ctx, a, b, i):
            calls.append(1)
            raise ConnectionError("503 unavailable")

        registry.register("flaky", flaky)
        with pytest.raises(CommandError):
            Runtime(registry=registry, settings=settings).run("flaky")
        assert len(calls) == 1

    def test_exhausted_retries_are_wrapped(self, registry, settings):
        def down(ctx, a, b, i):
            raise TimeoutError("timeout")

        registry.register("down", down, remote=True, retry=FAST_RETRY)
        with pytest.raises(CommandError) as exc_info:
            Runtime(registry=registry, settings=settings).run("down")
        assert isinstance(exc_info.value.cause, RetryExhausted)
        assert exc_info.value.cause.attempts == 3

    def test_cancelled_context_stops_execution(self, runtime):
        ctx = runtime.new_context()
        ctx.cancel()
        with pytest.raises(ExecutionCancelled):
            runtime.run('echo "x"', ctx=ctx)

    def test_cancel_from_a_command(self, registry, settings):
        reached = []

        def stop(ctx: ExecutionContext, a, b, i):
            ctx.cancel()
            return i

        registry.register("stop", stop)
        registry.register("after", lambda ctx, a, b, i: reached.append(i) or i)
        with pytest.raises(ExecutionCancelled):
            Runtime(registry=registry, settings=settings).run('echo "x" -> stop -> after')
        assert reached == []


def test_default_registry_is_used(settings):
    runtime = Runtime(settings=settings)
    assert "weather" in runtime.registry
    assert runtime.run('echo "hello" -> merge') == "hello"


def test_cache_follows_settings(settings):
    assert Runtime(registry=CommandRegistry(), settings=settings).cache is None
    enabled = settings.model_copy(update={"cache_enabled": True})
    runtime = Runtime(registry=CommandRegistry(), settings=enabled)
    assert runtime.cache is not None
    assert runtime.new_context().cache is runtime.cache
