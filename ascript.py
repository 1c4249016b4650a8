#!/usr/bin/env python
import argparse
import sys
from pathlib import Path

from agentscript import AgentScriptError, ParseError, Runtime, Settings, TTLCache, parse
from agentscript.log import configure_logging

REPL_HELP = """
REPL Commands:
  :help, :h   Show this help
  :quit, :q   Exit REPL

Pipe commands with ->:
  weather "Paris" -> save "paris.md"

Parallel execution:
  parallel { crypto "BTC" crypto "ETH" } -> merge -> summarize

Conditionals:
  weather "Paris" -> if "rain > 50" { save "umbrella.md" }
"""


def _enable_tracing() -> None:
    from opentelemetry import trace
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)


def _read_source(args) -> str:
    if args.expr:
        return args.expr
    if not args.file:
        raise SystemExit("error: provide a script file or -e EXPR")
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: Could not find script file '{args.file}'", file=sys.stderr)
        sys.exit(1)
    return path.read_text(encoding="utf-8")


def cmd_run(args, settings: Settings) -> int:
    source = _read_source(args)
    try:
        program = parse(source)
    except ParseError as e:
        print(f"Parse error: {e}", file=sys.stderr)
        return 1
    try:
        result = Runtime(settings=settings).run(program)
    except AgentScriptError as e:
        print(f"Execution error: {e}", file=sys.stderr)
        return 1
    print(result)
    return 0


def cmd_check(args, settings: Settings) -> int:
    try:
        program = parse(_read_source(args))
    except ParseError as e:
        # "line 5, col 10: message" so editors can pick it up
        print(str(e))
        return 1
    print(f"OK: {len(program)} statement(s)")
    return 0


def cmd_repl(args, settings: Settings) -> int:
    rt = Runtime(settings=settings)
    print("AgentScript REPL")
    print("Commands: :help, :quit")
    while True:
        try:
            line = input("> ").strip()
        except EOFError:
            print()
            break
        if not line:
            continue
        if line in (":quit", ":q"):
            print("Goodbye!")
            break
        if line in (":help", ":h"):
            print(REPL_HELP)
            continue
        try:
            print(f"\n{rt.run(line)}\n")
        except ParseError as e:
            print(f"Parse error: {e}")
        except AgentScriptError as e:
            print(f"Execution error: {e}")
    return 0


def cmd_cache(args, settings: Settings) -> int:
    cache = TTLCache(settings.cache_dir)
    if args.action == "clear":
        print(f"Removed {cache.clear()} cache entries")
    else:
        print(cache.stats())
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="AgentScript - pipelines of commands, in parallel and on condition")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    parser.add_argument("--trace", action="store_true", help="Print OpenTelemetry spans to the console")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run a script file or expression")
    run_parser.add_argument("file", nargs="?", help="Path of the script file")
    run_parser.add_argument("-e", "--expr", help="Execute a script expression directly")

    check_parser = subparsers.add_parser("check", help="Parse a script without running it")
    check_parser.add_argument("file", nargs="?", help="Path of the script file")
    check_parser.add_argument("-e", "--expr", help="Script expression to check")

    subparsers.add_parser("repl", help="Interactive prompt")

    cache_parser = subparsers.add_parser("cache", help="Inspect or clear the result cache")
    cache_parser.add_argument("action", choices=["stats", "clear"], nargs="?", default="stats")

    args = parser.parse_args(argv)
    settings = Settings.from_env(verbose=args.verbose or None)
    configure_logging(settings.verbose)
    if args.trace:
        _enable_tracing()

    handlers = {"run": cmd_run, "check": cmd_check, "repl": cmd_repl, "cache": cmd_cache}
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args, settings)


if __name__ == "__main__":
    sys.exit(main())
