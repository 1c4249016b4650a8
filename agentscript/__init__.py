from loguru import logger

from .ast import Command, ForEach, If, Parallel, Program, Statement
from .cache import TTLCache, cached_get
from .conditions import Condition, evaluate_condition, parse_condition
from .config import Settings
from .context import ExecutionContext
from .errors import (
    AgentScriptError,
    CommandError,
    ConditionParseError,
    ExecutionCancelled,
    ParallelBranchError,
    ParseError,
    RetryExhausted,
    UnknownCommand,
)
from .parser import parse, parse_file
from .registry import CommandRegistry
from .retry import RetryConfig, with_retry
from .runtime import Runtime

__version__ = "0.1.0"

# library stays quiet until the application calls agentscript.log.configure_logging()
logger.disable("agentscript")

__all__ = [
    "AgentScriptError", "Command", "CommandError", "CommandRegistry", "Condition", "ConditionParseError",
    "ExecutionCancelled", "ExecutionContext", "ForEach", "If", "Parallel", "ParallelBranchError", "ParseError",
    "Program", "RetryConfig", "RetryExhausted", "Runtime", "Settings", "Statement", "TTLCache", "UnknownCommand",
    "cached_get", "evaluate_condition", "parse", "parse_condition", "parse_file", "with_retry",
]
