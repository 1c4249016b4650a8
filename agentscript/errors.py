from typing import Any, List, Optional


class AgentScriptError(Exception):
    pass


class ParseError(AgentScriptError):
    """Raised when script source does not match the grammar."""

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None, token: Optional[str] = None):
        self.line = line
        self.column = column
        self.token = token
        if line is not None:
            message = f"line {line}, col {column}: {message}"
        super().__init__(message)


class ConditionParseError(AgentScriptError):
    """Raised when an `if` condition string cannot be parsed."""
    pass


class UnknownCommand(AgentScriptError):
    def __init__(self, action: str):
        self.action = action
        super().__init__(f"UnknownCommand: {action}")


class CommandError(AgentScriptError):
    """A collaborator failed. Carries the action name and the underlying cause."""

    def __init__(self, action: str, cause: BaseException):
        self.action = action
        self.cause = cause
        super().__init__(f"{action} failed: {cause}")


class RetryExhausted(AgentScriptError):
    def __init__(self, name: str, attempts: int, last_error: BaseException):
        self.name = name
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{name} failed after {attempts} attempts: {last_error}")


class ExecutionCancelled(AgentScriptError):
    """Raised when the execution context is cancelled mid-retry, mid-loop or between statements."""

    def __init__(self, message: str = "execution cancelled", results: Optional[List[Any]] = None):
        self.results = results or []
        super().__init__(message)


class ParallelBranchError(AgentScriptError):
    def __init__(self, index: int, cause: BaseException):
        self.index = index
        self.cause = cause
        super().__init__(f"parallel branch {index + 1} failed: {cause}")


class SchemaValidationError(AgentScriptError):
    """Raised when a remote API response fails schema validation."""
    pass
