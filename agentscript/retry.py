from __future__ import annotations
import inspect
import random
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .context import ExecutionContext
from .errors import RetryExhausted

T = TypeVar("T")


class RetryConfig(BaseModel):
    """Backoff policy. Delays are in seconds."""
    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    initial_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=30.0, ge=0.0)
    multiplier: float = Field(default=2.0, ge=1.0)
    jitter_pct: float = Field(default=0.25, ge=0.0, le=1.0)

    def delay_for(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Delay to wait after failed attempt number `attempt` (1-based)."""
        delay = min(self.initial_delay * self.multiplier ** (attempt - 1), self.max_delay)
        delay += delay * self.jitter_pct * (rng() * 2 - 1)
        if delay < 0:
            delay = self.initial_delay
        return delay


DEFAULT_RETRY = RetryConfig()

# for APIs known to rate-limit aggressively (LLM free tiers, search)
AGGRESSIVE_RETRY = RetryConfig(max_attempts=5, initial_delay=2.0, max_delay=60.0, multiplier=2.5, jitter_pct=0.3)

AGGRESSIVE_COMMANDS = frozenset({
    "search", "ask", "summarize", "analyze", "translate", "image_generate", "video_generate", "tts",
})

RETRYABLE_PATTERNS = (
    "429",
    "rate limit",
    "resource exhausted",
    "too many requests",
    "quota exceeded",
    "temporarily unavailable",
    "503",
    "502",
    "504",
    "timeout",
    "connection reset",
    "connection refused",
    "eof",
)


def retry_config_for(command: str) -> RetryConfig:
    name = command.lower()
    if name in AGGRESSIVE_COMMANDS:
        return AGGRESSIVE_RETRY
    if name == "crypto":
        # CoinGecko limits are per minute
        return DEFAULT_RETRY.model_copy(update={"max_attempts": 3, "initial_delay": 5.0})
    return DEFAULT_RETRY


def is_retryable_error(err: Optional[BaseException]) -> bool:
    if err is None:
        return False
    msg = str(err).lower()
    return any(p in msg for p in RETRYABLE_PATTERNS)


async def with_retry(
    ctx: ExecutionContext,
    config: RetryConfig,
    name: str,
    fn: Callable[[], Union[T, Awaitable[T]]],
) -> T:
    """Call `fn` until it succeeds, a non-transient error occurs, or attempts run out.

    `fn` may be a plain callable or return an awaitable. Only errors matched by
    `is_retryable_error` are retried; anything else propagates after the first
    attempt. Exhaustion raises `RetryExhausted` chained to the last error.
    """
    last_error: Optional[Exception] = None
    for attempt in range(1, config.max_attempts + 1):
        ctx.raise_if_cancelled(f"retry of {name}")
        try:
            result: Any = fn()
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            last_error = e
            if not is_retryable_error(e):
                raise
            if attempt == config.max_attempts:
                break
            delay = config.delay_for(attempt)
            logger.warning(
                "[retry] {} attempt {}/{} failed: {}. Retrying in {:.3f}s",
                name, attempt, config.max_attempts, e, delay,
            )
            await ctx.sleep(delay, where=f"retry of {name}")
            continue
        if attempt > 1:
            logger.info("[retry] {} succeeded on attempt {}", name, attempt)
        return result

    assert last_error is not None
    raise RetryExhausted(name, config.max_attempts, last_error) from last_error
