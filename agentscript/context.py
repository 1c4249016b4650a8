from __future__ import annotations
import asyncio
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

from .errors import ExecutionCancelled

if TYPE_CHECKING:
    from .cache import TTLCache
    from .config import Settings


@dataclass
class ExecutionContext:
    """State owned by a single program execution.

    `variables` is read by the condition evaluator for non-input fields.
    Cancellation is a plain flag guarded by a threading event so that
    collaborators running in worker threads can observe it too.
    """
    variables: Dict[str, str] = field(default_factory=dict)
    cache: Optional["TTLCache"] = None
    settings: Optional["Settings"] = None
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def raise_if_cancelled(self, where: str = "") -> None:
        if self._cancel.is_set():
            raise ExecutionCancelled(f"execution cancelled{' during ' + where if where else ''}")

    async def sleep(self, delay: float, where: str = "") -> None:
        """Sleep for `delay` seconds, waking early and raising if cancelled."""
        self.raise_if_cancelled(where)
        remaining = max(delay, 0.0)
        step = 0.05
        while remaining > 0:
            await asyncio.sleep(min(step, remaining))
            remaining -= step
            self.raise_if_cancelled(where)

