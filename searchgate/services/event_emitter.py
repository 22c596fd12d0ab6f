"""
Routes completion events (search, autocomplete, suggestedQueries) to the
handlers registered for them.

Emitting never fails the request: synchronous handlers are called inside a
try/except, coroutine handlers are scheduled as tasks and not awaited, and
every failure is logged.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from ..core import constants
from ..core.errors import ConfigError
from ..core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class EventData:
    headers: Dict[str, Any]
    query_data: Dict[str, Any]
    query_languages: List[str] = field(default_factory=list)
    query_result: Optional[Dict[str, Any]] = None


class EventEmitter:
    """Event name -> ordered handler list"""

    def __init__(self):
        self._handlers: Dict[str, List[Callable[[EventData], Any]]] = {}
        self._tasks: Set[asyncio.Task] = set()

    def register(self, event_name: str, handler: Callable[[EventData], Any]):
        if event_name not in constants.VALID_EVENTS:
            raise ConfigError(f"Unknown event name: {event_name}",
                              {"code": "UNKNOWN_EVENT", "event": event_name, "valid": constants.VALID_EVENTS})
        self._handlers.setdefault(event_name, []).append(handler)

    def handlers(self, event_name: str) -> List[Callable[[EventData], Any]]:
        return list(self._handlers.get(event_name, []))

    def emit(self, event_name: str, data: EventData):
        for handler in self._handlers.get(event_name, []):
            try:
                result = handler(data)
                if inspect.isawaitable(result):
                    self._schedule(event_name, handler, result)
            except Exception as e:
                logger.error("event_handler_failed", event_name=event_name, handler=_name(handler), error=str(e))

    def _schedule(self, event_name: str, handler: Callable, awaitable):
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(finished: asyncio.Task):
            self._tasks.discard(finished)
            if finished.cancelled():
                return
            error = finished.exception()
            if error is not None:
                logger.error("event_handler_failed", event_name=event_name, handler=_name(handler), error=str(error))

        task.add_done_callback(done)

    async def drain(self):
        """Wait for scheduled handlers; used on shutdown"""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def _name(handler: Callable) -> str:
    return getattr(handler, "__qualname__", None) or getattr(handler, "__name__", None) or repr(handler)
