"""
State Machine Base

Shared plumbing for the auth and tenant machines: a current state,
listeners notified on every transition, and event handling serialized
so events are processed one at a time in arrival order.
"""
import asyncio
from typing import Any, Callable, Dict, Generic, List, Type, TypeVar

from bizflow.client.tracking import Tracker
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)

S = TypeVar("S")

Listener = Callable[[Any, Any], None]


class StateMachine(Generic[S]):
    """
    Subclasses register one coroutine handler per event type in
    `handlers` and call `emit()` to transition.

    Listeners are plain callables `listener(previous, current)` and run
    synchronously inside emit(). Schedule work with asyncio instead of
    awaiting in a listener.
    """

    def __init__(self, initial: S, tracker: Tracker):
        self._state = initial
        self._tracker = tracker
        self._listeners: List[Listener] = []
        # asyncio.Lock wakes waiters FIFO, which gives arrival order
        self._lock = asyncio.Lock()
        self.handlers: Dict[Type, Callable[[Any], Any]] = {}

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, state: S) -> None:
        previous, self._state = self._state, state
        logger.debug(
            f"{type(self).__name__}: {type(previous).__name__} -> {type(state).__name__}",
            extra={"state": type(state).__name__}
        )
        for listener in list(self._listeners):
            try:
                listener(previous, state)
            except Exception as e:
                logger.exception(f"State listener failed in {type(self).__name__}")
                self._tracker.track_error(e, {"machine": type(self).__name__})

    async def dispatch(self, event: Any) -> None:
        """Handle one event; returns once its terminal state is emitted."""
        handler = self.handlers.get(type(event))
        if handler is None:
            raise TypeError(f"{type(self).__name__} has no handler for {type(event).__name__}")
        async with self._lock:
            await handler(event)
