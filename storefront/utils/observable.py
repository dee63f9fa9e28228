"""Observable state holder."""
import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class StateHolder(Generic[T]):
    """
    Holds a current value and notifies subscribers on every change.

    Listeners run synchronously in subscription order. A listener that
    raises is logged and skipped so one bad subscriber cannot stall the
    state machine that owns the holder.

    Usage:
        holder = StateHolder(initial)
        unsubscribe = holder.subscribe(print)
        holder.set(new_value)
        unsubscribe()
    """

    def __init__(self, initial: T):
        self._value = initial
        self._listeners: List[Listener] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                logger.error(f"State listener {listener!r} failed: {e}")

    def subscribe(self, listener: Listener, emit_current: bool = False) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Called with each new value
            emit_current: Also call it immediately with the current value

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)
        if emit_current:
            listener(self._value)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
