import threading
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class SingleSlotQueue(Generic[T]):
    """Thread-safe, size=1, latest-wins queue for handing playback views to the UI.

    Publishing after close() is ignored, so a late clock tick cannot revive a
    UI loop that already exited.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition()
        self._has_value = False
        self._value: Optional[T] = None
        self._closed = False
        self._published = 0

    @property
    def closed(self) -> bool:
        with self._condition:
            return self._closed

    @property
    def published(self) -> int:
        """Number of items accepted since creation, including overwritten ones."""
        with self._condition:
            return self._published

    def publish(self, item: T) -> bool:
        with self._condition:
            if self._closed:
                return False
            self._value = item  # Overwrite any stale value.
            self._has_value = True
            self._published += 1
            self._condition.notify()
            return True

    def close(self) -> None:
        with self._condition:
            self._closed = True
            self._condition.notify_all()

    def get(self, timeout: Optional[float] = None) -> Optional[T]:
        """Block until a value is available or the queue is closed. Returns None on close.

        A value published before close() is still delivered once.
        """
        with self._condition:
            ok = self._condition.wait_for(lambda: self._has_value or self._closed, timeout)
            if not ok:
                raise TimeoutError("queue get() timed out")
            if not self._has_value:
                return None
            value = self._value
            self._value = None
            self._has_value = False
            return value
