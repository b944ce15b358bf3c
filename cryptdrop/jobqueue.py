"""Thread-safe FIFO of job file names."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterator

FILE_NAME_LEN = 74


class JobQueue:
    """First-in first-out queue of file names shared between threads.

    Names longer than ``FILE_NAME_LEN - 1`` characters are truncated.
    """

    def __init__(self) -> None:
        self._items: deque[str] = deque()
        self._ready = threading.Condition()

    def push(self, name: str | None) -> None:
        """Add ``name`` to the back of the queue; ``None`` is ignored."""
        if name is None:
            return
        with self._ready:
            self._items.append(name[: FILE_NAME_LEN - 1])
            self._ready.notify()

    def pop(self) -> str:
        """Remove and return the name at the front of the queue."""
        with self._ready:
            if not self._items:
                raise IndexError("pop from an empty job queue")
            return self._items.popleft()

    def is_empty(self) -> bool:
        """Tell whether the queue holds no names."""
        with self._ready:
            return not self._items

    def clear(self) -> None:
        """Drop every queued name."""
        with self._ready:
            self._items.clear()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the queue is non-empty or ``timeout`` expires."""
        with self._ready:
            return self._ready.wait_for(lambda: bool(self._items), timeout)

    def __len__(self) -> int:
        with self._ready:
            return len(self._items)

    def __iter__(self) -> Iterator[str]:
        with self._ready:
            return iter(list(self._items))