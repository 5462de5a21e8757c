"""Process-wide monotonic id allocation."""

import itertools


class IdAllocator:
    """Hand out increasing integer ids, starting at 1.

    One allocator is created at process start and owned by whoever creates
    matches; it is never reset while the process runs.
    """

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._last: int | None = None

    def next_id(self) -> int:
        self._last = next(self._counter)
        return self._last

    @property
    def last_id(self) -> int | None:
        """The most recently allocated id, or None before the first allocation."""
        return self._last
