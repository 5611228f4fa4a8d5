"""dispatch.py — Marshal callbacks onto one consumer context."""

import queue


class MainQueue:
    """FIFO of callables posted from any thread, run by a single consumer.

    The thread that calls ``run_pending`` is the "main" context: everything
    posted here executes there, in the order it was posted.
    """

    def __init__(self):
        self._queue = queue.SimpleQueue()

    def post(self, fn) -> None:
        self._queue.put(fn)

    def run_pending(self, timeout: float | None = None) -> int:
        """Run queued callables on this thread. Returns how many ran.

        With a timeout, waits up to that long for the first callable to arrive;
        without one, only runs what is already queued.
        """
        count = 0
        if timeout is not None:
            try:
                fn = self._queue.get(timeout=timeout)
            except queue.Empty:
                return 0
            fn()
            count += 1
        while True:
            try:
                fn = self._queue.get_nowait()
            except queue.Empty:
                return count
            fn()
            count += 1

    def empty(self) -> bool:
        return self._queue.empty()


class InlineDispatcher:
    """Runs callables immediately on the posting thread."""

    def post(self, fn) -> None:
        fn()

    def run_pending(self, timeout: float | None = None) -> int:
        return 0
