"""
Fire-and-forget side effects.

Work submitted here runs off the response path. A failing task is logged
and dropped; it never reaches the caller whose request scheduled it.
"""

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Optional, Set

import structlog

logger = structlog.get_logger()


class BackgroundDispatcher:
    """Runs best-effort tasks on a small worker pool.

    A single worker (the default) serializes writes, which keeps SQLite
    ledgers free of lock contention.
    """

    def __init__(self, max_workers: int = 1, thread_name_prefix: str = "ai-router-bg"):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix
        )
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, task_name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedule `fn(*args, **kwargs)` and return immediately."""
        future = self._executor.submit(self._run, task_name, fn, *args, **kwargs)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every task submitted so far has finished."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    @staticmethod
    def _run(task_name: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("background_task_failed", task=task_name)
