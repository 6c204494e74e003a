from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from domain.repositories import WriteDispatcher


logger = logging.getLogger(__name__)


def _describe(operation: Callable[..., Any]) -> str:
    return getattr(operation, "__qualname__", repr(operation))


class ImmediateWriter(WriteDispatcher):
    """Runs each write inline. Used with the local store."""

    def submit(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        try:
            operation(*args, **kwargs)
        except Exception:
            logger.error("Persistence write %s failed", _describe(operation), exc_info=True)

    def close(self) -> None:
        pass


class BackgroundWriter(WriteDispatcher):
    """
    Runs writes on a single worker thread. Used with the remote store.

    One worker keeps writes in submission order; the caller never waits.
    """

    def __init__(self) -> None:
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="ledger-writer")

    def submit(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        name = _describe(operation)
        try:
            future = self._executor.submit(operation, *args, **kwargs)
        except RuntimeError:
            logger.error("Persistence write %s dropped: writer is closed", name)
            return

        def _log_failure(done: Future) -> None:
            exc = done.exception()
            if exc is not None:
                logger.error("Persistence write %s failed", name, exc_info=exc)

        future.add_done_callback(_log_failure)

    def close(self) -> None:
        """Wait for queued writes to finish. Later writes are dropped."""

        self._executor.shutdown(wait=True)
