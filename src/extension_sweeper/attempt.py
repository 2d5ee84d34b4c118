"""Detached delete attempts.

A delete syscall cannot be interrupted, so each attempt runs in its own
daemon thread and reports back through a single-slot ``asyncio.Future``.
Timing out only stops waiting on that future; the thread keeps going and may
still remove the file later.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from pathlib import Path
from typing import Callable

logger = logging.getLogger("extension-sweeper")

Remover = Callable[[Path], None]


def remove_file(path: Path) -> None:
    """Delete a single file.

    Raises:
        OSError: If the file could not be removed.

    """
    path.unlink()


def start_attempt(remover: Remover, path: Path) -> asyncio.Future[None]:
    """Start deleting ``path`` in a daemon thread.

    Args:
        remover: Callable performing the blocking delete.
        path: File to delete.

    Returns:
        Future resolved with None on success, or with the raised exception.

    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[None] = loop.create_future()

    def _settle(error: BaseException | None) -> None:
        if future.done():
            return
        if error is None:
            future.set_result(None)
        else:
            future.set_exception(error)

    def _run() -> None:
        error: BaseException | None = None
        try:
            remover(path)
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(_settle, error)
        except RuntimeError:
            # Event loop already closed; nobody is waiting for this attempt.
            pass

    thread = threading.Thread(target=_run, name=f"delete-{path.name}", daemon=True)
    thread.start()
    return future


def abandon(future: asyncio.Future[None], path: Path) -> None:
    """Stop caring about an attempt that outlived its timeout.

    The eventual outcome is only logged, so a late failure is never reported
    as an unretrieved exception.
    """

    def _log_outcome(done: asyncio.Future[None]) -> None:
        if done.cancelled():
            return
        error = done.exception()
        if error is None:
            logger.debug("Abandoned attempt finished late and removed %s", path)
        else:
            logger.debug("Abandoned attempt on %s failed late: %s", path, error)

    future.add_done_callback(_log_outcome)
