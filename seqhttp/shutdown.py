"""
Single-use shutdown trigger.

The request that takes the last scripted response calls `trigger()`; the
shutdown routine then runs on its own thread so the triggering handler can
finish writing its response while the listener winds down. The main thread
joins on `wait()`.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Optional

from .exceptions import TransportShutdownError

logger = logging.getLogger(__name__)


class ShutdownCoordinator:
    """Runs a shutdown routine at most once and publishes its outcome."""

    def __init__(self, routine: Callable[[], None], name: str = "seqhttp-shutdown"):
        """
        Args:
            routine: Blocking callable performing the graceful shutdown
            name: Name of the thread the routine runs on
        """
        self._routine = routine
        self._name = name
        self._future: Future = Future()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def triggered(self) -> bool:
        with self._lock:
            return self._thread is not None

    @property
    def done(self) -> bool:
        return self._future.done()

    def trigger(self) -> bool:
        """
        Start the shutdown routine without waiting for it.

        Returns:
            True if this call started the routine, False if it was
            already started.
        """
        with self._lock:
            if self._thread is not None:
                logger.debug("Shutdown already triggered")
                return False
            self._thread = threading.Thread(target=self._run, name=self._name, daemon=True)
            self._thread.start()
        return True

    def _run(self) -> None:
        if not self._future.set_running_or_notify_cancel():
            return
        logger.info("Shutting down")
        try:
            self._routine()
        except Exception as e:
            self._future.set_exception(e)
        else:
            logger.info("Shutdown complete")
            self._future.set_result(None)

    def wait(self, timeout: Optional[float] = None) -> None:
        """
        Block until the shutdown routine has finished.

        Args:
            timeout: Seconds to wait, None to wait forever

        Raises:
            concurrent.futures.TimeoutError: If the routine did not finish
                within `timeout`
            TransportShutdownError: If the routine raised
        """
        exc = self._future.exception(timeout=timeout)
        if exc is not None:
            raise TransportShutdownError(f"shutdown failed: {exc}") from exc
