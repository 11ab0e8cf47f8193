"""
azurerm/polling.py

Blocking waits for long-running ARM operations, with cooperative cancellation.

The SDK's LROPoller already polls the remote operation on its own thread; we
only need to block until it reaches a terminal state while watching the
shared StopContext. Cancelling the context makes every in-flight wait return
promptly with OperationCancelledError.

Operation lifecycle:

    submitted → polling → done
                        → failed
                        → cancelled
"""

import logging
import threading
from enum import Enum
from typing import Any

from azure.core.exceptions import HttpResponseError

from .exceptions import NotFoundError, OperationCancelledError, RemoteOperationError

logger = logging.getLogger(__name__)

# Longest time a wait blocks on the poller between cancellation checks.
DEFAULT_POLL_INTERVAL = 1.0
MAX_WAIT_SLICE = 1.0


class OperationState(str, Enum):
    SUBMITTED = "submitted"
    POLLING   = "polling"
    DONE      = "done"
    FAILED    = "failed"
    CANCELLED = "cancelled"


class StopContext:
    """Session-wide cancellation token shared by every adapter invocation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def is_not_found(exc: BaseException) -> bool:
    return getattr(exc, "status_code", None) == 404


class LongRunningOperation:
    def __init__(
        self,
        poller,
        description: str,
        stop_context: StopContext,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self._poller = poller
        self.description = description
        self._stop = stop_context
        self._poll_interval = poll_interval
        self.state = OperationState.SUBMITTED

    def wait(self) -> Any:
        """Block until the remote operation is terminal and return its result."""
        self.state = OperationState.POLLING
        logger.debug("Waiting for %s", self.description)

        # The poller wakes us as soon as it is terminal; the slice bounds how
        # long a cancellation can go unnoticed.
        step = min(self._poll_interval, MAX_WAIT_SLICE)
        try:
            while not self._poller.done():
                if self._stop.cancelled:
                    self.state = OperationState.CANCELLED
                    raise OperationCancelledError(f"{self.description} was cancelled before it completed")
                # LROPoller.wait re-raises a failure from its polling thread
                self._poller.wait(timeout=step)
            result = self._poller.result()
        except HttpResponseError as exc:
            self.state = OperationState.FAILED
            if is_not_found(exc):
                raise NotFoundError(f"{self.description}: {exc.message}") from exc
            raise RemoteOperationError(
                f"Error waiting for {self.description}: {exc.message}",
                status_code=exc.status_code,
            ) from exc

        self.state = OperationState.DONE
        return result


def wait_for_completion(poller, description: str, stop_context: StopContext,
                        poll_interval: float = DEFAULT_POLL_INTERVAL) -> Any:
    return LongRunningOperation(poller, description, stop_context, poll_interval).wait()
