"""
Operation Context

Carries a caller-supplied deadline and cancellation signal into every
repository and storage call.

Usage:
    ctx = OperationContext(timeout=2.0)
    repo.get("user_42", ctx=ctx)

    # from another thread
    ctx.cancel()
"""

import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from .errors import OperationCancelledError, OperationTimeoutError


class OperationContext:
    """
    Deadline plus cancel flag for one logical operation.

    Attributes:
        deadline: time.monotonic() value after which the operation times out,
                  or None for no deadline
    """

    def __init__(self, timeout: Optional[float] = None,
                 cancel_event: Optional[threading.Event] = None):
        """
        Args:
            timeout: Seconds from now until the deadline (None = no deadline)
            cancel_event: Event shared with the canceller (created if omitted)
        """
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self._cancel_event = cancel_event if cancel_event is not None else threading.Event()

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, clamped at 0 (None = unbounded)."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def error(self) -> Optional[Exception]:
        """The error check() would raise, or None while the operation may go on."""
        if self.cancelled:
            return OperationCancelledError("operation cancelled")
        if self.expired:
            return OperationTimeoutError("operation deadline exceeded")
        return None

    def check(self) -> None:
        """
        Raise if the operation should stop.

        Raises:
            OperationCancelledError: cancel() was called
            OperationTimeoutError: the deadline has passed
        """
        err = self.error()
        if err is not None:
            raise err

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout elapses. Returns True if cancelled."""
        return self._cancel_event.wait(timeout)

    def __repr__(self) -> str:
        return (f"OperationContext(remaining={self.remaining()}, "
                f"cancelled={self.cancelled})")


@contextmanager
def watch(ctx: Optional[OperationContext],
          interrupt: Callable[[], None]) -> Iterator[None]:
    """
    Run a blocking driver call under ctx.

    A watcher thread calls interrupt() as soon as ctx is cancelled or its
    deadline passes, which makes the driver abort the in-flight statement.
    With no ctx (or an unbounded one that is never cancelled) the watcher
    simply exits when the block finishes.
    """
    if ctx is None:
        yield
        return

    ctx.check()
    finished = threading.Event()

    def _watcher() -> None:
        while not finished.is_set():
            remaining = ctx.remaining()
            step = 0.05 if remaining is None else min(0.05, remaining)
            if ctx.wait(step) or ctx.expired:
                if not finished.is_set():
                    interrupt()
                return

    thread = threading.Thread(target=_watcher, name="shardrouter-ctx-watch", daemon=True)
    thread.start()
    try:
        yield
    finally:
        finished.set()
        thread.join()
