"""
Background field computation — trigger on the tick loop, poll every tick.

The kernel is O(width × height × obstacles) and far too slow for a frame
budget, so it runs on a ``ThreadPoolExecutor``. The tick loop only calls
``trigger`` (cheap: submits a job) and ``poll`` (cheap: checks a future).

At most one computation is in flight. Triggers that arrive while one is
running are coalesced: the newest ``(snapshot, region)`` request is kept and
launched as soon as the running result has been consumed by ``poll``. Older
deferred requests are superseded, never run.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent import futures
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from tetherfield.core.geometry import Region
from tetherfield.core.obstacles import ObstacleSnapshot
from tetherfield.field.kernel import compute_field
from tetherfield.field.store import Field

logger = logging.getLogger(__name__)

Kernel = Callable[[Region, ObstacleSnapshot], Field]


class PendingComputation:
    """
    Handle to one in-flight kernel invocation.

    Lifecycle: running → completed → consumed. ``FieldScheduler.poll`` hands
    out the result exactly once; afterwards the handle only reports its state.
    """

    def __init__(self, future: Future, snapshot: ObstacleSnapshot, region: Region):
        self._future = future
        self.snapshot = snapshot
        self.region = region
        self.launched_at = time.perf_counter()
        self._consumed = False

    @property
    def version(self) -> int:
        return self.snapshot.version

    def done(self) -> bool:
        return self._future.done()

    @property
    def consumed(self) -> bool:
        return self._consumed

    def __repr__(self) -> str:
        state = "consumed" if self._consumed else ("done" if self.done() else "running")
        return f"PendingComputation(version={self.version}, {state})"


class FieldScheduler:
    """
    Runs the field kernel off the tick loop and hands back finished fields.

    Args:
        workers: Thread pool size. One is enough for the single-in-flight policy.
        kernel: Function computing a ``Field``; replaceable for testing.
    """

    def __init__(self, workers: int = 1, kernel: Kernel = compute_field):
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="tetherfield"
        )
        self._kernel = kernel
        self._lock = threading.Lock()
        self._in_flight: PendingComputation | None = None
        self._deferred: tuple[ObstacleSnapshot, Region] | None = None

        self.launched = 0
        self.coalesced = 0
        self.completed = 0

    # ── Tick-loop API ────────────────────────────────────────────────

    def trigger(self, snapshot: ObstacleSnapshot, region: Region) -> PendingComputation:
        """
        Request a computation for ``snapshot`` over ``region``. Never blocks.

        Returns the handle that will produce the next field: a fresh one when
        the scheduler was idle, otherwise the running one (the request is
        queued behind it). In the second case the handle's result is for an
        older snapshot; the queued request gets a handle of its own only once
        it launches. Tick loops therefore call ``poll()`` without a handle,
        which always follows the newest launched computation::

            scheduler.trigger(obstacles.snapshot(), region)
            ...
            field = scheduler.poll()  # once per tick
            if field is not None:
                store.publish(field)
        """
        with self._lock:
            if self._in_flight is not None:
                if self._deferred is not None:
                    logger.debug(
                        "Superseding deferred request (version %d → %d)",
                        self._deferred[0].version,
                        snapshot.version,
                    )
                self._deferred = (snapshot, region)
                self.coalesced += 1
                return self._in_flight
            return self._launch(snapshot, region)

    def poll(self, handle: PendingComputation | None = None) -> Field | None:
        """
        Return the finished field for ``handle`` (default: the in-flight one).

        Returns ``None`` while the kernel is still running and for handles that
        were already consumed. Consuming the in-flight handle launches any
        deferred request. Kernel exceptions are logged and re-raised here.
        """
        with self._lock:
            if handle is None:
                handle = self._in_flight
            if handle is None or handle.consumed or not handle.done():
                return None

            handle._consumed = True
            if handle is self._in_flight:
                self._in_flight = None
                if self._deferred is not None:
                    snapshot, region = self._deferred
                    self._deferred = None
                    self._launch(snapshot, region)

        try:
            field = handle._future.result()
        except Exception:
            logger.exception("Field computation for version %d failed", handle.version)
            raise

        self.completed += 1
        logger.info("Field ready: %r", field)
        return field

    # ── State ────────────────────────────────────────────────────────

    @property
    def busy(self) -> bool:
        """A computation is running or finished but not yet polled."""
        return self._in_flight is not None

    @property
    def pending(self) -> bool:
        """Anything left to deliver: an in-flight handle or a deferred request."""
        return self._in_flight is not None or self._deferred is not None

    @property
    def in_flight(self) -> PendingComputation | None:
        return self._in_flight

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the in-flight computation finishes. For tests and batch use."""
        handle = self._in_flight
        if handle is None:
            return True
        done, _ = futures.wait([handle._future], timeout=timeout)
        return bool(done)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> FieldScheduler:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ── Internal ─────────────────────────────────────────────────────

    def _launch(self, snapshot: ObstacleSnapshot, region: Region) -> PendingComputation:
        future = self._executor.submit(self._kernel, region, snapshot)
        handle = PendingComputation(future, snapshot, region)
        self._in_flight = handle
        self.launched += 1
        logger.debug(
            "Launched field computation: %d obstacles, version %d, %dx%d",
            len(snapshot),
            snapshot.version,
            region.width,
            region.height,
        )
        return handle

    def __repr__(self) -> str:
        return (
            f"FieldScheduler(in_flight={self._in_flight!r}, "
            f"deferred={self._deferred is not None}, launched={self.launched})"
        )
