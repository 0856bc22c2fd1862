"""
Thread-safe aggregation buffer for request queue time samples.

Samples are grouped into one-second buckets keyed by the unix-epoch
second at which they were recorded::

    {1700000000: [12, 40, 3], 1700000001: [7]}

The buffer is the only shared mutable state of the web dispatcher.
Every mutation (``add``, ``flush``, ``repopulate``) runs under a single
``threading.Lock`` that is held only for the in-memory operation, never
across network I/O, so request handlers recording samples are never
blocked by a slow dispatch.

A ``threading.Lock`` is used rather than an ``asyncio.Lock`` because
samples are also recorded from synchronous request handlers running
in a thread pool (see ``hirefire_resource.wsgi``).
"""

import collections.abc
import math
import threading
import time


class RequestQueueTimeBuffer:
    """
    Per-second buckets of request queue time samples (milliseconds).

    ``flush`` hands the accumulated buckets off exactly once: a sample
    recorded concurrently with a flush lands either in the returned
    snapshot or in the fresh buffer, never both and never neither.
    """

    def __init__(self, clock: collections.abc.Callable[[], float] = time.time) -> None:
        """
        Args:
            clock: Returns the current unix time in (fractional) seconds.
                Injected so tests can control bucket assignment.
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._buckets: dict[int, list[int]] = {}

    def add(self, request_queue_time: int) -> None:
        """Append a sample to the bucket for the current second."""
        with self._lock:
            bucket = self.now_seconds()
            self._buckets.setdefault(bucket, []).append(request_queue_time)

    def flush(self) -> dict[int, list[int]]:
        """Replace the buffer with an empty one and return the previous contents."""
        with self._lock:
            flushed_buckets = self._buckets
            self._buckets = {}
            return flushed_buckets

    def repopulate(
        self,
        flushed_buckets: dict[int, list[int]],
        now_seconds: int,
        ttl_seconds: int,
    ) -> None:
        """
        Merge undelivered buckets back into the live buffer.

        Buckets whose key is older than ``now_seconds - ttl_seconds`` are
        dropped permanently so an unreachable collector cannot make the
        buffer grow without bound.  Surviving samples are appended after
        any samples recorded into the same bucket since the flush.
        """
        oldest_retained_bucket = now_seconds - ttl_seconds
        with self._lock:
            for bucket, request_queue_times in flushed_buckets.items():
                if int(bucket) >= oldest_retained_bucket:
                    self._buckets.setdefault(int(bucket), []).extend(request_queue_times)

    def snapshot(self) -> dict[int, list[int]]:
        """Return a copy of the current buckets without flushing them."""
        with self._lock:
            return {bucket: list(samples) for bucket, samples in self._buckets.items()}

    def now_seconds(self) -> int:
        """Return the current unix-epoch second according to the buffer's clock."""
        return math.floor(self._clock())
