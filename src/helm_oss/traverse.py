"""Streaming producer/consumer plumbing for repository scans.

A scan runs in a background producer thread and hands ChartInfo records to
the consumer through a bounded queue, so a consumer can build the index while
the bucket is still being listed and memory stays bounded for large buckets.

The producer always ends the stream with exactly one terminal marker: either
end-of-stream or the error that aborted the scan. Iterating a TraverseStream
yields every record produced before the terminal marker and then either stops
(success) or raises the producer's error (failure).
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, Optional

from .context import Context
from .domain.chart import ChartMetadata

logger = logging.getLogger(__name__)

_PUT_POLL_SECONDS = 0.1


@dataclass(frozen=True)
class ChartInfo:
    """One chart archive discovered by a scan.

    Attributes:
        metadata: Chart descriptor, from object metadata or the archive itself
        filename: Object key relative to the repository root, e.g. "app-1.0.0.tgz"
        digest: Hex SHA-256 digest of the archive
    """

    metadata: ChartMetadata
    filename: str
    digest: str


Emit = Callable[[ChartInfo], None]
Producer = Callable[[Emit, Context], None]


class _End:
    pass


class _Failure:
    def __init__(self, error: BaseException) -> None:
        self.error = error


_END = _End()


class StreamClosed(Exception):
    """Raised inside the producer when the consumer closed the stream."""


class TraverseStream:
    """Iterator over ChartInfo records produced by a background scan.

    Use as a context manager so an abandoned stream releases its producer:

        with storage.traverse("oss://bucket/charts") as charts:
            for info in charts:
                ...
    """

    def __init__(self, producer: Producer, ctx: Optional[Context] = None, maxsize: int = 1) -> None:
        self._ctx = ctx or Context.background()
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self._finished = False
        self.error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run, args=(producer,), name="helm-oss-traverse", daemon=True
        )
        self._thread.start()

    def _run(self, producer: Producer) -> None:
        terminal: object = _END
        try:
            producer(self._emit, self._ctx)
        except StreamClosed:
            logger.debug("Scan stopped: stream closed by consumer")
        except BaseException as e:
            # Delivered to the consumer as the terminal error of the stream.
            terminal = _Failure(e)
        finally:
            self._put(terminal)

    def _emit(self, item: ChartInfo) -> None:
        if not self._put(item):
            raise StreamClosed()

    def _put(self, item: object) -> bool:
        while not self._closed.is_set():
            try:
                self._queue.put(item, timeout=_PUT_POLL_SECONDS)
                return True
            except queue.Full:
                continue
        return False

    def __iter__(self) -> Iterator[ChartInfo]:
        return self

    def __next__(self) -> ChartInfo:
        if self._finished:
            raise StopIteration
        item = self._queue.get()
        if isinstance(item, _End):
            self._finished = True
            raise StopIteration
        if isinstance(item, _Failure):
            self._finished = True
            self.error = item.error
            raise item.error
        return item

    def close(self) -> None:
        """Stop the producer at its next emit and discard pending records."""
        self._closed.set()
        self._finished = True
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                break

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the producer thread; returns True when it has exited."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def __enter__(self) -> TraverseStream:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
