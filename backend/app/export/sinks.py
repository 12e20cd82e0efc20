from __future__ import annotations

from io import BytesIO
import queue
import threading
from typing import Iterator, Literal, Protocol

from app.export.errors import SinkAborted, SinkWriteFailure

SinkState = Literal["open", "closed", "aborted"]


class ExportSink(Protocol):
    """Destination for streamed export bytes.

    ``close`` marks a complete, successful stream; ``abort`` marks the stream
    as incomplete so the consumer never mistakes partial output for a result.
    """

    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...

    def abort(self, error: BaseException | None = None) -> None: ...


class MemorySink:
    def __init__(self) -> None:
        self._buffer = BytesIO()
        self.state: SinkState = "open"
        self.error: BaseException | None = None

    def write(self, data: bytes) -> int:
        if self.state != "open":
            raise SinkWriteFailure(f"Cannot write to a {self.state} sink")
        return self._buffer.write(data)

    def close(self) -> None:
        if self.state == "open":
            self.state = "closed"

    def abort(self, error: BaseException | None = None) -> None:
        if self.state == "open":
            self.state = "aborted"
            self.error = error

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()


class _StreamEnd:
    pass


class _StreamAbort:
    def __init__(self, error: BaseException | None) -> None:
        self.error = error


_END = _StreamEnd()


class QueueSink:
    """Bounded hand-off between a producer thread and a response iterator.

    A full queue blocks ``write`` until the consumer catches up, so at most
    ``max_chunks`` chunks are ever buffered. ``cancel`` (consumer went away)
    makes pending and future writes fail with ``SinkWriteFailure``.
    """

    def __init__(self, *, max_chunks: int = 8, poll_seconds: float = 0.5) -> None:
        self._queue: queue.Queue[object] = queue.Queue(maxsize=max(1, max_chunks))
        self._poll_seconds = poll_seconds
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self.state: SinkState = "open"

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def write(self, data: bytes) -> int:
        if self.state != "open":
            raise SinkWriteFailure(f"Cannot write to a {self.state} sink")
        if not data:
            return 0
        self._put(bytes(data))
        return len(data)

    def close(self) -> None:
        with self._lock:
            if self.state != "open":
                return
            self.state = "closed"
        try:
            self._put(_END)
        except SinkWriteFailure:
            pass

    def abort(self, error: BaseException | None = None) -> None:
        with self._lock:
            if self.state != "open":
                return
            self.state = "aborted"
        try:
            self._put(_StreamAbort(error))
        except SinkWriteFailure:
            # Nobody is listening any more; there is no one left to tell.
            pass

    def cancel(self) -> None:
        self._cancelled.set()

    def _put(self, item: object) -> None:
        while True:
            if self._cancelled.is_set():
                raise SinkWriteFailure("Export consumer disconnected")
            try:
                self._queue.put(item, timeout=self._poll_seconds)
                return
            except queue.Full:
                continue

    def iter_chunks(self) -> Iterator[bytes]:
        try:
            while True:
                item = self._queue.get()
                if isinstance(item, _StreamEnd):
                    return
                if isinstance(item, _StreamAbort):
                    raise SinkAborted(item.error)
                yield item  # type: ignore[misc]
        finally:
            self.cancel()
