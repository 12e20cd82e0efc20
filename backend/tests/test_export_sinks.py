import threading

import pytest

from app.export import MemorySink, QueueSink, SinkAborted, SinkWriteFailure


def test_memory_sink_refuses_writes_after_close() -> None:
    sink = MemorySink()
    sink.write(b"abc")
    sink.close()

    with pytest.raises(SinkWriteFailure):
        sink.write(b"more")
    assert sink.state == "closed"
    assert sink.getvalue() == b"abc"


def test_memory_sink_abort_keeps_first_state() -> None:
    sink = MemorySink()
    error = RuntimeError("render failed")
    sink.abort(error)
    sink.close()

    assert sink.state == "aborted"
    assert sink.error is error


def test_queue_sink_streams_chunks_in_order() -> None:
    sink = QueueSink(max_chunks=2, poll_seconds=0.05)

    def produce() -> None:
        for index in range(10):
            sink.write(f"chunk-{index};".encode())
        sink.close()

    producer = threading.Thread(target=produce)
    producer.start()
    received = b"".join(sink.iter_chunks())
    producer.join(timeout=5)

    assert received == b"".join(f"chunk-{index};".encode() for index in range(10))
    assert sink.state == "closed"


def test_queue_sink_abort_surfaces_on_consumer_side() -> None:
    sink = QueueSink(max_chunks=4)
    sink.write(b"partial")
    sink.abort(ValueError("boom"))

    chunks = sink.iter_chunks()
    assert next(chunks) == b"partial"
    with pytest.raises(SinkAborted) as excinfo:
        next(chunks)
    assert isinstance(excinfo.value.reason, ValueError)


def test_queue_sink_cancel_unblocks_a_waiting_producer() -> None:
    sink = QueueSink(max_chunks=1, poll_seconds=0.05)
    sink.write(b"fills the queue")
    failures: list[BaseException] = []

    def produce() -> None:
        try:
            sink.write(b"blocked")
        except SinkWriteFailure as exc:
            failures.append(exc)

    producer = threading.Thread(target=produce)
    producer.start()
    sink.cancel()
    producer.join(timeout=5)

    assert not producer.is_alive()
    assert len(failures) == 1
    assert sink.cancelled
