from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Iterator, Mapping

from fastapi import HTTPException

from app.config import settings
from app.export import (
    ArtifactKind,
    ArtifactUnavailable,
    FontSet,
    MalformedArtifact,
    PreparedExport,
    ProjectRecord,
    QueueSink,
    RenderDegraded,
    SinkWriteFailure,
    load_font_set,
    prepare_project_export,
    write_project_archive,
)

logger = logging.getLogger("prdforge.api")

WARNINGS_HEADER = "X-Export-Warnings"


def require_artifact(project: ProjectRecord, kind: ArtifactKind) -> None:
    if not project.slot(kind).available:
        raise HTTPException(status_code=400, detail=str(ArtifactUnavailable(kind)))


def malformed_artifact_http_error(exc: MalformedArtifact) -> HTTPException:
    return HTTPException(
        status_code=422,
        detail={"message": str(exc), "artifact": exc.kind.value, "error": exc.detail},
    )


def export_headers(filename: str, warning_count: int) -> dict[str, str]:
    return {
        "Content-Disposition": f'attachment; filename="{filename}"',
        WARNINGS_HEADER: str(warning_count),
    }


def log_export_warnings(project_id: str, warnings: Mapping[str, list[RenderDegraded]]) -> None:
    for artifact, items in warnings.items():
        if not items:
            continue
        logger.warning(
            "export_render_degraded",
            extra={
                "event": "export_render_degraded",
                "project_id": project_id,
                "artifact": artifact,
                "warning_count": len(items),
                "warnings": [item.as_dict() for item in items],
            },
        )


def prepare_complete_export(project: ProjectRecord) -> PreparedExport:
    try:
        prepared = prepare_project_export(project)
    except MalformedArtifact as exc:
        raise malformed_artifact_http_error(exc) from exc
    log_export_warnings(project.id, prepared.warnings)
    return prepared


def configured_fonts() -> FontSet:
    """Font set for PDF exports; falls back to the base-14 fonts when nothing usable is configured."""
    return load_font_set(
        settings.pdf_font_path,
        bold_path=settings.pdf_font_bold_path,
        mono_path=settings.pdf_font_mono_path,
    )


def _write_archive_in_background(prepared: PreparedExport, sink: QueueSink) -> None:
    project_id = prepared.project.id
    try:
        write_project_archive(
            prepared,
            sink,
            chunk_bytes=settings.export_chunk_bytes,
            page_size=settings.pdf_page_size,
            fonts=configured_fonts(),
        )
    except SinkWriteFailure as exc:
        logger.warning(
            "project_archive_abandoned",
            extra={"event": "project_archive_abandoned", "project_id": project_id, "error": str(exc)},
        )
    except Exception:
        # The sink is already aborted, so the response stream ends without a clean terminator.
        logger.exception(
            "project_archive_failed",
            extra={"event": "project_archive_failed", "project_id": project_id},
        )


@dataclass
class ArchiveStream:
    """A running archive writer thread and the sink it feeds."""

    sink: QueueSink
    worker: threading.Thread

    def chunks(self) -> Iterator[bytes]:
        return self.sink.iter_chunks()

    def close(self) -> None:
        """Stop the writer if it is still running and wait for the thread to exit."""
        self.sink.cancel()
        self.worker.join(timeout=settings.export_stream_join_seconds)
        if self.worker.is_alive():
            logger.warning(
                "project_archive_worker_stuck",
                extra={"event": "project_archive_worker_stuck", "thread": self.worker.name},
            )


def stream_project_archive(prepared: PreparedExport) -> ArchiveStream:
    """Start the archive writer on a worker thread.

    Call ``close`` once the response is finished so the thread never outlives it.
    """
    sink = QueueSink(
        max_chunks=settings.export_stream_queue_chunks,
        poll_seconds=settings.export_stream_poll_seconds,
    )
    worker = threading.Thread(
        target=_write_archive_in_background,
        args=(prepared, sink),
        name=f"archive-{prepared.project.id}",
        daemon=True,
    )
    worker.start()
    return ArchiveStream(sink=sink, worker=worker)
