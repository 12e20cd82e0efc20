from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Iterator
import zipfile

from app.export.errors import SinkWriteFailure
from app.export.markdown import render_markdown
from app.export.normalizer import NormalizedArtifact, RenderDegraded, normalize_artifact
from app.export.pdf import FontSet, render_pdf
from app.export.policy import NONE_SPECIFIED_MARKER, escape_markdown, sanitize_filename
from app.export.schema import ArtifactKind, ProjectRecord
from app.export.sinks import ExportSink

logger = logging.getLogger("prdforge.export")

SUMMARY_ENTRY_NAME = "project-summary.md"
DEFAULT_CHUNK_BYTES = 64 * 1024


def artifact_filename(title: str, kind: ArtifactKind, extension: str) -> str:
    return f"{sanitize_filename(title)}_{kind.file_stem}.{extension}"


def archive_filename(title: str) -> str:
    return f"{sanitize_filename(title)}_complete.zip"


def artifact_header(title: str, kind: ArtifactKind) -> str:
    return f"{title.strip() or 'Untitled Project'} - {kind.display_name}"


@dataclass
class PreparedExport:
    project: ProjectRecord
    artifacts: list[NormalizedArtifact] = field(default_factory=list)

    @property
    def warnings(self) -> dict[str, list[RenderDegraded]]:
        return {artifact.kind.value: artifact.warnings for artifact in self.artifacts}

    @property
    def warning_count(self) -> int:
        return sum(len(artifact.warnings) for artifact in self.artifacts)


@dataclass
class ArchiveResult:
    entries: list[str]
    bytes_written: int
    warnings: dict[str, list[RenderDegraded]]


def prepare_project_export(project: ProjectRecord) -> PreparedExport:
    """Normalize every stored artifact up front so malformed input fails before any output."""
    prepared = PreparedExport(project=project)
    for kind in (ArtifactKind.PRD, ArtifactKind.PLAN):
        slot = project.slot(kind)
        if not slot.available:
            continue
        prepared.artifacts.append(normalize_artifact(slot.content, kind))
    return prepared


def render_project_summary(prepared: PreparedExport) -> str:
    project = prepared.project
    lines: list[str] = [
        f"# {escape_markdown(project.title) or 'Untitled Project'}",
        "",
        "## Idea",
        "",
        escape_markdown(project.idea) or NONE_SPECIFIED_MARKER,
        "",
        "## Artifacts",
        "",
    ]
    by_kind = {artifact.kind: artifact for artifact in prepared.artifacts}
    for kind in (ArtifactKind.PRD, ArtifactKind.PLAN):
        slot = project.slot(kind)
        artifact = by_kind.get(kind)
        if artifact is None:
            lines.append(f"- **{kind.display_name}:** not generated (version {slot.version})")
            continue
        generated = f", generated {slot.generated_at}" if slot.generated_at else ""
        lines.append(f"- **{kind.display_name}:** version {slot.version}{generated}")
        lines.append(f"  - Files: `{kind.file_stem}.md`, `{kind.file_stem}.pdf`")
        if artifact.warnings:
            lines.append(f"  - Normalization warnings: {len(artifact.warnings)}")

    lines.extend(["", "## Project", "", f"- **Status:** {escape_markdown(project.status)}"])
    if project.created_at:
        lines.append(f"- **Created:** {escape_markdown(project.created_at)}")
    if project.updated_at:
        lines.append(f"- **Updated:** {escape_markdown(project.updated_at)}")
    return "\n".join(lines).strip() + "\n"


def iter_archive_entries(
    prepared: PreparedExport,
    *,
    page_size: str = "A4",
    fonts: FontSet | None = None,
) -> Iterator[tuple[str, bytes]]:
    """Yield ``(entry name, payload)`` pairs, rendering each entry only when it is needed."""
    title = prepared.project.title
    for artifact in prepared.artifacts:
        markdown = render_markdown(artifact.document, artifact.kind, project_title=title)
        yield f"{artifact.kind.file_stem}.md", markdown.encode("utf-8")
        yield f"{artifact.kind.file_stem}.pdf", render_pdf(
            markdown,
            artifact_header(title, artifact.kind),
            page_size=page_size,
            fonts=fonts,
        )
    yield SUMMARY_ENTRY_NAME, render_project_summary(prepared).encode("utf-8")


class _SinkStream:
    """Write-only file object handed to ``zipfile``; it never seeks."""

    def __init__(self, sink: ExportSink) -> None:
        self._sink = sink
        self._failure: SinkWriteFailure | None = None
        self._discarding = False
        self.bytes_written = 0

    def discard(self) -> None:
        # After an abort, zipfile may still try to finalize on garbage collection.
        self._discarding = True

    def write(self, data: bytes) -> int:
        if self._discarding:
            return len(data)
        if self._failure is not None:
            # The sink already refused data; never try it again.
            raise self._failure
        try:
            self._sink.write(data)
        except SinkWriteFailure as exc:
            self._failure = exc
            raise
        except OSError as exc:
            self._failure = SinkWriteFailure(str(exc))
            raise self._failure from exc
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        return None


@contextmanager
def _open_archive(sink: ExportSink) -> Iterator[tuple[zipfile.ZipFile, _SinkStream]]:
    stream = _SinkStream(sink)
    try:
        archive = zipfile.ZipFile(stream, mode="w", compression=zipfile.ZIP_DEFLATED)  # type: ignore[arg-type]
        yield archive, stream
        # Only a fully written archive gets its central directory.
        archive.close()
    except BaseException as exc:
        stream.discard()
        sink.abort(exc)
        raise
    sink.close()


def write_project_archive(
    prepared: PreparedExport,
    sink: ExportSink,
    *,
    chunk_bytes: int = DEFAULT_CHUNK_BYTES,
    page_size: str = "A4",
    fonts: FontSet | None = None,
) -> ArchiveResult:
    written: list[str] = []
    timestamp = datetime.now().timetuple()[:6]
    chunk = max(1, chunk_bytes)

    with _open_archive(sink) as (archive, stream):
        for name, payload in iter_archive_entries(prepared, page_size=page_size, fonts=fonts):
            info = zipfile.ZipInfo(name, date_time=timestamp)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            with archive.open(info, mode="w") as entry:
                for offset in range(0, len(payload), chunk):
                    entry.write(payload[offset : offset + chunk])
            written.append(name)
            logger.debug(
                "archive_entry_written",
                extra={"event": "archive_entry_written", "entry": name, "entry_bytes": len(payload)},
            )

    logger.info(
        "project_archive_written",
        extra={
            "event": "project_archive_written",
            "project_id": prepared.project.id,
            "entries": written,
            "archive_bytes": stream.bytes_written,
            "warning_count": prepared.warning_count,
        },
    )
    return ArchiveResult(entries=written, bytes_written=stream.bytes_written, warnings=prepared.warnings)


def build_project_archive(
    project: ProjectRecord,
    sink: ExportSink,
    *,
    chunk_bytes: int = DEFAULT_CHUNK_BYTES,
    page_size: str = "A4",
    fonts: FontSet | None = None,
) -> ArchiveResult:
    """Stream the complete project archive onto ``sink``.

    The sink is closed on success and aborted on any failure, including a
    malformed artifact detected before the first byte is written.
    """
    try:
        prepared = prepare_project_export(project)
    except BaseException as exc:
        sink.abort(exc)
        raise
    return write_project_archive(prepared, sink, chunk_bytes=chunk_bytes, page_size=page_size, fonts=fonts)
