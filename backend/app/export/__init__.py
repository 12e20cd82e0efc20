from app.export.archive import (
    SUMMARY_ENTRY_NAME,
    ArchiveResult,
    PreparedExport,
    archive_filename,
    artifact_filename,
    build_project_archive,
    prepare_project_export,
    write_project_archive,
)
from app.export.errors import (
    ArtifactUnavailable,
    ExportError,
    MalformedArtifact,
    SinkAborted,
    SinkWriteFailure,
)
from app.export.markdown import render_markdown
from app.export.normalizer import NormalizedArtifact, RenderDegraded, normalize_artifact
from app.export.pdf import BASE_FONTS, FontSet, load_font_set, render_pdf
from app.export.schema import ArtifactKind, ArtifactSlot, PlanDocument, PRDDocument, ProjectRecord
from app.export.sinks import ExportSink, MemorySink, QueueSink

__all__ = [
    "SUMMARY_ENTRY_NAME",
    "BASE_FONTS",
    "ArchiveResult",
    "ArtifactKind",
    "ArtifactSlot",
    "ArtifactUnavailable",
    "ExportError",
    "ExportSink",
    "FontSet",
    "MalformedArtifact",
    "MemorySink",
    "NormalizedArtifact",
    "PlanDocument",
    "PRDDocument",
    "PreparedExport",
    "ProjectRecord",
    "QueueSink",
    "RenderDegraded",
    "SinkAborted",
    "SinkWriteFailure",
    "archive_filename",
    "artifact_filename",
    "build_project_archive",
    "load_font_set",
    "normalize_artifact",
    "prepare_project_export",
    "render_markdown",
    "render_pdf",
    "write_project_archive",
]
