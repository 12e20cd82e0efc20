from __future__ import annotations

from dataclasses import dataclass, field

from app.export.archive import artifact_filename, artifact_header
from app.export.errors import ArtifactUnavailable
from app.export.markdown import render_markdown
from app.export.normalizer import RenderDegraded, normalize_artifact
from app.export.pdf import FontSet, render_pdf
from app.export.schema import ArtifactKind, ProjectRecord

MARKDOWN_MEDIA_TYPE = "text/markdown"
PDF_MEDIA_TYPE = "application/pdf"
ZIP_MEDIA_TYPE = "application/zip"


@dataclass
class RenderedExport:
    content: bytes
    media_type: str
    filename: str
    warnings: list[RenderDegraded] = field(default_factory=list)


def _render_artifact_markdown(project: ProjectRecord, kind: ArtifactKind) -> tuple[str, list[RenderDegraded]]:
    slot = project.slot(kind)
    if not slot.available:
        raise ArtifactUnavailable(kind)
    normalized = normalize_artifact(slot.content, kind)
    markdown = render_markdown(normalized.document, kind, project_title=project.title)
    return markdown, normalized.warnings


def export_markdown(project: ProjectRecord, kind: ArtifactKind) -> RenderedExport:
    markdown, warnings = _render_artifact_markdown(project, kind)
    return RenderedExport(
        content=markdown.encode("utf-8"),
        media_type=MARKDOWN_MEDIA_TYPE,
        filename=artifact_filename(project.title, kind, "md"),
        warnings=warnings,
    )


def export_pdf(
    project: ProjectRecord,
    kind: ArtifactKind,
    *,
    page_size: str = "A4",
    fonts: FontSet | None = None,
) -> RenderedExport:
    markdown, warnings = _render_artifact_markdown(project, kind)
    pdf_bytes = render_pdf(markdown, artifact_header(project.title, kind), page_size=page_size, fonts=fonts)
    return RenderedExport(
        content=pdf_bytes,
        media_type=PDF_MEDIA_TYPE,
        filename=artifact_filename(project.title, kind, "pdf"),
        warnings=warnings,
    )
