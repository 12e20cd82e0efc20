from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Response
from fastapi.responses import StreamingResponse

from app.api.services.exporting import (
    configured_fonts,
    export_headers,
    log_export_warnings,
    malformed_artifact_http_error,
    prepare_complete_export,
    require_artifact,
    stream_project_archive,
)
from app.api.services.runtime import require_project_record
from app.config import settings
from app.export import ArtifactKind, MalformedArtifact, archive_filename
from app.export.service import ZIP_MEDIA_TYPE, RenderedExport, export_markdown, export_pdf

logger = logging.getLogger("prdforge.api")


def build_exports_router() -> APIRouter:
    router = APIRouter(prefix="/exports")

    def single_artifact_response(project_id: str, kind: ArtifactKind, output: str) -> Response:
        project = require_project_record(project_id)
        require_artifact(project, kind)
        try:
            if output == "pdf":
                rendered: RenderedExport = export_pdf(
                    project,
                    kind,
                    page_size=settings.pdf_page_size,
                    fonts=configured_fonts(),
                )
            else:
                rendered = export_markdown(project, kind)
        except MalformedArtifact as exc:
            raise malformed_artifact_http_error(exc) from exc

        log_export_warnings(project.id, {kind.value: rendered.warnings})
        logger.info(
            "artifact_exported",
            extra={
                "event": "artifact_exported",
                "project_id": project.id,
                "artifact": kind.value,
                "format": output,
                "bytes": len(rendered.content),
            },
        )
        return Response(
            content=rendered.content,
            media_type=rendered.media_type,
            headers=export_headers(rendered.filename, len(rendered.warnings)),
        )

    @router.get("/{project_id}/prd/markdown")
    def export_prd_markdown(project_id: str) -> Response:
        return single_artifact_response(project_id, ArtifactKind.PRD, "markdown")

    @router.get("/{project_id}/prd/pdf")
    def export_prd_pdf(project_id: str) -> Response:
        return single_artifact_response(project_id, ArtifactKind.PRD, "pdf")

    @router.get("/{project_id}/plan/markdown")
    def export_plan_markdown(project_id: str) -> Response:
        return single_artifact_response(project_id, ArtifactKind.PLAN, "markdown")

    @router.get("/{project_id}/plan/pdf")
    def export_plan_pdf(project_id: str) -> Response:
        return single_artifact_response(project_id, ArtifactKind.PLAN, "pdf")

    @router.get("/{project_id}/complete")
    def export_complete(project_id: str) -> StreamingResponse:
        project = require_project_record(project_id)
        prepared = prepare_complete_export(project)
        logger.info(
            "project_archive_started",
            extra={
                "event": "project_archive_started",
                "project_id": project.id,
                "artifacts": [artifact.kind.value for artifact in prepared.artifacts],
            },
        )
        stream = stream_project_archive(prepared)
        cleanup = BackgroundTasks()
        cleanup.add_task(stream.close)
        return StreamingResponse(
            stream.chunks(),
            media_type=ZIP_MEDIA_TYPE,
            headers=export_headers(archive_filename(project.title), prepared.warning_count),
            background=cleanup,
        )

    return router
