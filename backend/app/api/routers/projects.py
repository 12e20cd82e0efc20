from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Response

from app.api.contracts import ArtifactStoreRequest, ProjectCreateRequest, ProjectUpdateRequest
from app.api.services.runtime import extract_json_object, require_project, serialize_project_for_api
from app.config import settings
from app.db import create_project, delete_project, list_projects, save_artifact, update_project
from app.export import ArtifactKind

logger = logging.getLogger("prdforge.api")


def build_projects_router() -> APIRouter:
    router = APIRouter()

    @router.post("/projects", status_code=201)
    def create_project_endpoint(payload: ProjectCreateRequest) -> dict[str, object]:
        project = create_project(payload.title.strip(), payload.idea.strip())
        logger.info("project_created", extra={"event": "project_created", "project_id": project["id"]})
        return serialize_project_for_api(project)

    @router.get("/projects")
    def list_projects_endpoint(
        page: int = Query(default=1, ge=1),
        limit: int | None = Query(default=None, ge=1),
    ) -> dict[str, object]:
        page_limit = min(limit or settings.projects_page_limit_default, settings.projects_page_limit_max)
        projects, total = list_projects(limit=page_limit, offset=(page - 1) * page_limit)
        return {
            "projects": [serialize_project_for_api(project) for project in projects],
            "pagination": {
                "page": page,
                "limit": page_limit,
                "total": total,
                "pages": (total + page_limit - 1) // page_limit,
            },
        }

    @router.get("/projects/{project_id}")
    def get_project_endpoint(project_id: str) -> dict[str, object]:
        return serialize_project_for_api(require_project(project_id))

    @router.put("/projects/{project_id}")
    def update_project_endpoint(project_id: str, payload: ProjectUpdateRequest) -> dict[str, object]:
        current = require_project(project_id)
        updated = update_project(
            project_id,
            title=payload.title.strip() if payload.title is not None else str(current["title"]),
            idea=payload.idea.strip() if payload.idea is not None else str(current["idea"]),
        )
        if updated is None:
            raise HTTPException(status_code=404, detail="Project not found")
        return serialize_project_for_api(updated)

    @router.delete("/projects/{project_id}", status_code=204)
    def delete_project_endpoint(project_id: str) -> Response:
        if not delete_project(project_id):
            raise HTTPException(status_code=404, detail="Project not found")
        logger.info("project_deleted", extra={"event": "project_deleted", "project_id": project_id})
        return Response(status_code=204)

    def store_artifact(project_id: str, kind: ArtifactKind, payload: ArtifactStoreRequest) -> dict[str, object]:
        project = require_project(project_id)
        if kind is ArtifactKind.PLAN:
            prd = project.get("prd")
            if not isinstance(prd, dict) or prd.get("content") is None:
                raise HTTPException(status_code=400, detail="PRD must be stored before the implementation plan.")

        if payload.content is not None:
            content: dict[str, object] = payload.content
        else:
            try:
                content = extract_json_object(payload.raw_text or "")
            except ValueError as exc:
                logger.warning(
                    "artifact_json_unparseable",
                    extra={
                        "event": "artifact_json_unparseable",
                        "project_id": project_id,
                        "artifact": kind.value,
                        "error": str(exc),
                        "raw_text": payload.raw_text,
                    },
                )
                raise HTTPException(
                    status_code=422,
                    detail={"message": f"Could not extract {kind.display_name} JSON.", "error": str(exc)},
                ) from exc

        updated = save_artifact(project_id, kind.value, content)
        if updated is None:
            raise HTTPException(status_code=404, detail="Project not found")
        slot = updated["prd"] if kind is ArtifactKind.PRD else updated["implementation_plan"]
        logger.info(
            "artifact_stored",
            extra={
                "event": "artifact_stored",
                "project_id": project_id,
                "artifact": kind.value,
                "version": slot.get("version") if isinstance(slot, dict) else None,
            },
        )
        return serialize_project_for_api(updated)

    @router.put("/projects/{project_id}/prd")
    def store_prd(project_id: str, payload: ArtifactStoreRequest) -> dict[str, object]:
        return store_artifact(project_id, ArtifactKind.PRD, payload)

    @router.put("/projects/{project_id}/plan")
    def store_plan(project_id: str, payload: ArtifactStoreRequest) -> dict[str, object]:
        return store_artifact(project_id, ArtifactKind.PLAN, payload)

    return router
