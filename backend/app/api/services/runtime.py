from __future__ import annotations

import json
from typing import Mapping

from fastapi import HTTPException

from app.db import get_project
from app.export import ProjectRecord


def require_project(project_id: str) -> dict[str, object]:
    project = get_project(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def require_project_record(project_id: str) -> ProjectRecord:
    return ProjectRecord.from_mapping(require_project(project_id))


def serialize_project_for_api(project: Mapping[str, object]) -> dict[str, object]:
    return {
        "id": project.get("id"),
        "title": project.get("title"),
        "idea": project.get("idea"),
        "status": project.get("status"),
        "prd": project.get("prd"),
        "implementation_plan": project.get("implementation_plan"),
        "created_at": project.get("created_at"),
        "updated_at": project.get("updated_at"),
    }


def extract_json_object(text: str) -> dict[str, object]:
    """Pull the outermost ``{...}`` span out of free-form generator output.

    Text before the first ``{`` and after the last ``}`` is discarded, so
    prose or code fences around the object do not matter.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ValueError("No JSON object found in text.")
    try:
        payload = json.loads(text[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ValueError(f"Embedded JSON object does not parse: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Embedded JSON is not an object.")
    return payload
