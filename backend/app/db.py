from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Iterator
from uuid import uuid4

from app.config import settings

logger = logging.getLogger("prdforge.db")

ARTIFACT_COLUMNS = {
    "prd": ("prd_json", "prd_version", "prd_generated_at"),
    "plan": ("plan_json", "plan_version", "plan_generated_at"),
}
ARTIFACT_STATUS = {"prd": "prd_generated", "plan": "plan_generated"}

_PROJECT_COLUMNS = """
    id, title, idea, status,
    prd_json, prd_version, prd_generated_at,
    plan_json, plan_version, plan_generated_at,
    created_at, updated_at
"""


def _database_path() -> Path:
    prefix = "sqlite:///"
    if not settings.database_url.startswith(prefix):
        raise RuntimeError("Only sqlite:/// DATABASE_URL is supported in the MVP baseline.")
    return Path(settings.database_url[len(prefix) :])


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def init_db() -> None:
    db_path = _database_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with sqlite3.connect(db_path) as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                idea TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'draft',
                prd_json TEXT,
                prd_version INTEGER NOT NULL DEFAULT 1,
                prd_generated_at TEXT,
                plan_json TEXT,
                plan_version INTEGER NOT NULL DEFAULT 1,
                plan_generated_at TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_projects_created_at
                ON projects(created_at DESC);
            """
        )


@contextmanager
def get_conn() -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(_database_path())
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def _decode_artifact(raw: str | None) -> object | None:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        # Stored text that is not JSON is handed on as-is; the export layer rejects it.
        logger.warning("artifact_json_undecodable", extra={"event": "artifact_json_undecodable"})
        return raw


def _row_to_project(row: sqlite3.Row) -> dict[str, object]:
    return {
        "id": row["id"],
        "title": row["title"],
        "idea": row["idea"],
        "status": row["status"],
        "prd": {
            "version": row["prd_version"],
            "content": _decode_artifact(row["prd_json"]),
            "generated_at": row["prd_generated_at"],
        },
        "implementation_plan": {
            "version": row["plan_version"],
            "content": _decode_artifact(row["plan_json"]),
            "generated_at": row["plan_generated_at"],
        },
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def create_project(title: str, idea: str) -> dict[str, object]:
    now = _utc_now_iso()
    project_id = str(uuid4())
    with get_conn() as conn:
        conn.execute(
            """
            INSERT INTO projects (id, title, idea, status, created_at, updated_at)
            VALUES (?, ?, ?, 'draft', ?, ?)
            """,
            (project_id, title, idea, now, now),
        )
    project = get_project(project_id)
    if project is None:
        raise RuntimeError(f"Project {project_id} was not found after insert.")
    return project


def get_project(project_id: str) -> dict[str, object] | None:
    with get_conn() as conn:
        row = conn.execute(
            f"SELECT {_PROJECT_COLUMNS} FROM projects WHERE id = ?",
            (project_id,),
        ).fetchone()
    if row is None:
        return None
    return _row_to_project(row)


def list_projects(*, limit: int, offset: int) -> tuple[list[dict[str, object]], int]:
    with get_conn() as conn:
        total = int(conn.execute("SELECT COUNT(*) FROM projects").fetchone()[0])
        rows = conn.execute(
            f"""
            SELECT {_PROJECT_COLUMNS}
            FROM projects
            ORDER BY created_at DESC, id DESC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        ).fetchall()
    return [_row_to_project(row) for row in rows], total


def update_project(project_id: str, *, title: str, idea: str) -> dict[str, object] | None:
    with get_conn() as conn:
        cursor = conn.execute(
            "UPDATE projects SET title = ?, idea = ?, updated_at = ? WHERE id = ?",
            (title, idea, _utc_now_iso(), project_id),
        )
        if cursor.rowcount == 0:
            return None
    return get_project(project_id)


def delete_project(project_id: str) -> bool:
    with get_conn() as conn:
        cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
    return cursor.rowcount > 0


def save_artifact(project_id: str, kind: str, content: object) -> dict[str, object] | None:
    """Store a new artifact version; the first stored artifact is version 2, as the slot starts at 1."""
    content_column, version_column, generated_column = ARTIFACT_COLUMNS[kind]
    now = _utc_now_iso()
    with get_conn() as conn:
        cursor = conn.execute(
            f"""
            UPDATE projects
            SET {content_column} = ?,
                {version_column} = {version_column} + 1,
                {generated_column} = ?,
                status = ?,
                updated_at = ?
            WHERE id = ?
            """,
            (json.dumps(content), now, ARTIFACT_STATUS[kind], now, project_id),
        )
        if cursor.rowcount == 0:
            return None
    return get_project(project_id)
