from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app import db
from app.api.services.runtime import extract_json_object
from app.config import settings
from app.main import app


@pytest.fixture
def client(tmp_path: Path):
    settings.database_url = f"sqlite:///{tmp_path}/test.db"
    with TestClient(app) as scoped_client:
        yield scoped_client


def _create(client: TestClient, title: str = "Task Manager") -> dict[str, object]:
    response = client.post("/projects", json={"title": title, "idea": "Help small teams track their work."})
    assert response.status_code == 201
    return response.json()


def test_project_crud_round_trip(client: TestClient) -> None:
    project = _create(client)
    project_id = project["id"]
    assert project["status"] == "draft"
    assert project["prd"] == {"version": 1, "content": None, "generated_at": None}

    fetched = client.get(f"/projects/{project_id}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Task Manager"

    updated = client.put(f"/projects/{project_id}", json={"title": "Team Tasks"})
    assert updated.status_code == 200
    assert updated.json()["title"] == "Team Tasks"
    assert updated.json()["idea"] == "Help small teams track their work."

    deleted = client.delete(f"/projects/{project_id}")
    assert deleted.status_code == 204
    assert client.get(f"/projects/{project_id}").status_code == 404
    assert client.delete(f"/projects/{project_id}").status_code == 404


def test_create_project_validates_lengths(client: TestClient) -> None:
    assert client.post("/projects", json={"title": "", "idea": "A long enough idea."}).status_code == 422
    assert client.post("/projects", json={"title": "Short", "idea": "too short"}).status_code == 422
    assert client.post("/projects", json={"title": "x" * 201, "idea": "A long enough idea."}).status_code == 422


def test_list_projects_paginates_newest_first(client: TestClient) -> None:
    for index in range(3):
        _create(client, title=f"Project {index}")

    first_page = client.get("/projects", params={"page": 1, "limit": 2})
    assert first_page.status_code == 200
    payload = first_page.json()
    assert [project["title"] for project in payload["projects"]] == ["Project 2", "Project 1"]
    assert payload["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    second_page = client.get("/projects", params={"page": 2, "limit": 2}).json()
    assert [project["title"] for project in second_page["projects"]] == ["Project 0"]


def test_storing_artifacts_bumps_version_and_status(client: TestClient, prd_content, plan_content) -> None:
    project_id = _create(client)["id"]

    stored = client.put(f"/projects/{project_id}/prd", json={"content": prd_content})
    assert stored.status_code == 200
    payload = stored.json()
    assert payload["status"] == "prd_generated"
    assert payload["prd"]["version"] == 2
    assert payload["prd"]["content"]["title"] == "Task Manager"
    assert payload["prd"]["generated_at"]

    planned = client.put(f"/projects/{project_id}/plan", json={"content": plan_content})
    assert planned.status_code == 200
    assert planned.json()["status"] == "plan_generated"
    assert planned.json()["implementation_plan"]["version"] == 2


def test_plan_requires_a_stored_prd(client: TestClient, plan_content) -> None:
    project_id = _create(client)["id"]

    response = client.put(f"/projects/{project_id}/plan", json={"content": plan_content})

    assert response.status_code == 400


def test_artifact_can_be_extracted_from_raw_generator_text(client: TestClient) -> None:
    project_id = _create(client)["id"]
    raw_text = 'Here is your PRD:\n```json\n{"title": "From Text", "risks": []}\n```\nGood luck!'

    response = client.put(f"/projects/{project_id}/prd", json={"raw_text": raw_text})

    assert response.status_code == 200
    assert response.json()["prd"]["content"] == {"title": "From Text", "risks": []}


def test_artifact_store_rejects_unparseable_text_and_ambiguous_bodies(client: TestClient) -> None:
    project_id = _create(client)["id"]

    assert client.put(f"/projects/{project_id}/prd", json={"raw_text": "no json here"}).status_code == 422
    assert client.put(f"/projects/{project_id}/prd", json={}).status_code == 422
    assert (
        client.put(f"/projects/{project_id}/prd", json={"content": {"a": 1}, "raw_text": "{}"}).status_code == 422
    )
    assert client.put("/projects/missing/prd", json={"content": {"a": 1}}).status_code == 404


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('{"a": 1}', {"a": 1}),
        ('prefix {"a": {"b": [1, 2]}} suffix', {"a": {"b": [1, 2]}}),
    ],
)
def test_extract_json_object(text: str, expected: dict[str, object]) -> None:
    assert extract_json_object(text) == expected


@pytest.mark.parametrize("text", ["", "}{", "{not json}", "[1, 2]"])
def test_extract_json_object_rejects_text_without_an_object(text: str) -> None:
    with pytest.raises(ValueError):
        extract_json_object(text)


def test_create_project_returns_stored_row(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path}/direct.db")
    db.init_db()

    project = db.create_project("Task Manager", "Help small teams track their work.")

    assert project["status"] == "draft"
    assert project["title"] == "Task Manager"
    assert project["created_at"] == project["updated_at"]
    assert db.get_project(str(project["id"])) == project


def test_create_project_raises_when_row_is_missing(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(settings, "database_url", f"sqlite:///{tmp_path}/direct.db")
    db.init_db()
    monkeypatch.setattr(db, "get_project", lambda project_id: None)

    with pytest.raises(RuntimeError, match="not found after insert"):
        db.create_project("Task Manager", "Help small teams track their work.")
