import pytest

from app.export import ArtifactKind, MalformedArtifact, PlanDocument, PRDDocument, normalize_artifact
from app.export.policy import NOT_SPECIFIED


def _codes(normalized) -> list[str]:
    return [warning.code for warning in normalized.warnings]


def test_complete_prd_normalizes_without_warnings(prd_content) -> None:
    normalized = normalize_artifact(prd_content, ArtifactKind.PRD)

    assert isinstance(normalized.document, PRDDocument)
    assert normalized.warnings == []
    assert normalized.document.title == "Task Manager"
    assert [feature.priority for feature in normalized.document.features] == ["High", "Low"]
    assert normalized.document.timeline.phases[1].deliverables == ["MVP", "Docs"]


def test_complete_plan_normalizes_without_warnings(plan_content) -> None:
    normalized = normalize_artifact(plan_content, "plan")

    document = normalized.document
    assert isinstance(document, PlanDocument)
    assert normalized.warnings == []
    assert document.project_setup.tech_stack.frontend == ["React", "Vite"]
    assert document.development_phases[0].tasks[0].estimated_hours == "12"
    assert document.database_schema[0].fields == ["id", "title", "due_date"]
    assert document.phases[0].stages[0].checkpoints[0].code == "mkdir app\ncd app"


@pytest.mark.parametrize("raw", [None, "not json", ["a", "list"], 42])
def test_non_object_artifact_is_malformed(raw) -> None:
    with pytest.raises(MalformedArtifact) as excinfo:
        normalize_artifact(raw, ArtifactKind.PRD)
    assert excinfo.value.kind is ArtifactKind.PRD


def test_missing_risks_becomes_empty_list_with_warning(prd_content) -> None:
    del prd_content["risks"]

    normalized = normalize_artifact(prd_content, ArtifactKind.PRD)

    assert normalized.document.risks == []
    assert [(w.code, w.path) for w in normalized.warnings] == [("missing_field", "risks")]


def test_missing_nested_objects_are_defaulted(prd_content) -> None:
    del prd_content["targetAudience"]
    prd_content["timeline"] = "soon"

    normalized = normalize_artifact(prd_content, ArtifactKind.PRD)

    assert normalized.document.target_audience.primary == NOT_SPECIFIED
    assert normalized.document.timeline.estimated_duration == NOT_SPECIFIED
    assert normalized.document.timeline.phases == []
    paths = {warning.path for warning in normalized.warnings}
    assert {"targetAudience", "timeline", "targetAudience.primary", "timeline.estimatedDuration"} <= paths


def test_wrongly_typed_items_are_dropped_or_coerced(prd_content) -> None:
    prd_content["objectives"] = ["Keep this", {"nested": True}, 7, "  "]
    prd_content["technicalRequirements"] = "Single requirement"
    prd_content["features"] = [{"name": "Search", "priority": "urgent"}, "stray"]

    normalized = normalize_artifact(prd_content, ArtifactKind.PRD)
    document = normalized.document

    assert document.objectives == ["Keep this", "7"]
    assert document.technical_requirements == ["Single requirement"]
    assert len(document.features) == 1
    assert document.features[0].priority == "Medium"
    assert document.features[0].description == ""
    codes = _codes(normalized)
    assert codes.count("wrong_type") == 3
    assert "invalid_priority" in codes


def test_execution_phase_ids_are_generated_and_deduplicated(plan_content) -> None:
    plan_content["phases"] = [
        {"title": "First", "stages": [{"id": "build", "title": "Build", "checkpoints": [{"title": "No id"}]}]},
        {"id": "build", "title": "Second", "stages": []},
        {"id": "Not Kebab", "title": "Third", "stages": []},
    ]

    normalized = normalize_artifact(plan_content, ArtifactKind.PLAN)
    phases = normalized.document.phases

    assert phases[0].id == "phase-1"
    assert phases[0].stages[0].id == "build"
    assert phases[0].stages[0].checkpoints[0].id == "checkpoint-1-1-1"
    assert phases[1].id == "phase-2"
    assert phases[2].id == "Not Kebab"
    codes = _codes(normalized)
    assert codes.count("missing_id") == 2
    assert "duplicate_id" in codes
    assert "invalid_id" in codes


def test_absent_execution_phases_are_not_degraded(plan_content) -> None:
    del plan_content["phases"]

    normalized = normalize_artifact(plan_content, ArtifactKind.PLAN)

    assert normalized.document.phases == []
    assert normalized.warnings == []


def test_warnings_expose_a_plain_dict(prd_content) -> None:
    del prd_content["overview"]

    warning = normalize_artifact(prd_content, ArtifactKind.PRD).warnings[0]

    assert warning.as_dict() == {
        "code": "missing_field",
        "path": "overview",
        "message": "Value is absent; using ''.",
    }
