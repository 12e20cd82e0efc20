from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Mapping

from app.export.errors import MalformedArtifact
from app.export.policy import NOT_SPECIFIED, is_kebab_case, normalize_text
from app.export.schema import (
    ApiEndpointSpec,
    ArtifactKind,
    CanonicalDocument,
    Checkpoint,
    DeploymentPlan,
    DevPhase,
    DevTask,
    ExecutionPhase,
    Feature,
    PlanDocument,
    PRDDocument,
    ProjectSetup,
    Stage,
    TableSpec,
    TargetAudience,
    TechStack,
    TestingPlan,
    Timeline,
    TimelinePhase,
)

logger = logging.getLogger("prdforge.export")

_PRIORITIES = {"high": "High", "medium": "Medium", "low": "Low"}


@dataclass(frozen=True)
class RenderDegraded:
    """Non-fatal normalization issue; rendering continues with a default."""

    code: str
    path: str
    message: str

    def as_dict(self) -> dict[str, str]:
        return {"code": self.code, "path": self.path, "message": self.message}


@dataclass
class NormalizedArtifact:
    kind: ArtifactKind
    document: CanonicalDocument
    warnings: list[RenderDegraded] = field(default_factory=list)


class _Reader:
    """Field-by-field defaulted extraction that records every substitution."""

    def __init__(self) -> None:
        self.warnings: list[RenderDegraded] = []

    def warn(self, code: str, path: str, message: str) -> None:
        self.warnings.append(RenderDegraded(code=code, path=path, message=message))

    def mapping(self, source: Mapping[str, object], key: str, path: str) -> Mapping[str, object]:
        value = source.get(key)
        if isinstance(value, Mapping):
            return value
        if value is None:
            self.warn("missing_field", _join(path, key), "Object is absent; defaults substituted.")
        else:
            self.warn("wrong_type", _join(path, key), f"Expected an object, got {_type_name(value)}.")
        return {}

    def text(
        self,
        source: Mapping[str, object],
        key: str,
        path: str,
        *,
        default: str = NOT_SPECIFIED,
        required: bool = True,
    ) -> str:
        value = source.get(key)
        coerced = self._scalar_text(value)
        if coerced is not None and coerced:
            return coerced
        if value is None or coerced == "":
            if required:
                self.warn("missing_field", _join(path, key), f"Value is absent; using '{default}'.")
            return default
        self.warn("wrong_type", _join(path, key), f"Expected text, got {_type_name(value)}.")
        return default

    def text_list(self, source: Mapping[str, object], key: str, path: str) -> list[str]:
        value = source.get(key)
        field_path = _join(path, key)
        if value is None:
            self.warn("missing_field", field_path, "List is absent; using an empty list.")
            return []
        if isinstance(value, str):
            text = normalize_text(value)
            if text:
                self.warn("wrong_type", field_path, "Expected a list, got a single string; wrapped.")
                return [text]
            return []
        if not isinstance(value, list):
            self.warn("wrong_type", field_path, f"Expected a list, got {_type_name(value)}.")
            return []
        items: list[str] = []
        for index, item in enumerate(value):
            coerced = self._scalar_text(item)
            if coerced is None:
                self.warn("wrong_type", f"{field_path}[{index}]", f"Dropped {_type_name(item)} list item.")
                continue
            if coerced:
                items.append(coerced)
        return items

    def object_list(self, source: Mapping[str, object], key: str, path: str) -> list[tuple[str, Mapping[str, object]]]:
        value = source.get(key)
        field_path = _join(path, key)
        if value is None:
            self.warn("missing_field", field_path, "List is absent; using an empty list.")
            return []
        if not isinstance(value, list):
            self.warn("wrong_type", field_path, f"Expected a list, got {_type_name(value)}.")
            return []
        entries: list[tuple[str, Mapping[str, object]]] = []
        for index, item in enumerate(value):
            item_path = f"{field_path}[{index}]"
            if isinstance(item, Mapping):
                entries.append((item_path, item))
            else:
                self.warn("wrong_type", item_path, f"Dropped {_type_name(item)} where an object was expected.")
        return entries

    @staticmethod
    def _scalar_text(value: object) -> str | None:
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, bool):
            return "Yes" if value else "No"
        if isinstance(value, (int, float)):
            return str(value)
        return None


class _IdRegistry:
    def __init__(self, reader: _Reader) -> None:
        self._reader = reader
        self._seen: set[str] = set()

    def claim(self, candidate: object, placeholder: str, path: str) -> str:
        if isinstance(candidate, str) and candidate.strip():
            value = candidate.strip()
            if not is_kebab_case(value):
                self._reader.warn("invalid_id", path, f"Identifier '{value}' is not kebab-case.")
            if value not in self._seen:
                self._seen.add(value)
                return value
            self._reader.warn("duplicate_id", path, f"Identifier '{value}' is already used; placeholder generated.")
        else:
            self._reader.warn("missing_id", path, "Identifier is absent; placeholder generated.")
        return self._unique(placeholder)

    def _unique(self, base: str) -> str:
        candidate = base
        suffix = 2
        while candidate in self._seen:
            candidate = f"{base}-{suffix}"
            suffix += 1
        self._seen.add(candidate)
        return candidate


def normalize_artifact(raw: object, kind: ArtifactKind | str) -> NormalizedArtifact:
    artifact_kind = ArtifactKind(kind)
    if not isinstance(raw, Mapping):
        raise MalformedArtifact(artifact_kind, f"expected a JSON object, got {_type_name(raw)}")

    reader = _Reader()
    if artifact_kind is ArtifactKind.PRD:
        document: CanonicalDocument = _normalize_prd(raw, reader)
    else:
        document = _normalize_plan(raw, reader)

    if reader.warnings:
        logger.info(
            "artifact_normalized_with_defaults",
            extra={
                "event": "artifact_normalized_with_defaults",
                "artifact_kind": artifact_kind.value,
                "warning_count": len(reader.warnings),
                "warning_codes": sorted({warning.code for warning in reader.warnings}),
            },
        )
    return NormalizedArtifact(kind=artifact_kind, document=document, warnings=reader.warnings)


def _normalize_prd(raw: Mapping[str, object], reader: _Reader) -> PRDDocument:
    audience = reader.mapping(raw, "targetAudience", "")
    timeline = reader.mapping(raw, "timeline", "")

    features: list[Feature] = []
    for path, item in reader.object_list(raw, "features", ""):
        features.append(
            Feature(
                name=reader.text(item, "name", path),
                description=reader.text(item, "description", path, default="", required=False),
                priority=_priority(item.get("priority"), _join(path, "priority"), reader),
            )
        )

    phases = [
        TimelinePhase(
            phase=reader.text(item, "phase", path),
            duration=reader.text(item, "duration", path),
            deliverables=reader.text_list(item, "deliverables", path),
        )
        for path, item in reader.object_list(timeline, "phases", "timeline")
    ]

    return PRDDocument(
        title=reader.text(raw, "title", "", default=""),
        overview=reader.text(raw, "overview", "", default=""),
        objectives=reader.text_list(raw, "objectives", ""),
        target_audience=TargetAudience(
            primary=reader.text(audience, "primary", "targetAudience"),
            secondary=reader.text(audience, "secondary", "targetAudience"),
        ),
        features=features,
        technical_requirements=reader.text_list(raw, "technicalRequirements", ""),
        timeline=Timeline(
            estimated_duration=reader.text(timeline, "estimatedDuration", "timeline"),
            phases=phases,
        ),
        success_metrics=reader.text_list(raw, "successMetrics", ""),
        risks=reader.text_list(raw, "risks", ""),
    )


def _normalize_plan(raw: Mapping[str, object], reader: _Reader) -> PlanDocument:
    setup = reader.mapping(raw, "projectSetup", "")
    stack = reader.mapping(setup, "techStack", "projectSetup")
    testing = reader.mapping(raw, "testing", "")
    deployment = reader.mapping(raw, "deployment", "")

    development_phases: list[DevPhase] = []
    for path, phase in reader.object_list(raw, "developmentPhases", ""):
        tasks = [
            DevTask(
                task=reader.text(task, "task", task_path),
                description=reader.text(task, "description", task_path, default="", required=False),
                estimated_hours=reader.text(task, "estimatedHours", task_path),
                dependencies=reader.text_list(task, "dependencies", task_path),
            )
            for task_path, task in reader.object_list(phase, "tasks", path)
        ]
        development_phases.append(
            DevPhase(
                phase=reader.text(phase, "phase", path),
                duration=reader.text(phase, "duration", path),
                tasks=tasks,
            )
        )

    api_design = [
        ApiEndpointSpec(
            endpoint=reader.text(item, "endpoint", path),
            description=reader.text(item, "description", path, default="", required=False),
            parameters=reader.text_list(item, "parameters", path),
            response=reader.text(item, "response", path),
        )
        for path, item in reader.object_list(raw, "apiDesign", "")
    ]

    database_schema = [
        TableSpec(
            table=reader.text(item, "table", path),
            fields=reader.text_list(item, "fields", path),
            relationships=reader.text_list(item, "relationships", path),
        )
        for path, item in reader.object_list(raw, "databaseSchema", "")
    ]

    return PlanDocument(
        project_setup=ProjectSetup(
            tech_stack=TechStack(
                frontend=reader.text_list(stack, "frontend", "projectSetup.techStack"),
                backend=reader.text_list(stack, "backend", "projectSetup.techStack"),
                database=reader.text(stack, "database", "projectSetup.techStack"),
                deployment=reader.text(stack, "deployment", "projectSetup.techStack"),
            ),
            project_structure=reader.text_list(setup, "projectStructure", "projectSetup"),
        ),
        development_phases=development_phases,
        api_design=api_design,
        database_schema=database_schema,
        testing=TestingPlan(
            strategy=reader.text(testing, "strategy", "testing"),
            types=reader.text_list(testing, "types", "testing"),
            tools=reader.text_list(testing, "tools", "testing"),
        ),
        deployment=DeploymentPlan(
            strategy=reader.text(deployment, "strategy", "deployment"),
            environments=reader.text_list(deployment, "environments", "deployment"),
            cicd=reader.text_list(deployment, "cicd", "deployment"),
        ),
        phases=_execution_phases(raw, reader),
    )


def _execution_phases(raw: Mapping[str, object], reader: _Reader) -> list[ExecutionPhase]:
    # Execution phases are optional in the plan contract; absence is not degraded output.
    if raw.get("phases") is None:
        return []

    ids = _IdRegistry(reader)
    phases: list[ExecutionPhase] = []
    for phase_index, (phase_path, phase) in enumerate(reader.object_list(raw, "phases", ""), start=1):
        phase_id = ids.claim(phase.get("id"), f"phase-{phase_index}", _join(phase_path, "id"))
        stages: list[Stage] = []
        for stage_index, (stage_path, stage) in enumerate(reader.object_list(phase, "stages", phase_path), start=1):
            stage_id = ids.claim(stage.get("id"), f"stage-{phase_index}-{stage_index}", _join(stage_path, "id"))
            checkpoints: list[Checkpoint] = []
            checkpoint_entries = reader.object_list(stage, "checkpoints", stage_path)
            for checkpoint_index, (checkpoint_path, checkpoint) in enumerate(checkpoint_entries, start=1):
                checkpoint_id = ids.claim(
                    checkpoint.get("id"),
                    f"checkpoint-{phase_index}-{stage_index}-{checkpoint_index}",
                    _join(checkpoint_path, "id"),
                )
                checkpoints.append(
                    Checkpoint(
                        id=checkpoint_id,
                        title=reader.text(checkpoint, "title", checkpoint_path),
                        description=reader.text(checkpoint, "description", checkpoint_path, default="", required=False),
                        code=_code_block(checkpoint.get("code")),
                        testing=reader.text(checkpoint, "testing", checkpoint_path, default="", required=False),
                    )
                )
            stages.append(Stage(id=stage_id, title=reader.text(stage, "title", stage_path), checkpoints=checkpoints))
        phases.append(
            ExecutionPhase(
                id=phase_id,
                title=reader.text(phase, "title", phase_path),
                description=reader.text(phase, "description", phase_path, default="", required=False),
                stages=stages,
            )
        )
    return phases


def _priority(value: object, path: str, reader: _Reader) -> str:
    if isinstance(value, str):
        canonical = _PRIORITIES.get(value.strip().lower())
        if canonical is not None:
            return canonical
    reader.warn("invalid_priority", path, f"Priority {value!r} is not High, Medium or Low; using Medium.")
    return "Medium"


def _code_block(value: object) -> str:
    # Code keeps its line structure; only trailing whitespace is trimmed.
    if isinstance(value, str):
        return value.rstrip()
    if isinstance(value, list):
        return "\n".join(str(line) for line in value if isinstance(line, (str, int, float))).rstrip()
    return ""


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _type_name(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__
