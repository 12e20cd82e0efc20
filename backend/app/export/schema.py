from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from app.export.policy import NOT_SPECIFIED


class ArtifactKind(str, Enum):
    PRD = "prd"
    PLAN = "plan"

    @property
    def display_name(self) -> str:
        return "PRD" if self is ArtifactKind.PRD else "Implementation Plan"

    @property
    def file_stem(self) -> str:
        return "PRD" if self is ArtifactKind.PRD else "Implementation_Plan"


Priority = Literal["High", "Medium", "Low"]


class _Canonical(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class TargetAudience(_Canonical):
    primary: str = NOT_SPECIFIED
    secondary: str = NOT_SPECIFIED


class Feature(_Canonical):
    name: str = NOT_SPECIFIED
    description: str = ""
    priority: Priority = "Medium"


class TimelinePhase(_Canonical):
    phase: str = NOT_SPECIFIED
    duration: str = NOT_SPECIFIED
    deliverables: list[str] = Field(default_factory=list)


class Timeline(_Canonical):
    estimated_duration: str = NOT_SPECIFIED
    phases: list[TimelinePhase] = Field(default_factory=list)


class PRDDocument(_Canonical):
    title: str = ""
    overview: str = ""
    objectives: list[str] = Field(default_factory=list)
    target_audience: TargetAudience = Field(default_factory=TargetAudience)
    features: list[Feature] = Field(default_factory=list)
    technical_requirements: list[str] = Field(default_factory=list)
    timeline: Timeline = Field(default_factory=Timeline)
    success_metrics: list[str] = Field(default_factory=list)
    risks: list[str] = Field(default_factory=list)


class TechStack(_Canonical):
    frontend: list[str] = Field(default_factory=list)
    backend: list[str] = Field(default_factory=list)
    database: str = NOT_SPECIFIED
    deployment: str = NOT_SPECIFIED


class ProjectSetup(_Canonical):
    tech_stack: TechStack = Field(default_factory=TechStack)
    project_structure: list[str] = Field(default_factory=list)


class DevTask(_Canonical):
    task: str = NOT_SPECIFIED
    description: str = ""
    estimated_hours: str = NOT_SPECIFIED
    dependencies: list[str] = Field(default_factory=list)


class DevPhase(_Canonical):
    phase: str = NOT_SPECIFIED
    duration: str = NOT_SPECIFIED
    tasks: list[DevTask] = Field(default_factory=list)


class ApiEndpointSpec(_Canonical):
    endpoint: str = NOT_SPECIFIED
    description: str = ""
    parameters: list[str] = Field(default_factory=list)
    response: str = NOT_SPECIFIED


class TableSpec(_Canonical):
    table: str = NOT_SPECIFIED
    fields: list[str] = Field(default_factory=list)
    relationships: list[str] = Field(default_factory=list)


class TestingPlan(_Canonical):
    strategy: str = NOT_SPECIFIED
    types: list[str] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)


class DeploymentPlan(_Canonical):
    strategy: str = NOT_SPECIFIED
    environments: list[str] = Field(default_factory=list)
    cicd: list[str] = Field(default_factory=list)


class Checkpoint(_Canonical):
    id: str
    title: str = NOT_SPECIFIED
    description: str = ""
    code: str = ""
    testing: str = ""


class Stage(_Canonical):
    id: str
    title: str = NOT_SPECIFIED
    checkpoints: list[Checkpoint] = Field(default_factory=list)


class ExecutionPhase(_Canonical):
    id: str
    title: str = NOT_SPECIFIED
    description: str = ""
    stages: list[Stage] = Field(default_factory=list)


class PlanDocument(_Canonical):
    project_setup: ProjectSetup = Field(default_factory=ProjectSetup)
    development_phases: list[DevPhase] = Field(default_factory=list)
    api_design: list[ApiEndpointSpec] = Field(default_factory=list)
    database_schema: list[TableSpec] = Field(default_factory=list)
    testing: TestingPlan = Field(default_factory=TestingPlan)
    deployment: DeploymentPlan = Field(default_factory=DeploymentPlan)
    phases: list[ExecutionPhase] = Field(default_factory=list)


CanonicalDocument = Union[PRDDocument, PlanDocument]


class ArtifactSlot(BaseModel):
    version: int = Field(default=1, ge=1)
    content: Any = None
    generated_at: str | None = None

    @property
    def available(self) -> bool:
        return self.content is not None


class ProjectRecord(BaseModel):
    id: str = ""
    title: str
    idea: str = ""
    status: str = "draft"
    prd: ArtifactSlot = Field(default_factory=ArtifactSlot)
    implementation_plan: ArtifactSlot = Field(default_factory=ArtifactSlot)
    created_at: str | None = None
    updated_at: str | None = None

    def slot(self, kind: ArtifactKind) -> ArtifactSlot:
        return self.prd if kind is ArtifactKind.PRD else self.implementation_plan

    @classmethod
    def from_mapping(cls, record: Mapping[str, object]) -> "ProjectRecord":
        """Build a record from a stored row or a camelCase API payload."""
        plan = record.get("implementation_plan", record.get("implementationPlan"))
        return cls(
            id=str(record.get("id") or ""),
            title=str(record.get("title") or ""),
            idea=str(record.get("idea") or ""),
            status=str(record.get("status") or "draft"),
            prd=_slot_from_mapping(record.get("prd")),
            implementation_plan=_slot_from_mapping(plan),
            created_at=_optional_str(record.get("created_at", record.get("createdAt"))),
            updated_at=_optional_str(record.get("updated_at", record.get("updatedAt"))),
        )


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    return str(value)


def _slot_from_mapping(value: object) -> ArtifactSlot:
    if isinstance(value, ArtifactSlot):
        return value
    if not isinstance(value, Mapping):
        return ArtifactSlot()
    try:
        version = max(1, int(value.get("version") or 1))
    except (TypeError, ValueError):
        version = 1
    return ArtifactSlot(
        version=version,
        content=value.get("content"),
        generated_at=_optional_str(value.get("generated_at", value.get("generatedAt"))),
    )
