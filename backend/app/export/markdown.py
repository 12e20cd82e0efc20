from __future__ import annotations

from app.export.policy import NONE_SPECIFIED_MARKER, code_fence_for, escape_markdown
from app.export.schema import ArtifactKind, CanonicalDocument, PlanDocument, PRDDocument


class _MarkdownBuilder:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def heading(self, level: int, text: str) -> None:
        self._blank()
        self.lines.append(f"{'#' * level} {text}")
        self.lines.append("")

    def paragraph(self, text: str) -> None:
        self._blank()
        self.lines.append(text or NONE_SPECIFIED_MARKER)
        self.lines.append("")

    def field(self, label: str, value: str) -> None:
        self.lines.append(f"- **{label}:** {escape_markdown(value) or NONE_SPECIFIED_MARKER}")

    def bullets(self, items: list[str], *, depth: int = 0) -> None:
        indent = "  " * depth
        rendered = [escape_markdown(item) for item in items]
        rendered = [item for item in rendered if item]
        if not rendered:
            self.lines.append(f"{indent}- {NONE_SPECIFIED_MARKER}" if depth else NONE_SPECIFIED_MARKER)
            return
        self.lines.extend(f"{indent}- {item}" for item in rendered)

    def code(self, code: str) -> None:
        fence = code_fence_for(code)
        self._blank()
        self.lines.append(fence)
        self.lines.extend(code.splitlines())
        self.lines.append(fence)
        self.lines.append("")

    def _blank(self) -> None:
        if self.lines and self.lines[-1] != "":
            self.lines.append("")

    def render(self) -> str:
        return "\n".join(self.lines).strip() + "\n"


def render_markdown(
    document: CanonicalDocument,
    kind: ArtifactKind | str,
    *,
    project_title: str | None = None,
) -> str:
    artifact_kind = ArtifactKind(kind)
    if artifact_kind is ArtifactKind.PRD:
        if not isinstance(document, PRDDocument):
            raise TypeError("PRD rendering requires a PRDDocument")
        return _render_prd(document, project_title)
    if not isinstance(document, PlanDocument):
        raise TypeError("Implementation plan rendering requires a PlanDocument")
    return _render_plan(document, project_title)


def _render_prd(document: PRDDocument, project_title: str | None) -> str:
    out = _MarkdownBuilder()
    title = document.title or (project_title or "").strip() or "Product Requirements Document"
    out.heading(1, escape_markdown(title))

    out.heading(2, "Overview")
    out.paragraph(escape_markdown(document.overview))

    out.heading(2, "Objectives")
    out.bullets(document.objectives)

    out.heading(2, "Target Audience")
    out.field("Primary", document.target_audience.primary)
    out.field("Secondary", document.target_audience.secondary)

    out.heading(2, "Features")
    if not document.features:
        out.paragraph(NONE_SPECIFIED_MARKER)
    for feature in document.features:
        out.heading(3, f"{escape_markdown(feature.name)} ({feature.priority} Priority)")
        out.paragraph(escape_markdown(feature.description))

    out.heading(2, "Technical Requirements")
    out.bullets(document.technical_requirements)

    out.heading(2, "Timeline")
    out.field("Estimated Duration", document.timeline.estimated_duration)
    for phase in document.timeline.phases:
        out.heading(3, f"{escape_markdown(phase.phase)} ({escape_markdown(phase.duration)})")
        out.bullets(phase.deliverables)

    out.heading(2, "Success Metrics")
    out.bullets(document.success_metrics)

    out.heading(2, "Risks")
    out.bullets(document.risks)

    return out.render()


def _render_plan(document: PlanDocument, project_title: str | None) -> str:
    out = _MarkdownBuilder()
    title = (project_title or "").strip()
    out.heading(1, f"Implementation Plan: {escape_markdown(title)}" if title else "Implementation Plan")

    setup = document.project_setup
    out.heading(2, "Project Setup")
    out.heading(3, "Tech Stack")
    out.field("Frontend", ", ".join(setup.tech_stack.frontend))
    out.field("Backend", ", ".join(setup.tech_stack.backend))
    out.field("Database", setup.tech_stack.database)
    out.field("Deployment", setup.tech_stack.deployment)
    out.heading(3, "Project Structure")
    out.bullets(setup.project_structure)

    out.heading(2, "Development Phases")
    if not document.development_phases:
        out.paragraph(NONE_SPECIFIED_MARKER)
    for phase in document.development_phases:
        out.heading(3, f"{escape_markdown(phase.phase)} ({escape_markdown(phase.duration)})")
        if not phase.tasks:
            out.paragraph(NONE_SPECIFIED_MARKER)
        for task in phase.tasks:
            out.heading(4, escape_markdown(task.task))
            if task.description:
                out.paragraph(escape_markdown(task.description))
            out.field("Estimated Hours", task.estimated_hours)
            out.field("Dependencies", ", ".join(task.dependencies))

    out.heading(2, "API Design")
    if not document.api_design:
        out.paragraph(NONE_SPECIFIED_MARKER)
    for endpoint in document.api_design:
        out.heading(3, escape_markdown(endpoint.endpoint))
        if endpoint.description:
            out.paragraph(escape_markdown(endpoint.description))
        out.field("Parameters", ", ".join(endpoint.parameters))
        out.field("Response", endpoint.response)

    out.heading(2, "Database Schema")
    if not document.database_schema:
        out.paragraph(NONE_SPECIFIED_MARKER)
    for table in document.database_schema:
        out.heading(3, escape_markdown(table.table))
        out.field("Fields", ", ".join(table.fields))
        out.field("Relationships", "; ".join(table.relationships))

    out.heading(2, "Testing")
    out.field("Strategy", document.testing.strategy)
    out.field("Types", ", ".join(document.testing.types))
    out.field("Tools", ", ".join(document.testing.tools))

    out.heading(2, "Deployment")
    out.field("Strategy", document.deployment.strategy)
    out.field("Environments", ", ".join(document.deployment.environments))
    out.heading(3, "CI/CD Pipeline")
    out.bullets(document.deployment.cicd)

    if document.phases:
        out.heading(2, "Execution Phases")
    for phase in document.phases:
        out.heading(3, f"{escape_markdown(phase.title)} [{escape_markdown(phase.id)}]")
        if phase.description:
            out.paragraph(escape_markdown(phase.description))
        for stage in phase.stages:
            out.heading(4, f"{escape_markdown(stage.title)} [{escape_markdown(stage.id)}]")
            for checkpoint in stage.checkpoints:
                out.heading(5, f"{escape_markdown(checkpoint.title)} [{escape_markdown(checkpoint.id)}]")
                if checkpoint.description:
                    out.paragraph(escape_markdown(checkpoint.description))
                if checkpoint.code:
                    out.code(checkpoint.code)
                if checkpoint.testing:
                    out.paragraph(f"**Testing:** {escape_markdown(checkpoint.testing)}")

    return out.render()
