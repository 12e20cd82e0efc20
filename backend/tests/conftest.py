from __future__ import annotations

import copy

import pytest

from app.export import ProjectRecord

SAMPLE_PRD: dict[str, object] = {
    "title": "Task Manager",
    "overview": "A lightweight task manager for small teams.",
    "objectives": ["Ship an MVP in six weeks", "Reach 100 weekly active teams"],
    "targetAudience": {"primary": "Small product teams", "secondary": "Freelancers"},
    "features": [
        {"name": "Boards", "description": "Kanban boards per project.", "priority": "High"},
        {"name": "Reminders", "description": "Email reminders for due tasks.", "priority": "low"},
    ],
    "technicalRequirements": ["REST API", "PostgreSQL storage"],
    "timeline": {
        "estimatedDuration": "6 weeks",
        "phases": [
            {"phase": "Discovery", "duration": "1 week", "deliverables": ["Wireframes"]},
            {"phase": "Build", "duration": "5 weeks", "deliverables": ["MVP", "Docs"]},
        ],
    },
    "successMetrics": ["Weekly active teams", "Task completion rate"],
    "risks": ["Scope creep"],
}

SAMPLE_PLAN: dict[str, object] = {
    "projectSetup": {
        "techStack": {
            "frontend": ["React", "Vite"],
            "backend": ["FastAPI"],
            "database": "PostgreSQL",
            "deployment": "Docker",
        },
        "projectStructure": ["backend/", "frontend/"],
    },
    "developmentPhases": [
        {
            "phase": "Foundation",
            "duration": "2 weeks",
            "tasks": [
                {
                    "task": "Scaffold API",
                    "description": "Create the service skeleton.",
                    "estimatedHours": 12,
                    "dependencies": [],
                }
            ],
        }
    ],
    "apiDesign": [
        {
            "endpoint": "GET /tasks",
            "description": "List tasks.",
            "parameters": ["board_id"],
            "response": "Array of tasks",
        }
    ],
    "databaseSchema": [
        {"table": "tasks", "fields": ["id", "title", "due_date"], "relationships": ["tasks.board_id -> boards.id"]}
    ],
    "testing": {"strategy": "Test pyramid", "types": ["unit", "integration"], "tools": ["pytest"]},
    "deployment": {"strategy": "Blue/green", "environments": ["staging", "production"], "cicd": ["Lint", "Test"]},
    "phases": [
        {
            "id": "phase-setup",
            "title": "Setup",
            "description": "Prepare the repository.",
            "stages": [
                {
                    "id": "stage-repo",
                    "title": "Repository",
                    "checkpoints": [
                        {
                            "id": "checkpoint-init",
                            "title": "Initialize",
                            "description": "Create the project.",
                            "code": "mkdir app\ncd app",
                            "testing": "Directory exists.",
                        }
                    ],
                }
            ],
        }
    ],
}


@pytest.fixture
def prd_content() -> dict[str, object]:
    return copy.deepcopy(SAMPLE_PRD)


@pytest.fixture
def plan_content() -> dict[str, object]:
    return copy.deepcopy(SAMPLE_PLAN)


@pytest.fixture
def make_project():
    def _make(
        *,
        title: str = "Task Manager",
        prd: object | None = None,
        plan: object | None = None,
    ) -> ProjectRecord:
        return ProjectRecord.from_mapping(
            {
                "id": "project-1",
                "title": title,
                "idea": "Help small teams track their work without heavy tooling.",
                "status": "plan_generated" if plan is not None else ("prd_generated" if prd is not None else "draft"),
                "prd": {"version": 2 if prd is not None else 1, "content": prd, "generatedAt": "2026-01-05T10:00:00+00:00"},
                "implementationPlan": {"version": 2 if plan is not None else 1, "content": plan},
                "createdAt": "2026-01-05T09:00:00+00:00",
                "updatedAt": "2026-01-05T10:00:00+00:00",
            }
        )

    return _make
