from typing import Any

from pydantic import BaseModel, Field, model_validator


class ProjectCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    idea: str = Field(..., min_length=10, max_length=2000)


class ProjectUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    idea: str | None = Field(default=None, min_length=10, max_length=2000)


class ArtifactStoreRequest(BaseModel):
    """Either a structured artifact or raw generator output containing one JSON object."""

    content: dict[str, Any] | None = None
    raw_text: str | None = Field(default=None, min_length=1)

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "ArtifactStoreRequest":
        if (self.content is None) == (self.raw_text is None):
            raise ValueError("Provide exactly one of 'content' or 'raw_text'.")
        return self
