from __future__ import annotations

from app.export.schema import ArtifactKind


class ExportError(Exception):
    """Base class for failures that end an export operation."""


class MalformedArtifact(ExportError, ValueError):
    def __init__(self, kind: ArtifactKind, detail: str) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.display_name} artifact is malformed: {detail}")


class ArtifactUnavailable(ExportError, LookupError):
    def __init__(self, kind: ArtifactKind) -> None:
        self.kind = kind
        super().__init__(f"No {kind.display_name} available for export")


class SinkWriteFailure(ExportError, OSError):
    """The output sink cannot accept further data; the export must be abandoned."""


class SinkAborted(ExportError):
    """Raised on the consuming side of a sink whose producer aborted."""

    def __init__(self, reason: BaseException | None) -> None:
        self.reason = reason
        super().__init__(f"Export stream aborted: {reason}" if reason else "Export stream aborted")
