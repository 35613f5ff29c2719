"""
Stage outcome models — the contract between pipeline stages.

Each stage returns a ``StageResult``. Expected failures are captured
in the result, never raised: the pipeline inspects ``ok`` and stops at
the first failed stage.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ErrorKind(str, Enum):
    """Terminal failure categories. Every one of them aborts the run."""

    CLASSIFICATION = "ClassificationError"
    VERSION_RESOLUTION = "VersionResolutionError"
    RETRIEVAL = "RetrievalError"
    INTEGRITY = "IntegrityError"
    EXTRACTION = "ExtractionError"
    BINARY_NOT_FOUND = "BinaryNotFoundError"
    INSTALL = "InstallError"


class StageError(BaseModel):
    """A terminal failure with enough context to report or retry by hand."""

    kind: ErrorKind
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    def render(self) -> str:
        """Human-readable, multi-line form for the error stream."""
        lines = [f"{self.kind.value}: {self.message}"]
        for key, val in self.details.items():
            if val is None:
                continue
            if isinstance(val, (list, tuple)):
                lines.append(f"  {key}:")
                lines.extend(f"    {item}" for item in val)
            else:
                lines.append(f"  {key}: {val}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()


class StageResult(BaseModel):
    """Outcome of one pipeline stage."""

    stage: str
    ok: bool = True
    value: Any = None
    error: StageError | None = None
    finished_at: str = Field(default_factory=_now_iso)

    @property
    def failed(self) -> bool:
        """Whether the stage failed."""
        return not self.ok

    @classmethod
    def success(cls, stage: str, value: Any = None) -> StageResult:
        """Create a success result."""
        return cls(stage=stage, ok=True, value=value)

    @classmethod
    def failure(
        cls,
        stage: str,
        kind: ErrorKind,
        message: str,
        **details: Any,
    ) -> StageResult:
        """Create a failure result carrying a ``StageError``."""
        return cls(
            stage=stage,
            ok=False,
            error=StageError(kind=kind, message=message, details=details),
        )
