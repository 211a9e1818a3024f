from __future__ import annotations

from typing import Optional

from .models import ValidationReport


class PipelineError(ValueError):
    """Base class for content that the pipeline cannot turn into NormalizedContent."""


class LlmJsonError(PipelineError):
    def __init__(self, message: str, attempts: Optional[list[str]] = None) -> None:
        super().__init__(message)
        self.attempts: list[str] = list(attempts or [])


class ContentRejectedError(PipelineError):
    """Content is unsalvageable; the caller must regenerate it and never persist it."""

    def __init__(self, report: ValidationReport, field: str = "") -> None:
        where = f" in {field!r}" if field else ""
        super().__init__(f"Generated content rejected{where}: " + "; ".join(report.errors))
        self.report = report
        self.field = field


class PayloadShapeError(LlmJsonError):
    """The completion parsed as JSON but its fields do not have the expected types."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
