from __future__ import annotations

import logging
from typing import Any, Optional

from .delimiters import normalize_delimiters
from .documents import DEFAULT_IMAGE_BASE_URL, convert_to_markdown
from .errors import ContentRejectedError, LlmJsonError
from .json_repair import parse_llm_json
from .lesson_markdown import (
    convert_exercise_json_to_markdown,
    convert_lesson_json_to_markdown,
    strip_chapter_header,
)
from .models import RenderResult
from .renderer import render_markdown
from .text_utils import _normalize_line_endings
from .validator import ValidationPolicy, sanitize_content, validate_content

logger = logging.getLogger(__name__)


class ContentPipeline:
    """
    Raw lesson content -> NormalizedContent -> HTML.

    normalize() handles authored LaTeX/Markdown. process_generated_lesson() and
    process_generated_exercise() take a raw model completion, repair and parse
    its JSON, validate every text field, lay it out as Markdown and normalize
    it. Rejected content raises ContentRejectedError and must be regenerated.
    """

    def __init__(
        self,
        *,
        policy: Optional[ValidationPolicy] = None,
        image_base_url: str = DEFAULT_IMAGE_BASE_URL,
    ) -> None:
        self.policy = policy or ValidationPolicy()
        self.image_base_url = image_base_url

    @classmethod
    def from_settings(cls, settings) -> "ContentPipeline":
        return cls(
            policy=ValidationPolicy(max_latex_errors=settings.max_latex_errors),
            image_base_url=settings.image_base_url,
        )

    def normalize(self, text: str) -> str:
        if not text:
            return ""
        md = convert_to_markdown(_normalize_line_endings(text), image_base_url=self.image_base_url)
        return normalize_delimiters(md)

    def check(self, text: str, field: str = "") -> str:
        """Validate one field: raise on reject, apply soft fixes otherwise."""
        report = validate_content(text, self.policy)
        if report.should_reject:
            raise ContentRejectedError(report, field)
        if report.is_valid:
            return text
        result = sanitize_content(text, self.policy)
        if result.was_modified:
            logger.debug("Sanitized %s: %s", field or "content", "; ".join(report.errors))
        return result.sanitized

    def _check_fields(self, value: Any, path: str) -> Any:
        if isinstance(value, str):
            # empty optional fields are simply absent content
            return self.check(value, path) if value.strip() else value
        if isinstance(value, dict):
            return {k: self._check_fields(v, f"{path}.{k}" if path else str(k)) for k, v in value.items()}
        if isinstance(value, list):
            return [self._check_fields(v, f"{path}[{i}]") for i, v in enumerate(value)]
        return value

    def _parse_object(self, raw: str) -> dict:
        data = parse_llm_json(raw)
        if not isinstance(data, dict):
            raise LlmJsonError(f"Expected a JSON object, got {type(data).__name__}", ["direct"])
        return data

    def _finish(self, md: str, field: str) -> str:
        out = self.normalize(md)
        return self.check(out, field)

    def process_generated_lesson(self, raw: str, header: str = "") -> str:
        data = self._check_fields(self._parse_object(raw), "")
        return self._finish(convert_lesson_json_to_markdown(data, header), "lesson")

    def process_generated_exercise(self, raw: str, for_pdf: bool = False) -> str:
        data = self._check_fields(self._parse_object(raw), "")
        return self._finish(convert_exercise_json_to_markdown(data, for_pdf=for_pdf), "exercise")

    def render(self, content: str) -> RenderResult:
        return render_markdown(strip_chapter_header(content))
