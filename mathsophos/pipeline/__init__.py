from .delimiters import normalize_delimiters, scan_delimiters, split_math
from .documents import convert_to_markdown
from .errors import ContentRejectedError, LlmJsonError, PayloadShapeError, PipelineError
from .json_repair import fix_latex_json_escapes, parse_llm_json
from .lesson_markdown import convert_exercise_json_to_markdown, convert_lesson_json_to_markdown
from .models import RenderResult, SanitizeResult, Section, SectionType, ValidationReport
from .pipeline import ContentPipeline
from .renderer import render_markdown
from .sections import classify, group_sections, parse_blocks
from .validator import ValidationPolicy, sanitize_content, validate_content

__all__ = [
    "ContentPipeline",
    "ContentRejectedError",
    "LlmJsonError",
    "PayloadShapeError",
    "PipelineError",
    "RenderResult",
    "SanitizeResult",
    "Section",
    "SectionType",
    "ValidationPolicy",
    "ValidationReport",
    "classify",
    "convert_exercise_json_to_markdown",
    "convert_lesson_json_to_markdown",
    "convert_to_markdown",
    "fix_latex_json_escapes",
    "group_sections",
    "normalize_delimiters",
    "parse_blocks",
    "parse_llm_json",
    "render_markdown",
    "sanitize_content",
    "scan_delimiters",
    "split_math",
    "validate_content",
]
