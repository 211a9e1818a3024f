from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationReport(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_valid: bool = Field(alias="isValid")
    should_reject: bool = Field(alias="shouldReject")
    errors: list[str] = Field(default_factory=list)


class SanitizeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    sanitized: str
    was_modified: bool = Field(alias="wasModified")


class DelimiterIssue(BaseModel):
    token: str  # the opener that found no partner, e.g. "\\(" or "$"
    position: int
    message: str = ""


class DelimiterScan(BaseModel):
    text: str
    unmatched: list[DelimiterIssue] = Field(default_factory=list)


class SectionType(str, Enum):
    INTRODUCTION = "introduction"
    DEFINITION = "definition"
    THEOREM = "theorem"
    FORMULA = "formula"
    EXAMPLE = "example"
    EXERCISE = "exercise"
    SUMMARY = "summary"
    DEFAULT = "default"


BlockKind = Literal["heading", "paragraph", "math", "code", "table", "html", "list", "rule"]


class Block(BaseModel):
    kind: BlockKind
    text: str
    level: Optional[int] = None  # heading depth, e.g. 2 for "##"


class Section(BaseModel):
    type: SectionType = SectionType.DEFAULT
    heading: str
    level: int
    body: list[Block] = Field(default_factory=list)


class Document(BaseModel):
    preamble: list[Block] = Field(default_factory=list)
    sections: list[Section] = Field(default_factory=list)


class RenderResult(BaseModel):
    html: str
    sections: list[Section] = Field(default_factory=list)
    math_errors: list[str] = Field(default_factory=list)
    block_errors: list[str] = Field(default_factory=list)
