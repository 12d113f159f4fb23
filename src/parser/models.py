# src/parser/models.py — v1
"""Output parser types: CodeBlock, JsonBlock, ParsedOutput, ParserConfig, ParserStats."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CodeBlock(BaseModel):
    """One fenced code region.

    Offsets are character indices into the post-cleaning text.
    """

    language: str
    content: str
    start_index: int
    end_index: int
    is_complete: bool


class JsonBlock(BaseModel):
    """One candidate {...} / [...] span and the outcome of parsing it."""

    raw: str
    parsed: Any = None
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    repair_pass: int | None = None  # 0 = parsed as-is, 1..3 = repair pass that succeeded


class ParsedOutput(BaseModel):
    """Result of one parse call. Transient."""

    raw_content: str
    code_blocks: list[CodeBlock] = Field(default_factory=list)
    json_blocks: list[JsonBlock] = Field(default_factory=list)
    plain_text: str = ""
    truncation_detected: bool = False
    artifacts_removed: list[str] = Field(default_factory=list)
    confidence: float = 0.0
    parse_warnings: list[str] = Field(default_factory=list)

    @property
    def incomplete_blocks(self) -> list[CodeBlock]:
        return [b for b in self.code_blocks if not b.is_complete]

    @property
    def invalid_json_blocks(self) -> list[JsonBlock]:
        return [b for b in self.json_blocks if not b.is_valid]


class ParserConfig(BaseModel):
    """Per-call switches. Unset fields fall back to the parser defaults."""

    extract_code_blocks: bool = True
    validate_json: bool = True
    detect_truncation: bool = True
    clean_artifacts: bool = True
    max_output_length: int = Field(default=50_000, ge=1)


class ParserStats(BaseModel):
    """Aggregate over the bounded parse history."""

    total_parsed: int = 0
    average_confidence: float = 0.0
    truncation_rate: float = 0.0
    artifact_rate: float = 0.0
