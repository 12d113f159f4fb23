# src/parser/artifacts.py — v1
"""Strip generation artifacts from raw model output.

Each kind of removal is reported once by category label, never verbatim.
Order matters: special tokens go first so role prefixes hidden behind them
become line-initial.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

# End-of-sequence and chat-template markers emitted by local models.
SPECIAL_TOKENS: tuple[str, ...] = (
    "<|endoftext|>",
    "<|im_end|>",
    "<|im_start|>",
    "<|eot_id|>",
    "<|start_header_id|>",
    "<|end_header_id|>",
    "</s>",
    "<s>",
    "[INST]",
    "[/INST]",
)

CATEGORY_SPECIAL_TOKENS = "end-of-sequence tokens"
CATEGORY_ROLE_PREFIXES = "role prefixes"
CATEGORY_REPEATED_TOKENS = "repeated token sequences"
CATEGORY_DASH_SEPARATORS = "excessive markdown separators (---)"
CATEGORY_STAR_SEPARATORS = "excessive markdown separators (***)"
CATEGORY_REPEATED_HEADERS = "repeated headers"
CATEGORY_INSTRUCTION_ECHO = "instruction echoing"

_ROLE_PREFIX_RE = re.compile(r"^(?:Assistant|Human|System|User):[ \t]*", re.MULTILINE)
# A word followed by two or more whitespace-separated copies of itself.
_REPEATED_TOKEN_RE = re.compile(r"\b([A-Za-z_]\w*)\b(?:\s+\1\b){2,}")
_DASH_RUN_RE = re.compile(r"(?:-{3,}\s*){3,}")
_STAR_RUN_RE = re.compile(r"(?:\*{3,}\s*){3,}")
_REPEATED_HEADER_RE = re.compile(r"^(#{1,6}[ \t]+[^\n]+\n?)\1{1,}", re.MULTILINE)

# Leading echoes of the system prompt; at most one pattern is applied.
_INSTRUCTION_ECHO_RES: tuple[re.Pattern[str], ...] = (
    re.compile(r"\A\s*You are an? [^\n]*(?:\n[^\n]+){0,5}\n*"),
    re.compile(r"\A\s*<\|system\|>.*?<\|end\|>\s*", re.DOTALL),
    re.compile(r"\A\s*### (?:System|Instructions?):[^\n]*(?:\n[^\n]+){0,10}\n*"),
)


@dataclass
class CleanResult:
    """Cleaned text plus the artifact categories that were removed."""

    cleaned: str
    removed: list[str] = field(default_factory=list)


def clean_artifacts(text: str) -> CleanResult:
    """Remove special tokens, role prefixes, repetition and prompt echoes."""
    cleaned = text
    removed: list[str] = []

    stripped_tokens = False
    for token in SPECIAL_TOKENS:
        if token in cleaned:
            cleaned = cleaned.replace(token, "")
            stripped_tokens = True
    if stripped_tokens:
        removed.append(CATEGORY_SPECIAL_TOKENS)

    cleaned, n = _ROLE_PREFIX_RE.subn("", cleaned)
    if n:
        removed.append(CATEGORY_ROLE_PREFIXES)

    cleaned, n = _REPEATED_TOKEN_RE.subn(r"\1", cleaned)
    if n:
        removed.append(CATEGORY_REPEATED_TOKENS)

    cleaned, n = _DASH_RUN_RE.subn("---\n", cleaned)
    if n:
        removed.append(CATEGORY_DASH_SEPARATORS)

    cleaned, n = _STAR_RUN_RE.subn("***\n", cleaned)
    if n:
        removed.append(CATEGORY_STAR_SEPARATORS)

    cleaned, n = _REPEATED_HEADER_RE.subn(r"\1", cleaned)
    if n:
        removed.append(CATEGORY_REPEATED_HEADERS)

    for pattern in _INSTRUCTION_ECHO_RES:
        cleaned, n = pattern.subn("", cleaned, count=1)
        if n:
            removed.append(CATEGORY_INSTRUCTION_ECHO)
            break

    if removed:
        logger.debug("Artifacts removed: %s", ", ".join(removed))

    return CleanResult(cleaned=cleaned.strip(), removed=removed)
