# src/parser/output_parser.py — v1
"""Output parser and repair engine for raw LLM text.

parse() runs a fixed sequence of stages:
  1. truncate to max_output_length (warning recorded)
  2. clean_artifacts
  3. extract_code_blocks
  4. validate_json_blocks (over the plain text left after step 3)
  5. detect_truncation
  6. confidence scoring

parse() never raises. A stage that fails is logged, noted in
parse_warnings and replaced by its neutral result; later stages still run.
"""

from __future__ import annotations

import logging
import re
import threading
from collections import deque
from collections.abc import Callable
from typing import TypeVar

from genforge.parser.artifacts import CleanResult, clean_artifacts
from genforge.parser.json_repair import find_json_blocks
from genforge.parser.models import (
    CodeBlock,
    JsonBlock,
    ParsedOutput,
    ParserConfig,
    ParserStats,
)
from genforge.parser.scanner import OPENERS, has_balanced_brackets, scan

logger = logging.getLogger(__name__)

T = TypeVar("T")

FENCE = "```"

# Confidence penalties
PENALTY_TRUNCATED = 0.3
PENALTY_PER_ARTIFACT = 0.05
PENALTY_PER_INVALID_JSON = 0.1
PENALTY_PER_INCOMPLETE_BLOCK = 0.15

_CODE_BLOCK_RE = re.compile(r"```([\w+#.-]*)[ \t]*\n?(.*?)(```|\Z)", re.DOTALL)
_BLANK_RUN_RE = re.compile(r"\n{3,}")

_TERMINAL_CHARS = frozenset(".!?;})]`\"'")
_WORD_END_CHARS = frozenset(".!?;:,})]`\"'")

MARKUP_LANGUAGES: frozenset[str] = frozenset({
    "html", "htm", "xml", "svg", "vue", "svelte",
    "jsx", "tsx", "react", "javascript", "typescript", "js", "ts",
})
VOID_ELEMENTS: frozenset[str] = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})
# Closers </name> and </>; openers <name attrs> and <>. An opener must not
# follow an identifier, which would make it a generic (Array<T>).
_TAG_RE = re.compile(
    r"</([A-Za-z][\w.:-]*)?\s*>"
    r"|(?<![\w$])<([A-Za-z][\w.:-]*)?((?:\s[^<>]*)?)>"
)


class OutputParser:
    """Parse, validate and repair model output.

    Args:
        config: Default per-call configuration.
        stats_capacity: Size of the FIFO parse-stats history.
    """

    def __init__(self, config: ParserConfig | None = None, stats_capacity: int = 100) -> None:
        self._config = config or ParserConfig()
        self._history: deque[tuple[float, bool, bool]] = deque(maxlen=stats_capacity)
        self._lock = threading.Lock()

    @property
    def config(self) -> ParserConfig:
        return self._config.model_copy()

    # --- Pipeline ---

    def parse(self, raw_output: str, config: ParserConfig | None = None) -> ParsedOutput:
        """Run the full parse pipeline over one model response."""
        cfg = config or self._config
        warnings: list[str] = []

        text = raw_output
        if len(text) > cfg.max_output_length:
            text = text[: cfg.max_output_length]
            warnings.append(
                f"Output truncated from {len(raw_output)} to {cfg.max_output_length} characters"
            )

        artifacts: list[str] = []
        if cfg.clean_artifacts:
            cleaned = self._guard(
                "clean_artifacts", lambda: clean_artifacts(text), CleanResult(cleaned=text), warnings
            )
            text = cleaned.cleaned
            artifacts = cleaned.removed

        blocks: list[CodeBlock] = []
        plain_text = text
        if cfg.extract_code_blocks:
            blocks, plain_text = self._guard(
                "extract_code_blocks", lambda: self.extract_code_blocks(text), ([], text), warnings
            )

        json_blocks: list[JsonBlock] = []
        if cfg.validate_json:
            json_blocks = self._guard(
                "validate_json_blocks", lambda: self.validate_json_blocks(plain_text), [], warnings
            )

        truncated = False
        if cfg.detect_truncation:
            truncated = self._guard(
                "detect_truncation", lambda: self.detect_truncation(text, blocks), False, warnings
            )

        output = ParsedOutput(
            raw_content=raw_output,
            code_blocks=blocks,
            json_blocks=json_blocks,
            plain_text=plain_text,
            truncation_detected=truncated,
            artifacts_removed=artifacts,
            parse_warnings=warnings,
        )
        output.confidence = self.compute_confidence(output)

        with self._lock:
            self._history.append((output.confidence, truncated, bool(artifacts)))

        logger.debug(
            "Parsed output: %d code blocks, %d json blocks, truncated=%s, confidence=%.2f",
            len(blocks), len(json_blocks), truncated, output.confidence,
        )
        return output

    def _guard(self, stage: str, fn: Callable[[], T], fallback: T, warnings: list[str]) -> T:
        try:
            return fn()
        except Exception as exc:
            logger.warning("Parse stage '%s' failed: %s", stage, exc, exc_info=True)
            warnings.append(f"{stage} failed: {exc}")
            return fallback

    # --- Stages ---

    def clean_artifacts(self, text: str) -> CleanResult:
        return clean_artifacts(text)

    def extract_code_blocks(self, text: str) -> tuple[list[CodeBlock], str]:
        """Find fenced blocks and return them with the remaining plain text."""
        blocks: list[CodeBlock] = []
        for match in _CODE_BLOCK_RE.finditer(text):
            content = match.group(2)
            has_closing_fence = match.group(3) == FENCE
            blocks.append(
                CodeBlock(
                    language=match.group(1) or "text",
                    content=content.rstrip(),
                    start_index=match.start(),
                    end_index=match.end(),
                    is_complete=has_closing_fence and has_balanced_brackets(content),
                )
            )

        plain_text = text
        for block in reversed(blocks):
            plain_text = plain_text[: block.start_index] + plain_text[block.end_index :]
        plain_text = _BLANK_RUN_RE.sub("\n\n", plain_text).strip()
        return blocks, plain_text

    def validate_json_blocks(self, text: str) -> list[JsonBlock]:
        return find_json_blocks(text)

    def detect_truncation(self, text: str, code_blocks: list[CodeBlock]) -> bool:
        """Heuristic cut-off detection.

        True on any of: odd number of fences, an incomplete code block, a
        trailing word that ends mid-word, or more openers than closers.
        """
        if text.count(FENCE) % 2 != 0:
            return True

        if any(not b.is_complete for b in code_blocks):
            return True

        trimmed = text.rstrip()
        if not trimmed:
            return False

        if trimmed[-1] not in _TERMINAL_CHARS:
            last_word = trimmed.split()[-1]
            if (
                last_word[0].isascii()
                and last_word[0].isalpha()
                and last_word[-1] not in _WORD_END_CHARS
            ):
                return True

        # Only surplus openers count: "1) first" style lists leave stray closers.
        return scan(trimmed).has_unclosed

    def compute_confidence(self, output: ParsedOutput) -> float:
        score = 1.0
        if output.truncation_detected:
            score -= PENALTY_TRUNCATED
        score -= PENALTY_PER_ARTIFACT * len(output.artifacts_removed)
        score -= PENALTY_PER_INVALID_JSON * len(output.invalid_json_blocks)
        score -= PENALTY_PER_INCOMPLETE_BLOCK * len(output.incomplete_blocks)
        return round(max(0.0, score), 4)

    # --- Repair ---

    def repair_truncated_code(self, code: str, language: str = "") -> str:
        """Best-effort syntactic closure of truncated code.

        Closes a dangling string literal, then open brackets innermost first,
        then (for markup-like languages) unclosed tags in LIFO order. Applying
        it to its own output changes nothing.
        """
        repaired = code

        state = scan(repaired)
        if state.in_string and state.string_char:
            if state.escape_pending:
                repaired += "\\"
            repaired += state.string_char
            state = scan(repaired)

        repaired += "".join(OPENERS[o] for o in reversed(state.open_stack))

        if language.lower() in MARKUP_LANGUAGES:
            repaired += "".join(f"</{tag}>" for tag in reversed(_unclosed_tags(repaired)))

        return repaired

    def extract_code(self, output: ParsedOutput) -> str:
        """Joined block contents with incomplete blocks repaired.

        Falls back to the plain text when the output holds no fenced block.
        """
        if not output.code_blocks:
            return output.plain_text
        parts = []
        for block in output.code_blocks:
            if block.is_complete:
                parts.append(block.content)
            else:
                parts.append(self.repair_truncated_code(block.content, block.language))
        return "\n\n".join(parts)

    # --- Stats ---

    def get_stats(self) -> ParserStats:
        with self._lock:
            history = list(self._history)
        total = len(history)
        if total == 0:
            return ParserStats()
        return ParserStats(
            total_parsed=total,
            average_confidence=sum(h[0] for h in history) / total,
            truncation_rate=sum(1 for h in history if h[1]) / total,
            artifact_rate=sum(1 for h in history if h[2]) / total,
        )

    def clear(self) -> None:
        with self._lock:
            self._history.clear()


def _unclosed_tags(text: str) -> list[str]:
    """Open tags without a matching close, in document order.

    Self-closing tags and HTML void elements never need closing. An empty
    name stands for a JSX fragment (<>...</>).
    """
    stack: list[str] = []
    for match in _TAG_RE.finditer(text):
        if match.group(0).startswith("</"):
            tag = match.group(1) or ""
            for i in range(len(stack) - 1, -1, -1):
                if stack[i] == tag:
                    del stack[i]
                    break
            continue

        name, attrs = match.group(2), match.group(3)
        if name is None and attrs.strip():
            continue  # "a < b > c" comparison, not a tag
        if match.group(0).endswith("/>"):
            continue
        tag = name or ""
        if tag.lower() not in VOID_ELEMENTS:
            stack.append(tag)
    return stack
