# src/parser/scanner.py — v1
"""Quote-aware bracket scanning shared by the code, JSON and truncation checks.

Characters inside string literals never count as brackets. A backslash
inside a string escapes the next character.
"""

from __future__ import annotations

from dataclasses import dataclass, field

CODE_QUOTES = ('"', "'", "`")
JSON_QUOTES = ('"', "'")

OPENERS: dict[str, str] = {"(": ")", "[": "]", "{": "}"}
CLOSERS: dict[str, str] = {v: k for k, v in OPENERS.items()}


@dataclass
class ScanResult:
    """Bracket and string state after scanning a text."""

    counts: dict[str, int] = field(default_factory=lambda: {"(": 0, "[": 0, "{": 0})
    open_stack: list[str] = field(default_factory=list)
    in_string: bool = False
    string_char: str | None = None
    escape_pending: bool = False

    @property
    def brackets_balanced(self) -> bool:
        return all(v == 0 for v in self.counts.values())

    @property
    def has_unclosed(self) -> bool:
        """Any opener outnumbers its closer."""
        return any(v > 0 for v in self.counts.values())

    @property
    def balanced(self) -> bool:
        """Brackets balanced and no string literal left open."""
        return self.brackets_balanced and not self.in_string


def scan(text: str, quotes: tuple[str, ...] = CODE_QUOTES) -> ScanResult:
    """Walk text once, tracking string state and bracket depth."""
    result = ScanResult()
    for ch in text:
        if result.in_string:
            if result.escape_pending:
                result.escape_pending = False
            elif ch == "\\":
                result.escape_pending = True
            elif ch == result.string_char:
                result.in_string = False
                result.string_char = None
            continue

        if ch in quotes:
            result.in_string = True
            result.string_char = ch
        elif ch in OPENERS:
            result.counts[ch] += 1
            result.open_stack.append(ch)
        elif ch in CLOSERS:
            opener = CLOSERS[ch]
            result.counts[opener] -= 1
            _pop_matching(result.open_stack, opener)
    return result


def _pop_matching(stack: list[str], opener: str) -> None:
    """Remove the innermost matching opener; stray closers are ignored."""
    for i in range(len(stack) - 1, -1, -1):
        if stack[i] == opener:
            del stack[i]
            return


def has_balanced_brackets(content: str) -> bool:
    """True when brackets balance and every string literal is closed."""
    return scan(content).balanced


def find_balanced_end(text: str, start: int) -> int | None:
    """Return the index of the closer matching ``text[start]``.

    Only the opener's own bracket type changes depth; quotes are JSON-style
    (double and single). None when the span never closes.
    """
    return balanced_ends(text, start).get(start)


def balanced_ends(text: str, start: int) -> dict[int, int | None]:
    """Match closers for ``text[start]`` and every same-type opener it passes.

    The walk starts outside any string at start. Each opener of the same type
    met outside a string is in that same string state, so its own match is
    found by the same walk. Maps opener index to closer index, or to None
    when the opener never closes. Stops once start itself is closed.
    """
    close_char = OPENERS.get(text[start])
    if close_char is None:
        return {start: None}
    open_char = text[start]

    ends: dict[int, int | None] = {}
    stack: list[int] = []
    in_string = False
    string_char = ""
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == string_char:
                in_string = False
            continue
        if ch in JSON_QUOTES:
            in_string = True
            string_char = ch
        elif ch == open_char:
            stack.append(i)
        elif ch == close_char:
            ends[stack.pop()] = i
            if not stack:
                return ends
    for j in stack:
        ends[j] = None
    return ends
