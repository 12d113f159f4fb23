# src/parser/json_repair.py — v1
"""Locate JSON candidates in text and parse them with escalating repairs.

Repair passes are cumulative:
  0. parse as-is
  1. strip trailing commas before } or ]
  2. + convert single quotes to double quotes
  3. + quote bare object keys
The first pass that parses wins.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable

from genforge.parser.models import JsonBlock
from genforge.parser.scanner import balanced_ends

logger = logging.getLogger(__name__)

_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)(['\"]?)([A-Za-z_$][\w$-]*)\2\s*:")


def strip_trailing_commas(text: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def normalize_quotes(text: str) -> str:
    return text.replace("'", '"')


def quote_bare_keys(text: str) -> str:
    return _BARE_KEY_RE.sub(r'\1"\3":', text)


_REPAIR_PASSES: tuple[Callable[[str], str], ...] = (
    strip_trailing_commas,
    normalize_quotes,
    quote_bare_keys,
)


def _loads(text: str) -> tuple[object, str | None]:
    try:
        return json.loads(text), None
    except (ValueError, RecursionError) as exc:
        return None, str(exc)


def try_parse_json(raw: str) -> JsonBlock:
    """Parse a candidate span, escalating through the repair passes."""
    errors: list[str] = []

    parsed, error = _loads(raw)
    if error is None:
        return JsonBlock(raw=raw, parsed=parsed, is_valid=True, repair_pass=0)
    errors.append(error)

    fixed = raw
    for pass_no, repair in enumerate(_REPAIR_PASSES, start=1):
        fixed = repair(fixed)
        parsed, error = _loads(fixed)
        if error is None:
            logger.debug("JSON candidate repaired on pass %d", pass_no)
            return JsonBlock(raw=raw, parsed=parsed, is_valid=True, repair_pass=pass_no)
        errors.append(f"pass {pass_no} ({repair.__name__}): {error}")

    return JsonBlock(raw=raw, parsed=None, is_valid=False, errors=errors)


def find_json_blocks(text: str) -> list[JsonBlock]:
    """Scan text for balanced {...} / [...] spans and parse each one.

    Scanning resumes after a closed span, so nested containers are reported
    once as part of their outermost span. Each walk caches the matches of the
    same-type openers it passes; unclosed runs like "{{{{" are walked once.
    """
    blocks: list[JsonBlock] = []
    known_ends: dict[int, int | None] = {}
    i = 0
    length = len(text)
    while i < length:
        ch = text[i]
        if ch not in "{[":
            i += 1
            continue
        if i not in known_ends:
            known_ends.update(balanced_ends(text, i))
        end = known_ends[i]
        if end is None:
            i += 1
            continue
        candidate = text[i : end + 1]
        if len(candidate) >= 2:
            blocks.append(try_parse_json(candidate))
        i = end + 1
    return blocks
