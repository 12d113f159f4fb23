# tests/unit/parser/test_scanner.py — v1
"""Tests for parser/scanner.py — quote-aware bracket scanning."""

from __future__ import annotations

from genforge.parser.scanner import balanced_ends, find_balanced_end, has_balanced_brackets, scan


class TestScan:
    def test_brackets_inside_strings_ignored(self):
        assert has_balanced_brackets('const s = "{[(";')

    def test_escaped_quote_stays_in_string(self):
        result = scan(r'x = "a \" {"')
        assert result.brackets_balanced
        assert not result.in_string

    def test_open_string(self):
        result = scan("x = 'abc")
        assert result.in_string
        assert result.string_char == "'"
        assert not result.balanced

    def test_escape_pending_at_end(self):
        result = scan('x = "abc\\')
        assert result.in_string
        assert result.escape_pending

    def test_open_stack_order(self):
        result = scan("f({[")
        assert result.open_stack == ["(", "{", "["]
        assert result.has_unclosed

    def test_stray_closer(self):
        result = scan("1) first 2) second")
        assert not result.brackets_balanced
        assert not result.has_unclosed
        assert result.open_stack == []


class TestFindBalancedEnd:
    def test_simple(self):
        text = 'x {"a": {"b": 1}} y'
        assert find_balanced_end(text, 2) == len(text) - 3

    def test_quote_aware(self):
        text = '{"a": "}"}'
        assert find_balanced_end(text, 0) == len(text) - 1

    def test_unclosed(self):
        assert find_balanced_end('{"a": 1', 0) is None

    def test_not_an_opener(self):
        assert find_balanced_end("abc", 0) is None


class TestBalancedEnds:
    def test_records_every_same_type_opener(self):
        assert balanced_ends("{{}{", 0) == {0: None, 1: 2, 3: None}

    def test_openers_inside_strings_not_recorded(self):
        assert balanced_ends('{"{" ', 0) == {0: None}

    def test_stops_when_start_closes(self):
        assert balanced_ends("{}{", 0) == {0: 1}

    def test_agrees_with_individual_walks(self):
        text = 'x {"a": {"b": [1, {"c": "}"}]}, {"d": 2}'
        for opener, end in balanced_ends(text, 2).items():
            assert find_balanced_end(text, opener) == end
