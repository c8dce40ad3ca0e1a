"""Tests for data models."""
from __future__ import annotations

from vocab_classroom.models import (
    ParsedReading,
    ParseResult,
    ReadingLine,
    ReadingParseResult,
    VocabularyItem,
)


class TestVocabularyItem:
    def test_defaults(self):
        item = VocabularyItem("run", ["달리다"])
        assert item.part_of_speech is None
        assert item.problem_number is None

    def test_to_dict(self):
        item = VocabularyItem("run", ["달리다", "운영하다"], problem_number=4)
        d = item.to_dict()
        assert d["meanings"] == ["달리다", "운영하다"]
        assert d["problem_number"] == 4
        assert d["example_sentence"] is None


class TestParseResult:
    def test_defaults(self):
        r = ParseResult()
        assert r.success is True
        assert r.data == [] and r.errors == [] and r.warnings == []

    def test_defaults_not_shared(self):
        a, b = ParseResult(), ParseResult()
        a.errors.append("x")
        assert b.errors == []

    def test_to_dict(self):
        r = ParseResult(success=False, data=[VocabularyItem("run", ["달리다"])], errors=["e"])
        d = r.to_dict()
        assert d["success"] is False
        assert d["data"][0]["word"] == "run"
        assert d["errors"] == ["e"]


class TestReadingParseResult:
    def test_to_dict_without_data(self):
        assert ReadingParseResult(success=False).to_dict()["data"] is None

    def test_to_dict_with_lines(self):
        reading = ParsedReading("a\n가", [ReadingLine(0, "a", "가")])
        d = ReadingParseResult(data=reading).to_dict()
        assert d["data"]["full_text"] == "a\n가"
        assert d["data"]["lines"] == [{"line_index": 0, "english": "a", "korean": "가"}]
