"""Tests for vocabulary and reading passage parsers."""
from __future__ import annotations

from vocab_classroom.models import ReadingLine
from vocab_classroom.parsers.reading_parser import (
    clean_reading_text,
    parse_reading_passage,
    reading_preview,
    reading_stats,
)
from vocab_classroom.parsers.vocabulary_parser import (
    parse_vocabulary_csv,
    parse_vocabulary_file,
    parse_vocabulary_rows,
    parse_vocabulary_text,
    validate_headers,
)


class TestVocabularyRows:
    def test_partial_success(self):
        result = parse_vocabulary_rows([
            {"word": "run", "meaning": "달리다"},
            {"word": "", "meaning": "x"},
        ])
        assert len(result.data) == 1
        assert result.data[0].word == "run"
        assert len(result.errors) == 1
        assert result.success is False

    def test_meaning_split(self):
        result = parse_vocabulary_rows([{"word": "run", "meaning": "달리다, 운영하다"}])
        assert result.success
        assert result.data[0].meanings == ["달리다", "운영하다"]

    def test_meaning_only_commas(self):
        result = parse_vocabulary_rows([{"word": "run", "meaning": " , ,"}])
        assert result.data == []
        assert len(result.errors) == 1
        assert "Line 2" in result.errors[0]

    def test_missing_meaning(self):
        result = parse_vocabulary_rows([{"word": "run"}, {"word": "go", "meaning": None}])
        assert result.data == []
        assert len(result.errors) == 2

    def test_line_numbers_skip_header(self):
        result = parse_vocabulary_rows([
            {"word": "a", "meaning": "b"},
            {"word": "a", "meaning": "b"},
            {"word": "  ", "meaning": "b"},
        ])
        assert result.errors[0].startswith("Line 4")

    def test_problem_number_parsed(self):
        result = parse_vocabulary_rows([{"word": "run", "meaning": "달리다", "problem_number": " 12 "}])
        assert result.data[0].problem_number == 12
        assert result.warnings == []

    def test_bad_problem_number_is_warning(self):
        result = parse_vocabulary_rows([{"word": "run", "meaning": "달리다", "problem_number": "abc"}])
        assert result.success
        assert result.data[0].problem_number is None
        assert len(result.warnings) == 1
        assert result.errors == []

    def test_optional_fields_trimmed(self):
        result = parse_vocabulary_rows([{
            "word": "  run ",
            "meaning": "달리다",
            "part_of_speech": " verb ",
            "pronunciation": "   ",
            "example_sentence": "He runs.",
        }])
        item = result.data[0]
        assert item.word == "run"
        assert item.part_of_speech == "verb"
        assert item.pronunciation is None
        assert item.example_sentence == "He runs."
        assert item.sentence_translation is None

    def test_empty_rows(self):
        result = parse_vocabulary_rows([])
        assert result.success is False
        assert len(result.errors) == 1

    def test_idempotent(self):
        rows = [
            {"word": "run", "meaning": "달리다", "problem_number": "x"},
            {"word": "", "meaning": "y"},
        ]
        assert parse_vocabulary_rows(rows) == parse_vocabulary_rows(rows)


class TestValidateHeaders:
    def test_valid(self):
        check = validate_headers(["word", "meaning", "example_sentence"])
        assert check.valid
        assert check.message is None

    def test_unexpected_column(self):
        check = validate_headers(["word", "meaning", "bogus_column"])
        assert not check.valid
        assert "bogus_column" in check.message

    def test_missing_word(self):
        check = validate_headers(["meaning"])
        assert not check.valid
        assert '"word"' in check.message

    def test_missing_takes_priority(self):
        check = validate_headers(["word", "bogus"])
        assert not check.valid
        assert '"meaning"' in check.message

    def test_blank_headers_ignored(self):
        assert validate_headers(["word", "meaning", "", "  "]).valid


class TestVocabularyText:
    def test_full_line(self):
        result = parse_vocabulary_text(
            "run - 달리다, 운영하다 - He runs every morning. - 그는 매일 아침 달린다."
        )
        assert result.success
        item = result.data[0]
        assert item.word == "run"
        assert item.meanings == ["달리다", "운영하다"]
        assert item.example_sentence == "He runs every morning."
        assert item.sentence_translation == "그는 매일 아침 달린다."

    def test_blank_lines_skipped(self, vocab_text_content):
        result = parse_vocabulary_text(vocab_text_content)
        assert result.success
        assert [i.word for i in result.data] == ["run", "apple", "happy"]
        assert result.data[1].example_sentence is None
        assert result.data[2].example_sentence == "She looks happy."
        assert result.data[2].sentence_translation is None

    def test_missing_delimiter(self):
        result = parse_vocabulary_text("run - 달리다\nwalk-걷다")
        assert len(result.data) == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Line 2")
        assert "word - meaning" in result.errors[0]
        assert not result.success

    def test_empty_word(self):
        result = parse_vocabulary_text(" - 달리다")
        # the line is trimmed first, so the delimiter disappears
        assert not result.success
        assert result.data == []

    def test_empty_meaning(self):
        result = parse_vocabulary_text("run -  - example")
        assert not result.success
        assert "meaning" in result.errors[0]

    def test_empty_input(self):
        result = parse_vocabulary_text("   \n  ")
        assert not result.success
        assert result.errors == ["Input text is empty."]


class TestVocabularyCsv:
    def test_parse_basic(self, vocab_csv_content):
        result = parse_vocabulary_csv(vocab_csv_content)
        assert result.success
        assert len(result.data) == 3
        run = result.data[0]
        assert run.meanings == ["달리다", "운영하다"]
        assert run.part_of_speech == "verb"
        assert run.problem_number == 1

    def test_bad_problem_number_warns(self, vocab_csv_content):
        result = parse_vocabulary_csv(vocab_csv_content)
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Line 4")

    def test_bad_header(self):
        result = parse_vocabulary_csv("word,meaning,extra\nrun,달리다,x\n")
        assert not result.success
        assert result.data == []
        assert "extra" in result.errors[0]

    def test_bom_stripped(self):
        result = parse_vocabulary_csv("\ufeffword,meaning\nrun,달리다\n")
        assert result.success
        assert result.data[0].word == "run"

    def test_empty_text(self):
        result = parse_vocabulary_csv("")
        assert not result.success

    def test_file_dispatch(self, tmp_path, vocab_csv_content, vocab_text_content):
        csv_file = tmp_path / "unit1.csv"
        csv_file.write_text(vocab_csv_content, encoding="utf-8")
        txt_file = tmp_path / "unit1.txt"
        txt_file.write_text(vocab_text_content, encoding="utf-8")

        assert len(parse_vocabulary_file(csv_file).data) == 3
        assert len(parse_vocabulary_file(txt_file).data) == 3


class TestReadingParser:
    def test_pairs(self, reading_content):
        result = parse_reading_passage(reading_content)
        assert result.success
        lines = result.data.lines
        assert len(lines) == 2
        assert [l.line_index for l in lines] == [0, 1]
        assert lines[0].english == "Thanks to germ theory, / we know"
        assert lines[0].korean == "세균 이론 덕분에, / 우리는 안다"
        assert result.warnings == []

    def test_slash_not_split(self, reading_content):
        result = parse_reading_passage(reading_content)
        assert "/" in result.data.lines[1].english

    def test_full_text_trimmed(self, reading_content):
        result = parse_reading_passage("\n\n" + reading_content + "\n\n")
        assert result.data.full_text == reading_content.strip()

    def test_odd_line_count(self):
        result = parse_reading_passage("Hello\n안녕\nGoodbye")
        assert result.success is False
        assert len(result.data.lines) == 1
        assert len(result.errors) == 1
        assert "3" in result.errors[0]
        assert len(result.warnings) == 1

    def test_single_line(self):
        result = parse_reading_passage("Hello")
        assert result.success is False
        assert result.data is None
        assert len(result.errors) == 2

    def test_language_warnings_do_not_fail(self):
        result = parse_reading_passage("안녕하세요\nHello")
        assert result.success
        assert len(result.warnings) == 2
        assert result.warnings[0].startswith("Line 1")
        assert result.warnings[1].startswith("Line 2")

    def test_empty(self):
        result = parse_reading_passage("  \n ")
        assert result.success is False
        assert result.data is None

    def test_clean_text(self):
        assert clean_reading_text("  a \n\n b\n") == "a\nb"


class TestReadingHelpers:
    def test_preview(self):
        lines = [ReadingLine(i, f"en {i}", f"ko {i}") for i in range(5)]
        assert reading_preview(lines, 2) == "en 0\nko 0\n\nen 1\nko 1"

    def test_preview_empty(self):
        assert reading_preview([]) == ""

    def test_stats(self):
        lines = [
            ReadingLine(0, "Thanks to germ theory, / we know", "x"),
            ReadingLine(1, "it is  important", "y"),
        ]
        stats = reading_stats(lines)
        assert stats.total_lines == 2
        assert stats.total_english_words == 10
        assert stats.avg_words_per_line == 5

    def test_stats_round_half_up(self):
        lines = [ReadingLine(0, "a b", "x"), ReadingLine(1, "c", "y")]
        assert reading_stats(lines).avg_words_per_line == 2

    def test_stats_empty(self):
        stats = reading_stats([])
        assert stats.total_lines == 0
        assert stats.avg_words_per_line == 0
