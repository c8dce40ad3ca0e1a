"""Parse bulk vocabulary input into VocabularyItem objects.

Two input shapes are accepted:
  CSV with a header row     word,meaning,example_sentence,...
  Delimited text lines      word - meaning - example sentence - translation

Meanings are comma-separated ("달리다, 운영하다"). Problems are collected
per row in the result envelope; nothing here raises for bad content.
"""
from __future__ import annotations

import csv
import io
import re
from collections.abc import Iterable, Mapping
from pathlib import Path

from vocab_classroom.models import HeaderValidation, ParseResult, VocabularyItem

REQUIRED_HEADERS = ("word", "meaning")
OPTIONAL_HEADERS = (
    "example_sentence",
    "sentence_translation",
    "part_of_speech",
    "pronunciation",
    "problem_number",
)
ALLOWED_HEADERS = REQUIRED_HEADERS + OPTIONAL_HEADERS

TEXT_DELIMITER = " - "

_LEADING_INT = re.compile(r"^[+-]?\d+")


def split_meanings(meaning: str) -> list[str]:
    return [m.strip() for m in meaning.split(",") if m.strip()]


def _cell(row: Mapping[str, str | None], key: str) -> str:
    value = row.get(key)
    return value.strip() if value else ""


def _optional(row: Mapping[str, str | None], key: str) -> str | None:
    return _cell(row, key) or None


def _parse_int(text: str) -> int | None:
    # Leading digits win ("12번" -> 12), anything else is not a number.
    m = _LEADING_INT.match(text)
    return int(m.group(0)) if m else None


def parse_vocabulary_rows(rows: Iterable[Mapping[str, str | None]]) -> ParseResult:
    result = ParseResult()
    rows = list(rows)

    if not rows:
        result.success = False
        result.errors.append("CSV data is empty.")
        return result

    for index, row in enumerate(rows):
        line = index + 2  # header is line 1

        word = _cell(row, "word")
        if not word:
            result.errors.append(f"Line {line}: word is empty.")
            continue

        meaning = _cell(row, "meaning")
        if not meaning:
            result.errors.append(f"Line {line}: meaning is empty.")
            continue

        meanings = split_meanings(meaning)
        if not meanings:
            result.errors.append(f"Line {line}: no valid meaning found.")
            continue

        problem_number = None
        raw_number = _cell(row, "problem_number")
        if raw_number:
            problem_number = _parse_int(raw_number)
            if problem_number is None:
                result.warnings.append(
                    f"Line {line}: problem number {raw_number!r} is not a number and was ignored."
                )

        result.data.append(VocabularyItem(
            word=word,
            meanings=meanings,
            part_of_speech=_optional(row, "part_of_speech"),
            pronunciation=_optional(row, "pronunciation"),
            example_sentence=_optional(row, "example_sentence"),
            sentence_translation=_optional(row, "sentence_translation"),
            problem_number=problem_number,
        ))

    result.success = not result.errors
    return result


def validate_headers(headers: Iterable[str]) -> HeaderValidation:
    headers = list(headers)

    for required in REQUIRED_HEADERS:
        if required not in headers:
            return HeaderValidation(False, f'Missing required column "{required}".')

    unexpected = [h for h in headers if h.strip() and h not in ALLOWED_HEADERS]
    if unexpected:
        return HeaderValidation(False, f"Unexpected columns: {', '.join(unexpected)}")

    return HeaderValidation(True)


def parse_vocabulary_text(text: str) -> ParseResult:
    result = ParseResult()

    if not text or not text.strip():
        result.success = False
        result.errors.append("Input text is empty.")
        return result

    lines = [line.strip() for line in text.split("\n") if line.strip()]

    for index, line in enumerate(lines):
        number = index + 1
        parts = [p.strip() for p in line.split(TEXT_DELIMITER)]

        if len(parts) < 2:
            result.errors.append(
                f'Line {number}: invalid format. Use "word - meaning".'
            )
            continue

        word, meaning = parts[0], parts[1]
        if not word:
            result.errors.append(f"Line {number}: word is empty.")
            continue
        if not meaning:
            result.errors.append(f"Line {number}: meaning is empty.")
            continue

        meanings = split_meanings(meaning)
        if not meanings:
            result.errors.append(f"Line {number}: no valid meaning found.")
            continue

        result.data.append(VocabularyItem(
            word=word,
            meanings=meanings,
            example_sentence=(parts[2] if len(parts) > 2 else "") or None,
            sentence_translation=(parts[3] if len(parts) > 3 else "") or None,
        ))

    result.success = not result.errors
    return result


def parse_vocabulary_csv(text: str) -> ParseResult:
    """Decode CSV text, check its header row, then parse the rows."""
    text = text.lstrip("\ufeff")
    reader = csv.DictReader(io.StringIO(text))
    try:
        headers = [h.strip() for h in (reader.fieldnames or [])]
        reader.fieldnames = headers
        rows = list(reader)
    except csv.Error as e:
        return ParseResult(success=False, errors=[f"Could not read CSV: {e}"])

    check = validate_headers(headers)
    if not check.valid:
        return ParseResult(success=False, errors=[check.message or "Invalid CSV header."])

    return parse_vocabulary_rows(rows)


def parse_vocabulary_file(path: Path) -> ParseResult:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".csv":
        return parse_vocabulary_csv(text)
    return parse_vocabulary_text(text)
