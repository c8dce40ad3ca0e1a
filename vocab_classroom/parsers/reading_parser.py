"""Parse parallel English/Korean reading passages.

Lines alternate, English first:

  Thanks to germ theory, / we know
  세균 이론 덕분에, / 우리는 안다
  that maintaining good personal hygiene / is important
  좋은 개인 위생을 유지하는 것이 / 중요하다

Blank lines are ignored. "/" marks a phrase break for display and is kept
as part of the text.
"""
from __future__ import annotations

import math
import re
from collections.abc import Sequence

from vocab_classroom.models import (
    ParsedReading,
    ReadingLine,
    ReadingParseResult,
    ReadingStats,
)

_ENGLISH = re.compile(r"[a-zA-Z]")
_HANGUL = re.compile(r"[가-힣]")

SNIPPET_LENGTH = 30


def _non_empty_lines(text: str) -> list[str]:
    return [line.strip() for line in text.split("\n") if line.strip()]


def parse_reading_passage(text: str) -> ReadingParseResult:
    result = ReadingParseResult()

    if not text or not text.strip():
        result.success = False
        result.errors.append("Input text is empty.")
        return result

    all_lines = _non_empty_lines(text)

    # An odd count still yields the complete pairs; the result is marked
    # failed but keeps its data so the editor can see what was usable.
    if len(all_lines) % 2 != 0:
        result.errors.append(
            f"Odd number of lines ({len(all_lines)}). "
            "English and Korean lines must come in pairs."
        )
        result.warnings.append("The last line may be missing its translation.")

    lines: list[ReadingLine] = []
    for i in range(len(all_lines) // 2):
        english = all_lines[i * 2]
        korean = all_lines[i * 2 + 1]

        if not _ENGLISH.search(english):
            result.warnings.append(
                f'Line {i * 2 + 1}: may not be English text. "{english[:SNIPPET_LENGTH]}..."'
            )
        if not _HANGUL.search(korean):
            result.warnings.append(
                f'Line {i * 2 + 2}: may not be Korean text. "{korean[:SNIPPET_LENGTH]}..."'
            )

        lines.append(ReadingLine(line_index=i, english=english, korean=korean))

    if not lines:
        result.success = False
        result.errors.append("No lines could be parsed.")
        return result

    result.data = ParsedReading(full_text=text.strip(), lines=lines)
    result.success = not result.errors
    return result


def clean_reading_text(text: str) -> str:
    return "\n".join(_non_empty_lines(text))


def reading_preview(lines: Sequence[ReadingLine], count: int = 3) -> str:
    return "\n\n".join(f"{line.english}\n{line.korean}" for line in lines[:count])


def reading_stats(lines: Sequence[ReadingLine]) -> ReadingStats:
    total_lines = len(lines)
    total_words = sum(len(line.english.split()) for line in lines)
    # Half-up rounding, not round()'s half-to-even.
    avg = math.floor(total_words / total_lines + 0.5) if total_lines else 0
    return ReadingStats(
        total_lines=total_lines,
        total_english_words=total_words,
        avg_words_per_line=avg,
    )
