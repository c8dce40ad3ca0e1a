"""Fuzzy grading of free-text answers.

Answers and references are normalized (case, whitespace, punctuation) and
compared by Levenshtein similarity:

    similarity = (max_len - edit_distance) / max_len

An answer is correct when it matches any reference exactly after
normalization, or when its similarity reaches the threshold.
"""
from __future__ import annotations

import re
from collections.abc import Iterable

# Free-recall of a word's meaning.
MEANING_THRESHOLD = 0.8
# Sentence translation; longer strings tolerate more edits.
SENTENCE_THRESHOLD = 0.7

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=\-_`~()]")


def normalize(text: str) -> str:
    text = _WHITESPACE.sub(" ", text.lower().strip())
    return _PUNCTUATION.sub("", text)


def edit_distance(a: str, b: str) -> int:
    """Levenshtein distance with unit costs, two rows at a time."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - edit_distance(a, b)) / longest


def best_similarity(user_answer: str, reference_answers: str | Iterable[str | None]) -> float:
    """Highest similarity between the answer and any non-empty reference."""
    answer = normalize(user_answer or "")
    scores = [similarity(answer, ref) for ref in _references(reference_answers)]
    return max(scores, default=0.0)


def is_correct(
    user_answer: str,
    reference_answers: str | Iterable[str | None],
    threshold: float,
) -> bool:
    answer = normalize(user_answer or "")
    for expected in _references(reference_answers):
        if answer == expected:
            return True
        if similarity(answer, expected) >= threshold:
            return True
    return False


def check_meaning(
    user_answer: str, meanings: Iterable[str], threshold: float = MEANING_THRESHOLD
) -> bool:
    return is_correct(user_answer, meanings, threshold)


def check_translation(
    user_answer: str, reference: str | None, threshold: float = SENTENCE_THRESHOLD
) -> bool:
    if not reference:
        return False
    return is_correct(user_answer, reference, threshold)


def _references(reference_answers: str | Iterable[str | None]) -> list[str]:
    """Normalized references, dropping any that normalize to nothing."""
    if isinstance(reference_answers, str):
        reference_answers = [reference_answers]
    normalized = (normalize(ref) for ref in reference_answers if ref)
    return [ref for ref in normalized if ref]
