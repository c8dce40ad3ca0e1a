"""Learning-mode exercises: speed quiz, free-recall test, sentence practice.

Points per mode:
  speed       10 per correct answer, +2 per combo step, +1 per 3 seconds left
  subjective  15 per correct meaning
  sentence     5 per correct translation
  review       5 for marking a word mastered, 2 for "still learning"
"""
from __future__ import annotations

import random
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from vocab_classroom.grading import (
    MEANING_THRESHOLD,
    SENTENCE_THRESHOLD,
    check_meaning,
    check_translation,
)
from vocab_classroom.models import QuizOutcome, SpeedQuizQuestion

SPEED_QUESTION_SECONDS = 15
SPEED_BASE_POINTS = 10
SPEED_COMBO_POINTS = 2
SPEED_SECONDS_PER_BONUS = 3
SUBJECTIVE_POINTS = 15
SENTENCE_POINTS = 5
REVIEW_MASTERED_POINTS = 5
REVIEW_LEARNING_POINTS = 2

MIN_SPEED_QUIZ_WORDS = 4
SPEED_DISTRACTORS = 3


def score_percent(correct: int, total: int) -> int:
    if total <= 0:
        return 0
    return int(correct / total * 100 + 0.5)


def speed_points(combo: int, time_left: int) -> int:
    """Points for one correct speed answer; *combo* includes this answer."""
    return SPEED_BASE_POINTS + combo * SPEED_COMBO_POINTS + time_left // SPEED_SECONDS_PER_BONUS


def review_points(status: str) -> int:
    return REVIEW_MASTERED_POINTS if status == "mastered" else REVIEW_LEARNING_POINTS


def pick_words(
    vocabulary: Sequence[dict],
    limit: int,
    rng: random.Random | None = None,
) -> list[dict]:
    """A random selection of up to *limit* words that have a meaning."""
    rng = rng or random.Random()
    words = [w for w in vocabulary if _first_meaning(w)]
    return rng.sample(words, min(limit, len(words)))


def _first_meaning(word: dict) -> str:
    meanings = word.get("meanings") or []
    return meanings[0] if meanings else ""


def build_speed_quiz(
    vocabulary: Sequence[dict],
    limit: int = 20,
    rng: random.Random | None = None,
) -> list[SpeedQuizQuestion]:
    """Build multiple-choice questions from vocabulary rows.

    Each row needs ``word`` and ``meanings`` (``id`` is optional). The first
    meaning is the answer; distractors are first meanings of other words.
    Fewer than four usable words gives no quiz.
    """
    rng = rng or random.Random()
    words = [w for w in vocabulary if _first_meaning(w)]
    if len(words) < MIN_SPEED_QUIZ_WORDS:
        return []

    shuffled = list(words)
    rng.shuffle(shuffled)

    questions: list[SpeedQuizQuestion] = []
    for index, word in enumerate(shuffled[:limit]):
        correct = _first_meaning(word)
        others = [w for i, w in enumerate(shuffled) if i != index]
        rng.shuffle(others)

        distractors: list[str] = []
        for other in others:
            if len(distractors) >= SPEED_DISTRACTORS:
                break
            meaning = _first_meaning(other)
            if meaning != correct and meaning not in distractors:
                distractors.append(meaning)

        options = [correct] + distractors
        rng.shuffle(options)
        questions.append(SpeedQuizQuestion(
            vocabulary_id=word.get("id"),
            word=word["word"],
            correct_answer=correct,
            options=options,
        ))
    return questions


@dataclass
class SpeedQuizTracker:
    """Running totals for one speed quiz."""

    question_seconds: int = SPEED_QUESTION_SECONDS
    total: int = 0
    correct: int = 0
    combo: int = 0
    max_combo: int = 0
    points: int = 0
    time_bonus: int = 0
    last_time_left: int = 0

    def answer(self, correct: bool, time_left: int) -> int:
        """Record one answer; returns the points it earned."""
        self.total += 1
        self.last_time_left = time_left
        if not correct:
            self.combo = 0
            return 0
        self.correct += 1
        self.combo += 1
        self.max_combo = max(self.max_combo, self.combo)
        bonus = time_left // SPEED_SECONDS_PER_BONUS
        earned = speed_points(self.combo, time_left)
        self.time_bonus += bonus
        self.points += earned
        return earned

    def timeout(self) -> None:
        self.answer(False, 0)

    def outcome(self) -> QuizOutcome:
        return QuizOutcome(
            quiz_type="speed",
            total_questions=self.total,
            correct_answers=self.correct,
            score=score_percent(self.correct, self.total),
            points_earned=self.points,
            combo_max=self.max_combo,
            time_taken=self.total * self.question_seconds - self.last_time_left,
        )


@dataclass
class GradedAnswers:
    verdicts: list[bool] = field(default_factory=list)
    outcome: QuizOutcome | None = None


def grade_subjective(
    answers: Iterable[tuple[str, Sequence[str]]],
    threshold: float = MEANING_THRESHOLD,
) -> GradedAnswers:
    """Grade (user_answer, meanings) pairs from the free-recall test."""
    verdicts = [check_meaning(answer, meanings, threshold) for answer, meanings in answers]
    return _graded("subjective", verdicts, SUBJECTIVE_POINTS)


def grade_sentences(
    answers: Iterable[tuple[str, str | None]],
    threshold: float = SENTENCE_THRESHOLD,
) -> GradedAnswers:
    """Grade (user_translation, reference_translation) pairs."""
    verdicts = [check_translation(answer, reference, threshold) for answer, reference in answers]
    return _graded("sentence", verdicts, SENTENCE_POINTS)


def _graded(quiz_type: str, verdicts: list[bool], points_each: int) -> GradedAnswers:
    correct = sum(verdicts)
    return GradedAnswers(
        verdicts=verdicts,
        outcome=QuizOutcome(
            quiz_type=quiz_type,
            total_questions=len(verdicts),
            correct_answers=correct,
            score=score_percent(correct, len(verdicts)),
            points_earned=correct * points_each,
        ),
    )
