"""Tests for speed quiz building and exercise scoring."""
from __future__ import annotations

import random

from vocab_classroom.exercises import (
    SPEED_QUESTION_SECONDS,
    SpeedQuizTracker,
    build_speed_quiz,
    grade_sentences,
    grade_subjective,
    pick_words,
    review_points,
    score_percent,
    speed_points,
)


def _vocab(n: int) -> list[dict]:
    return [{"id": i + 1, "word": f"word{i}", "meanings": [f"뜻{i}", "기타"]} for i in range(n)]


class TestBuildSpeedQuiz:
    def test_too_few_words(self):
        assert build_speed_quiz(_vocab(3)) == []

    def test_question_shape(self):
        questions = build_speed_quiz(_vocab(6), rng=random.Random(1))
        assert len(questions) == 6
        for q in questions:
            assert len(q.options) == 4
            assert q.correct_answer in q.options
            assert len(set(q.options)) == 4
            assert q.correct_answer == f"뜻{int(q.word[4:])}"
            assert q.vocabulary_id == int(q.word[4:]) + 1

    def test_limit(self):
        assert len(build_speed_quiz(_vocab(30), limit=20, rng=random.Random(2))) == 20

    def test_duplicate_meanings_not_repeated(self):
        vocab = _vocab(4) + [{"id": 99, "word": "dup", "meanings": ["뜻0"]}]
        for q in build_speed_quiz(vocab, rng=random.Random(3)):
            assert len(q.options) == len(set(q.options))

    def test_words_without_meanings_skipped(self):
        vocab = _vocab(3) + [{"id": 50, "word": "empty", "meanings": []}]
        assert build_speed_quiz(vocab) == []

    def test_deterministic_with_seed(self):
        a = build_speed_quiz(_vocab(8), rng=random.Random(7))
        b = build_speed_quiz(_vocab(8), rng=random.Random(7))
        assert a == b


class TestSpeedScoring:
    def test_speed_points(self):
        assert speed_points(combo=1, time_left=15) == 10 + 2 + 5
        assert speed_points(combo=3, time_left=2) == 10 + 6 + 0

    def test_tracker_combo(self):
        t = SpeedQuizTracker()
        assert t.answer(True, 15) == 17
        assert t.answer(True, 9) == 10 + 4 + 3
        assert t.answer(False, 5) == 0
        assert t.combo == 0
        assert t.answer(True, 0) == 12
        assert t.max_combo == 2
        assert t.time_bonus == 5 + 3 + 0

    def test_timeout_resets_combo(self):
        t = SpeedQuizTracker()
        t.answer(True, 10)
        t.timeout()
        assert t.combo == 0
        assert t.total == 2

    def test_outcome(self):
        t = SpeedQuizTracker()
        t.answer(True, 12)
        t.answer(False, 4)
        outcome = t.outcome()
        assert outcome.quiz_type == "speed"
        assert outcome.total_questions == 2
        assert outcome.correct_answers == 1
        assert outcome.score == 50
        assert outcome.points_earned == 10 + 2 + 4
        assert outcome.combo_max == 1
        assert outcome.time_taken == 2 * SPEED_QUESTION_SECONDS - 4


class TestGradedExercises:
    def test_subjective(self):
        graded = grade_subjective([
            ("달리다", ["달리다", "운영하다"]),
            ("Apple", ["사과"]),
            ("", ["책"]),
        ])
        assert graded.verdicts == [True, False, False]
        assert graded.outcome.quiz_type == "subjective"
        assert graded.outcome.points_earned == 15
        assert graded.outcome.score == 33

    def test_sentences(self):
        graded = grade_sentences([
            ("그는 매일 아침 달린다", "그는 매일 아침 달린다."),
            ("anything", None),
        ])
        assert graded.verdicts == [True, False]
        assert graded.outcome.points_earned == 5
        assert graded.outcome.score == 50

    def test_custom_threshold(self):
        graded = grade_subjective([("abcdx", ["abcde"])], threshold=0.9)
        assert graded.verdicts == [False]


class TestScorePercent:
    def test_zero_total(self):
        assert score_percent(0, 0) == 0

    def test_rounds_half_up(self):
        assert score_percent(1, 8) == 13
        assert score_percent(2, 3) == 67


class TestReviewPoints:
    def test_points_by_status(self):
        assert review_points("mastered") == 5
        assert review_points("learning") == 2


class TestPickWords:
    def test_limit(self):
        assert len(pick_words(_vocab(30), 15, rng=random.Random(1))) == 15

    def test_fewer_words_than_limit(self):
        words = pick_words(_vocab(3), 15, rng=random.Random(1))
        assert sorted(w["id"] for w in words) == [1, 2, 3]

    def test_skips_words_without_meanings(self):
        vocab = _vocab(2) + [{"id": 9, "word": "blank", "meanings": []}]
        assert 9 not in [w["id"] for w in pick_words(vocab, 10)]
