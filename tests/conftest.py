"""Shared test fixtures."""
from __future__ import annotations

import pytest

from vocab_classroom.db import Database
from vocab_classroom.models import VocabularyItem


@pytest.fixture
def tmp_db(tmp_path):
    """Create a fresh temporary database."""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def sample_items():
    """A small set of VocabularyItem objects for testing."""
    return [
        VocabularyItem("run", ["달리다", "운영하다"],
                       example_sentence="He runs every morning.",
                       sentence_translation="그는 매일 아침 달린다."),
        VocabularyItem("apple", ["사과"], part_of_speech="noun"),
        VocabularyItem("book", ["책", "예약하다"], problem_number=3),
        VocabularyItem("happy", ["행복한"],
                       example_sentence="She looks happy.",
                       sentence_translation="그녀는 행복해 보인다."),
        VocabularyItem("water", ["물"]),
    ]


@pytest.fixture
def unit_id(tmp_db):
    """A textbook with one unit; returns the unit id."""
    textbook_id = tmp_db.create_textbook("Reading Master 1", "Middle school")
    return tmp_db.create_unit(textbook_id, 1, "Unit 1")


@pytest.fixture
def populated_db(tmp_db, unit_id, sample_items):
    """A database with one unit of vocabulary."""
    tmp_db.import_vocabulary(unit_id, sample_items)
    return tmp_db


@pytest.fixture
def vocab_csv_content():
    """Minimal CSV upload content for parser testing."""
    return (
        "word,meaning,example_sentence,sentence_translation,part_of_speech,problem_number\n"
        'run,"달리다, 운영하다",He runs every morning.,그는 매일 아침 달린다.,verb,1\n'
        "apple,사과,,,noun,2\n"
        "book,책,,,,three\n"
    )


@pytest.fixture
def vocab_text_content():
    """Minimal delimited text content for parser testing."""
    return """\
run - 달리다, 운영하다 - He runs every morning. - 그는 매일 아침 달린다.
apple - 사과

happy - 행복한 - She looks happy.
"""


@pytest.fixture
def reading_content():
    """A four-line parallel passage."""
    return """\
Thanks to germ theory, / we know
세균 이론 덕분에, / 우리는 안다
that maintaining good personal hygiene / is important
좋은 개인 위생을 유지하는 것이 / 중요하다
"""
