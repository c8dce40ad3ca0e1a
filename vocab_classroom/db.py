from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from vocab_classroom.models import ParsedReading, QuizOutcome, VocabularyItem

SCHEMA = """
CREATE TABLE IF NOT EXISTS textbooks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS units (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    textbook_id INTEGER NOT NULL REFERENCES textbooks(id) ON DELETE CASCADE,
    unit_number INTEGER NOT NULL,
    title TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (textbook_id, unit_number)
);

CREATE TABLE IF NOT EXISTS vocabulary (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    unit_id INTEGER NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    word TEXT NOT NULL,
    meanings_json TEXT NOT NULL,
    part_of_speech TEXT,
    pronunciation TEXT,
    example_sentence TEXT,
    sentence_translation TEXT,
    problem_number INTEGER,
    created_at TEXT NOT NULL,
    UNIQUE (unit_id, word)
);

CREATE TABLE IF NOT EXISTS reading_passages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    unit_id INTEGER NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    problem_number INTEGER NOT NULL,
    title TEXT,
    full_text TEXT NOT NULL,
    lines_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    UNIQUE (unit_id, problem_number)
);

CREATE TABLE IF NOT EXISTS vocabulary_progress (
    student_id INTEGER NOT NULL,
    vocabulary_id INTEGER NOT NULL REFERENCES vocabulary(id) ON DELETE CASCADE,
    status TEXT NOT NULL DEFAULT 'learning',
    review_count INTEGER DEFAULT 0,
    last_reviewed TEXT,
    PRIMARY KEY (student_id, vocabulary_id)
);

CREATE TABLE IF NOT EXISTS quiz_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL,
    unit_id INTEGER,
    quiz_type TEXT NOT NULL,
    score INTEGER NOT NULL,
    total_questions INTEGER NOT NULL,
    correct_answers INTEGER NOT NULL,
    combo_max INTEGER DEFAULT 0,
    time_taken INTEGER DEFAULT 0,
    points_earned INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL,
    activity_type TEXT NOT NULL,
    vocabulary_id INTEGER,
    points_earned INTEGER DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS assignments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    student_id INTEGER NOT NULL,
    textbook_id INTEGER NOT NULL REFERENCES textbooks(id) ON DELETE CASCADE,
    unit_id INTEGER NOT NULL REFERENCES units(id) ON DELETE CASCADE,
    assignment_type TEXT NOT NULL,
    vocabulary_items_json TEXT,
    reading_passage_ids_json TEXT,
    due_date TEXT,
    status TEXT NOT NULL DEFAULT 'assigned',
    created_at TEXT NOT NULL
);
"""

PROGRESS_STATUSES = ("learning", "mastered")
ASSIGNMENT_TYPES = ("vocabulary", "reading", "both")
ASSIGNMENT_STATUSES = ("assigned", "in_progress", "completed")
ACTIVE_ASSIGNMENT_STATUSES = ("assigned", "in_progress")

_UNSET = object()


class DuplicatePassageError(ValueError):
    """A passage with this problem number already exists in the unit."""


class DuplicateWordError(ValueError):
    """Another word with the same spelling already exists in the unit."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _vocabulary_row(row: sqlite3.Row) -> dict:
    d = dict(row)
    d["meanings"] = json.loads(d.pop("meanings_json"))
    return d


def _passage_row(row: sqlite3.Row) -> dict:
    d = dict(row)
    d["lines"] = json.loads(d.pop("lines_json"))
    return d


def _assignment_row(row: sqlite3.Row) -> dict:
    d = dict(row)
    vocab = d.pop("vocabulary_items_json")
    passages = d.pop("reading_passage_ids_json")
    d["vocabulary_items"] = json.loads(vocab) if vocab else None
    d["reading_passage_ids"] = json.loads(passages) if passages else None
    return d


def _selects(selection: dict | None, word: dict) -> bool:
    """Whether an assignment's vocabulary selection includes *word*.

    A missing selection or ``{"all": true}`` takes the whole unit; otherwise
    ``problem_numbers`` or ``word_ids`` narrow it.
    """
    if not selection or selection.get("all"):
        return True
    if selection.get("problem_numbers") is not None:
        return word["problem_number"] in selection["problem_numbers"]
    if selection.get("word_ids") is not None:
        return word["id"] in selection["word_ids"]
    return False


class Database:
    def __init__(self, db_path: Path):
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self) -> None:
        self.conn.close()

    # ── Textbooks ─────────────────────────────────────────────────────────

    def create_textbook(self, title: str, description: str | None = None) -> int:
        cur = self.conn.execute(
            "INSERT INTO textbooks (title, description, created_at) VALUES (?, ?, ?)",
            (title, description, _now()),
        )
        self.conn.commit()
        return cur.lastrowid

    def get_textbooks(self) -> list[dict]:
        rows = self.conn.execute("""
            SELECT t.*, COUNT(u.id) AS unit_count
            FROM textbooks t
            LEFT JOIN units u ON u.textbook_id = t.id
            GROUP BY t.id
            ORDER BY t.id
        """).fetchall()
        return [dict(r) for r in rows]

    def get_textbook(self, textbook_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM textbooks WHERE id = ?", (textbook_id,)
        ).fetchone()
        return dict(row) if row else None

    def delete_textbook(self, textbook_id: int) -> bool:
        """Remove a textbook with its units, vocabulary and passages."""
        cur = self.conn.execute("DELETE FROM textbooks WHERE id = ?", (textbook_id,))
        self.conn.commit()
        return cur.rowcount > 0

    # ── Units ─────────────────────────────────────────────────────────────

    def create_unit(self, textbook_id: int, unit_number: int, title: str) -> int:
        cur = self.conn.execute(
            "INSERT INTO units (textbook_id, unit_number, title, created_at) "
            "VALUES (?, ?, ?, ?)",
            (textbook_id, unit_number, title, _now()),
        )
        self.conn.commit()
        return cur.lastrowid

    def get_units(self, textbook_id: int) -> list[dict]:
        rows = self.conn.execute("""
            SELECT u.*,
                (SELECT COUNT(*) FROM vocabulary v WHERE v.unit_id = u.id) AS vocabulary_count,
                (SELECT COUNT(*) FROM reading_passages p WHERE p.unit_id = u.id) AS passage_count
            FROM units u
            WHERE u.textbook_id = ?
            ORDER BY u.unit_number
        """, (textbook_id,)).fetchall()
        return [dict(r) for r in rows]

    def get_unit(self, unit_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM units WHERE id = ?", (unit_id,)
        ).fetchone()
        return dict(row) if row else None

    # ── Vocabulary ────────────────────────────────────────────────────────

    def import_vocabulary(self, unit_id: int, items: list[VocabularyItem]) -> int:
        """Insert parsed items into a unit, skipping words already present.

        Returns the number of rows actually inserted.
        """
        count = 0
        now = _now()
        for item in items:
            cur = self.conn.execute(
                "INSERT OR IGNORE INTO vocabulary "
                "(unit_id, word, meanings_json, part_of_speech, pronunciation, "
                "example_sentence, sentence_translation, problem_number, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    unit_id,
                    item.word,
                    json.dumps(item.meanings, ensure_ascii=False),
                    item.part_of_speech,
                    item.pronunciation,
                    item.example_sentence,
                    item.sentence_translation,
                    item.problem_number,
                    now,
                ),
            )
            count += cur.rowcount
        self.conn.commit()
        return count

    def get_vocabulary(
        self,
        unit_id: int | None = None,
        limit: int | None = None,
        student_id: int | None = None,
        status: str | None = None,
    ) -> list[dict]:
        """Words of one unit (or all units), in problem order.

        With *student_id* and *status*, keep only words at that progress
        status for the student. Words never studied count as "learning".
        """
        sql = "SELECT * FROM vocabulary"
        params: list = []
        if unit_id is not None:
            sql += " WHERE unit_id = ?"
            params.append(unit_id)
        sql += " ORDER BY COALESCE(problem_number, 0), id"
        rows = [_vocabulary_row(r) for r in self.conn.execute(sql, params).fetchall()]
        if student_id is not None and status is not None:
            rows = self._filter_by_status(rows, student_id, status)
        return rows[:limit] if limit is not None else rows

    def get_assigned_vocabulary(
        self,
        student_id: int,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[dict]:
        """Words from the student's open vocabulary assignments, without repeats."""
        words: dict[int, dict] = {}
        for assignment in self.get_assignments(student_id=student_id):
            if assignment["status"] not in ACTIVE_ASSIGNMENT_STATUSES:
                continue
            for word in self.get_assignment_vocabulary(assignment):
                words.setdefault(word["id"], word)
        rows = list(words.values())
        if status is not None:
            rows = self._filter_by_status(rows, student_id, status)
        return rows[:limit] if limit is not None else rows

    def _filter_by_status(self, rows: list[dict], student_id: int, status: str) -> list[dict]:
        if status not in PROGRESS_STATUSES:
            raise ValueError(f"Unknown progress status: {status}")
        progress = {
            r["vocabulary_id"]: r["status"]
            for r in self.conn.execute(
                "SELECT vocabulary_id, status FROM vocabulary_progress WHERE student_id = ?",
                (student_id,),
            ).fetchall()
        }
        return [w for w in rows if progress.get(w["id"], "learning") == status]

    def get_vocabulary_item(self, vocabulary_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM vocabulary WHERE id = ?", (vocabulary_id,)
        ).fetchone()
        return _vocabulary_row(row) if row else None

    def update_vocabulary(self, vocabulary_id: int, item: VocabularyItem) -> bool:
        clash = self.conn.execute(
            "SELECT other.id FROM vocabulary other "
            "JOIN vocabulary this ON this.unit_id = other.unit_id "
            "WHERE this.id = ? AND other.word = ? AND other.id != this.id",
            (vocabulary_id, item.word),
        ).fetchone()
        if clash:
            raise DuplicateWordError(f'"{item.word}" already exists in this unit')
        cur = self.conn.execute(
            "UPDATE vocabulary SET word=?, meanings_json=?, part_of_speech=?, "
            "pronunciation=?, example_sentence=?, sentence_translation=?, "
            "problem_number=? WHERE id=?",
            (
                item.word,
                json.dumps(item.meanings, ensure_ascii=False),
                item.part_of_speech,
                item.pronunciation,
                item.example_sentence,
                item.sentence_translation,
                item.problem_number,
                vocabulary_id,
            ),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def delete_vocabulary(self, vocabulary_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM vocabulary WHERE id = ?", (vocabulary_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def get_vocabulary_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM vocabulary").fetchone()
        return row[0]

    # ── Reading passages ──────────────────────────────────────────────────

    def create_reading_passage(
        self,
        unit_id: int,
        problem_number: int,
        reading: ParsedReading,
        title: str | None = None,
    ) -> int:
        existing = self.conn.execute(
            "SELECT id FROM reading_passages WHERE unit_id = ? AND problem_number = ?",
            (unit_id, problem_number),
        ).fetchone()
        if existing:
            raise DuplicatePassageError(
                f"Unit {unit_id} already has a passage for problem {problem_number}"
            )
        cur = self.conn.execute(
            "INSERT INTO reading_passages "
            "(unit_id, problem_number, title, full_text, lines_json, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                unit_id,
                problem_number,
                title.strip() if title and title.strip() else None,
                reading.full_text,
                json.dumps([line.to_dict() for line in reading.lines], ensure_ascii=False),
                _now(),
            ),
        )
        self.conn.commit()
        return cur.lastrowid

    def get_reading_passages(self, unit_id: int) -> list[dict]:
        rows = self.conn.execute(
            "SELECT * FROM reading_passages WHERE unit_id = ? ORDER BY problem_number",
            (unit_id,),
        ).fetchall()
        return [_passage_row(r) for r in rows]

    def get_reading_passage(self, passage_id: int) -> dict | None:
        row = self.conn.execute(
            "SELECT * FROM reading_passages WHERE id = ?", (passage_id,)
        ).fetchone()
        return _passage_row(row) if row else None

    def delete_reading_passage(self, passage_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM reading_passages WHERE id = ?", (passage_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def get_passage_count(self) -> int:
        row = self.conn.execute("SELECT COUNT(*) FROM reading_passages").fetchone()
        return row[0]

    # ── Progress ──────────────────────────────────────────────────────────

    def set_progress(self, student_id: int, vocabulary_id: int, status: str) -> None:
        if status not in PROGRESS_STATUSES:
            raise ValueError(f"Unknown progress status: {status}")
        self.conn.execute("""
            INSERT INTO vocabulary_progress
                (student_id, vocabulary_id, status, review_count, last_reviewed)
            VALUES (?, ?, ?, 1, ?)
            ON CONFLICT (student_id, vocabulary_id) DO UPDATE SET
                status = excluded.status,
                review_count = review_count + 1,
                last_reviewed = excluded.last_reviewed
        """, (student_id, vocabulary_id, status, _now()))
        self.conn.commit()

    def get_progress(self, student_id: int) -> list[dict]:
        rows = self.conn.execute("""
            SELECT p.*, v.word
            FROM vocabulary_progress p
            JOIN vocabulary v ON v.id = p.vocabulary_id
            WHERE p.student_id = ?
            ORDER BY p.last_reviewed DESC
        """, (student_id,)).fetchall()
        return [dict(r) for r in rows]

    # ── Quiz results ──────────────────────────────────────────────────────

    def record_quiz_result(
        self, student_id: int, outcome: QuizOutcome, unit_id: int | None = None
    ) -> int:
        cur = self.conn.execute(
            "INSERT INTO quiz_results "
            "(student_id, unit_id, quiz_type, score, total_questions, correct_answers, "
            "combo_max, time_taken, points_earned, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                student_id,
                unit_id,
                outcome.quiz_type,
                outcome.score,
                outcome.total_questions,
                outcome.correct_answers,
                outcome.combo_max,
                outcome.time_taken,
                outcome.points_earned,
                _now(),
            ),
        )
        self.conn.commit()
        return cur.lastrowid

    def get_quiz_results(
        self, student_id: int, quiz_type: str | None = None, limit: int = 10
    ) -> list[dict]:
        """Most recent results first."""
        sql = "SELECT * FROM quiz_results WHERE student_id = ?"
        params: list = [student_id]
        if quiz_type:
            sql += " AND quiz_type = ?"
            params.append(quiz_type)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ?"
        params.append(limit)
        rows = self.conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def get_total_points(self, student_id: int) -> int:
        """Quiz points plus points from flash-card review."""
        row = self.conn.execute("""
            SELECT
                (SELECT COALESCE(SUM(points_earned), 0) FROM quiz_results WHERE student_id = ?)
                + (SELECT COALESCE(SUM(points_earned), 0) FROM activity_log WHERE student_id = ?)
        """, (student_id, student_id)).fetchone()
        return row[0]

    # ── Activity log ──────────────────────────────────────────────────────

    def log_activity(
        self,
        student_id: int,
        activity_type: str,
        points_earned: int = 0,
        vocabulary_id: int | None = None,
    ) -> int:
        cur = self.conn.execute(
            "INSERT INTO activity_log "
            "(student_id, activity_type, vocabulary_id, points_earned, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (student_id, activity_type, vocabulary_id, points_earned, _now()),
        )
        self.conn.commit()
        return cur.lastrowid

    # ── Assignments ───────────────────────────────────────────────────────

    def create_assignments(
        self,
        student_ids: list[int],
        textbook_id: int,
        unit_id: int,
        assignment_type: str,
        vocabulary_items: dict | None = None,
        reading_passage_ids: list[int] | None = None,
        due_date: str | None = None,
    ) -> list[int]:
        """Give the same assignment to each student; returns the new ids."""
        if assignment_type not in ASSIGNMENT_TYPES:
            raise ValueError(f"Unknown assignment type: {assignment_type}")
        vocab_json = json.dumps(vocabulary_items) if vocabulary_items is not None else None
        passages_json = (
            json.dumps(reading_passage_ids) if reading_passage_ids is not None else None
        )
        now = _now()
        ids = []
        with self.conn:
            for student_id in student_ids:
                cur = self.conn.execute(
                    "INSERT INTO assignments "
                    "(student_id, textbook_id, unit_id, assignment_type, "
                    "vocabulary_items_json, reading_passage_ids_json, due_date, "
                    "status, created_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, 'assigned', ?)",
                    (student_id, textbook_id, unit_id, assignment_type,
                     vocab_json, passages_json, due_date, now),
                )
                ids.append(cur.lastrowid)
        return ids

    def get_assignments(self, student_id: int | None = None) -> list[dict]:
        """Newest first, with textbook and unit titles."""
        sql = """
            SELECT a.*, t.title AS textbook_title,
                   u.unit_number, u.title AS unit_title
            FROM assignments a
            JOIN textbooks t ON t.id = a.textbook_id
            JOIN units u ON u.id = a.unit_id
        """
        params: list = []
        if student_id is not None:
            sql += " WHERE a.student_id = ?"
            params.append(student_id)
        sql += " ORDER BY a.created_at DESC, a.id DESC"
        rows = self.conn.execute(sql, params).fetchall()
        return [_assignment_row(r) for r in rows]

    def get_assignment(self, assignment_id: int) -> dict | None:
        row = self.conn.execute("""
            SELECT a.*, t.title AS textbook_title,
                   u.unit_number, u.title AS unit_title
            FROM assignments a
            JOIN textbooks t ON t.id = a.textbook_id
            JOIN units u ON u.id = a.unit_id
            WHERE a.id = ?
        """, (assignment_id,)).fetchone()
        return _assignment_row(row) if row else None

    def get_assignment_vocabulary(self, assignment: dict) -> list[dict]:
        """The unit words an assignment covers; none for reading-only ones."""
        if assignment["assignment_type"] not in ("vocabulary", "both"):
            return []
        return [
            w for w in self.get_vocabulary(unit_id=assignment["unit_id"])
            if _selects(assignment["vocabulary_items"], w)
        ]

    def update_assignment(self, assignment_id: int, status=_UNSET, due_date=_UNSET) -> bool:
        """Change status and/or due date; a ``None`` due date clears it."""
        fields, params = [], []
        if status is not _UNSET:
            if status not in ASSIGNMENT_STATUSES:
                raise ValueError(f"Unknown assignment status: {status}")
            fields.append("status = ?")
            params.append(status)
        if due_date is not _UNSET:
            fields.append("due_date = ?")
            params.append(due_date)
        if not fields:
            return self.get_assignment(assignment_id) is not None
        params.append(assignment_id)
        cur = self.conn.execute(
            f"UPDATE assignments SET {', '.join(fields)} WHERE id = ?", params
        )
        self.conn.commit()
        return cur.rowcount > 0

    def delete_assignment(self, assignment_id: int) -> bool:
        cur = self.conn.execute("DELETE FROM assignments WHERE id = ?", (assignment_id,))
        self.conn.commit()
        return cur.rowcount > 0

    # ── Stats ─────────────────────────────────────────────────────────────

    def get_stats(self) -> dict:
        textbooks = self.conn.execute("SELECT COUNT(*) FROM textbooks").fetchone()[0]
        units = self.conn.execute("SELECT COUNT(*) FROM units").fetchone()[0]
        quizzes = self.conn.execute(
            "SELECT COUNT(*) AS cnt, COALESCE(AVG(score), 0) AS avg_score "
            "FROM quiz_results"
        ).fetchone()
        mastered = self.conn.execute(
            "SELECT COUNT(*) FROM vocabulary_progress WHERE status = 'mastered'"
        ).fetchone()[0]

        return {
            "total_textbooks": textbooks,
            "total_units": units,
            "total_vocabulary": self.get_vocabulary_count(),
            "total_passages": self.get_passage_count(),
            "total_quizzes": quizzes["cnt"],
            "average_score": round(quizzes["avg_score"], 1),
            "words_mastered": mastered,
        }
