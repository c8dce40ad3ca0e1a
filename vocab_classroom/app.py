"""FastAPI application with all routes."""
from __future__ import annotations

import logging

logging.basicConfig(level=logging.INFO, format="%(name)s | %(message)s")

from fastapi import FastAPI, HTTPException, Request

from vocab_classroom.config import Settings, load_settings, save_settings
from vocab_classroom.db import (
    ASSIGNMENT_STATUSES,
    ASSIGNMENT_TYPES,
    PROGRESS_STATUSES,
    Database,
    DuplicatePassageError,
    DuplicateWordError,
)
from vocab_classroom.exercises import (
    SpeedQuizTracker,
    build_speed_quiz,
    grade_sentences,
    grade_subjective,
    pick_words,
    review_points,
    score_percent,
)
from vocab_classroom.grading import best_similarity, is_correct
from vocab_classroom.models import QuizOutcome, VocabularyItem
from vocab_classroom.parsers.reading_parser import (
    clean_reading_text,
    parse_reading_passage,
    reading_preview,
    reading_stats,
)
from vocab_classroom.parsers.vocabulary_parser import (
    parse_vocabulary_csv,
    parse_vocabulary_text,
    split_meanings,
)

app = FastAPI(title="Vocab Classroom")

# Global state (initialized in startup)
_db: Database | None = None
_settings: Settings | None = None

_upload_log = logging.getLogger("vocab_classroom.upload")
_quiz_log = logging.getLogger("vocab_classroom.quiz")
_assign_log = logging.getLogger("vocab_classroom.assignments")

QUIZ_TYPES = ("speed", "subjective", "sentence")


def get_db() -> Database:
    assert _db is not None
    return _db


def get_settings() -> Settings:
    assert _settings is not None
    return _settings


@app.on_event("startup")
async def startup():
    global _db, _settings
    if _db is not None:
        return  # Already initialized (e.g. by tests)
    _settings = load_settings()
    _db = Database(_settings.db_full_path)


@app.on_event("shutdown")
async def shutdown():
    if _db:
        _db.close()


async def _json_body(request: Request) -> dict:
    body = await request.json() if await request.body() else {}
    if not isinstance(body, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    return body


def _int_field(body: dict, name: str) -> int:
    value = body.get(name)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(400, f"'{name}' must be an integer")


def _optional_int_field(body: dict, name: str, default: int | None = None) -> int | None:
    if body.get(name) in (None, ""):
        return default
    return _int_field(body, name)


def _float_field(body: dict, name: str, default: float) -> float:
    value = body.get(name, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise HTTPException(400, f"'{name}' must be a number")


def _answer_list(body: dict) -> list[dict]:
    answers = body.get("answers") or []
    if not isinstance(answers, list) or not answers:
        raise HTTPException(400, "No answers provided")
    if not all(isinstance(a, dict) for a in answers):
        raise HTTPException(400, "Each answer must be a JSON object")
    return answers


def _require_unit(unit_id: int) -> dict:
    unit = get_db().get_unit(unit_id)
    if unit is None:
        raise HTTPException(404, "Unit not found")
    return unit


def _parse_vocabulary_body(body: dict):
    fmt = body.get("format", "text")
    content = body.get("content", "")
    if not isinstance(content, str):
        raise HTTPException(400, "'content' must be a string")
    if fmt == "csv":
        return parse_vocabulary_csv(content)
    if fmt == "text":
        return parse_vocabulary_text(content)
    raise HTTPException(400, f"Unknown format: {fmt}")


# ── API: Stats ────────────────────────────────────────────────────────────

@app.get("/api/stats")
async def api_stats():
    return get_db().get_stats()


# ── API: Textbooks & units ────────────────────────────────────────────────

@app.get("/api/textbooks")
async def api_textbooks():
    return {"textbooks": get_db().get_textbooks()}


@app.post("/api/textbooks", status_code=201)
async def api_create_textbook(request: Request):
    body = await _json_body(request)
    title = (body.get("title") or "").strip()
    if not title:
        raise HTTPException(400, "No title provided")
    db = get_db()
    textbook_id = db.create_textbook(title, (body.get("description") or "").strip() or None)
    return db.get_textbook(textbook_id)


@app.get("/api/textbooks/{textbook_id}")
async def api_textbook(textbook_id: int):
    db = get_db()
    textbook = db.get_textbook(textbook_id)
    if textbook is None:
        raise HTTPException(404, "Textbook not found")
    textbook["units"] = db.get_units(textbook_id)
    return textbook


@app.delete("/api/textbooks/{textbook_id}")
async def api_delete_textbook(textbook_id: int):
    if not get_db().delete_textbook(textbook_id):
        raise HTTPException(404, "Textbook not found")
    return {"ok": True}


@app.get("/api/textbooks/{textbook_id}/units")
async def api_units(textbook_id: int):
    db = get_db()
    if db.get_textbook(textbook_id) is None:
        raise HTTPException(404, "Textbook not found")
    return {"units": db.get_units(textbook_id)}


@app.post("/api/textbooks/{textbook_id}/units", status_code=201)
async def api_create_unit(textbook_id: int, request: Request):
    body = await _json_body(request)
    db = get_db()
    if db.get_textbook(textbook_id) is None:
        raise HTTPException(404, "Textbook not found")
    unit_number = _int_field(body, "unit_number")
    title = (body.get("title") or "").strip() or f"Unit {unit_number}"
    existing = {u["unit_number"] for u in db.get_units(textbook_id)}
    if unit_number in existing:
        raise HTTPException(409, f"Unit {unit_number} already exists")
    unit_id = db.create_unit(textbook_id, unit_number, title)
    return db.get_unit(unit_id)


# ── API: Vocabulary ───────────────────────────────────────────────────────

@app.post("/api/vocabulary/parse")
async def api_vocabulary_parse(request: Request):
    body = await _json_body(request)
    return _parse_vocabulary_body(body).to_dict()


@app.post("/api/vocabulary/upload", status_code=201)
async def api_vocabulary_upload(request: Request):
    body = await _json_body(request)
    unit_id = _int_field(body, "unit_id")
    _require_unit(unit_id)

    result = _parse_vocabulary_body(body)
    if not result.success:
        _upload_log.info(
            "Rejected upload for unit %d: %d errors", unit_id, len(result.errors)
        )
        raise HTTPException(400, result.to_dict())

    count = get_db().import_vocabulary(unit_id, result.data)
    _upload_log.info(
        "Unit %d: %d of %d words added", unit_id, count, len(result.data)
    )
    return {
        "count": count,
        "skipped": len(result.data) - count,
        "warnings": result.warnings,
    }


@app.get("/api/vocabulary")
async def api_vocabulary(
    unit_id: int | None = None,
    student_id: int | None = None,
    status: str | None = None,
    limit: int | None = None,
):
    """Words of a unit, or with only ``student_id`` the student's assigned words.

    ``status`` (learning | mastered) filters by the student's progress.
    """
    if status is not None:
        if status not in PROGRESS_STATUSES:
            raise HTTPException(400, f"Unknown status: {status}")
        if student_id is None:
            raise HTTPException(400, "'status' needs a 'student_id'")
    db = get_db()
    if student_id is not None and unit_id is None:
        words = db.get_assigned_vocabulary(student_id, status=status, limit=limit)
    else:
        words = db.get_vocabulary(
            unit_id=unit_id, limit=limit, student_id=student_id, status=status
        )
    return {"vocabulary": words}


@app.put("/api/vocabulary/{vocabulary_id}")
async def api_update_vocabulary(vocabulary_id: int, request: Request):
    body = await _json_body(request)
    db = get_db()
    current = db.get_vocabulary_item(vocabulary_id)
    if current is None:
        raise HTTPException(404, "Word not found")

    word = (body.get("word", current["word"]) or "").strip()
    meanings = body.get("meanings", current["meanings"])
    if isinstance(meanings, str):
        meanings = split_meanings(meanings)
    meanings = [m.strip() for m in meanings if isinstance(m, str) and m.strip()]
    if not word or not meanings:
        raise HTTPException(400, "Word and at least one meaning are required")

    def optional(key: str):
        value = body.get(key, current[key])
        if isinstance(value, str):
            return value.strip() or None
        return value

    if "problem_number" in body:
        problem_number = _optional_int_field(body, "problem_number")
    else:
        problem_number = current["problem_number"]

    item = VocabularyItem(
        word=word,
        meanings=meanings,
        part_of_speech=optional("part_of_speech"),
        pronunciation=optional("pronunciation"),
        example_sentence=optional("example_sentence"),
        sentence_translation=optional("sentence_translation"),
        problem_number=problem_number,
    )
    try:
        db.update_vocabulary(vocabulary_id, item)
    except DuplicateWordError as e:
        raise HTTPException(409, str(e))
    return db.get_vocabulary_item(vocabulary_id)


@app.delete("/api/vocabulary/{vocabulary_id}")
async def api_delete_vocabulary(vocabulary_id: int):
    if not get_db().delete_vocabulary(vocabulary_id):
        raise HTTPException(404, "Word not found")
    return {"ok": True}


# ── API: Reading passages ─────────────────────────────────────────────────

@app.post("/api/reading/parse")
async def api_reading_parse(request: Request):
    body = await _json_body(request)
    content = body.get("content", "") or ""
    result = parse_reading_passage(content)
    response = result.to_dict()
    response["clean_text"] = clean_reading_text(content)
    if result.data:
        stats = reading_stats(result.data.lines)
        response["preview"] = reading_preview(
            result.data.lines, get_settings().preview_lines
        )
        response["stats"] = {
            "total_lines": stats.total_lines,
            "total_english_words": stats.total_english_words,
            "avg_words_per_line": stats.avg_words_per_line,
        }
    return response


@app.post("/api/reading", status_code=201)
async def api_create_reading(request: Request):
    body = await _json_body(request)
    unit_id = _int_field(body, "unit_id")
    problem_number = _int_field(body, "problem_number")
    _require_unit(unit_id)

    result = parse_reading_passage(body.get("content", "") or "")
    if not result.success or result.data is None:
        raise HTTPException(400, result.to_dict())

    db = get_db()
    try:
        passage_id = db.create_reading_passage(
            unit_id, problem_number, result.data, title=body.get("title")
        )
    except DuplicatePassageError as e:
        raise HTTPException(409, str(e))
    _upload_log.info(
        "Unit %d: passage %d stored with %d lines",
        unit_id, problem_number, len(result.data.lines),
    )
    return db.get_reading_passage(passage_id)


@app.get("/api/reading")
async def api_reading(unit_id: int):
    return {"passages": get_db().get_reading_passages(unit_id)}


@app.get("/api/reading/{passage_id}")
async def api_reading_passage(passage_id: int):
    passage = get_db().get_reading_passage(passage_id)
    if passage is None:
        raise HTTPException(404, "Passage not found")
    return passage


@app.delete("/api/reading/{passage_id}")
async def api_delete_reading(passage_id: int):
    if not get_db().delete_reading_passage(passage_id):
        raise HTTPException(404, "Passage not found")
    return {"ok": True}


# ── API: Grading ──────────────────────────────────────────────────────────

@app.post("/api/grade")
async def api_grade(request: Request):
    body = await _json_body(request)
    answer = body.get("answer", "") or ""
    references = body.get("references") or []
    if isinstance(references, str):
        references = [references]
    if not isinstance(answer, str):
        raise HTTPException(400, "'answer' must be a string")
    if not isinstance(references, list) or not all(
        ref is None or isinstance(ref, str) for ref in references
    ):
        raise HTTPException(400, "'references' must be a string or a list of strings")

    s = get_settings()
    mode = body.get("mode", "meaning")
    if mode == "meaning":
        default = s.meaning_threshold
    elif mode == "sentence":
        default = s.sentence_threshold
    else:
        raise HTTPException(400, f"Unknown mode: {mode}")
    threshold = _float_field(body, "threshold", default)
    if not 0.0 <= threshold <= 1.0:
        raise HTTPException(400, "'threshold' must be between 0 and 1")

    return {
        "correct": is_correct(answer, references, threshold),
        "similarity": round(best_similarity(answer, references), 4),
        "threshold": threshold,
    }


# ── API: Quizzes ──────────────────────────────────────────────────────────

@app.get("/api/quiz/speed")
async def api_speed_quiz(unit_id: int | None = None, limit: int | None = None):
    s = get_settings()
    vocabulary = get_db().get_vocabulary(unit_id=unit_id)
    questions = build_speed_quiz(vocabulary, limit=limit or s.speed_quiz_size)
    return {
        "seconds_per_question": s.speed_question_seconds,
        "questions": [
            {
                "vocabulary_id": q.vocabulary_id,
                "word": q.word,
                "correct_answer": q.correct_answer,
                "options": q.options,
            }
            for q in questions
        ],
    }


@app.post("/api/quiz/speed")
async def api_speed_quiz_submit(request: Request):
    """Score a finished speed quiz from its per-question answers.

    Each answer is ``{"vocabulary_id", "correct", "time_left"}``; a missing
    ``time_left`` counts as a timeout.
    """
    body = await _json_body(request)
    student_id = _int_field(body, "student_id")
    unit_id = _optional_int_field(body, "unit_id")
    answers = _answer_list(body)

    s = get_settings()
    db = get_db()
    # Validate everything before the first write.
    checked = []
    for a in answers:
        vocabulary_id = _optional_int_field(a, "vocabulary_id")
        if vocabulary_id is not None and db.get_vocabulary_item(vocabulary_id) is None:
            raise HTTPException(404, f"Word {vocabulary_id} not found")
        time_left = _optional_int_field(a, "time_left", default=0)
        time_left = max(0, min(time_left, s.speed_question_seconds))
        checked.append((vocabulary_id, bool(a.get("correct")), time_left))

    tracker = SpeedQuizTracker(question_seconds=s.speed_question_seconds)
    for vocabulary_id, correct, time_left in checked:
        tracker.answer(correct, time_left)
        if correct and vocabulary_id is not None:
            db.set_progress(student_id, vocabulary_id, "mastered")

    response = _store_outcome(student_id, tracker.outcome(), unit_id)
    response["time_bonus"] = tracker.time_bonus
    return response


def _graded_items(body: dict) -> list[dict]:
    items = _answer_list(body)
    db = get_db()
    resolved = []
    for a in items:
        word = db.get_vocabulary_item(_int_field(a, "vocabulary_id"))
        if word is None:
            raise HTTPException(404, f"Word {a.get('vocabulary_id')} not found")
        answer = a.get("answer", "") or ""
        if not isinstance(answer, str):
            raise HTTPException(400, "'answer' must be a string")
        resolved.append({"word": word, "answer": answer})
    return resolved


@app.get("/api/quiz/subjective")
async def api_subjective_words(
    unit_id: int | None = None,
    student_id: int | None = None,
    limit: int | None = None,
):
    """Words to ask in a free-recall test; meanings are withheld."""
    db = get_db()
    if student_id is not None and unit_id is None:
        vocabulary = db.get_assigned_vocabulary(student_id)
    else:
        vocabulary = db.get_vocabulary(unit_id=unit_id)
    words = pick_words(vocabulary, limit or get_settings().subjective_quiz_size)
    return {
        "words": [
            {"vocabulary_id": w["id"], "word": w["word"], "part_of_speech": w["part_of_speech"]}
            for w in words
        ],
    }


@app.post("/api/quiz/subjective")
async def api_subjective_quiz(request: Request):
    body = await _json_body(request)
    student_id = _int_field(body, "student_id")
    items = _graded_items(body)

    graded = grade_subjective(
        [(i["answer"], i["word"]["meanings"]) for i in items],
        threshold=get_settings().meaning_threshold,
    )
    return _finish_graded(student_id, items, graded, _optional_int_field(body, "unit_id"))


@app.post("/api/quiz/sentence")
async def api_sentence_quiz(request: Request):
    body = await _json_body(request)
    student_id = _int_field(body, "student_id")
    items = _graded_items(body)

    graded = grade_sentences(
        [(i["answer"], i["word"]["sentence_translation"]) for i in items],
        threshold=get_settings().sentence_threshold,
    )
    return _finish_graded(student_id, items, graded, _optional_int_field(body, "unit_id"))


def _finish_graded(student_id: int, items: list[dict], graded, unit_id: int | None) -> dict:
    db = get_db()
    for item, ok in zip(items, graded.verdicts):
        if ok:
            db.set_progress(student_id, item["word"]["id"], "mastered")
    response = _store_outcome(student_id, graded.outcome, unit_id)
    response["results"] = [
        {"vocabulary_id": item["word"]["id"], "correct": ok}
        for item, ok in zip(items, graded.verdicts)
    ]
    return response


def _store_outcome(student_id: int, outcome: QuizOutcome, unit_id: int | None) -> dict:
    db = get_db()
    result_id = db.record_quiz_result(student_id, outcome, unit_id=unit_id)
    _quiz_log.info(
        "Student %d finished %s quiz: %d/%d, %d points",
        student_id, outcome.quiz_type, outcome.correct_answers,
        outcome.total_questions, outcome.points_earned,
    )
    return {
        "result_id": result_id,
        "quiz_type": outcome.quiz_type,
        "score": outcome.score,
        "total_questions": outcome.total_questions,
        "correct_answers": outcome.correct_answers,
        "points_earned": outcome.points_earned,
        "combo_max": outcome.combo_max,
        "time_taken": outcome.time_taken,
        "total_points": db.get_total_points(student_id),
    }


@app.post("/api/quiz/results", status_code=201)
async def api_record_quiz_result(request: Request):
    body = await _json_body(request)
    student_id = _int_field(body, "student_id")
    quiz_type = body.get("quiz_type")
    if quiz_type not in QUIZ_TYPES:
        raise HTTPException(400, f"Unknown quiz type: {quiz_type}")
    total = _int_field(body, "total_questions")
    if total <= 0:
        raise HTTPException(400, "'total_questions' must be positive")
    correct = _optional_int_field(body, "correct_answers", default=0)

    outcome = QuizOutcome(
        quiz_type=quiz_type,
        total_questions=total,
        correct_answers=correct,
        score=_optional_int_field(body, "score", default=score_percent(correct, total)),
        points_earned=_optional_int_field(body, "points_earned", default=0),
        combo_max=_optional_int_field(body, "combo_max", default=0),
        time_taken=_optional_int_field(body, "time_taken", default=0),
    )
    return _store_outcome(student_id, outcome, _optional_int_field(body, "unit_id"))


@app.get("/api/quiz/results")
async def api_quiz_results(student_id: int, quiz_type: str | None = None):
    return {"results": get_db().get_quiz_results(student_id, quiz_type=quiz_type)}


@app.get("/api/progress")
async def api_progress(student_id: int):
    return {"progress": get_db().get_progress(student_id)}


@app.post("/api/progress")
async def api_record_progress(request: Request):
    """Flash-card review: mark a word learning or mastered and award points."""
    body = await _json_body(request)
    student_id = _int_field(body, "student_id")
    vocabulary_id = _int_field(body, "vocabulary_id")
    status = body.get("status")
    if status not in PROGRESS_STATUSES:
        raise HTTPException(400, f"Unknown status: {status}")

    db = get_db()
    if db.get_vocabulary_item(vocabulary_id) is None:
        raise HTTPException(404, "Word not found")

    db.set_progress(student_id, vocabulary_id, status)
    points = review_points(status)
    activity = "word_mastered" if status == "mastered" else "word_review"
    db.log_activity(student_id, activity, points, vocabulary_id=vocabulary_id)

    progress = next(
        p for p in db.get_progress(student_id) if p["vocabulary_id"] == vocabulary_id
    )
    return {
        "progress": progress,
        "points_earned": points,
        "total_points": db.get_total_points(student_id),
    }


# ── API: Assignments ──────────────────────────────────────────────────────

def _int_list(body: dict, name: str) -> list[int] | None:
    value = body.get(name)
    if value is None:
        return None
    if not isinstance(value, list):
        raise HTTPException(400, f"'{name}' must be a list of integers")
    try:
        return [int(v) for v in value]
    except (TypeError, ValueError):
        raise HTTPException(400, f"'{name}' must be a list of integers")


def _vocabulary_selection(body: dict) -> dict | None:
    selection = body.get("vocabulary_items")
    if selection is None:
        return None
    if not isinstance(selection, dict):
        raise HTTPException(400, "'vocabulary_items' must be an object")
    cleaned: dict = {}
    if selection.get("all"):
        cleaned["all"] = True
    for key in ("problem_numbers", "word_ids"):
        numbers = _int_list(selection, key)
        if numbers is not None:
            cleaned[key] = numbers
    if not cleaned:
        raise HTTPException(400, "'vocabulary_items' selects no words")
    return cleaned


@app.get("/api/assignments")
async def api_assignments(student_id: int | None = None):
    return {"assignments": get_db().get_assignments(student_id=student_id)}


@app.post("/api/assignments", status_code=201)
async def api_create_assignments(request: Request):
    """Give one unit's vocabulary and/or passages to several students."""
    body = await _json_body(request)
    student_ids = _int_list(body, "student_ids")
    if not student_ids:
        raise HTTPException(400, "Select at least one student")
    textbook_id = _int_field(body, "textbook_id")
    unit_id = _int_field(body, "unit_id")

    assignment_type = body.get("assignment_type")
    if assignment_type not in ASSIGNMENT_TYPES:
        raise HTTPException(400, f"Unknown assignment type: {assignment_type}")

    db = get_db()
    unit = _require_unit(unit_id)
    if unit["textbook_id"] != textbook_id:
        raise HTTPException(400, "Unit does not belong to this textbook")

    vocabulary_items = _vocabulary_selection(body)
    passage_ids = _int_list(body, "reading_passage_ids")
    if assignment_type in ("vocabulary", "both") and vocabulary_items is None:
        raise HTTPException(400, "Choose which words to assign")
    if assignment_type in ("reading", "both"):
        if not passage_ids:
            raise HTTPException(400, "Choose at least one reading passage")
        in_unit = {p["id"] for p in db.get_reading_passages(unit_id)}
        missing = [pid for pid in passage_ids if pid not in in_unit]
        if missing:
            raise HTTPException(404, f"Passages not in this unit: {missing}")

    due_date = body.get("due_date") or None
    if due_date is not None and not isinstance(due_date, str):
        raise HTTPException(400, "'due_date' must be a date string")

    ids = db.create_assignments(
        student_ids, textbook_id, unit_id, assignment_type,
        vocabulary_items=vocabulary_items,
        reading_passage_ids=passage_ids,
        due_date=due_date,
    )
    _assign_log.info(
        "Unit %d (%s) assigned to %d students", unit_id, assignment_type, len(ids)
    )
    return {
        "count": len(ids),
        "assignments": [db.get_assignment(i) for i in ids],
    }


@app.get("/api/assignments/{assignment_id}")
async def api_assignment(assignment_id: int):
    """One assignment with the words and passages it covers."""
    db = get_db()
    assignment = db.get_assignment(assignment_id)
    if assignment is None:
        raise HTTPException(404, "Assignment not found")

    assignment["vocabulary"] = db.get_assignment_vocabulary(assignment)
    chosen = set(assignment["reading_passage_ids"] or [])
    assignment["reading_passages"] = [
        p for p in db.get_reading_passages(assignment["unit_id"]) if p["id"] in chosen
    ]
    return assignment


@app.patch("/api/assignments/{assignment_id}")
async def api_update_assignment(assignment_id: int, request: Request):
    body = await _json_body(request)
    db = get_db()
    if db.get_assignment(assignment_id) is None:
        raise HTTPException(404, "Assignment not found")

    changes = {}
    if body.get("status"):
        if body["status"] not in ASSIGNMENT_STATUSES:
            raise HTTPException(400, f"Unknown status: {body['status']}")
        changes["status"] = body["status"]
    if "due_date" in body:
        due_date = body["due_date"] or None
        if due_date is not None and not isinstance(due_date, str):
            raise HTTPException(400, "'due_date' must be a date string")
        changes["due_date"] = due_date

    db.update_assignment(assignment_id, **changes)
    return db.get_assignment(assignment_id)


@app.delete("/api/assignments/{assignment_id}")
async def api_delete_assignment(assignment_id: int):
    if not get_db().delete_assignment(assignment_id):
        raise HTTPException(404, "Assignment not found")
    return {"ok": True}


# ── API: Settings ─────────────────────────────────────────────────────────

@app.get("/api/settings")
async def api_get_settings():
    return get_settings().to_dict()


@app.put("/api/settings")
async def api_update_settings(request: Request):
    body = await _json_body(request)
    s = get_settings()
    known = {f.name for f in Settings.__dataclass_fields__.values()}
    for k, v in body.items():
        if k in known:
            setattr(s, k, v)
    save_settings(s)
    return s.to_dict()
