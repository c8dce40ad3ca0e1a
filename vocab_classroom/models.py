from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class VocabularyItem:
    word: str
    meanings: list[str]
    part_of_speech: str | None = None
    pronunciation: str | None = None
    example_sentence: str | None = None
    sentence_translation: str | None = None
    problem_number: int | None = None

    def to_dict(self) -> dict:
        return {
            "word": self.word,
            "meanings": list(self.meanings),
            "part_of_speech": self.part_of_speech,
            "pronunciation": self.pronunciation,
            "example_sentence": self.example_sentence,
            "sentence_translation": self.sentence_translation,
            "problem_number": self.problem_number,
        }


@dataclass
class ParseResult:
    success: bool = True
    data: list[VocabularyItem] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": [item.to_dict() for item in self.data],
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class HeaderValidation:
    valid: bool
    message: str | None = None


@dataclass
class ReadingLine:
    line_index: int
    english: str
    korean: str

    def to_dict(self) -> dict:
        return {
            "line_index": self.line_index,
            "english": self.english,
            "korean": self.korean,
        }


@dataclass
class ParsedReading:
    full_text: str
    lines: list[ReadingLine]

    def to_dict(self) -> dict:
        return {
            "full_text": self.full_text,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass
class ReadingParseResult:
    success: bool = True
    data: ParsedReading | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "data": self.data.to_dict() if self.data else None,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


@dataclass
class ReadingStats:
    total_lines: int
    total_english_words: int
    avg_words_per_line: int


@dataclass
class SpeedQuizQuestion:
    vocabulary_id: int | None
    word: str
    correct_answer: str
    options: list[str]


@dataclass
class QuizOutcome:
    quiz_type: str  # speed | subjective | sentence
    total_questions: int
    correct_answers: int
    score: int
    points_earned: int
    combo_max: int = 0
    time_taken: int = 0
