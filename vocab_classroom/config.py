from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.json"

DEFAULTS = {
    "db_path": "classroom.db",
    "meaning_threshold": 0.8,
    "sentence_threshold": 0.7,
    "speed_quiz_size": 20,
    "speed_question_seconds": 15,
    "subjective_quiz_size": 15,
    "preview_lines": 3,
}


@dataclass
class Settings:
    db_path: str = DEFAULTS["db_path"]
    meaning_threshold: float = DEFAULTS["meaning_threshold"]
    sentence_threshold: float = DEFAULTS["sentence_threshold"]
    speed_quiz_size: int = DEFAULTS["speed_quiz_size"]
    speed_question_seconds: int = DEFAULTS["speed_question_seconds"]
    subjective_quiz_size: int = DEFAULTS["subjective_quiz_size"]
    preview_lines: int = DEFAULTS["preview_lines"]

    @property
    def project_root(self) -> Path:
        return Path(__file__).resolve().parent.parent

    @property
    def db_full_path(self) -> Path:
        # Absolute paths pass through unchanged.
        return self.project_root / self.db_path

    def to_dict(self) -> dict:
        return {
            "db_path": self.db_path,
            "meaning_threshold": self.meaning_threshold,
            "sentence_threshold": self.sentence_threshold,
            "speed_quiz_size": self.speed_quiz_size,
            "speed_question_seconds": self.speed_question_seconds,
            "subjective_quiz_size": self.subjective_quiz_size,
            "preview_lines": self.preview_lines,
        }


def load_settings() -> Settings:
    if CONFIG_PATH.exists():
        raw = json.loads(CONFIG_PATH.read_text())
        known = {f.name for f in Settings.__dataclass_fields__.values()}
        filtered = {k: v for k, v in raw.items() if k in known}
        return Settings(**filtered)
    return Settings()


def save_settings(settings: Settings) -> None:
    CONFIG_PATH.write_text(json.dumps(settings.to_dict(), indent=4) + "\n")
