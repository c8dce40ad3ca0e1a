"""CLI entry point for vocab-classroom.

Usage:
  python -m vocab_classroom serve [--port PORT] [--host HOST]
  python -m vocab_classroom stop
  python -m vocab_classroom status
  python -m vocab_classroom import-vocab UNIT_ID FILE [--dry-run]
  python -m vocab_classroom check-reading FILE
  python -m vocab_classroom stats
"""
from __future__ import annotations

import os
import signal
import sys
from pathlib import Path

PID_FILE = Path(__file__).resolve().parent.parent / ".server.pid"


def main():
    args = sys.argv[1:]
    command = args[0] if args else "serve"

    if command == "serve":
        _serve(args[1:])
    elif command == "stop":
        _stop()
    elif command == "status":
        _status()
    elif command == "import-vocab":
        _import_vocab(args[1:])
    elif command == "check-reading":
        _check_reading(args[1:])
    elif command == "stats":
        _stats()
    else:
        print(f"Unknown command: {command}")
        print("Commands: serve, stop, status, import-vocab, check-reading, stats")
        sys.exit(1)


def _parse_flag(args: list[str], name: str, default: str) -> str:
    for i, a in enumerate(args):
        if a == name and i + 1 < len(args):
            return args[i + 1]
    return default


def _positional(args: list[str]) -> list[str]:
    return [a for a in args if not a.startswith("--")]


def _read_pid() -> int | None:
    """Read PID from file, return None if stale or missing."""
    if not PID_FILE.exists():
        return None
    try:
        pid = int(PID_FILE.read_text().strip())
        os.kill(pid, 0)
        return pid
    except (ValueError, ProcessLookupError, PermissionError):
        PID_FILE.unlink(missing_ok=True)
        return None


def _stop() -> bool:
    """Stop a running server. Returns True if a server was stopped."""
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
        return False
    try:
        os.kill(pid, signal.SIGTERM)
        print(f"Stopped server (PID {pid}).")
        return True
    except ProcessLookupError:
        print("Server was not running (stale PID file removed).")
        return False
    finally:
        PID_FILE.unlink(missing_ok=True)


def _status():
    pid = _read_pid()
    if pid is None:
        print("Server is not running.")
    else:
        print(f"Server is running (PID {pid}).")


def _serve(args: list[str]):
    import uvicorn

    existing = _read_pid()
    if existing is not None:
        print(f"Server already running (PID {existing}). Use 'stop' first.")
        sys.exit(1)

    port = int(_parse_flag(args, "--port", "8765"))
    host = _parse_flag(args, "--host", "127.0.0.1")
    PID_FILE.write_text(str(os.getpid()))

    print(f"Starting Vocab Classroom on http://{host}:{port}")
    print("Press Ctrl+C to stop\n")
    try:
        uvicorn.run(
            "vocab_classroom.app:app",
            host=host,
            port=port,
            reload=False,
            timeout_graceful_shutdown=5,
        )
    finally:
        PID_FILE.unlink(missing_ok=True)


def _print_diagnostics(errors: list[str], warnings: list[str]) -> None:
    for e in errors:
        print(f"  error:   {e}")
    for w in warnings:
        print(f"  warning: {w}")


def _import_vocab(args: list[str]):
    from vocab_classroom.config import load_settings
    from vocab_classroom.db import Database
    from vocab_classroom.parsers.vocabulary_parser import parse_vocabulary_file

    positional = _positional(args)
    if len(positional) != 2:
        print("Usage: import-vocab UNIT_ID FILE [--dry-run]")
        sys.exit(1)
    unit_id = int(positional[0])
    path = Path(positional[1])
    dry_run = "--dry-run" in args

    if not path.exists():
        print(f"File not found: {path}")
        sys.exit(1)

    print(f"  Parsing: {path.name}")
    result = parse_vocabulary_file(path)
    _print_diagnostics(result.errors, result.warnings)
    print(f"    {len(result.data)} words parsed")

    if not result.success:
        print("Nothing imported. Fix the errors above and try again.")
        sys.exit(1)
    if dry_run:
        print("(dry run, no DB changes made)")
        return

    settings = load_settings()
    db = Database(settings.db_full_path)
    try:
        if db.get_unit(unit_id) is None:
            print(f"Unit {unit_id} not found.")
            sys.exit(1)
        n = db.import_vocabulary(unit_id, result.data)
        print(f"    {n} words added, {len(result.data) - n} already present")
    finally:
        db.close()


def _check_reading(args: list[str]):
    from vocab_classroom.parsers.reading_parser import (
        parse_reading_passage,
        reading_preview,
        reading_stats,
    )

    positional = _positional(args)
    if len(positional) != 1:
        print("Usage: check-reading FILE")
        sys.exit(1)
    path = Path(positional[0])
    if not path.exists():
        print(f"File not found: {path}")
        sys.exit(1)

    result = parse_reading_passage(path.read_text(encoding="utf-8"))
    _print_diagnostics(result.errors, result.warnings)
    if result.data:
        stats = reading_stats(result.data.lines)
        print(f"Lines:             {stats.total_lines}")
        print(f"English words:     {stats.total_english_words}")
        print(f"Avg words / line:  {stats.avg_words_per_line}")
        print()
        print(reading_preview(result.data.lines))
    if not result.success:
        sys.exit(1)


def _stats():
    from vocab_classroom.config import load_settings
    from vocab_classroom.db import Database

    settings = load_settings()
    db = Database(settings.db_full_path)
    stats = db.get_stats()

    print("Vocab Classroom Stats")
    print("=" * 40)
    print(f"Textbooks:          {stats['total_textbooks']}")
    print(f"Units:              {stats['total_units']}")
    print(f"Vocabulary:         {stats['total_vocabulary']}")
    print(f"Reading passages:   {stats['total_passages']}")
    print(f"Quizzes taken:      {stats['total_quizzes']}")
    print(f"Average score:      {stats['average_score']}%")
    print(f"Words mastered:     {stats['words_mastered']}")
    db.close()


if __name__ == "__main__":
    main()
