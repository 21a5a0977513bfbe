"""
utils/logger.py — level-filtered log lines for the orchestration core.

stdout belongs to the terminal REPL, so log lines go to stderr, or are
appended to LOG_FILE when one is configured.
"""
import sys
from datetime import datetime, timezone

from config import LOG_FILE, LOG_LEVEL

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _threshold() -> int:
    level = LOG_LEVEL.upper()
    return LEVELS.index(level) if level in LEVELS else 0


def _emit(line: str):
    if LOG_FILE:
        try:
            with open(LOG_FILE, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
            return
        except OSError:
            pass
    print(line, file=sys.stderr, flush=True)


def _log(level: str, msg: str):
    if LEVELS.index(level) < _threshold():
        return
    ts = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    _emit(f"[{ts}] [{level}] {msg}")


def log_debug(msg: str):
    _log("DEBUG", msg)


def log_info(msg: str):
    _log("INFO", msg)


def log_warning(msg: str):
    _log("WARNING", msg)


def log_error(msg: str):
    _log("ERROR", msg)
