"""
Logging Utilities for FormSheet

Two layers:
- ``setup_logging`` configures the standard ``logging`` tree used by every module.
- ``SubmissionLogger`` keeps a file-based trail of accepted and rejected submissions.
"""

import json
import logging
import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Mapping, Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class LogLevel(str, Enum):
    """Log levels for the submission trail."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# Patterns for secret masking (SMTP credentials, tokens)
SECRET_PATTERNS = [
    (re.compile(r"(API_KEY|TOKEN|SECRET|PASSWORD|PASS|AUTH)[=:]\s*['\"]?([^'\"\ \n]+)", re.I), r"\1=***"),
    (re.compile(r"(Bearer|token)\s+([a-zA-Z0-9_\-\.]+)", re.I), r"\1 ***"),
]

# Fields written to the submission trail, in display order
SUBMISSION_FIELDS = [
    ("Timestamp", "timestamp"),
    ("Nom", "nom"),
    ("Prénom", "prenom"),
    ("Email", "email"),
    ("Téléphone", "telephone"),
    ("Université", "universite"),
    ("Facebook", "facebookLink"),
]


def mask_secrets(text: str) -> str:
    """
    Mask secrets in text before logging.

    Args:
        text: Raw text that may contain secrets

    Returns:
        Text with secrets replaced by ***
    """
    masked = text
    for pattern, replacement in SECRET_PATTERNS:
        masked = pattern.sub(replacement, masked)
    return masked


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Level name (DEBUG, INFO, ...)
        log_file: Optional file receiving a copy of every record
    """
    handlers = [logging.StreamHandler()]
    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )


class SubmissionLogger:
    """
    File-based trail of form submissions with structured JSONL support.

    Logs are written to:
    - {log_dir}/submissions.log - Human-readable text log
    - {log_dir}/events.jsonl - Structured JSONL log
    """

    def __init__(
        self,
        log_dir: Path,
        min_level: LogLevel = LogLevel.INFO,
        mask_secrets_enabled: bool = True,
        text_name: str = "submissions.log",
        json_name: str = "events.jsonl",
    ):
        """
        Initialize submission logger.

        Args:
            log_dir: Directory for log files
            min_level: Minimum log level to write
            mask_secrets_enabled: Whether to mask secrets in logs
        """
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.min_level = min_level
        self.mask_secrets_enabled = mask_secrets_enabled

        self.text_log = self.log_dir / text_name
        self.json_log = self.log_dir / json_name

    def _should_log(self, level: LogLevel) -> bool:
        levels = [LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARNING, LogLevel.ERROR]
        return levels.index(level) >= levels.index(self.min_level)

    def _mask_if_enabled(self, text: str) -> str:
        if self.mask_secrets_enabled:
            return mask_secrets(text)
        return text

    def log_text(self, line: str, level: LogLevel = LogLevel.INFO):
        """Append a timestamped line to the text log."""
        if not self._should_log(level):
            return

        stamp = datetime.now(timezone.utc).isoformat()
        masked_line = self._mask_if_enabled(line)
        with self.text_log.open("a", encoding="utf-8") as f:
            f.write(f"[{stamp}] [{level.value}] {masked_line}\n")

    def log_jsonl(self, event_type: str, data: Dict[str, Any], level: LogLevel = LogLevel.INFO):
        """
        Append structured JSONL event to the events log.

        Args:
            event_type: Type of event (e.g., "submission", "error", "notification")
            data: Event data dictionary
            level: Log level
        """
        if not self._should_log(level):
            return

        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level.value,
            "type": event_type,
            "data": data,
        }

        event_str = self._mask_if_enabled(json.dumps(event, ensure_ascii=False, default=str))

        with self.json_log.open("a", encoding="utf-8") as f:
            f.write(event_str + "\n")

    def log_submission(self, record: Mapping[str, Any], row: int):
        """
        Record an accepted submission in both logs.

        Args:
            record: Parsed submission record
            row: 1-based row index the submission was written to
        """
        lines = ["=== New Submission ===", f"Row: {row}"]
        for label, key in SUBMISSION_FIELDS:
            lines.append(f"{label}: {record.get(key, '')}")
        lines.append("=====================")
        self.log_text(" | ".join(lines))

        self.log_jsonl("submission", {"row": row, "fields": dict(record)})

    def log_failure(self, error: str, details: Optional[Dict[str, Any]] = None):
        """Record a rejected submission."""
        self.log_text(f"SUBMISSION FAILED: {error}", LogLevel.ERROR)
        self.log_jsonl("error", {"error": error, **(details or {})}, LogLevel.ERROR)
