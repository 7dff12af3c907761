"""
Session Event Log for HANDROM.

Every session keeps an ordered audit trail of what happened to it:
phase changes, interpolated frames, quality warnings and the scores
computed afterwards. Entries are mirrored to the module logger and can
be written to a JSON file when the session is closed.

Author: HANDROM Team
Version: 1.0.0
"""

import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from handrom.core.config import settings

logger = logging.getLogger(__name__)


class LogLevel(Enum):
    INFO = "info"
    WARNING = "warning"


class LogCategory(Enum):
    """What part of the session an entry is about."""
    SESSION = "session"              # countdown, recording, reset
    CAPTURE = "capture"              # frame counts at finalization
    INTERPOLATION = "interpolation"  # replayed frames
    QUALITY = "quality"              # capture-rate warnings
    SCORE = "score"                  # clinical scores


_PYTHON_LEVELS = {LogLevel.INFO: logging.INFO, LogLevel.WARNING: logging.WARNING}


@dataclass(frozen=True)
class LogEntry:
    """
    One audit entry.

    Attributes:
        elapsed: Seconds since the session log was opened.
        level: Severity.
        category: Session area.
        message: Human-readable text.
        data: JSON-compatible payload, if any.
    """
    elapsed: float
    level: LogLevel
    category: LogCategory
    message: str
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> dict:
        return {
            'elapsed': round(self.elapsed, 3),
            'level': self.level.value,
            'category': self.category.value,
            'message': self.message,
            'data': self.data,
        }


@dataclass
class SessionLogger:
    """
    Audit trail of one assessment session.

    Example:
        >>> session_logger = create_session_logger("3f2a")
        >>> session_logger.info(LogCategory.SESSION, "Countdown started")
        >>> path = session_logger.save_session_log()
    """

    session_id: str
    log_dir: Union[str, Path] = settings.SESSION_LOG_DIR
    entries: List[LogEntry] = field(default_factory=list)
    opened_at: float = field(default_factory=time.time)

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)

    def _record(self, level: LogLevel, category: LogCategory, message: str, data: Optional[Dict]) -> None:
        self.entries.append(LogEntry(
            elapsed=time.time() - self.opened_at,
            level=level,
            category=category,
            message=message,
            data=dict(data) if data else None,
        ))
        logger.log(_PYTHON_LEVELS[level], f"[{self.session_id}] {category.value}: {message}")

    def info(self, category: LogCategory, message: str, data: Optional[Dict] = None) -> None:
        self._record(LogLevel.INFO, category, message, data)

    def warning(self, category: LogCategory, message: str, data: Optional[Dict] = None) -> None:
        self._record(LogLevel.WARNING, category, message, data)

    def filter(self, category: LogCategory) -> List[LogEntry]:
        return [e for e in self.entries if e.category is category]

    def save_session_log(self) -> Path:
        """
        Write the trail to ``<log_dir>/session_<id>_<epoch>.json``.

        Returns:
            Path of the written file
        """
        self.log_dir.mkdir(parents=True, exist_ok=True)
        path = self.log_dir / f"session_{self.session_id}_{int(self.opened_at)}.json"
        payload = {
            'session_id': self.session_id,
            'opened_at': self.opened_at,
            'entries': [e.to_dict() for e in self.entries],
        }
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding='utf-8')
        return path


def create_session_logger(session_id: str, log_dir: Optional[Union[str, Path]] = None) -> SessionLogger:
    """Session logger writing under log_dir, or settings.SESSION_LOG_DIR."""
    return SessionLogger(session_id, log_dir or settings.SESSION_LOG_DIR)
