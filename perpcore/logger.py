"""
perpcore logging.

One root configuration per process: a rich console handler on stderr (plain
stream handler when highlighting is disabled) and an optional rotating file
under ``logs/``.  Settings come from ``.env`` through ``perpcore.constants``.

    from perpcore.logger import get_logger
    logger = get_logger(__name__)
"""

import logging
import logging.handlers
import re
import sys
import threading
import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.highlighter import RegexHighlighter
from rich.logging import RichHandler
from rich.theme import Theme

from .constants import (
    LOG_BACKUP_COUNT,
    LOG_CONSOLE_HIGHLIGHTING,
    LOG_DATE_FORMAT,
    LOG_FORMAT,
    LOG_LEVEL,
    LOG_MAX_FILE_SIZE,
    LOG_TO_FILE,
)

LOG_FILE_PATH = Path(__file__).parent.parent / "logs" / "perpcore.log"

PERP_THEME = Theme({
    "perp.level_error": "bold red",
    "perp.level_warning": "bold yellow",
    "perp.level_info": "bold green",
    "perp.level_debug": "dim",
    "perp.long": "bold green",
    "perp.short": "bold red",
    "perp.topic": "bold magenta",
    "perp.amount": "cyan",
})


class PerpLogHighlighter(RegexHighlighter):
    """Colours levels, position sides, event topics and key=value amounts."""

    base_style = "perp."
    highlights = [
        r"(?P<level_error>\b(ERROR|CRITICAL)\b)",
        r"(?P<level_warning>\bWARNING\b)",
        r"(?P<level_info>\bINFO\b)",
        r"(?P<level_debug>\bDEBUG\b)",
        r"(?P<long>\blong\b)",
        r"(?P<short>\bshort\b)",
        r"(?P<topic>\b(PLACE|CLOSE|LIQ)\b)",
        r"\b\w+=(?P<amount>-?\d+)\b",
    ]


class TerminalSafeFormatter(logging.Formatter):
    """Drops ANSI escapes and control characters (trader ids are untrusted input)."""

    _unsafe = re.compile(
        r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-Z\\-_]|[\x00-\x08\x0B-\x1F\x7F]"
    )

    @classmethod
    def sanitize(cls, text: str) -> str:
        return cls._unsafe.sub("", text) if text else text

    def format(self, record: logging.LogRecord) -> str:
        return self.sanitize(super().format(record))


class LogManager:
    """Process-wide singleton that installs the root handlers exactly once."""

    _instance: Optional["LogManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "LogManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._configured = False
        return cls._instance

    @property
    def is_configured(self) -> bool:
        return self._configured

    def configure(
        self,
        log_level: Optional[str] = None,
        log_file: Optional[Path] = None,
        console_output: bool = True,
        file_output: Optional[bool] = None,
    ) -> None:
        """
        Install handlers on the root logger.  Later calls are no-ops.

        Args:
            log_level: overrides ``LOG_LEVEL``
            log_file: overrides ``logs/perpcore.log``
            console_output: attach the stderr handler
            file_output: overrides ``LOG_TO_FILE``
        """
        with self._lock:
            if self._configured:
                return

            level = getattr(logging, str(log_level or LOG_LEVEL).upper(), logging.INFO)
            root = logging.getLogger()
            root.setLevel(level)

            formatter = TerminalSafeFormatter(
                fmt=str(LOG_FORMAT), datefmt=f"{LOG_DATE_FORMAT} UTC",
            )
            formatter.converter = time.gmtime

            handlers = []
            if console_output:
                if LOG_CONSOLE_HIGHLIGHTING:
                    handlers.append(RichHandler(
                        console=Console(theme=PERP_THEME, highlight=False, stderr=True),
                        highlighter=PerpLogHighlighter(),
                        show_time=False,
                        show_level=False,
                        show_path=False,
                        markup=False,
                        rich_tracebacks=True,
                    ))
                else:
                    handlers.append(logging.StreamHandler(sys.stderr))

            if file_output is None:
                file_output = bool(LOG_TO_FILE)
            if file_output:
                path = log_file or LOG_FILE_PATH
                path.parent.mkdir(parents=True, exist_ok=True)
                handlers.append(logging.handlers.RotatingFileHandler(
                    str(path),
                    maxBytes=LOG_MAX_FILE_SIZE,
                    backupCount=LOG_BACKUP_COUNT,
                    encoding="utf-8",
                ))

            for handler in handlers:
                handler.setLevel(level)
                handler.setFormatter(formatter)
                root.addHandler(handler)
            self._configured = True


_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Module logger; configures the root logger on first use."""
    if not _manager.is_configured:
        _manager.configure()
    return logging.getLogger(name)
