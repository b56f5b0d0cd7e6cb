"""
Logging Configuration

Centralized logging setup for the harness. Records about a single failure
entry or discovery carry its id (and, for lifecycle steps, the acting
identity and role) so one entry's history can be grepped out of a log.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, MutableMapping, Optional, Tuple


class HarnessFormatter(logging.Formatter):
    """Custom formatter with color support and structured output"""

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, stream=None):
        super().__init__()
        stream = stream if stream is not None else sys.stderr
        self.use_colors = use_colors and hasattr(stream, "isatty") and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level}{self.RESET}"

        # Format: [TIME] LEVEL [module] [F001 actor/role] message
        parts = [
            f"[{timestamp}]",
            f"{level:8}",
            f"[{record.name}]",
        ]
        context = self.entry_context(record)
        if context:
            parts.append(f"[{context}]")
        parts.append(record.getMessage())

        if record.exc_info:
            parts.append(self.formatException(record.exc_info))

        return " ".join(parts)

    @staticmethod
    def entry_context(record: logging.LogRecord) -> str:
        entry_id = getattr(record, "entry_id", None)
        if not entry_id:
            return ""
        actor = getattr(record, "actor", None)
        if not actor:
            return entry_id
        role = getattr(record, "role", None)
        return f"{entry_id} {actor}/{role}" if role else f"{entry_id} {actor}"


class EntryLogAdapter(logging.LoggerAdapter):
    """Attaches entry context to every record logged through it"""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    use_colors: bool = True,
) -> None:
    """
    Configure logging for the harness.

    Console logs go to stderr so command output on stdout stays clean.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output
        use_colors: Enable colored console output
    """
    root_logger = logging.getLogger("failure_first")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(HarnessFormatter(use_colors=use_colors, stream=sys.stderr))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(HarnessFormatter(use_colors=False))
        root_logger.addHandler(file_handler)

    # Set level for third-party loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    root_logger.debug("Logging configured")


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance"""
    return logging.getLogger(f"failure_first.{name}")


def entry_logger(
    logger: logging.Logger,
    entry_id: str,
    actor: Optional[str] = None,
    role: Optional[str] = None,
) -> EntryLogAdapter:
    """Wrap a module logger so its records name the entry being worked on"""
    return EntryLogAdapter(logger, {"entry_id": entry_id, "actor": actor, "role": role})
