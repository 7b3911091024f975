import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List

logger = logging.getLogger("sqlite_serve.request")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class EventLogger(ABC):
    """Where the request processor reports what each step did."""

    @abstractmethod
    def log(self, stage: str, message: str, level: str = "info") -> None:
        ...

    def debug(self, stage: str, message: str) -> None:
        self.log(stage, message, "debug")

    def info(self, stage: str, message: str) -> None:
        self.log(stage, message, "info")

    def warning(self, stage: str, message: str) -> None:
        self.log(stage, message, "warning")

    def error(self, stage: str, message: str) -> None:
        self.log(stage, message, "error")


class RequestLogger(EventLogger):
    """Logger scoped to one request, e.g. ``RequestLogger("GET /books")``."""

    def __init__(self, label: str):
        self.label = label
        self.start_time = datetime.now()
        self.logs: List[Dict[str, Any]] = []

    def log(self, stage: str, message: str, level: str = "info") -> None:
        """Keep the entry and also send it to the standard logger."""
        self.logs.append(
            {
                "timestamp": datetime.now().isoformat(),
                "stage": stage,
                "message": message,
                "level": level,
                "elapsed_seconds": (datetime.now() - self.start_time).total_seconds(),
            }
        )
        logger.log(_LEVELS.get(level, logging.INFO), f"[{self.label}] {stage}: {message}")

