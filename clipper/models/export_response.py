from enum import Enum
from typing import List

from pydantic import BaseModel, Field


class LogLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"


class LogEntry(BaseModel):
    time: str  # HH:MM:SS
    level: LogLevel
    message: str


class ExportStatus(BaseModel):
    running: bool = False
    progress: int = 0
    log: List[LogEntry] = Field(default_factory=list)
