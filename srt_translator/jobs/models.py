"""
Job Data Classes

Contains the JobStatus state machine and the immutable Job record. A Job is
never mutated in place: the job store swaps in a new record built with
dataclasses.replace, keyed by the job id.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple

from srt_translator.subtitles.models import CaptionLine, SourceDocument


class JobStatus(str, Enum):
    PENDING = "PENDING"
    PARSING = "PARSING"
    TRANSLATING = "TRANSLATING"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    STOPPED = "STOPPED"


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset({
    JobStatus.COMPLETED,
    JobStatus.ERROR,
    JobStatus.STOPPED,
})

RUNNING_STATUSES: FrozenSet[JobStatus] = frozenset({
    JobStatus.PARSING,
    JobStatus.TRANSLATING,
})

# Allowed forward moves; terminal states have none
TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.PARSING, JobStatus.STOPPED}),
    JobStatus.PARSING: frozenset({JobStatus.TRANSLATING, JobStatus.ERROR, JobStatus.STOPPED}),
    JobStatus.TRANSLATING: frozenset({JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.STOPPED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ERROR: frozenset(),
    JobStatus.STOPPED: frozenset(),
}


def can_transition(current: JobStatus, new: JobStatus) -> bool:
    return new == current or new in TRANSITIONS[current]


def new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Job:
    """One document's translation lifecycle."""
    id: str
    source: SourceDocument
    display_name: str
    target_language: str
    model: str
    status: JobStatus = JobStatus.PENDING
    lines: Tuple[CaptionLine, ...] = ()
    progress: float = 0.0
    current_line_id: int = 0
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_running(self) -> bool:
        return self.status in RUNNING_STATUSES

    @property
    def short_id(self) -> str:
        return self.id[:4]

    @property
    def translated_count(self) -> int:
        return sum(1 for line in self.lines if line.translated_text is not None)

    def to_dict(self, include_lines: bool = False) -> Dict[str, Any]:
        payload = {
            "id": self.id,
            "filename": self.display_name,
            "status": self.status.value,
            "progress": round(self.progress, 2),
            "current_line_id": self.current_line_id,
            "error": self.error,
            "target_language": self.target_language,
            "model": self.model,
            "total_lines": len(self.lines),
            "translated_lines": self.translated_count,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }
        if include_lines:
            payload["lines"] = [line.to_dict() for line in self.lines]
        return payload
