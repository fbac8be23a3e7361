"""
Job store: the single owner of Job records.

All writes replace the whole record keyed by job id and are synchronous, so
on one event loop no other task can interleave between the read of the
current record and the write of its replacement. Writes aimed at a removed
job or at a job already in a terminal state are discarded.
"""

import time
from collections import OrderedDict
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from srt_translator.logger import get_logger
from srt_translator.jobs.models import Job, JobStatus, can_transition

logger = get_logger(__name__)

JobListener = Callable[[Job], None]


class InvalidTransitionError(ValueError):
    """A write tried to move a job backwards or skip a state."""


class JobStore:
    """Ordered, id-keyed collection of immutable Job records."""

    def __init__(self):
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()
        self._listeners: List[JobListener] = []

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def all(self) -> List[Job]:
        """Snapshot of all jobs in submission order."""
        return list(self._jobs.values())

    def as_mapping(self) -> Dict[str, Job]:
        return OrderedDict(self._jobs)

    def add(self, job: Job) -> Job:
        if job.id in self._jobs:
            raise ValueError(f"Job {job.id} already exists")
        self._jobs[job.id] = job
        self._notify(job)
        return job

    def remove(self, job_id: str) -> Optional[Job]:
        return self._jobs.pop(job_id, None)

    def clear(self) -> None:
        self._jobs.clear()

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        """Register a listener called with every new record. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def replace(self, job_id: str, *, allow_terminal: bool = False, **changes) -> Optional[Job]:
        """
        Swap in a new record for job_id with the given field changes.

        Args:
            job_id: Target job
            allow_terminal: Permit edits of a terminal job (user line edits).
                Status changes are still validated.
            **changes: Job fields to replace

        Returns:
            The new record, or None when the write was discarded as stale
            (job removed, or already terminal)

        Raises:
            InvalidTransitionError: status would move backwards
            ValueError: the line count of a parsed job would change
        """
        current = self._jobs.get(job_id)
        if current is None:
            logger.debug(f"Discarded write for removed job {job_id}: {sorted(changes)}")
            return None
        if current.is_terminal and not allow_terminal:
            logger.debug(
                f"Discarded stale write for job {job_id} in {current.status.value}: {sorted(changes)}"
            )
            return None

        new_status = changes.get('status', current.status)
        if not can_transition(current.status, new_status):
            raise InvalidTransitionError(
                f"Job {job_id}: cannot move from {current.status.value} to {new_status.value}"
            )

        if 'lines' in changes:
            changes['lines'] = tuple(changes['lines'])
            if current.status == JobStatus.TRANSLATING and len(changes['lines']) != len(current.lines):
                raise ValueError(
                    f"Job {job_id}: line count is fixed at {len(current.lines)}, got {len(changes['lines'])}"
                )

        if 'progress' in changes:
            progress = min(100.0, max(0.0, float(changes['progress'])))
            if current.status == JobStatus.TRANSLATING and progress < current.progress:
                logger.warning(
                    f"Job {job_id}: ignoring progress decrease {current.progress:.1f} -> {progress:.1f}"
                )
                progress = current.progress
            changes['progress'] = progress

        if new_status != current.status:
            if new_status == JobStatus.PARSING and current.started_at is None:
                changes.setdefault('started_at', time.time())
            if new_status in (JobStatus.COMPLETED, JobStatus.ERROR, JobStatus.STOPPED):
                changes.setdefault('finished_at', time.time())

        updated = replace(current, **changes)
        self._jobs[job_id] = updated
        self._notify(updated)
        return updated

    def _notify(self, job: Job) -> None:
        for listener in list(self._listeners):
            try:
                listener(job)
            except Exception:
                logger.exception(f"Job listener failed for job {job.id}")
