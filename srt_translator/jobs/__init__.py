"""
Jobs module - Queue state

This module provides:
- Job / JobStatus: immutable job record and its state machine
- JobStore: id-keyed owner of job records with stale-write protection
- CancellationToken: cooperative cancellation
- StatusLog: user-facing timestamped log

The scheduler lives in srt_translator.jobs.scheduler.
"""

from srt_translator.jobs.models import Job, JobStatus, TERMINAL_STATUSES, RUNNING_STATUSES
from srt_translator.jobs.store import JobStore, InvalidTransitionError
from srt_translator.jobs.cancellation import CancellationToken
from srt_translator.jobs.status_log import StatusLog

__all__ = [
    'Job',
    'JobStatus',
    'TERMINAL_STATUSES',
    'RUNNING_STATUSES',
    'JobStore',
    'InvalidTransitionError',
    'CancellationToken',
    'StatusLog',
]
