"""
Queue manager: owns the job set, fills free concurrency slots and
propagates cancellation.

All public methods except the coroutines are synchronous and must be called
from the thread running the event loop. Job tasks suspend only at the
document read, the client call and backoff waits, so the synchronous store
writes between those points never interleave.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import replace
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from srt_translator.ai.exceptions import MissingCredentialError, TranslationError
from srt_translator.ai.retry import RetryPolicy, Translator
from srt_translator.config import (
    DEFAULT_MODEL,
    DEFAULT_TARGET_LANGUAGE,
    QueueSettings,
)
from srt_translator.core.credentials import CredentialStore
from srt_translator.jobs.cancellation import CancellationToken
from srt_translator.jobs.models import Job, JobStatus, new_job_id
from srt_translator.jobs.status_log import StatusLog
from srt_translator.jobs.store import JobListener, JobStore
from srt_translator.logger import get_logger
from srt_translator.subtitles.models import SourceDocument
from srt_translator.subtitles.srt import EmptyDocumentError, ParseError, parse_srt
from srt_translator.translation.pipeline import BatchPipeline
from srt_translator.translation.progress import BatchProgress

logger = get_logger(__name__)


class QueueError(Exception):
    """Queue operation error with optional code."""

    def __init__(self, message: str, code: str = None):
        super().__init__(message)
        self.code = code


class JobNotFoundError(QueueError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found", code="job_not_found")
        self.job_id = job_id


class JobBusyError(QueueError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} is still running", code="job_busy")
        self.job_id = job_id


class LineNotFoundError(QueueError):
    def __init__(self, job_id: str, sequence_id: int):
        super().__init__(f"Line {sequence_id} not found in job {job_id}", code="line_not_found")
        self.job_id = job_id
        self.sequence_id = sequence_id


def plan_admission(
    jobs: Mapping[str, Job],
    active: FrozenSet[str],
    limit: int,
) -> Tuple[Dict[str, Job], FrozenSet[str], List[str]]:
    """
    Pure admission step.

    Picks up to ``limit - len(active)`` PENDING jobs in submission order and
    moves them to PARSING.

    Returns:
        (jobs', active', admitted_ids) where jobs' only differs from jobs in
        the admitted records
    """
    slots = limit - len(active)
    new_jobs = dict(jobs)
    if slots <= 0:
        return new_jobs, active, []

    admitted: List[str] = []
    for job_id, job in jobs.items():
        if len(admitted) >= slots:
            break
        if job.status == JobStatus.PENDING and job_id not in active:
            new_jobs[job_id] = replace(job, status=JobStatus.PARSING)
            admitted.append(job_id)

    return new_jobs, active | frozenset(admitted), admitted


class QueueManager:
    """
    Bounded-concurrency scheduler for translation jobs.

    Args:
        client: Translation client (anything with an async ``translate``)
        credentials: Credential store; submission requires a stored key
        settings: Batch size, concurrency limit and retry knobs
        status_log: User-facing log sink (a new one when omitted)
        sleep: Backoff sleep, injectable for tests
        rng: Jitter source, injectable for tests
    """

    def __init__(
        self,
        client: Translator,
        credentials: CredentialStore,
        settings: Optional[QueueSettings] = None,
        status_log: Optional[StatusLog] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.credentials = credentials
        self.settings = settings or QueueSettings()
        self.status_log = status_log or StatusLog()
        self.store = JobStore()
        self.retry_policy = RetryPolicy(
            client,
            max_retries=self.settings.max_retries,
            base_delay=self.settings.base_delay,
            jitter=self.settings.jitter,
            sleep=sleep or asyncio.sleep,
            rng=rng,
        )
        self.pipeline = BatchPipeline(
            self.store,
            self.retry_policy,
            self.status_log,
            batch_size=self.settings.batch_size,
            progress_callback=self._on_batch_progress,
        )
        self._active: FrozenSet[str] = frozenset()
        self._global_token = CancellationToken()
        self._job_tokens: Dict[str, CancellationToken] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._batch_progress: Dict[str, BatchProgress] = {}

    # Introspection

    @property
    def concurrency_limit(self) -> int:
        return self.settings.concurrency_limit

    @property
    def active_ids(self) -> FrozenSet[str]:
        return self._active

    @property
    def stopped(self) -> bool:
        """True while a stop_all is in effect (until the next submit)."""
        return self._global_token.cancelled

    def get(self, job_id: str) -> Optional[Job]:
        return self.store.get(job_id)

    def jobs(self) -> List[Job]:
        return self.store.all()

    def batch_progress(self, job_id: str) -> Optional[BatchProgress]:
        return self._batch_progress.get(job_id)

    def subscribe(self, listener: JobListener) -> Callable[[], None]:
        return self.store.subscribe(listener)

    def overall_progress(self) -> float:
        """Weighted queue progress: completed jobs count 100, active jobs their own progress."""
        jobs = self.store.all()
        if not jobs:
            return 0.0
        completed = sum(1 for job in jobs if job.status == JobStatus.COMPLETED)
        running = sum(
            job.progress for job in jobs
            if job.id in self._active and job.status != JobStatus.COMPLETED
        )
        return (completed * 100.0 + running) / len(jobs)

    # Queue operations

    def submit(
        self,
        documents: Iterable[SourceDocument],
        target_language: str = DEFAULT_TARGET_LANGUAGE,
        model: str = DEFAULT_MODEL,
    ) -> List[str]:
        """
        Append PENDING jobs for the documents and fill free slots.

        Raises:
            MissingCredentialError: no API key stored; no job is created
        """
        if not self.credentials.get():
            self.status_log.append("Missing API Key.")
            raise MissingCredentialError()

        documents = list(documents)
        if self._global_token.cancelled:
            # New submissions lift a previous stop; stopped jobs stay stopped
            self._global_token = CancellationToken()

        job_ids = []
        for document in documents:
            job = Job(
                id=new_job_id(),
                source=document,
                display_name=document.display_name,
                target_language=target_language,
                model=model,
            )
            self.store.add(job)
            job_ids.append(job.id)

        if job_ids:
            logger.info(
                f"Queued {len(job_ids)} document(s) for {target_language} (model: {model})"
            )
        self.admit_ready()
        return job_ids

    def admit_ready(self) -> List[str]:
        """
        Start PENDING jobs in FIFO order until all slots are full.

        Idempotent: a second call without an intervening change starts nothing.
        """
        if self._global_token.cancelled or not self.credentials.get():
            return []

        _, new_active, admitted = plan_admission(
            self.store.as_mapping(), self._active, self.concurrency_limit
        )
        if not admitted:
            return []

        loop = asyncio.get_running_loop()
        self._active = new_active
        for job_id in admitted:
            self.store.replace(job_id, status=JobStatus.PARSING)
            token = self._global_token.child()
            self._job_tokens[job_id] = token
            self._tasks[job_id] = loop.create_task(
                self._run_job(job_id, token), name=f"translation-job-{job_id}"
            )
        return admitted

    def stop_all(self) -> List[str]:
        """Cancel everything queued or running. Returns the ids that were stopped."""
        self._global_token.cancel("stop_all")
        stopped = []
        for job in self.store.all():
            if job.status in (JobStatus.PENDING, JobStatus.PARSING, JobStatus.TRANSLATING):
                self.store.replace(job.id, status=JobStatus.STOPPED)
                stopped.append(job.id)
        self._active = frozenset()
        self.status_log.append("User stopped the queue.")
        logger.info(f"Stopped {len(stopped)} job(s)")
        return stopped

    def remove(self, job_id: str) -> Job:
        """Delete a job, stopping it first when it is active."""
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        if job_id in self._active:
            token = self._job_tokens.get(job_id)
            if token is not None:
                token.cancel("removed")
            self.store.replace(job_id, status=JobStatus.STOPPED)
            self._release(job_id)

        removed = self.store.remove(job_id)
        self._batch_progress.pop(job_id, None)
        logger.info(f"Removed job {job_id} ({job.display_name})")
        self.admit_ready()
        return removed

    def clear_completed(self) -> List[str]:
        """Drop all COMPLETED jobs."""
        removed = [job.id for job in self.store.all() if job.status == JobStatus.COMPLETED]
        for job_id in removed:
            self.store.remove(job_id)
            self._batch_progress.pop(job_id, None)
        return removed

    def update_line(self, job_id: str, sequence_id: int, text: str) -> Job:
        """Manually set the translated text of one line of an idle job."""
        job = self.store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.is_running:
            raise JobBusyError(job_id)

        for index, line in enumerate(job.lines):
            if line.sequence_id == sequence_id:
                lines = list(job.lines)
                lines[index] = replace(line, translated_text=text)
                return self.store.replace(job_id, allow_terminal=True, lines=lines)

        raise LineNotFoundError(job_id, sequence_id)

    def reset(self) -> None:
        """Stop everything and forget all jobs and log entries (credential cleared)."""
        self.stop_all()
        self.store.clear()
        self._batch_progress.clear()
        self._job_tokens.clear()
        self.status_log.clear()

    def apply_config(self, config: Dict) -> None:
        """Hand a saved configuration to the client (provider switch without restart)."""
        apply = getattr(self.client, "apply_config", None)
        if apply is not None:
            apply(config)

    async def wait_idle(self) -> None:
        """Wait until no job task is running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def aclose(self) -> None:
        self.stop_all()
        await self.wait_idle()
        aclose = getattr(self.client, "aclose", None)
        if aclose is not None:
            await aclose()

    # Job execution

    def _release(self, job_id: str) -> None:
        self._active = self._active - {job_id}
        self._job_tokens.pop(job_id, None)

    def _on_batch_progress(self, progress: BatchProgress) -> None:
        if progress.job_id in self.store:
            self._batch_progress[progress.job_id] = progress

    async def _parse(self, job_id: str, token: CancellationToken) -> bool:
        """Read and parse the document. Returns True when translation may start."""
        job = self.store.get(job_id)
        try:
            raw_text = await job.source.read_text()
            if token.cancelled:
                self.store.replace(job_id, status=JobStatus.STOPPED)
                return False
            lines = parse_srt(raw_text)
        except EmptyDocumentError:
            self.status_log.append(f"Error ({job.display_name}): Uploaded file is empty.")
            self.store.replace(job_id, status=JobStatus.ERROR, error="Empty file")
            return False
        except ParseError as e:
            self.status_log.append(f"Parsing Error ({job.display_name}): {e}")
            self.store.replace(job_id, status=JobStatus.ERROR, error="File parsing failed")
            return False
        except OSError as e:
            self.status_log.append(f"File Read Error ({job.display_name}): {e}")
            self.store.replace(job_id, status=JobStatus.ERROR, error="Failed to read file")
            return False

        return self.store.replace(
            job_id, status=JobStatus.TRANSLATING, lines=lines, progress=0.0
        ) is not None

    async def _run_job(self, job_id: str, token: CancellationToken) -> None:
        job = self.store.get(job_id)
        if job is not None:
            self.status_log.append(f"Starting job: {job.display_name}")
        try:
            if job is not None and await self._parse(job_id, token):
                status = await self.pipeline.run(job_id, token)
                logger.info(f"Job {job_id} finished with status {status.value if status else 'removed'}")
        except Exception as e:
            error_type = type(e).__name__
            logger.exception(f"✗ Translation job {job_id} failed: {error_type}: {e}")
            message = str(e) if isinstance(e, TranslationError) else f"{error_type}: {e}"
            self.status_log.append(f"Error ({job_id}): {message}")
            self.store.replace(job_id, status=JobStatus.ERROR, error=message)
        finally:
            self._tasks.pop(job_id, None)
            # Only release the slot if this run still owns it
            if self._job_tokens.get(job_id) is token:
                self._release(job_id)
            self.admit_ready()
