"""
Batch Translation Pipeline

Drives one parsed job through the retry policy batch by batch:
- Checkpoint before every batch (global/job cancellation, job still live)
  and before every backoff wait of the retry policy
- Positional zip of results with source-text fallback for missing items
- One whole-record store replacement per batch (lines + progress)
- Halts only the owning job on unrecoverable failure
"""

from dataclasses import replace
from typing import Callable, List, Optional

from srt_translator.ai.exceptions import TranslationError
from srt_translator.ai.retry import RetryPolicy
from srt_translator.config import DEFAULT_BATCH_SIZE
from srt_translator.jobs.cancellation import CancellationToken
from srt_translator.jobs.models import Job, JobStatus
from srt_translator.jobs.status_log import StatusLog
from srt_translator.jobs.store import JobStore
from srt_translator.logger import get_logger
from srt_translator.subtitles.models import CaptionLine
from srt_translator.translation.progress import BatchProgress
from srt_translator.translation.utils import chunk_lines

logger = get_logger(__name__)


class _StopRequested(Exception):
    """Raised from the retry status callback once the run's token is cancelled."""


class BatchPipeline:
    """Sequential batch translation for a single job at a time."""

    def __init__(
        self,
        store: JobStore,
        retry_policy: RetryPolicy,
        status_log: StatusLog,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress_callback: Optional[Callable[[BatchProgress], None]] = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.store = store
        self.retry_policy = retry_policy
        self.status_log = status_log
        self.batch_size = batch_size
        self.progress_callback = progress_callback

    def _report(self, progress: BatchProgress) -> None:
        if self.progress_callback:
            self.progress_callback(progress)

    def _checkpoint(self, job_id: str, token: CancellationToken) -> bool:
        """Return True when the job may dispatch its next batch."""
        job = self.store.get(job_id)
        if job is None or job.is_terminal:
            return False
        if token.cancelled:
            self.store.replace(job_id, status=JobStatus.STOPPED)
            logger.info(f"Job {job_id} stopped at checkpoint")
            return False
        return True

    @staticmethod
    def _merge_batch(
        lines: List[CaptionLine],
        offset: int,
        batch: List[CaptionLine],
        translations: List[str],
    ) -> List[CaptionLine]:
        """Zip translations onto the batch positions; missing items fall back to source text."""
        merged = list(lines)
        for j, line in enumerate(batch):
            text = translations[j] if j < len(translations) else line.source_text
            merged[offset + j] = replace(merged[offset + j], translated_text=text)
        return merged

    async def run(self, job_id: str, token: CancellationToken) -> Optional[JobStatus]:
        """
        Translate all lines of a job that finished parsing.

        Args:
            job_id: Job in TRANSLATING state
            token: Cancellation token of this run (child of the global token)

        Returns:
            The job's status when the pipeline returned, or None if the job
            was removed meanwhile
        """
        job = self.store.get(job_id)
        if job is None or job.is_terminal:
            return job.status if job else None

        total = len(job.lines)
        if total == 0:
            self.store.replace(job_id, status=JobStatus.COMPLETED, progress=100.0)
            return self._final_status(job_id)

        batches = chunk_lines(list(job.lines), self.batch_size)
        total_batches = len(batches)
        processed = 0

        logger.info(
            f"Job {job_id}: translating {total} lines in {total_batches} batches "
            f"(batch size: {self.batch_size}) into {job.target_language}"
        )

        for batch_number, batch in enumerate(batches, start=1):
            if not self._checkpoint(job_id, token):
                self._report(BatchProgress(
                    job_id=job_id,
                    current_batch=batch_number,
                    total_batches=total_batches,
                    batch_lines_count=len(batch),
                    processed_lines=processed,
                    total_lines=total,
                    phase="stopped",
                ))
                return self._final_status(job_id)

            first_id, last_id = batch[0].sequence_id, batch[-1].sequence_id
            self.store.replace(job_id, current_line_id=first_id)
            self._report(BatchProgress(
                job_id=job_id,
                current_batch=batch_number,
                total_batches=total_batches,
                batch_lines_count=len(batch),
                processed_lines=processed,
                total_lines=total,
                first_line_id=first_id,
                last_line_id=last_id,
            ))

            def on_status(message: str, batch_number=batch_number, processed=processed):
                if token.cancelled:
                    # Skip the backoff wait and the remaining attempts
                    raise _StopRequested()
                self.status_log.append(f"[{job.short_id}...] Batch {batch_number}: {message}")
                self._report(BatchProgress(
                    job_id=job_id,
                    current_batch=batch_number,
                    total_batches=total_batches,
                    batch_lines_count=len(batch),
                    processed_lines=processed,
                    total_lines=total,
                    first_line_id=first_id,
                    last_line_id=last_id,
                    phase="retrying",
                    message=message,
                ))

            texts = [line.source_text for line in batch]
            logger.debug(f"Job {job_id} batch {batch_number}/{total_batches}: {len(texts)} lines")
            try:
                translations = await self.retry_policy.translate(
                    texts, job.target_language, job.model, on_status=on_status
                )
            except _StopRequested:
                logger.info(f"Job {job_id}: retries abandoned after cancellation (batch {batch_number})")
                self.store.replace(job_id, status=JobStatus.STOPPED)
                self._report(BatchProgress(
                    job_id=job_id,
                    current_batch=batch_number,
                    total_batches=total_batches,
                    batch_lines_count=len(batch),
                    processed_lines=processed,
                    total_lines=total,
                    first_line_id=first_id,
                    last_line_id=last_id,
                    phase="stopped",
                ))
                return self._final_status(job_id)
            except Exception as e:
                if not isinstance(e, TranslationError):
                    logger.exception(f"Unexpected failure in job {job_id} batch {batch_number}")
                error_msg = str(e) or type(e).__name__
                self.status_log.append(
                    f"Request Failed ({job_id}) [Lines {first_id}-{last_id}]: {error_msg}"
                )
                self.store.replace(job_id, status=JobStatus.ERROR, error=error_msg)
                self._report(BatchProgress(
                    job_id=job_id,
                    current_batch=batch_number,
                    total_batches=total_batches,
                    batch_lines_count=len(batch),
                    processed_lines=processed,
                    total_lines=total,
                    first_line_id=first_id,
                    last_line_id=last_id,
                    phase="failed",
                    message=error_msg,
                ))
                return self._final_status(job_id)

            if len(translations) != len(batch):
                self.status_log.append(
                    f"Warning ({job_id}): Batch {batch_number} requested {len(batch)} lines "
                    f"but got {len(translations)}."
                )

            # Re-read by id: the record may have been replaced while awaiting
            current = self.store.get(job_id)
            if current is None or current.is_terminal:
                logger.debug(f"Job {job_id}: discarding batch {batch_number} result, job no longer active")
                return self._final_status(job_id)
            if token.cancelled:
                self.store.replace(job_id, status=JobStatus.STOPPED)
                return self._final_status(job_id)

            merged = self._merge_batch(list(current.lines), processed, batch, translations)
            processed += len(batch)
            changes = {"lines": merged, "progress": 100.0 * processed / total}
            if processed == total:
                # Last batch publishes completion in the same replacement
                changes.update(status=JobStatus.COMPLETED, progress=100.0)
            self.store.replace(job_id, **changes)

            self._report(BatchProgress(
                job_id=job_id,
                current_batch=batch_number,
                total_batches=total_batches,
                batch_lines_count=len(batch),
                processed_lines=processed,
                total_lines=total,
                first_line_id=first_id,
                last_line_id=last_id,
                phase="completed" if processed == total else "batch_done",
            ))

        return self._final_status(job_id)

    def _final_status(self, job_id: str) -> Optional[JobStatus]:
        job: Optional[Job] = self.store.get(job_id)
        return job.status if job else None
