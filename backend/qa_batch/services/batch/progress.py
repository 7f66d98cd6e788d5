"""Serialized progress writes for one batch job.

Every per-conversation task completes by handing its BatchAssessmentItem to
the job's ProgressPersister. Writes are read-modify-write of the job row and
all of them go through one asyncio.Lock, so counters and the running average
stay exact under concurrent completion.
"""
import asyncio
import logging

from qa_batch.config import settings
from qa_batch.models.batch_job import BatchJob
from qa_batch.schemas.batch_job import BatchAssessmentItem, BatchJobProgress
from qa_batch.services.batch.stores import BatchJobStore

logger = logging.getLogger(__name__)


def running_average(current: float | None, count: int, new_value: float) -> float:
    """Incremental mean: (avg * count + new) / (count + 1)."""
    return ((current or 0.0) * count + new_value) / (count + 1)


def prepend_result(recent: list, item: dict, limit: int) -> list:
    """Newest-first, dropping the oldest entries past ``limit``."""
    return [item, *(recent or [])][:limit]


class ProgressPersister:

    def __init__(self, store: BatchJobStore, job_id: str, recent_limit: int | None = None):
        self.store = store
        self.job_id = job_id
        self.recent_limit = recent_limit or settings.BATCH_RECENT_RESULTS_LIMIT
        self._lock = asyncio.Lock()

    async def update(self, **fields) -> None:
        """Merge the given BatchJobProgress fields into the stored progress."""
        patch = BatchJobProgress(**fields).model_dump(include=set(fields))

        def _apply(job: BatchJob) -> None:
            job.progress = {**(job.progress or {}), **patch}

        async with self._lock:
            await self.store.mutate(self.job_id, _apply)

    async def record(self, item: BatchAssessmentItem) -> None:
        """Append one outcome to recentResults and bump the counters."""
        entry = item.model_dump(mode="json")

        def _apply(job: BatchJob) -> None:
            progress = BatchJobProgress.model_validate(job.progress or {})
            progress.processed_conversations += 1
            if item.status == "completed":
                if item.score is not None:
                    progress.average_score = running_average(
                        progress.average_score, progress.successful_assessments, item.score,
                    )
                progress.successful_assessments += 1
            elif item.status == "failed":
                progress.failed_assessments += 1
            progress.current_conversation_id = item.conversation_id

            job.progress = progress.model_dump()
            job.recent_results = prepend_result(job.recent_results, entry, self.recent_limit)

        async with self._lock:
            updated = await self.store.mutate(self.job_id, _apply)
        if updated is None:
            logger.warning(
                f"Result for conversation {item.conversation_id} not recorded: "
                f"job {self.job_id} is missing or finished"
            )
