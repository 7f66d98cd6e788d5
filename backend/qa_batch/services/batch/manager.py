"""Batch job manager - create, poll, list and cancel QA batch jobs.

create() persists a queued job and detaches the pipeline as an asyncio task
in this process; callers poll get_status() until the job is terminal.

State machine:
    queued -> fetching -> processing -> completed | failed | cancelled
"""
import asyncio
import logging
import uuid
from typing import Optional, Sequence

from qa_batch.models.base import utcnow
from qa_batch.models.batch_job import BatchJob
from qa_batch.schemas.batch_job import (
    RUNNING_STATUSES, BatchJobConfig, BatchJobProgress,
    BatchJobResponse, BatchJobStatusResponse,
)
from qa_batch.services.batch.cancellation import CancellationRegistry, CancellationToken
from qa_batch.services.batch.errors import NotFoundError, ValidationError
from qa_batch.services.batch.pipeline import BatchPipeline
from qa_batch.services.batch.stores import BatchJobStore

logger = logging.getLogger(__name__)

LIST_VIEW_RESULTS = 10


def new_job_id() -> str:
    return f"batch-{uuid.uuid4().hex}"


def validate_config(config: BatchJobConfig) -> None:
    if not config.framework_id:
        raise ValidationError("frameworkId is required")
    filters = config.filters
    if filters.date_from is None or filters.date_to is None:
        raise ValidationError("filters.dateFrom and filters.dateTo are required")


class BatchJobManager:

    def __init__(
        self, job_store: BatchJobStore, pipeline: BatchPipeline,
        registry: Optional[CancellationRegistry] = None,
        clients: Sequence = (),
    ):
        self.job_store = job_store
        self.pipeline = pipeline
        self.registry = registry or CancellationRegistry()
        # HTTP clients whose pooled sessions live as long as the manager
        self.clients = list(clients)
        # Strong references to detached pipeline tasks
        self._tasks: set[asyncio.Task] = set()

    async def create(
        self, account_id: str, config: BatchJobConfig, created_by: str = "unknown",
    ) -> BatchJobResponse:
        """Persist a queued job and start its pipeline without awaiting it.

        Raises:
            ValidationError: missing frameworkId or date bounds.
        """
        validate_config(config)
        now = utcnow()
        job = BatchJob(
            id=new_job_id(),
            account_id=account_id,
            status="queued",
            name=config.name,
            framework_id=config.framework_id,
            config=config.model_dump(mode="json"),
            progress=BatchJobProgress().model_dump(),
            recent_results=[],
            created_by=created_by or "unknown",
            created_at=now,
            updated_at=now,
        )
        job = await self.job_store.add(job)
        snapshot = BatchJobResponse.model_validate(job)
        logger.info(f"Created batch job {job.id} for account {account_id} (framework={config.framework_id})")

        token = self.registry.register(job.id)
        task = asyncio.create_task(self._run(job.id, account_id, token), name=f"qa-batch-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return snapshot

    async def _run(self, job_id: str, account_id: str, token: CancellationToken) -> None:
        try:
            await self.pipeline.run(job_id, account_id, token)
        finally:
            self.registry.release(job_id)

    async def _get_owned(self, account_id: str, job_id: str) -> BatchJob:
        job = await self.job_store.get(job_id)
        if job is None or job.account_id != account_id:
            raise NotFoundError(f"Batch job {job_id} not found")
        return job

    async def get_status(self, account_id: str, job_id: str) -> BatchJobStatusResponse:
        """Raises NotFoundError if absent or owned by another account."""
        job = await self._get_owned(account_id, job_id)
        return BatchJobStatusResponse.model_validate(job)

    async def list(self, account_id: str, limit: int = 20) -> list[BatchJobStatusResponse]:
        """Newest first, each with only the latest results for list views."""
        jobs = await self.job_store.list_for_account(account_id, limit)
        responses = []
        for job in jobs:
            status = BatchJobStatusResponse.model_validate(job)
            responses.append(status.model_copy(
                update={"recent_results": status.recent_results[:LIST_VIEW_RESULTS]}
            ))
        return responses

    async def cancel(self, account_id: str, job_id: str) -> None:
        """Cancel a fetching/processing job. No-op for queued or finished jobs.

        Work already dispatched still completes and is recorded.
        """
        job = await self._get_owned(account_id, job_id)
        if job.status not in RUNNING_STATUSES:
            return
        self.registry.cancel(job_id)
        await self.job_store.set_status(job_id, "cancelled")

    async def recover_interrupted_jobs(self) -> int:
        """Fail jobs left mid-run by a previous process. Jobs are not resumable."""
        stale = await self.job_store.list_by_status(["queued", *sorted(RUNNING_STATUSES)])
        recovered = 0
        for job in stale:
            if job.id in self.registry:
                continue
            if await self.job_store.set_status(
                job.id, "failed", f"Recovered on startup: job was {job.status} when the process stopped",
            ):
                logger.warning(f"Recovered stale batch job {job.id} (was {job.status})")
                recovered += 1
        if recovered:
            logger.info(f"Recovered {recovered} stale batch job(s)")
        return recovered

    async def wait_idle(self) -> None:
        """Wait for every detached pipeline started by this manager."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def startup(self) -> None:
        """Open pooled HTTP sessions for the external clients."""
        for client in self.clients:
            await client.open()

    async def shutdown(self) -> None:
        """Cancel detached pipelines, then close HTTP sessions (process exit)."""
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        for client in self.clients:
            await client.close()


def create_batch_manager(session_factory=None) -> BatchJobManager:
    """Wire a manager against the configured database and HTTP services."""
    from qa_batch.config import settings
    from qa_batch.services.batch.stores import (
        AccountSettingsStore, AssessmentStore, FrameworkStore,
    )
    from qa_batch.services.clients.ai_studio_client import AIStudioClient
    from qa_batch.services.clients.conversation_client import ConversationClient

    conversations = ConversationClient(
        settings.CONVERSATION_API_URL, settings.CONVERSATION_API_TOKEN,
        timeout=settings.CONVERSATION_API_TIMEOUT,
    )
    ai = AIStudioClient(
        settings.AI_STUDIO_API_URL, settings.AI_STUDIO_TOKEN,
        timeout=settings.CONVERSATION_API_TIMEOUT,
    )
    job_store = BatchJobStore(session_factory)
    pipeline = BatchPipeline(
        job_store=job_store,
        framework_store=FrameworkStore(session_factory),
        settings_store=AccountSettingsStore(session_factory),
        assessment_store=AssessmentStore(session_factory),
        conversations=conversations,
        ai=ai,
    )
    return BatchJobManager(job_store, pipeline, clients=(conversations, ai))
