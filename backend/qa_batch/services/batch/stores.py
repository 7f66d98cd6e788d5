"""Database-backed stores used by the batch engine.

Each store takes an ``async_sessionmaker`` and opens a short-lived session
per call, so stores are safe to share between concurrent tasks.
"""
import logging
import uuid
from typing import Callable, Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from qa_batch.models.assessment import QAAssessment
from qa_batch.models.base import utcnow
from qa_batch.models.batch_job import BatchJob
from qa_batch.models.framework import QAFramework
from qa_batch.models.setting import AccountSetting
from qa_batch.schemas.batch_job import TERMINAL_STATUSES
from qa_batch.schemas.framework import Framework
from qa_batch.services.batch.errors import NotFoundError, PersistenceFailure

logger = logging.getLogger(__name__)

# Statuses after which nothing about a job changes any more. A cancelled job
# still accepts results from tasks that were already dispatched.
FROZEN_STATUSES = frozenset({"completed", "failed"})


def _default_session_factory() -> async_sessionmaker[AsyncSession]:
    from qa_batch.database import async_session
    return async_session


class _Store:
    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or _default_session_factory()


class FrameworkStore(_Store):

    async def get(self, framework_id: str) -> Framework:
        async with self._session_factory() as db:
            row = await db.get(QAFramework, framework_id)
            if row is None:
                raise NotFoundError(f"Framework {framework_id} not found")
            return Framework.model_validate(row)

    async def save(self, framework: Framework) -> None:
        data = framework.model_dump(by_alias=True, include={"sections"})
        try:
            async with self._session_factory() as db:
                row = await db.get(QAFramework, framework.id)
                if row is None:
                    row = QAFramework(id=framework.id, account_id=framework.account_id or "")
                    db.add(row)
                row.name = framework.name
                row.description = framework.description
                row.passing_score = framework.passing_score
                row.sections = data["sections"]
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to save framework {framework.id}: {e}") from e


class AccountSettingsStore(_Store):

    async def get_setting(self, account_id: str, name: str) -> Optional[str]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AccountSetting).where(
                    AccountSetting.account_id == account_id,
                    AccountSetting.name == name,
                )
            )
            setting = result.scalar_one_or_none()
            return setting.value if setting and setting.value else None

    async def set_setting(self, account_id: str, name: str, value: Optional[str]) -> None:
        async with self._session_factory() as db:
            result = await db.execute(
                select(AccountSetting).where(
                    AccountSetting.account_id == account_id,
                    AccountSetting.name == name,
                )
            )
            setting = result.scalar_one_or_none()
            if setting is None:
                db.add(AccountSetting(account_id=account_id, name=name, value=value))
            else:
                setting.value = value
            await db.commit()


class AssessmentStore(_Store):

    async def save(self, **fields) -> str:
        """Persist one detailed assessment and return its id."""
        assessment_id = f"assessment-{uuid.uuid4().hex}"
        try:
            async with self._session_factory() as db:
                db.add(QAAssessment(id=assessment_id, **fields))
                await db.commit()
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to save assessment: {e}") from e
        return assessment_id


class BatchJobStore(_Store):
    """Durable job records. The single source of truth for polled state."""

    async def add(self, job: BatchJob) -> BatchJob:
        try:
            async with self._session_factory() as db:
                db.add(job)
                await db.commit()
                await db.refresh(job)
                return job
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to create batch job {job.id}: {e}") from e

    async def get(self, job_id: str) -> Optional[BatchJob]:
        async with self._session_factory() as db:
            return await db.get(BatchJob, job_id)

    async def list_for_account(self, account_id: str, limit: int = 20) -> list[BatchJob]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(BatchJob)
                .where(BatchJob.account_id == account_id)
                .order_by(desc(BatchJob.created_at))
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_by_status(self, statuses: list[str]) -> list[BatchJob]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(BatchJob).where(BatchJob.status.in_(statuses)).order_by(BatchJob.created_at)
            )
            return list(result.scalars().all())

    async def mutate(
        self, job_id: str, fn: Callable[[BatchJob], None], *,
        frozen: frozenset = FROZEN_STATUSES,
    ) -> Optional[BatchJob]:
        """Read the job, apply fn to it and commit, in one session.

        Returns None (and writes nothing) if the job is missing or its status
        is in ``frozen``.
        """
        try:
            async with self._session_factory() as db:
                job = await db.get(BatchJob, job_id)
                if job is None or job.status in frozen:
                    return None
                fn(job)
                job.updated_at = utcnow()
                await db.commit()
                await db.refresh(job)
                return job
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to update batch job {job_id}: {e}") from e

    async def set_status(self, job_id: str, status: str, error: Optional[str] = None) -> bool:
        """Move a job to ``status``. Terminal jobs are never moved again.

        Returns True if the write happened.
        """
        def _apply(job: BatchJob) -> None:
            job.status = status
            if status in TERMINAL_STATUSES:
                job.completed_at = utcnow()
            if error:
                job.error = error

        updated = await self.mutate(job_id, _apply, frozen=TERMINAL_STATUSES)
        if updated is not None:
            logger.info(f"Batch job {job_id} -> {status}")
        return updated is not None
