"""Batch assessment pipeline - runs one job from fetch to terminal status.

Phases are strictly sequential: select conversations, load transcripts, then
fan out AI analysis through the shared BoundedScheduler. Per-conversation
failures become failed items; anything that escapes to the top level fails
the whole job.
"""
import asyncio
import logging
import traceback
from typing import Optional

from qa_batch.config import settings
from qa_batch.schemas.analysis import AIAnalysisResult
from qa_batch.schemas.batch_job import BatchAssessmentItem, BatchJobConfig
from qa_batch.schemas.framework import Framework
from qa_batch.models.base import utcnow
from qa_batch.services.batch.analyzer import (
    ConversationAnalyzer, build_framework_criteria_text, resolve_flow_id, transcript_to_text,
)
from qa_batch.services.batch.cancellation import CancellationToken
from qa_batch.services.batch.errors import NotFoundError, safe_error_message
from qa_batch.services.batch.fetcher import ConversationSelector
from qa_batch.services.batch.progress import ProgressPersister
from qa_batch.services.batch.scheduler import BoundedScheduler
from qa_batch.services.batch.scoring import calculate_score
from qa_batch.services.batch.stores import (
    AccountSettingsStore, AssessmentStore, BatchJobStore, FrameworkStore,
)
from qa_batch.services.batch.transcript_loader import TranscriptLoader
from qa_batch.services.clients.ai_studio_client import AIInvoker
from qa_batch.services.clients.conversation_client import ConversationSource

logger = logging.getLogger(__name__)


class BatchPipeline:

    def __init__(
        self,
        *,
        job_store: BatchJobStore,
        framework_store: FrameworkStore,
        settings_store: AccountSettingsStore,
        assessment_store: AssessmentStore,
        conversations: ConversationSource,
        ai: AIInvoker,
        scheduler: Optional[BoundedScheduler] = None,
        selector: Optional[ConversationSelector] = None,
        loader: Optional[TranscriptLoader] = None,
        default_flow_id: Optional[str] = None,
        default_passing_score: Optional[float] = None,
    ):
        self.job_store = job_store
        self.framework_store = framework_store
        self.settings_store = settings_store
        self.assessment_store = assessment_store
        self.ai = ai
        self.scheduler = scheduler or BoundedScheduler(
            max_concurrent=settings.BATCH_AI_MAX_CONCURRENT,
            min_time=settings.BATCH_AI_MIN_TIME_MS / 1000,
        )
        self.selector = selector or ConversationSelector(conversations)
        self.loader = loader or TranscriptLoader(conversations)
        self.default_flow_id = default_flow_id if default_flow_id is not None else settings.DEFAULT_QA_FLOW_ID
        self.default_passing_score = (
            default_passing_score if default_passing_score is not None
            else settings.DEFAULT_PASSING_SCORE
        )

    async def run(self, job_id: str, account_id: str, token: CancellationToken) -> None:
        """Run a job to a terminal status. Never raises."""
        progress = ProgressPersister(self.job_store, job_id)
        try:
            job = await self.job_store.get(job_id)
            if job is None:
                raise NotFoundError(f"Batch job {job_id} not found")
            config = BatchJobConfig.model_validate(job.config)
            framework = await self.framework_store.get(config.framework_id)

            # Phase 1: select conversations
            if not await self.job_store.set_status(job_id, "fetching"):
                return
            conversation_ids = await self.selector.select(account_id, config, progress, token)
            if token.cancelled:
                await self._mark_cancelled(job_id)
                return

            # Phase 2: load transcripts
            transcripts = await self.loader.load(account_id, conversation_ids, progress, token)
            if token.cancelled:
                await self._mark_cancelled(job_id)
                return

            # Phase 3: AI analysis
            if not await self.job_store.set_status(job_id, "processing"):
                return
            await self.process(job_id, account_id, framework, transcripts, progress, token)

            if token.cancelled:
                await self._mark_cancelled(job_id)
            else:
                await self.job_store.set_status(job_id, "completed")
                logger.info(f"Batch job {job_id} completed")

        except Exception as e:
            logger.error(f"Batch job {job_id} failed: {e}")
            logger.error(traceback.format_exc())
            await self._mark_failed(job_id, e)

    async def _mark_cancelled(self, job_id: str) -> None:
        # No-op when cancel() already wrote the status
        await self.job_store.set_status(job_id, "cancelled")
        logger.info(f"Batch job {job_id} stopped after cancellation")

    async def _mark_failed(self, job_id: str, error: Exception) -> None:
        # Retry so a transient DB error doesn't leave the job stuck mid-run
        for attempt in range(3):
            try:
                await self.job_store.set_status(job_id, "failed", safe_error_message(error))
                return
            except Exception as db_err:
                logger.error(
                    f"Failed to mark job {job_id} as failed "
                    f"(attempt {attempt + 1}/3): {db_err}"
                )
                if attempt < 2:
                    await asyncio.sleep(1)

    async def process(
        self, job_id: str, account_id: str, framework: Framework,
        transcripts: dict[str, dict], progress: ProgressPersister, token: CancellationToken,
    ) -> None:
        """Fan out analysis of every transcript and wait for all of it."""
        passing_score = framework.passing_score or self.default_passing_score
        criteria = build_framework_criteria_text(framework, passing_score)
        flow_id = await resolve_flow_id(self.settings_store, account_id, self.default_flow_id)
        analyzer = ConversationAnalyzer(self.ai, flow_id, criteria)

        async def _process_one(entry: tuple[str, dict]) -> BatchAssessmentItem:
            conversation_id, transcript = entry
            item = await self.assess_conversation(
                job_id, account_id, conversation_id, transcript,
                framework, analyzer, passing_score,
            )
            await progress.record(item)
            return item

        results = await self.scheduler.run_all(list(transcripts.items()), _process_one, token=token)

        for (conversation_id, _), result in zip(transcripts.items(), results):
            if isinstance(result, BaseException):
                logger.error(
                    f"Job {job_id}: result for {conversation_id} was lost: "
                    f"{safe_error_message(result)}"
                )

    async def assess_conversation(
        self, job_id: str, account_id: str, conversation_id: str, transcript: dict,
        framework: Framework, analyzer: ConversationAnalyzer, passing_score: float,
    ) -> BatchAssessmentItem:
        """Analyze and score one conversation. Failures become a failed item."""
        try:
            text = transcript_to_text(transcript)
            if not text:
                return self._failed(conversation_id, "No analyzable messages")

            analysis = await analyzer.analyze(text)
            outcome = calculate_score(analysis.scores, framework, passing_score)
            assessment_id = await self._save_assessment(
                job_id, account_id, conversation_id, transcript,
                framework, analysis, outcome.overall_score, outcome.passed,
            )
            return BatchAssessmentItem(
                conversation_id=conversation_id,
                status="completed",
                score=outcome.overall_score,
                passed=outcome.passed,
                processed_at=utcnow(),
                assessment_id=assessment_id,
            )
        except Exception as e:
            msg = safe_error_message(e)
            logger.error(f"Job {job_id}: assessment of {conversation_id} failed: {msg}")
            return self._failed(conversation_id, msg)

    @staticmethod
    def _failed(conversation_id: str, error: str) -> BatchAssessmentItem:
        return BatchAssessmentItem(
            conversation_id=conversation_id,
            status="failed",
            error=error,
            processed_at=utcnow(),
        )

    async def _save_assessment(
        self, job_id: str, account_id: str, conversation_id: str, transcript: dict,
        framework: Framework, analysis: AIAnalysisResult, total_score: float, passed: bool,
    ) -> str:
        info = transcript.get("info") or {}
        overall = analysis.overall_assessment
        return await self.assessment_store.save(
            account_id=account_id,
            conversation_id=conversation_id,
            framework_id=framework.id,
            batch_job_id=job_id,
            conversation_info={
                "startTime": info.get("startTime"),
                "endTime": info.get("endTime"),
                "skillName": info.get("latestSkillName"),
                "agentName": info.get("latestAgentFullName"),
            },
            agents=transcript.get("agentParticipants") or [],
            section_scores=[s.model_dump(by_alias=True) for s in analysis.scores],
            comments=[c.model_dump(by_alias=True, exclude_none=True) for c in analysis.comments],
            total_score=total_score,
            passed=passed,
            critical_failures=list(overall.critical_issues),
            ai_confidence=overall.overall_confidence,
            notes=analysis.summary,
        )
