"""Batch job request/response schemas."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import Field

from qa_batch.schemas.base import CamelModel, CamelORMModel

BatchJobStatus = Literal["queued", "fetching", "processing", "completed", "failed", "cancelled"]
PriorityOrder = Literal["newest_first", "oldest_first", "random", "mcs_lowest"]
ItemStatus = Literal["completed", "failed", "skipped"]

TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled"})
RUNNING_STATUSES = frozenset({"fetching", "processing"})


class BatchJobFilters(CamelModel):
    """Conversation search filters. Dates are epoch milliseconds."""
    model_config = {"frozen": True}

    date_from: Optional[int] = None
    date_to: Optional[int] = None
    status: Optional[list[str]] = None
    skill_ids: Optional[list[int]] = None
    agent_ids: Optional[list[str]] = None


class BatchJobConfig(CamelModel):
    model_config = {"frozen": True}

    name: str = ""
    framework_id: str = ""
    filters: BatchJobFilters = Field(default_factory=BatchJobFilters)
    sampling_rate: float = Field(100, ge=0, le=100)
    max_conversations: int = Field(100, ge=1)
    priority_order: PriorityOrder = "newest_first"
    # Accepted and stored, not enforced during selection
    skip_already_assessed: bool = True


class BatchJobProgress(CamelModel):
    total_conversations: int = 0
    fetched_conversations: int = 0
    processed_conversations: int = 0
    successful_assessments: int = 0
    failed_assessments: int = 0
    average_score: Optional[float] = None
    current_conversation_id: Optional[str] = None


class BatchAssessmentItem(CamelModel):
    model_config = {"frozen": True}

    conversation_id: str
    status: ItemStatus
    score: Optional[float] = None
    passed: Optional[bool] = None
    error: Optional[str] = None
    processed_at: datetime
    assessment_id: Optional[str] = None


class BatchJobStatusResponse(CamelORMModel):
    """Polling view of a job."""
    id: str
    status: BatchJobStatus
    config: BatchJobConfig
    progress: BatchJobProgress
    recent_results: list[BatchAssessmentItem] = []
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


class BatchJobResponse(BatchJobStatusResponse):
    """Full job snapshot returned on creation."""
    account_id: str
    created_by: str
