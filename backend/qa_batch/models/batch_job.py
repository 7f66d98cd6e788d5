"""Batch job model - one row per submitted QA batch assessment run."""
from datetime import datetime
from sqlalchemy import String, Text, JSON, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from qa_batch.models.base import Base, utcnow


class BatchJob(Base):
    __tablename__ = "qa_batch_jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), default="queued", index=True)
    # 'queued' | 'fetching' | 'processing' | 'completed' | 'failed' | 'cancelled'

    name: Mapped[str] = mapped_column(String(255), default="")
    framework_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Snapshot of BatchJobConfig, immutable once the job starts
    config: Mapped[dict] = mapped_column(JSON, default=dict)
    progress: Mapped[dict] = mapped_column(JSON, default=dict)
    # Newest-first activity log, capped at BATCH_RECENT_RESULTS_LIMIT
    recent_results: Mapped[list] = mapped_column(JSON, default=list)

    created_by: Mapped[str] = mapped_column(String(255), default="unknown")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_qa_batch_jobs_account_created", "account_id", "created_at"),
    )
