"""QA assessment model - detailed result of one scored conversation."""
from datetime import datetime
from sqlalchemy import String, Text, Float, Boolean, JSON, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from qa_batch.models.base import Base, TimestampMixin, utcnow


class QAAssessment(Base, TimestampMixin):
    __tablename__ = "qa_assessments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    conversation_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    framework_id: Mapped[str] = mapped_column(String(100), nullable=False)
    batch_job_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default="completed")

    conversation_info: Mapped[dict] = mapped_column(JSON, default=dict)
    agents: Mapped[list] = mapped_column(JSON, default=list)
    attribution_mode: Mapped[str] = mapped_column(String(30), default="last_agent")
    section_scores: Mapped[list] = mapped_column(JSON, default=list)
    comments: Mapped[list] = mapped_column(JSON, default=list)

    total_score: Mapped[float] = mapped_column(Float, default=0)
    passed: Mapped[bool] = mapped_column(Boolean, default=False)
    critical_failures: Mapped[list] = mapped_column(JSON, default=list)
    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    evaluator_id: Mapped[str] = mapped_column(String(100), default="system")
    evaluator_name: Mapped[str] = mapped_column(String(255), default="AI Batch Assessment")
    evaluated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    notes: Mapped[str] = mapped_column(Text, default="")
