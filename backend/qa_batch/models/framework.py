"""QA framework model - weighted scoring rubric (read-only for batch jobs)."""
from sqlalchemy import String, Text, Float, Boolean, JSON
from sqlalchemy.orm import Mapped, mapped_column
from qa_batch.models.base import Base, TimestampMixin


class QAFramework(Base, TimestampMixin):
    __tablename__ = "qa_frameworks"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    passing_score: Mapped[float] = mapped_column(Float, default=0)
    # [{id, name, description, weight, items: [{id, description, type, isCritical}]}]
    sections: Mapped[list] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
