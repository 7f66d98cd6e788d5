"""Import all models so SQLAlchemy metadata knows about them."""
from qa_batch.models.base import Base
from qa_batch.models.batch_job import BatchJob
from qa_batch.models.framework import QAFramework
from qa_batch.models.assessment import QAAssessment
from qa_batch.models.setting import AccountSetting

__all__ = [
    "Base",
    "BatchJob", "QAFramework", "QAAssessment", "AccountSetting",
]
