"""Structured AI analysis output for one conversation."""
from typing import Optional

from pydantic import Field

from qa_batch.schemas.base import CamelModel


class AIComment(CamelModel):
    message_index: Optional[int] = None
    message_indices: Optional[list[int]] = None
    comment: str = ""
    # 'positive' | 'negative' | 'neutral' | 'suggestion'
    type: str = "neutral"
    category: str = ""
    confidence: float = 0


class AIScore(CamelModel):
    section_id: str
    item_id: str
    score: Optional[float] = None
    confidence: float = 0
    reasoning: Optional[str] = None


class AIOverallAssessment(CamelModel):
    overall_score: float = 0
    overall_confidence: float = 0
    passed: bool = False
    strengths: list[str] = []
    weaknesses: list[str] = []
    improvement_areas: list[str] = []
    critical_issues: list[str] = []
    executive_summary: str = ""


class AIAnalysisResult(CamelModel):
    comments: list[AIComment] = []
    scores: list[AIScore] = []
    summary: str = ""
    overall_assessment: AIOverallAssessment = Field(default_factory=AIOverallAssessment)
