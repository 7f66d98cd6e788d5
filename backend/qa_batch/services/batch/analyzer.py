"""AI analysis of one conversation against a QA framework.

Builds the prompt (transcript + framework criteria), invokes the account's
AI Studio flow and parses the reply into an AIAnalysisResult.
"""
import logging
from typing import Optional

from qa_batch.schemas.analysis import AIAnalysisResult
from qa_batch.schemas.framework import Framework
from qa_batch.services.batch.errors import BatchJobError, ExternalCallFailure, ParseFailure
from qa_batch.services.batch.response_parser import extract_response_text, parse_analysis_result
from qa_batch.services.batch.stores import AccountSettingsStore
from qa_batch.services.clients.ai_studio_client import AIInvoker

logger = logging.getLogger(__name__)

FLOW_SETTING_NAME = "aiStudioProxyFlow"
TEXT_MESSAGE_TYPES = ("TEXT_PLAIN", "PLAIN_TEXT")

ANALYSIS_PROMPT = """You are a QA specialist analyzing customer service conversations.

CONVERSATION TRANSCRIPT:
{transcript}

QA FRAMEWORK CRITERIA:
{criteria}

Analyze this conversation against the framework criteria and respond with JSON:
{{
  "comments": [
    {{
      "messageIndices": [2, 5],
      "comment": "Observation about the conversation",
      "type": "positive|negative|neutral|suggestion",
      "category": "Category name",
      "confidence": 0.9
    }}
  ],
  "scores": [
    {{
      "sectionId": "section-id",
      "itemId": "item-id",
      "score": 1,
      "confidence": 0.9,
      "reasoning": "Brief explanation"
    }}
  ],
  "summary": "One-line assessment summary",
  "overallAssessment": {{
    "overallScore": 75,
    "overallConfidence": 0.85,
    "passed": true,
    "strengths": ["List of strengths"],
    "weaknesses": ["List of weaknesses"],
    "improvementAreas": ["Improvement recommendations"],
    "criticalIssues": [],
    "executiveSummary": "2-3 sentence summary"
  }}
}}

Scoring types:
- binary: 0 (No) or 1 (Yes)
- scale_3: 1 (Poor), 2 (Acceptable), 3 (Excellent)
- scale_5: 1 (Very Poor) to 5 (Excellent)
- na_allowed: 0-5, or null if Not Applicable

IMPORTANT: Score EVERY item in the framework. Respond ONLY with valid JSON."""


def build_framework_criteria_text(framework: Framework, passing_score: float) -> str:
    lines = [
        f"Framework: {framework.name}",
        f"Passing Score: {passing_score:g}%",
        "",
        "Sections:",
    ]
    for section in framework.sections:
        lines.append(f"\n## {section.name} (Weight: {section.weight:g}%)")
        lines.append(section.description or "")
        for item in section.items:
            critical = ", CRITICAL" if item.is_critical else ""
            lines.append(
                f"- [{section.id}/{item.id}] {item.description} (Type: {item.type}{critical})"
            )
    return "\n".join(lines)


def transcript_to_text(transcript: dict) -> str:
    """Flatten plain-text messages into '[Customer]: ...' / '[Agent]: ...' lines."""
    lines = []
    for msg in transcript.get("messageRecords") or []:
        if msg.get("type") not in TEXT_MESSAGE_TYPES:
            continue
        sender = "Customer" if msg.get("sentBy") == "Consumer" else "Agent"
        text = ((msg.get("messageData") or {}).get("msg") or {}).get("text") or ""
        lines.append(f"[{sender}]: {text}")
    return "\n".join(lines)


def build_prompt(transcript_text: str, criteria_text: str) -> str:
    return ANALYSIS_PROMPT.format(transcript=transcript_text, criteria=criteria_text)


async def resolve_flow_id(
    settings_store: AccountSettingsStore, account_id: str, default_flow_id: Optional[str],
) -> str:
    """Account setting first, then the configured default.

    Raises:
        BatchJobError: neither is configured; no conversation can be scored.
    """
    flow_id = await settings_store.get_setting(account_id, FLOW_SETTING_NAME)
    if flow_id:
        return flow_id
    if default_flow_id:
        logger.info(f"No {FLOW_SETTING_NAME} setting for account {account_id}, using default flow")
        return default_flow_id
    raise BatchJobError("No AI Studio flow configured for this account")


class ConversationAnalyzer:
    """Scores transcripts through one AI flow with one fixed criteria block."""

    def __init__(self, ai: AIInvoker, flow_id: str, criteria_text: str):
        self.ai = ai
        self.flow_id = flow_id
        self.criteria_text = criteria_text

    async def analyze(self, transcript_text: str) -> AIAnalysisResult:
        """Run the flow on one transcript.

        Raises:
            ExternalCallFailure: the flow invocation failed.
            ParseFailure: the reply held no usable JSON object.
        """
        prompt = build_prompt(transcript_text, self.criteria_text)
        try:
            response = await self.ai.invoke(self.flow_id, {"input": {"text": prompt}})
        except ExternalCallFailure:
            raise
        except Exception as e:
            raise ExternalCallFailure(str(e) or type(e).__name__) from e

        text = extract_response_text(response)
        if not text.strip():
            raise ParseFailure("No AI response")
        return parse_analysis_result(text)
