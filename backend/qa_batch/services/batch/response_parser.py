"""Parsing of AI flow responses into AIAnalysisResult.

The flow response shape is not fixed: the useful text may sit under
output.text, output.content, or nowhere in particular. extract_response_text
resolves that in one place; parse_analysis_result turns the text into a
validated AIAnalysisResult, repairing truncated JSON on the way.
"""
import json
import logging
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from qa_batch.schemas.analysis import AIAnalysisResult, AIComment, AIOverallAssessment, AIScore
from qa_batch.services.batch.errors import ParseFailure
from qa_batch.services.batch.json_repair import repair_json

logger = logging.getLogger(__name__)


def extract_response_text(payload: Any) -> str:
    """Pull the AI's text out of a flow response.

    Tries output.text, then output.content, then the JSON of output, then
    the JSON of the whole payload.
    """
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict) and payload.get("output"):
        output = payload["output"]
        if isinstance(output, str):
            return output
        if isinstance(output, dict):
            for key in ("text", "content"):
                value = output.get(key)
                if isinstance(value, str) and value:
                    return value
        return json.dumps(output, default=str)
    return json.dumps(payload, default=str)


def _validate_list(raw: Any, model, label: str) -> list:
    if not isinstance(raw, list):
        return []
    items = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            items.append(model.model_validate(entry))
        except PydanticValidationError as e:
            logger.warning("Dropping malformed %s entry: %s", label, e.errors()[:1])
    return items


def parse_analysis_result(text: str) -> AIAnalysisResult:
    """Parse AI text into AIAnalysisResult.

    Raises:
        ParseFailure: no JSON object, or unparsable even after repair.
    """
    result = repair_json(text)
    if not result.ok:
        raise ParseFailure(result.error or "Unparsable AI response")

    parsed = result.value
    if not isinstance(parsed, dict):
        raise ParseFailure("AI response is not a JSON object")

    overall = AIOverallAssessment()
    raw_overall = parsed.get("overallAssessment")
    if isinstance(raw_overall, dict):
        try:
            overall = AIOverallAssessment.model_validate(raw_overall)
        except PydanticValidationError as e:
            logger.warning("Ignoring malformed overallAssessment: %s", e.errors()[:1])

    summary = parsed.get("summary")
    return AIAnalysisResult(
        comments=_validate_list(parsed.get("comments"), AIComment, "comment"),
        scores=_validate_list(parsed.get("scores"), AIScore, "score"),
        summary=summary if isinstance(summary, str) else "",
        overall_assessment=overall,
    )
