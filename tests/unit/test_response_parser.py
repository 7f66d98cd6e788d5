"""
Unit tests for AI flow response extraction and parsing.
"""
import json

import pytest

from qa_batch.services.batch.errors import ParseFailure
from qa_batch.services.batch.response_parser import extract_response_text, parse_analysis_result


class TestExtractResponseText:

    def test_plain_string(self):
        assert extract_response_text("raw text") == "raw text"

    def test_output_text(self):
        assert extract_response_text({"output": {"text": "from text", "content": "other"}}) == "from text"

    def test_output_content_when_text_missing(self):
        assert extract_response_text({"output": {"content": "from content"}}) == "from content"

    def test_output_content_when_text_empty(self):
        assert extract_response_text({"output": {"text": "", "content": "from content"}}) == "from content"

    def test_output_string(self):
        assert extract_response_text({"output": "direct"}) == "direct"

    def test_output_without_known_fields_is_serialized(self):
        text = extract_response_text({"output": {"scores": []}})
        assert json.loads(text) == {"scores": []}

    def test_whole_payload_serialized_without_output(self):
        payload = {"summary": "ok", "scores": []}
        assert json.loads(extract_response_text(payload)) == payload

    def test_none(self):
        assert extract_response_text(None) == ""


class TestParseAnalysisResult:

    def test_full_response(self):
        text = json.dumps({
            "comments": [{"messageIndices": [1, 2], "comment": "Good greeting", "type": "positive"}],
            "scores": [
                {"sectionId": "s1", "itemId": "i1", "score": 1, "confidence": 0.9},
                {"sectionId": "s1", "itemId": "i2", "score": None},
            ],
            "summary": "Solid conversation",
            "overallAssessment": {"overallConfidence": 0.85, "criticalIssues": ["none"]},
        })
        result = parse_analysis_result(text)

        assert result.summary == "Solid conversation"
        assert [(s.section_id, s.item_id, s.score) for s in result.scores] == [
            ("s1", "i1", 1), ("s1", "i2", None),
        ]
        assert result.comments[0].message_indices == [1, 2]
        assert result.overall_assessment.overall_confidence == 0.85
        assert result.overall_assessment.critical_issues == ["none"]

    def test_truncated_response_is_repaired(self):
        text = '{"summary": "ok", "scores": [{"sectionId":"s1","itemId":"i1","score":1}'
        result = parse_analysis_result(text)
        assert result.summary == "ok"
        assert len(result.scores) == 1
        assert result.scores[0].score == 1

    def test_malformed_score_entries_are_dropped(self):
        text = json.dumps({"scores": [
            {"sectionId": "s1", "itemId": "i1", "score": 1},
            {"sectionId": "s1"},
            "not an object",
            {"sectionId": "s1", "itemId": "i3", "score": "high"},
        ]})
        result = parse_analysis_result(text)
        assert [s.item_id for s in result.scores] == ["i1"]

    def test_missing_sections_default(self):
        result = parse_analysis_result("{}")
        assert result.scores == []
        assert result.comments == []
        assert result.summary == ""
        assert result.overall_assessment.overall_confidence == 0

    def test_malformed_overall_assessment_defaults(self):
        text = json.dumps({"overallAssessment": {"overallConfidence": "very"}, "summary": 5})
        result = parse_analysis_result(text)
        assert result.overall_assessment.overall_confidence == 0
        assert result.summary == ""

    def test_no_json_raises_parse_failure(self):
        with pytest.raises(ParseFailure, match="No JSON object"):
            parse_analysis_result("I am unable to help with that.")

    def test_unrecoverable_json_raises_parse_failure(self):
        with pytest.raises(ParseFailure, match="Invalid JSON"):
            parse_analysis_result('{"a" 1, "b": 2}')
