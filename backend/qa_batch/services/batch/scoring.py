"""Weighted score aggregation over a QA framework."""
from dataclasses import dataclass

from qa_batch.schemas.analysis import AIScore
from qa_batch.schemas.framework import Framework

MAX_SCORE_BY_TYPE = {
    "binary": 1,
    "scale_3": 3,
    "scale_5": 5,
    "na_allowed": 5,
}
DEFAULT_MAX_SCORE = 1


def max_score_for_type(item_type: str) -> int:
    return MAX_SCORE_BY_TYPE.get(item_type, DEFAULT_MAX_SCORE)


@dataclass(frozen=True)
class ScoreOutcome:
    overall_score: float
    passed: bool
    # section id -> percentage, only sections with a non-zero max
    section_percentages: dict


def calculate_score(scores: list[AIScore], framework: Framework, passing_score: float) -> ScoreOutcome:
    """Aggregate per-item AI scores into a weighted overall percentage.

    Section percentage is raw / max * 100, with max summed per item type.
    Missing or null item scores count as 0 but still add their max.
    Sections whose max is 0 are left out of both sides of the weighted mean.
    """
    by_section: dict[str, dict[str, float | None]] = {}
    for s in scores:
        by_section.setdefault(s.section_id, {})[s.item_id] = s.score

    weighted_sum = 0.0
    total_weight = 0.0
    section_percentages = {}

    for section in framework.sections:
        section_scores = by_section.get(section.id, {})
        raw = 0.0
        maximum = 0
        for item in section.items:
            score = section_scores.get(item.id)
            if score is not None:
                raw += score
            maximum += max_score_for_type(item.type)

        if maximum <= 0:
            continue
        pct = raw / maximum * 100
        section_percentages[section.id] = pct
        weighted_sum += pct * section.weight
        total_weight += section.weight

    overall = weighted_sum / total_weight if total_weight > 0 else 0.0
    return ScoreOutcome(
        overall_score=overall,
        passed=overall >= passing_score,
        section_percentages=section_percentages,
    )
