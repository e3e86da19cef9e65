# decision_engine/core/verdict.py
"""
Head-to-head verdicts.

generate_verdict(tool1, tool2, persona) scores both tools, picks the winner by
persona-weighted score and explains it:
- confidence tier from the weighted-score gap
- up to 3 reasons from the largest per-axis advantages
- a persona-specific "what this means" sentence
- up to 3 "what would change this" counterfactuals

Single pass, no state kept between calls.
"""

from __future__ import annotations
import datetime
import logging
from typing import Dict, List, Optional, Tuple

from decision_engine.core import explain
from decision_engine.core.scoring import calculate_scores, calculate_weighted_score
from decision_engine.models import AXES, ComparisonResult, Scores, ToolResult, Verdict

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

SLIGHT_BELOW = 0.5
MODERATE_BELOW = 1.5
MAX_REASONS = 3
MIN_REASON_DELTA = 2
MAX_SCENARIOS = 3
COUNTERFACTUAL_GAP = 2


def confidence_tier(score_difference: float) -> str:
    """slight below 0.5, moderate below 1.5, strong otherwise."""
    if score_difference < SLIGHT_BELOW:
        return "slight"
    if score_difference < MODERATE_BELOW:
        return "moderate"
    return "strong"


def _axis_deltas(winner_scores: Scores, loser_scores: Scores) -> List[Tuple[str, float]]:
    return [
        (axis, winner_scores.axis(axis).value - loser_scores.axis(axis).value)
        for axis in AXES
    ]


def generate_reasons(winner_scores: Scores, loser_scores: Scores) -> List[str]:
    """
    Reasons from the winner's largest per-axis advantages.

    Only axes with delta >= 2 among the top 3 are reported; when none clears
    that bar the single largest positive delta is used instead.
    """
    advantages = [(axis, d) for axis, d in _axis_deltas(winner_scores, loser_scores) if d > 0]
    advantages.sort(key=lambda item: item[1], reverse=True)

    reasons = [
        explain.format_reason(axis, delta, winner_scores.axis(axis).reasoning)
        for axis, delta in advantages[:MAX_REASONS]
        if delta >= MIN_REASON_DELTA
    ]
    if not reasons and advantages:
        axis, delta = advantages[0]
        reasons.append(explain.format_reason(axis, delta, winner_scores.axis(axis).reasoning))
    return reasons


def generate_what_this_means(winner_scores: Scores, loser_scores: Scores, persona: str) -> str:
    biggest_axis, biggest_delta = "pricing", 0.0
    for axis, delta in _axis_deltas(winner_scores, loser_scores):
        if delta > biggest_delta:
            biggest_axis, biggest_delta = axis, delta
    return explain.persona_message(persona, biggest_axis)


def generate_what_would_change(winner, loser, winner_scores: Scores, loser_scores: Scores) -> List[str]:
    scenarios: List[str] = []

    if winner_scores.pricing.value - loser_scores.pricing.value < COUNTERFACTUAL_GAP:
        scenarios.append(explain.PRICE_CUT_SCENARIO.format(loser=loser.name))

    if winner.kind == "llm_api" and loser.kind == "llm_api":
        scenarios.append(explain.CONTEXT_WINDOW_SCENARIO.format(loser=loser.name))

    if winner_scores.community.value - loser_scores.community.value < COUNTERFACTUAL_GAP:
        scenarios.append(explain.ADOPTION_SCENARIO.format(loser=loser.name))

    if winner_scores.reliability.value - loser_scores.reliability.value < COUNTERFACTUAL_GAP:
        scenarios.append(explain.UPTIME_SCENARIO.format(loser=loser.name))

    return scenarios[:MAX_SCENARIOS]


def create_verdict(tool1, tool2, scores1: Scores, scores2: Scores,
                   weighted1: float, weighted2: float, persona: str) -> Verdict:
    # ties go to tool1
    tool1_wins = weighted1 >= weighted2
    winner, loser = (tool1, tool2) if tool1_wins else (tool2, tool1)
    winner_scores, loser_scores = (scores1, scores2) if tool1_wins else (scores2, scores1)

    # weighted scores are already rounded; strip float noise from the subtraction
    score_difference = round(abs(weighted1 - weighted2), 6)

    return Verdict(
        winner=winner.name,
        confidence=confidence_tier(score_difference),
        reasons=generate_reasons(winner_scores, loser_scores),
        what_this_means=generate_what_this_means(winner_scores, loser_scores, persona),
        what_would_change=generate_what_would_change(winner, loser, winner_scores, loser_scores),
    )


def generate_verdict(tool1, tool2, persona: str,
                     today: Optional[datetime.date] = None) -> ComparisonResult:
    """
    Compare two tools for a persona.

    Args:
        tool1, tool2: canonical tools (any kind; mixed kinds are allowed)
        persona: "startup" | "enterprise" | "learning"
        today: reference date for evidence recency

    Returns:
        ComparisonResult with both score vectors, weighted scores and the verdict.
    """
    scores1 = calculate_scores(tool1, today)
    scores2 = calculate_scores(tool2, today)

    weighted1 = calculate_weighted_score(scores1, persona)
    weighted2 = calculate_weighted_score(scores2, persona)

    verdict = create_verdict(tool1, tool2, scores1, scores2, weighted1, weighted2, persona)
    logger.info("Verdict %s vs %s (%s): %s, %s (%.1f vs %.1f)",
                tool1.id, tool2.id, persona, verdict.winner, verdict.confidence, weighted1, weighted2)

    return ComparisonResult(
        tool1=ToolResult(id=tool1.id, name=tool1.name, scores=scores1, weighted_score=weighted1),
        tool2=ToolResult(id=tool2.id, name=tool2.name, scores=scores2, weighted_score=weighted2),
        verdict=verdict,
        persona=persona,
    )


def score_breakdown(scores: Scores) -> Dict[str, Dict[str, object]]:
    """Per-axis value/label/confidence view used by the score endpoint."""
    return {
        axis: {
            "value": scores.axis(axis).value,
            "label": explain.score_label(scores.axis(axis).value),
            "tier": explain.score_tier(scores.axis(axis).value),
            "confidence": scores.axis(axis).confidence,
            "reasoning": scores.axis(axis).reasoning,
        }
        for axis in AXES
    }
