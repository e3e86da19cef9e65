# decision_engine/core/scoring.py
"""
Tool scoring module.

Purpose:
Take one canonical Tool and assign a five-axis score vector
(pricing, ease, docs, community, reliability), each axis a value in [0..10]
with a confidence label and a justification. Also reduce a score vector to a
single persona-weighted number.

Every axis starts from a base value and applies rule deltas from fixed rule
tables. The fired rules are kept on the Score as (axis, rule_id, delta) records;
reasoning text is rendered from them by core/explain.py.
"""

from __future__ import annotations
import datetime
import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from decision_engine.core.explain import render_reasoning
from decision_engine.models import (
    AXES,
    PERSONA_WEIGHTS,
    Confidence,
    Framework,
    LlmApi,
    LlmApiModel,
    Score,
    ScoreRule,
    Scores,
    Source,
    VectorDb,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

BASE_SCORE = 5.0
MIN_SCORE = 0.0
MAX_SCORE = 10.0

# (upper bound on input+output price per 1K, score, rule id), checked in order
LLM_PRICE_TIERS: List[Tuple[float, float, str]] = [
    (0.001, 9, "extremely_low_cost"),
    (0.005, 8, "very_competitive_pricing"),
    (0.01, 7, "good_value"),
    (0.02, 6, "moderate_pricing"),
    (0.05, 4, "higher_cost"),
]
LLM_PRICE_FLOOR = (2, "premium_pricing")

# (minimum model count, score, rule id)
LLM_DOCS_TIERS: List[Tuple[int, float, str]] = [
    (5, 8, "comprehensive_model_docs"),
    (3, 7, "good_model_coverage"),
    (2, 6, "basic_model_docs"),
]
LLM_DOCS_FLOOR = (4, "limited_model_options")

GENEROUS_TPM = 100_000
RESTRICTIVE_TPM = 10_000

# evidence age thresholds (days)
STALE_EVIDENCE_DAYS = 30
AGING_EVIDENCE_DAYS = 7

OPEN_LICENSE_MARKERS = ("mit", "apache", "bsd")

# (minimum stars, delta, rule id)
FRAMEWORK_STAR_TIERS: List[Tuple[int, float, str]] = [
    (10_000, 3, "very_popular"),
    (1_000, 2, "popular"),
    (100, 1, "growing_community"),
]
VECTOR_DB_STAR_TIERS: List[Tuple[int, float, str]] = [
    (5_000, 3, "very_popular"),
    (1_000, 2, "popular"),
    (100, 1, "growing_community"),
]

SETUP_COMPLEXITY_RULES: Dict[str, Tuple[float, str]] = {
    "easy": (2, "easy_setup"),
    "medium": (1, "moderate_setup"),
    "hard": (-1, "complex_setup"),
}
DOC_QUALITY_RULES: Dict[str, Tuple[float, str]] = {
    "excellent": (2, "excellent_doc_quality"),
    "good": (1, "good_doc_quality"),
    "poor": (-1, "poor_doc_quality"),
}


class UnknownToolKindError(TypeError):
    """Raised when a tool outside the llm_api/framework/vector_db union reaches scoring."""


def _clamp(value: float) -> float:
    return max(MIN_SCORE, min(MAX_SCORE, value))


def _rule(axis: str, rule_id: str, delta: float) -> ScoreRule:
    return ScoreRule(axis=axis, rule_id=rule_id, delta=delta)


def _build_score(rules: List[ScoreRule], confidence: Confidence,
                 base: float = BASE_SCORE, default_reasoning: Optional[str] = None) -> Score:
    value = _clamp(base + sum(r.delta for r in rules))
    return Score(
        value=value,
        confidence=confidence,
        reasoning=render_reasoning(rules, default=default_reasoning),
        rules=rules,
    )


def _placeholder(axis: str) -> Score:
    """Axis with no real signal behind it: neutral value, low confidence."""
    return _build_score([_rule(axis, f"{axis}_data_unavailable", 0)], "low")


def days_since_update(sources: Sequence[Source], today: Optional[datetime.date] = None) -> Optional[int]:
    """
    Days between the newest source observation and today.
    Returns None when there is no evidence at all.
    """
    if not sources:
        return None
    today = today or datetime.date.today()
    latest = max(s.observed_at for s in sources)
    return (today - latest).days


def evidence_confidence(sources: Sequence[Source], today: Optional[datetime.date] = None) -> Confidence:
    """
    Map evidence recency to a confidence label:
    - no sources      -> low
    - >30 days old    -> low
    - >7 days old     -> med
    - otherwise       -> high
    """
    days = days_since_update(sources, today)
    if days is None or days > STALE_EVIDENCE_DAYS:
        return "low"
    if days > AGING_EVIDENCE_DAYS:
        return "med"
    return "high"


def _issue_ratio(issues: int, stars: int) -> Optional[float]:
    if stars > 0:
        return issues / stars
    if issues > 0:
        return math.inf
    return None


def _tier_delta(count: float, tiers: List[Tuple[int, float, str]]) -> Optional[Tuple[float, str]]:
    for minimum, delta, rule_id in tiers:
        if count >= minimum:
            return delta, rule_id
    return None


# --- llm_api ---

def _model_cost(model: LlmApiModel) -> float:
    return model.input_price_per_1k + model.output_price_per_1k


def _cheapest_model(tool: LlmApi) -> Optional[LlmApiModel]:
    cheapest = None
    for model in tool.models:
        # first model wins ties
        if cheapest is None or _model_cost(model) < _model_cost(cheapest):
            cheapest = model
    return cheapest


def _score_llm_api_pricing(tool: LlmApi, today: Optional[datetime.date]) -> Score:
    cheapest = _cheapest_model(tool)
    if cheapest is None:
        return _build_score([_rule("pricing", "pricing_data_unavailable", 0)], "low")

    total_cost = _model_cost(cheapest)
    score, rule_id = LLM_PRICE_FLOOR
    for bound, tier_score, tier_rule in LLM_PRICE_TIERS:
        if total_cost < bound:
            score, rule_id = tier_score, tier_rule
            break

    confidence = evidence_confidence(cheapest.sources, today)
    return _build_score([_rule("pricing", rule_id, score - BASE_SCORE)], confidence)


def _score_llm_api_ease(tool: LlmApi) -> Score:
    rules: List[ScoreRule] = []

    official = len(tool.sdks.official)
    if official >= 3:
        rules.append(_rule("ease", "excellent_sdk_coverage", 2))
    elif official >= 2:
        rules.append(_rule("ease", "good_sdk_coverage", 1))

    if tool.sdks.community:
        rules.append(_rule("ease", "community_sdks", 1))

    tpm = tool.rate_limits.tpm
    if tpm >= GENEROUS_TPM:
        rules.append(_rule("ease", "generous_rate_limits", 1))
    elif tpm < RESTRICTIVE_TPM:
        rules.append(_rule("ease", "restrictive_rate_limits", -1))

    if not tool.data_retention.window_days:
        rules.append(_rule("ease", "no_data_retention", 1))

    return _build_score(rules, "high", default_reasoning="Standard API access")


def _score_llm_api_docs(tool: LlmApi) -> Score:
    # model count stands in for documentation breadth until real doc signals exist
    score, rule_id = LLM_DOCS_FLOOR
    tier = _tier_delta(len(tool.models), LLM_DOCS_TIERS)
    if tier is not None:
        score, rule_id = tier
    return _build_score([_rule("docs", rule_id, score - BASE_SCORE)], "med")


def _score_llm_api(tool: LlmApi, today: Optional[datetime.date]) -> Scores:
    return Scores(
        pricing=_score_llm_api_pricing(tool, today),
        ease=_score_llm_api_ease(tool),
        docs=_score_llm_api_docs(tool),
        community=_placeholder("community"),
        reliability=_placeholder("reliability"),
    )


# --- framework ---

def _score_framework_pricing(tool: Framework) -> Score:
    licensing = tool.licensing.lower()
    if any(marker in licensing for marker in OPEN_LICENSE_MARKERS):
        return _build_score([_rule("pricing", "open_source_license", 5)], "high")
    return _build_score([_rule("pricing", "commercial_license", 0)], "high")


def _score_framework_ease(tool: Framework) -> Score:
    rules: List[ScoreRule] = []
    has_pypi = bool(tool.install.get("pypi"))
    has_npm = bool(tool.install.get("npm"))
    if has_pypi and has_npm:
        rules.append(_rule("ease", "multi_language", 2))
    elif has_pypi or has_npm:
        rules.append(_rule("ease", "single_language", 1))
    return _build_score(rules, "high")


def _score_framework_docs(tool: Framework) -> Score:
    rules: List[ScoreRule] = []
    docs = tool.docs

    if docs.quickstart_examples >= 50:
        rules.append(_rule("docs", "extensive_examples", 2))
    elif docs.quickstart_examples >= 20:
        rules.append(_rule("docs", "good_examples", 1))

    if docs.api_coverage_ratio >= 0.9:
        rules.append(_rule("docs", "comprehensive_api_docs", 2))
    elif docs.api_coverage_ratio >= 0.7:
        rules.append(_rule("docs", "good_api_coverage", 1))

    confidence: Confidence = "high"
    if docs.last_updated_days is None:
        rules.append(_rule("docs", "docs_freshness_unknown", 0))
        confidence = "low"
    elif docs.last_updated_days <= 7:
        rules.append(_rule("docs", "recently_updated", 1))
    elif docs.last_updated_days > 30:
        rules.append(_rule("docs", "stale_docs", -1))

    return _build_score(rules, confidence)


def _score_framework_community(tool: Framework) -> Score:
    rules: List[ScoreRule] = []
    community = tool.community

    tier = _tier_delta(community.github_stars, FRAMEWORK_STAR_TIERS)
    if tier is not None:
        rules.append(_rule("community", tier[1], tier[0]))

    ratio = _issue_ratio(community.github_open_issues, community.github_stars)
    if ratio is not None:
        if ratio < 0.01:
            rules.append(_rule("community", "well_maintained", 1))
        elif ratio > 0.1:
            rules.append(_rule("community", "many_open_issues", -1))

    cadence = community.release_cadence_days
    if cadence is not None:
        if cadence <= 7:
            rules.append(_rule("community", "active_development", 1))
        elif cadence > 30:
            rules.append(_rule("community", "slow_release_cycle", -1))

    return _build_score(rules, "high")


def _score_framework_reliability(tool: Framework) -> Score:
    rules: List[ScoreRule] = []
    reliability = tool.reliability

    if reliability.breaking_changes_30d == 0:
        rules.append(_rule("reliability", "stable_api", 2))
    elif reliability.breaking_changes_30d <= 2:
        rules.append(_rule("reliability", "minor_breaking_changes", 1))
    else:
        rules.append(_rule("reliability", "frequent_breaking_changes", -1))

    if not reliability.deprecations_announced:
        rules.append(_rule("reliability", "no_deprecations", 1))
    else:
        rules.append(_rule("reliability", "deprecations_announced", -1))

    return _build_score(rules, "med")


def _score_framework(tool: Framework, today: Optional[datetime.date]) -> Scores:
    return Scores(
        pricing=_score_framework_pricing(tool),
        ease=_score_framework_ease(tool),
        docs=_score_framework_docs(tool),
        community=_score_framework_community(tool),
        reliability=_score_framework_reliability(tool),
    )


# --- vector_db ---

def _score_vector_db_pricing(tool: VectorDb) -> Score:
    rules: List[ScoreRule] = []
    if tool.pricing.free_tier:
        rules.append(_rule("pricing", "free_tier", 3))
    if tool.technical.open_source:
        rules.append(_rule("pricing", "open_source", 2))
    return _build_score(rules, "high")


def _score_vector_db_ease(tool: VectorDb) -> Score:
    rules: List[ScoreRule] = []
    complexity = SETUP_COMPLEXITY_RULES.get(tool.technical.setup_complexity.lower())
    if complexity is not None:
        rules.append(_rule("ease", complexity[1], complexity[0]))
    if len(tool.technical.languages) >= 3:
        rules.append(_rule("ease", "multi_language", 1))
    return _build_score(rules, "high")


def _score_vector_db_docs(tool: VectorDb) -> Score:
    rules: List[ScoreRule] = []
    documentation = tool.documentation
    if documentation.has_docs:
        rules.append(_rule("docs", "docs_available", 2))
    if documentation.has_tutorials:
        rules.append(_rule("docs", "tutorials_available", 1))
    if documentation.has_examples:
        rules.append(_rule("docs", "examples_available", 1))
    quality = DOC_QUALITY_RULES.get(documentation.quality.lower())
    if quality is not None:
        rules.append(_rule("docs", quality[1], quality[0]))
    return _build_score(rules, "med")


def _score_vector_db_community(tool: VectorDb) -> Score:
    rules: List[ScoreRule] = []
    community = tool.community

    tier = _tier_delta(community.github_stars, VECTOR_DB_STAR_TIERS)
    if tier is not None:
        rules.append(_rule("community", tier[1], tier[0]))

    ratio = _issue_ratio(community.github_issues, community.github_stars)
    if ratio is not None:
        if ratio < 0.05:
            rules.append(_rule("community", "well_maintained", 1))
        elif ratio > 0.2:
            rules.append(_rule("community", "many_open_issues", -1))

    return _build_score(rules, "high")


def _score_vector_db(tool: VectorDb, today: Optional[datetime.date]) -> Scores:
    return Scores(
        pricing=_score_vector_db_pricing(tool),
        ease=_score_vector_db_ease(tool),
        docs=_score_vector_db_docs(tool),
        community=_score_vector_db_community(tool),
        reliability=_placeholder("reliability"),
    )


_SCORERS: Dict[str, Callable] = {
    "llm_api": _score_llm_api,
    "framework": _score_framework,
    "vector_db": _score_vector_db,
}


def calculate_scores(tool, today: Optional[datetime.date] = None) -> Scores:
    """
    Compute the five-axis score vector for one tool.

    Args:
        tool: an LlmApi, Framework or VectorDb
        today: reference date for evidence recency (defaults to today)

    Raises:
        UnknownToolKindError for anything outside the three tool kinds.
    """
    kind = getattr(tool, "kind", None)
    scorer = _SCORERS.get(kind) if isinstance(kind, str) else None
    if scorer is None:
        raise UnknownToolKindError(f"Unknown tool kind: {kind!r}")
    return scorer(tool, today)


def calculate_weighted_score(scores: Scores, persona: str) -> float:
    """
    Reduce a score vector to one number using the persona's axis weights,
    rounded half-up to one decimal place.
    """
    weights = PERSONA_WEIGHTS.get(persona)
    if weights is None:
        raise ValueError(f"Unknown persona: {persona!r}")
    total = sum(scores.axis(axis).value * getattr(weights, axis) for axis in AXES)
    return math.floor(total * 10 + 0.5) / 10
