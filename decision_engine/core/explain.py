# decision_engine/core/explain.py
"""
Text rendering for scores and verdicts.

Scoring only records which rules fired (axis, rule_id, delta); every sentence a
reader sees is produced here, so wording can change without touching scoring.
"""
from __future__ import annotations
from typing import Dict, Iterable, Optional

from decision_engine.models import ScoreRule

RULE_TEXT: Dict[str, str] = {
    # pricing
    "extremely_low_cost": "Extremely low cost per token",
    "very_competitive_pricing": "Very competitive pricing",
    "good_value": "Good value for money",
    "moderate_pricing": "Moderate pricing",
    "higher_cost": "Higher cost than alternatives",
    "premium_pricing": "Premium pricing",
    "pricing_data_unavailable": "Pricing data not available",
    "open_source_license": "Open source, free to use",
    "commercial_license": "Commercial licensing required",
    "free_tier": "Free tier available",
    "open_source": "Open source",
    # ease
    "excellent_sdk_coverage": "Excellent SDK coverage",
    "good_sdk_coverage": "Good SDK coverage",
    "community_sdks": "Active community SDKs",
    "generous_rate_limits": "Generous rate limits",
    "restrictive_rate_limits": "Restrictive rate limits",
    "no_data_retention": "No data retention",
    "multi_language": "Multi-language support",
    "single_language": "Single language support",
    "easy_setup": "Easy setup",
    "moderate_setup": "Moderate setup",
    "complex_setup": "Complex setup",
    # docs
    "comprehensive_model_docs": "Comprehensive model documentation",
    "good_model_coverage": "Good model coverage",
    "basic_model_docs": "Basic model documentation",
    "limited_model_options": "Limited model options",
    "extensive_examples": "Extensive examples",
    "good_examples": "Good example coverage",
    "comprehensive_api_docs": "Comprehensive API docs",
    "good_api_coverage": "Good API coverage",
    "recently_updated": "Recently updated",
    "stale_docs": "Docs may be stale",
    "docs_freshness_unknown": "Docs freshness unknown",
    "docs_available": "Documentation available",
    "tutorials_available": "Tutorials available",
    "examples_available": "Code examples available",
    "excellent_doc_quality": "Excellent documentation quality",
    "good_doc_quality": "Good documentation quality",
    "poor_doc_quality": "Poor documentation quality",
    # community
    "very_popular": "Very popular",
    "popular": "Popular",
    "growing_community": "Growing community",
    "well_maintained": "Well-maintained",
    "many_open_issues": "Many open issues",
    "active_development": "Active development",
    "slow_release_cycle": "Slow release cycle",
    "community_data_unavailable": "Community data not available",
    # reliability
    "stable_api": "Stable API",
    "minor_breaking_changes": "Minor breaking changes",
    "frequent_breaking_changes": "Frequent breaking changes",
    "no_deprecations": "No recent deprecations",
    "deprecations_announced": "Recent deprecations announced",
    "reliability_data_unavailable": "Reliability data not available",
}

AXIS_NAMES: Dict[str, str] = {
    "pricing": "Pricing",
    "ease": "Ease of Use",
    "docs": "Documentation",
    "community": "Community",
    "reliability": "Reliability",
}

PERSONA_MESSAGES: Dict[str, Dict[str, str]] = {
    "startup": {
        "pricing": "You'll save money on API costs, crucial for bootstrapped startups.",
        "ease": "Faster time to market with easier integration.",
        "docs": "Less time debugging, more time building features.",
        "community": "Better support when you hit roadblocks.",
        "reliability": "Fewer production issues to worry about.",
    },
    "enterprise": {
        "pricing": "Lower total cost of ownership for large-scale deployments.",
        "ease": "Reduced training time for your development team.",
        "docs": "Better compliance and audit trail capabilities.",
        "community": "Enterprise-grade support and partnerships.",
        "reliability": "Mission-critical uptime and SLA guarantees.",
    },
    "learning": {
        "pricing": "More experimentation within your budget.",
        "ease": "Less frustration, more learning progress.",
        "docs": "Better learning resources and examples.",
        "community": "More help when you're stuck on concepts.",
        "reliability": "Stable platform for consistent learning.",
    },
}

GENERIC_MESSAGE = "Better overall fit for your {persona} needs."

PRICE_CUT_SCENARIO = "If {loser} reduced pricing by 30-40%, the cost advantage would disappear"
CONTEXT_WINDOW_SCENARIO = "If {loser} released a 1M+ token context model, the capabilities gap would close"
ADOPTION_SCENARIO = "If {loser} gained significant community adoption, the support advantage would diminish"
UPTIME_SCENARIO = "If {loser} improved uptime to 99.9%+, the reliability gap would close"

# display tiers, highest first
SCORE_LABELS = [(10, "Excellent"), (7, "Good"), (4, "Fair"), (1, "Poor"), (0, "No data")]


def rule_text(rule_id: str) -> str:
    return RULE_TEXT.get(rule_id, rule_id.replace("_", " ").capitalize())


def render_reasoning(rules: Iterable[ScoreRule], default: Optional[str] = None) -> Optional[str]:
    """Join the sentences of the fired rules, or return default when none fired."""
    sentences = [f"{rule_text(r.rule_id)}." for r in rules]
    if not sentences:
        return default
    return " ".join(sentences)


def reason_strength(difference: float) -> str:
    if difference >= 3:
        return "significantly"
    if difference >= 1.5:
        return "notably"
    return "slightly"


def format_reason(axis: str, difference: float, reasoning: Optional[str] = None) -> str:
    axis_name = AXIS_NAMES.get(axis, axis)
    strength = reason_strength(difference)
    if reasoning:
        return f"{axis_name} {strength} better: {reasoning}"
    return f"{axis_name} {strength} better"


def persona_message(persona: str, axis: str) -> str:
    message = PERSONA_MESSAGES.get(persona, {}).get(axis)
    return message or GENERIC_MESSAGE.format(persona=persona)


def score_label(value: float) -> str:
    for tier, label in SCORE_LABELS:
        if value >= tier:
            return label
    return "No data"


def score_tier(value: float) -> int:
    """Bucket a score into the 0/1/4/7/10 display tiers."""
    if value == 0:
        return 0
    if value <= 3:
        return 1
    if value <= 6:
        return 4
    if value <= 9:
        return 7
    return 10
