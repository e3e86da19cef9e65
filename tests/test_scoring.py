import types

import pytest

from builders import TODAY, build_framework, build_llm_api, build_scores, build_vector_db, source
from decision_engine.core.scoring import (
    UnknownToolKindError,
    calculate_scores,
    calculate_weighted_score,
    days_since_update,
    evidence_confidence,
)
from decision_engine.models import AXES, PERSONA_WEIGHTS, LlmApi, LlmApiModel


class TestEvidenceRecency:
    """Test evidence age -> confidence mapping"""

    def test_no_sources_is_no_evidence(self):
        assert days_since_update([], TODAY) is None
        assert evidence_confidence([], TODAY) == "low"

    def test_latest_source_wins(self):
        sources = [source(40), source(3), source(12)]
        assert days_since_update(sources, TODAY) == 3

    @pytest.mark.parametrize("age,expected", [
        (0, "high"),
        (7, "high"),
        (8, "med"),
        (30, "med"),
        (31, "low"),
        (400, "low"),
    ])
    def test_confidence_bands(self, age, expected):
        assert evidence_confidence([source(age)], TODAY) == expected


class TestLlmApiScoring:
    """Test LLM API axis rules"""

    def test_extremely_low_cost(self):
        """0.0004 + 0.0004 per 1K is below 0.001"""
        scores = calculate_scores(build_llm_api(prices=((0.0004, 0.0004),)), TODAY)
        assert scores.pricing.value == 9
        assert "extremely low cost" in scores.pricing.reasoning.lower()

    @pytest.mark.parametrize("inp,out,expected", [
        (0.001, 0.0, 8),
        (0.002, 0.002, 8),
        (0.003, 0.003, 7),
        (0.005, 0.008, 6),
        (0.01, 0.02, 4),
        (0.05, 0.0, 2),
        (0.03, 0.03, 2),
    ])
    def test_pricing_tiers(self, inp, out, expected):
        scores = calculate_scores(build_llm_api(prices=((inp, out),)), TODAY)
        assert scores.pricing.value == expected

    @pytest.mark.parametrize("age,expected", [(1, "high"), (10, "med"), (45, "low"), (None, "low")])
    def test_pricing_confidence_from_evidence(self, age, expected):
        scores = calculate_scores(build_llm_api(source_age=age), TODAY)
        assert scores.pricing.confidence == expected

    def test_cheapest_model_drives_pricing_and_confidence(self):
        """The cheapest model is used, including its (missing) evidence"""
        tool = LlmApi(
            id="mixed",
            name="Mixed",
            models=[
                LlmApiModel(id="big", input_price_per_1k=0.03, output_price_per_1k=0.06, sources=[source(1)]),
                LlmApiModel(id="small", input_price_per_1k=0.0002, output_price_per_1k=0.0002),
            ],
        )
        scores = calculate_scores(tool, TODAY)
        assert scores.pricing.value == 9
        assert scores.pricing.confidence == "low"

    def test_no_models_gives_neutral_pricing(self):
        tool = LlmApi(id="empty", name="Empty")
        scores = calculate_scores(tool, TODAY)
        assert scores.pricing.value == 5
        assert scores.pricing.confidence == "low"
        assert scores.docs.value == 4

    def test_ease_maximum(self):
        """3 official SDKs, community SDKs, generous limits and no retention"""
        scores = calculate_scores(build_llm_api(), TODAY)
        assert scores.ease.value == 10
        assert scores.ease.confidence == "high"
        assert [r.rule_id for r in scores.ease.rules] == [
            "excellent_sdk_coverage", "community_sdks", "generous_rate_limits", "no_data_retention",
        ]

    def test_ease_restrictive(self):
        tool = build_llm_api(official=("python",), community=(), tpm=5_000, window_days=30)
        scores = calculate_scores(tool, TODAY)
        assert scores.ease.value == 4
        assert "Restrictive rate limits" in scores.ease.reasoning

    def test_ease_zero_retention_counts_as_none(self):
        tool = build_llm_api(official=("python", "go"), community=(), tpm=50_000, window_days=0)
        scores = calculate_scores(tool, TODAY)
        assert scores.ease.value == 7

    def test_ease_default_reasoning(self):
        tool = build_llm_api(official=("python",), community=(), tpm=50_000, window_days=30)
        scores = calculate_scores(tool, TODAY)
        assert scores.ease.value == 5
        assert scores.ease.reasoning == "Standard API access"
        assert scores.ease.rules == []

    @pytest.mark.parametrize("model_count,expected", [(1, 4), (2, 6), (3, 7), (4, 7), (5, 8), (8, 8)])
    def test_docs_from_model_count(self, model_count, expected):
        tool = build_llm_api(prices=tuple((0.001, 0.001) for _ in range(model_count)))
        scores = calculate_scores(tool, TODAY)
        assert scores.docs.value == expected
        assert scores.docs.confidence == "med"

    def test_community_and_reliability_are_placeholders(self):
        scores = calculate_scores(build_llm_api(), TODAY)
        for axis in ("community", "reliability"):
            score = scores.axis(axis)
            assert score.value == 5
            assert score.confidence == "low"
            assert "not available" in score.reasoning


class TestFrameworkScoring:
    """Test framework axis rules"""

    def test_well_supported_framework_lands_near_maximum(self):
        """MIT, pypi+npm, 60 examples, 0.95 coverage, fresh docs, 12k stars, 0.005 issue ratio"""
        scores = calculate_scores(build_framework(), TODAY)
        assert scores.pricing.value == 10
        assert scores.ease.value == 7
        assert scores.docs.value == 10
        assert scores.community.value >= 9
        assert scores.reliability.value >= 7

    def test_rules_are_recorded(self):
        scores = calculate_scores(build_framework(), TODAY)
        assert [(r.rule_id, r.delta) for r in scores.docs.rules] == [
            ("extensive_examples", 2), ("comprehensive_api_docs", 2), ("recently_updated", 1),
        ]
        assert all(r.axis == "docs" for r in scores.docs.rules)
        assert scores.docs.reasoning == "Extensive examples. Comprehensive API docs. Recently updated."

    @pytest.mark.parametrize("licensing,expected", [
        ("MIT", 10),
        ("Apache-2.0", 10),
        ("bsd-3-clause", 10),
        ("Proprietary", 5),
        ("", 5),
    ])
    def test_pricing_from_license(self, licensing, expected):
        scores = calculate_scores(build_framework(licensing=licensing), TODAY)
        assert scores.pricing.value == expected

    @pytest.mark.parametrize("install,expected", [
        ({"pypi": "x", "npm": "x"}, 7),
        ({"pypi": "x"}, 6),
        ({"npm": "x"}, 6),
        ({"cargo": "x"}, 5),
        ({}, 5),
    ])
    def test_ease_from_install_targets(self, install, expected):
        scores = calculate_scores(build_framework(install=install), TODAY)
        assert scores.ease.value == expected

    def test_docs_middle_band(self):
        scores = calculate_scores(build_framework(examples=20, coverage=0.7, updated=30), TODAY)
        assert scores.docs.value == 7

    def test_docs_stale(self):
        scores = calculate_scores(build_framework(examples=10, coverage=0.5, updated=45), TODAY)
        assert scores.docs.value == 4
        assert "stale" in scores.docs.reasoning

    def test_docs_unknown_freshness_lowers_confidence(self):
        scores = calculate_scores(build_framework(updated=None), TODAY)
        assert scores.docs.value == 9
        assert scores.docs.confidence == "low"

    def test_community_penalties(self):
        """500 stars (+1), issue ratio 0.2 (-1), cadence 45 days (-1)"""
        scores = calculate_scores(build_framework(stars=500, issues=100, cadence=45), TODAY)
        assert scores.community.value == 4

    def test_community_without_stars_or_issues(self):
        scores = calculate_scores(build_framework(stars=0, issues=0, cadence=None), TODAY)
        assert scores.community.value == 5

    def test_community_issues_without_stars(self):
        scores = calculate_scores(build_framework(stars=0, issues=5, cadence=None), TODAY)
        assert scores.community.value == 4

    @pytest.mark.parametrize("breaking,deprecations,expected", [
        (0, False, 8),
        (2, False, 7),
        (1, True, 5),
        (3, True, 3),
    ])
    def test_reliability(self, breaking, deprecations, expected):
        scores = calculate_scores(build_framework(breaking=breaking, deprecations=deprecations), TODAY)
        assert scores.reliability.value == expected
        assert scores.reliability.confidence == "med"


class TestVectorDbScoring:
    """Test vector database axis rules"""

    def test_strong_vector_db(self):
        scores = calculate_scores(build_vector_db(), TODAY)
        assert scores.pricing.value == 10
        assert scores.ease.value == 8
        assert scores.docs.value == 10  # 11 before clamping
        assert scores.community.value == 9
        assert scores.reliability.value == 5
        assert scores.reliability.confidence == "low"

    def test_weak_vector_db(self):
        tool = build_vector_db(free_tier=False, open_source=False, complexity="Hard", languages=("python",),
                               has_docs=False, tutorials=False, examples=False, quality="poor",
                               stars=50, issues=20)
        scores = calculate_scores(tool, TODAY)
        assert scores.pricing.value == 5
        assert scores.ease.value == 4
        assert scores.docs.value == 4
        assert scores.community.value == 4

    @pytest.mark.parametrize("complexity,expected", [("easy", 7), ("Medium", 6), ("hard", 4), ("unknown", 5)])
    def test_setup_complexity(self, complexity, expected):
        scores = calculate_scores(build_vector_db(complexity=complexity, languages=()), TODAY)
        assert scores.ease.value == expected


class TestDispatchAndBounds:
    """Test kind dispatch and score bounds"""

    def test_unknown_kind_raises(self):
        with pytest.raises(UnknownToolKindError):
            calculate_scores(types.SimpleNamespace(kind="spreadsheet", id="x", name="X"), TODAY)

    def test_missing_kind_raises(self):
        with pytest.raises(UnknownToolKindError):
            calculate_scores(object(), TODAY)

    @pytest.mark.parametrize("tool", [
        build_llm_api(),
        build_llm_api(prices=((0.5, 0.5),), official=(), community=(), tpm=0, window_days=90, source_age=None),
        build_framework(),
        build_framework(licensing="", install={}, examples=0, coverage=0.0, updated=365,
                        stars=1, issues=1000, cadence=365, breaking=50, deprecations=True),
        build_vector_db(),
        build_vector_db(free_tier=False, open_source=False, complexity="hard", languages=(),
                        has_docs=False, tutorials=False, examples=False, quality="poor", stars=1, issues=100),
    ])
    def test_all_axes_within_bounds(self, tool):
        scores = calculate_scores(tool, TODAY)
        for axis in AXES:
            assert 0 <= scores.axis(axis).value <= 10


class TestWeightedScore:
    """Test persona-weighted reduction"""

    @pytest.mark.parametrize("persona", list(PERSONA_WEIGHTS))
    def test_weights_sum_to_one(self, persona):
        weights = PERSONA_WEIGHTS[persona]
        assert abs(sum(getattr(weights, axis) for axis in AXES) - 1.0) < 1e-9

    @pytest.mark.parametrize("persona", list(PERSONA_WEIGHTS))
    def test_uniform_scores(self, persona):
        assert calculate_weighted_score(build_scores(), persona) == pytest.approx(5.0)

    def test_learning_weights(self):
        """10*.15 + 7*.2 + 10*.35 + 10*.25 + 8*.05 = 9.3"""
        scores = calculate_scores(build_framework(), TODAY)
        assert calculate_weighted_score(scores, "learning") == pytest.approx(9.3)

    def test_rounds_half_up(self):
        # 1 * 0.25 = 0.25, which banker's rounding would take to 0.2
        scores = build_scores(pricing=0, ease=0, docs=0, community=1, reliability=0)
        assert calculate_weighted_score(scores, "learning") == 0.3

    def test_rounded_to_one_decimal(self):
        scores = build_scores(pricing=7, ease=6, docs=3, community=9, reliability=4)
        result = calculate_weighted_score(scores, "startup")
        assert round(result, 1) == result

    def test_deterministic(self):
        scores = calculate_scores(build_vector_db(), TODAY)
        results = {calculate_weighted_score(scores, "enterprise") for _ in range(5)}
        assert len(results) == 1

    def test_unknown_persona(self):
        with pytest.raises(ValueError):
            calculate_weighted_score(build_scores(), "hobbyist")
