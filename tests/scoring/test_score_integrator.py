"""Tests for ScoreIntegrator.

Tests cover:
- Skips for spam and low feedback volume
- Direction and size of adjustments
- Weight cap and score bounds across many inputs
- Consensus pull and seeded exploration
- Half-up rounding and adjustment confidence
- Reward history, performance metrics and weight tuning
"""

import random
from datetime import datetime, timezone

import pytest

from credibility_feedback.clock import FrozenClock
from credibility_feedback.config.settings import Settings
from credibility_feedback.data_management.schemas import (
    ConsensusSnapshot,
    CredibilityScore,
    FeedbackSubmission,
    FeedbackType,
    RiskLevel,
    SpamVerdict,
)
from credibility_feedback.scoring.score_integrator import ScoreIntegrator, clamp, round_half_up

NOW = datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc)
URL = "https://example.com/report"

VALID = SpamVerdict(is_spam=False, confidence=0.2, risk_level=RiskLevel.LOW)
SPAM = SpamVerdict(is_spam=True, confidence=0.7, risk_level=RiskLevel.HIGH)


def make_integrator(exploration_rate: float = 0.0, seed: int = 7) -> ScoreIntegrator:
    return ScoreIntegrator(
        config=Settings(exploration_rate=exploration_rate),
        rng=random.Random(seed),
        clock=FrozenClock(NOW),
    )


def make_submission(
    feedback_type: FeedbackType = FeedbackType.AGREE,
    confidence: float = 0.9,
    free_text: str | None = None,
) -> FeedbackSubmission:
    return FeedbackSubmission(
        feedback_type=feedback_type,
        url=URL,
        submitter_id="user-1",
        free_text=free_text,
        stated_confidence=confidence,
        submitted_at=NOW,
    )


def make_consensus(
    total: int = 5,
    agreement_rate: float = 0.5,
    strong: bool = False,
) -> ConsensusSnapshot:
    return ConsensusSnapshot(
        url=URL,
        total_counted=total,
        agreement_rate=agreement_rate,
        has_strong_consensus=strong,
    )


class TestClamp:
    def test_clamp(self) -> None:
        assert clamp(5, 0, 1) == 1
        assert clamp(-5, 0, 1) == 0
        assert clamp(0.5, 0, 1) == 0.5


class TestSkips:
    def test_spam_is_not_integrated(self) -> None:
        result = make_integrator().integrate(
            CredibilityScore(score=50, confidence=0.9), make_submission(), SPAM, 0.9, make_consensus()
        )
        assert result.adjusted_score == 50
        assert result.weight_applied == 0.0
        assert result.should_persist is False
        assert result.reasoning == "Spam feedback is not integrated"

    def test_below_minimum_volume(self) -> None:
        result = make_integrator().integrate(
            CredibilityScore(score=61.4, confidence=0.9),
            make_submission(),
            VALID,
            0.9,
            make_consensus(total=2),
        )
        assert result.adjusted_score == 61
        assert result.weight_applied == 0.0
        assert "2/3" in result.reasoning


class TestAdjustment:
    def test_trusted_agreement_raises_score(self) -> None:
        result = make_integrator().integrate(
            CredibilityScore(score=50, confidence=0.9), make_submission(), VALID, 0.9, make_consensus()
        )
        assert result.reward_signal == pytest.approx(0.8835)
        assert result.feedback_quality == pytest.approx(0.99)
        assert result.weight_applied == pytest.approx(0.0714, abs=1e-3)
        assert result.adjusted_score == 56
        assert result.should_persist is True
        assert result.consensus_applied is False

    def test_disagreement_lowers_score(self) -> None:
        result = make_integrator().integrate(
            CredibilityScore(score=80, confidence=0.5),
            make_submission(FeedbackType.DISAGREE, confidence=0.5),
            VALID,
            0.5,
            make_consensus(),
        )
        assert result.reward_signal == pytest.approx(-0.39975)
        assert result.adjusted_score == 78
        assert "contradicts" in result.reasoning

    def test_issue_report_with_category_has_higher_quality(self) -> None:
        integrator = make_integrator()
        plain = make_submission(FeedbackType.REPORT_ISSUE, confidence=0.5)
        categorized = plain.model_copy(update={"issue_category": "outdated"})
        assert integrator.feedback_quality(categorized, 0.5) == pytest.approx(
            integrator.feedback_quality(plain, 0.5) + 0.15
        )

    def test_small_delta_not_persisted(self) -> None:
        result = make_integrator().integrate(
            CredibilityScore(score=98, confidence=0.2),
            make_submission(confidence=0.5),
            VALID,
            0.1,
            make_consensus(),
        )
        assert abs(result.adjusted_score - 98) < 2
        assert result.should_persist is False


class TestConsensusPull:
    def test_strong_disagreement_consensus_dampens_agreement(self) -> None:
        credibility = CredibilityScore(score=50, confidence=0.9)
        plain = make_integrator().integrate(
            credibility, make_submission(), VALID, 0.9, make_consensus()
        )
        pulled = make_integrator().integrate(
            credibility, make_submission(), VALID, 0.9, make_consensus(agreement_rate=0.0, strong=True)
        )

        assert pulled.consensus_applied is True
        assert pulled.adjusted_score == 53
        assert pulled.adjusted_score < plain.adjusted_score
        assert "community agreement 0%" in pulled.reasoning


class TestBounds:
    @pytest.mark.parametrize("feedback_type", list(FeedbackType))
    @pytest.mark.parametrize("score", [0, 3, 50, 97, 100])
    def test_weight_and_score_bounds(self, feedback_type: FeedbackType, score: int) -> None:
        integrator = make_integrator(exploration_rate=1.0)
        for reputation in (0.0, 0.5, 1.0):
            for strong in (False, True):
                result = integrator.integrate(
                    CredibilityScore(score=score, confidence=1.0),
                    make_submission(feedback_type, confidence=1.0, free_text="x" * 40),
                    VALID,
                    reputation,
                    make_consensus(total=40, agreement_rate=1.0, strong=strong),
                )
                assert 0 <= result.adjusted_score <= 100
                assert 0.0 <= result.weight_applied <= 0.15
                assert abs(result.adjusted_score - score) <= 16


class TestExploration:
    def test_boost_multiplies_weight(self) -> None:
        steady = make_integrator(exploration_rate=0.0).adaptive_weight(0.6, 0.4)
        boosted = make_integrator(exploration_rate=1.0).adaptive_weight(0.6, 0.4)
        assert boosted == pytest.approx(steady * 1.5)

    def test_boost_respects_cap(self) -> None:
        assert make_integrator(exploration_rate=1.0).adaptive_weight(1.0, 1.0) <= 0.15

    def test_seeded_runs_are_reproducible(self) -> None:
        first = make_integrator(exploration_rate=0.5, seed=11)
        second = make_integrator(exploration_rate=0.5, seed=11)
        weights_a = [first.adaptive_weight(0.8, 0.5) for _ in range(20)]
        weights_b = [second.adaptive_weight(0.8, 0.5) for _ in range(20)]
        assert weights_a == weights_b


class TestRounding:
    def test_half_rounds_up(self) -> None:
        assert round_half_up(52.5) == 53
        assert round_half_up(53.5) == 54
        assert round_half_up(52.49) == 52

    def test_half_point_adjustment_crosses_materiality(self) -> None:
        integrator = make_integrator()
        integrator.reward_signal = lambda credibility, submission, reputation: 0.5
        integrator.adaptive_weight = lambda quality, reward: 0.05

        result = integrator.integrate(
            CredibilityScore(score=50, confidence=0.9), make_submission(), VALID, 0.9, make_consensus()
        )
        assert result.adjusted_score == 53
        assert result.should_persist is True


class TestAdjustmentConfidence:
    def test_weighted_blend(self) -> None:
        confidence = make_integrator().adjustment_confidence(0.5, 1.0, 0.25)
        assert confidence == pytest.approx(0.2 + 0.4 + 0.05)

    def test_reported_on_result(self) -> None:
        consensus = ConsensusSnapshot(url=URL, total_counted=5, consensus_strength=0.5)
        result = make_integrator().integrate(
            CredibilityScore(score=50, confidence=0.9), make_submission(), VALID, 0.9, consensus
        )
        assert result.confidence_level == pytest.approx(0.4 * 0.99 + 0.4 * 0.5 + 0.2 * 0.9)

    def test_skipped_result_has_no_confidence(self) -> None:
        result = make_integrator().integrate(
            CredibilityScore(score=50), make_submission(), SPAM, 0.9, make_consensus()
        )
        assert result.confidence_level == 0.0
        assert result.algorithm_update is False


def integrate_many(
    integrator: ScoreIntegrator,
    count: int,
    feedback_type: FeedbackType = FeedbackType.AGREE,
    score: float = 80,
    url: str = URL,
) -> list:
    submission = make_submission(feedback_type).model_copy(update={"url": url})
    return [
        integrator.integrate(
            CredibilityScore(score=score, confidence=0.8), submission, VALID, 0.8, make_consensus()
        )
        for _ in range(count)
    ]


class TestRewardHistory:
    def test_history_is_bounded_per_url(self) -> None:
        integrator = ScoreIntegrator(
            config=Settings(exploration_rate=0.0),
            rng=random.Random(1),
            clock=FrozenClock(NOW),
            reward_history_size=5,
        )
        integrate_many(integrator, 8)

        history = integrator.reward_history(URL)
        assert len(history) == 5
        assert history[-1].expected_score == 80
        assert history[-1].feedback_type == FeedbackType.AGREE

    def test_least_recent_url_dropped(self) -> None:
        integrator = ScoreIntegrator(
            config=Settings(exploration_rate=0.0),
            clock=FrozenClock(NOW),
            max_tracked_urls=2,
        )
        for path in ("a", "b", "a", "c"):
            integrate_many(integrator, 1, url=f"https://example.com/{path}")

        assert integrator.reward_history("https://example.com/b") == []
        assert len(integrator.reward_history("https://example.com/a")) == 2
        assert len(integrator.reward_history("https://example.com/c")) == 1

    def test_skipped_submissions_are_not_recorded(self) -> None:
        integrator = make_integrator()
        integrator.integrate(CredibilityScore(score=50), make_submission(), SPAM, 0.9, make_consensus())
        assert integrator.reward_history(URL) == []


class TestPerformanceMetrics:
    def test_needs_ten_recent_integrations(self) -> None:
        integrator = make_integrator()
        integrate_many(integrator, 9)
        assert integrator.performance_metrics() is None
        assert integrator.current_weight == 0.05

    def test_agreement_with_high_scores_raises_weight(self) -> None:
        integrator = make_integrator()
        results = integrate_many(integrator, 10)

        metrics = integrator.performance_metrics()
        assert metrics.sample_count == 10
        assert metrics.accuracy == 1.0
        assert metrics.user_satisfaction == 1.0
        assert metrics.consensus_alignment == pytest.approx(0.8)
        assert integrator.current_weight == pytest.approx(0.075)
        assert integrator.latest_performance.feedback_weight == pytest.approx(0.075)
        assert not any(r.algorithm_update for r in results)

    def test_disagreement_with_high_scores_lowers_weight_and_flags_update(self) -> None:
        integrator = make_integrator()
        results = integrate_many(integrator, 10, FeedbackType.DISAGREE)

        metrics = integrator.performance_metrics()
        assert metrics.accuracy == 0.0
        assert metrics.user_satisfaction == 0.0
        assert integrator.current_weight == pytest.approx(0.035)
        assert [r.algorithm_update for r in results] == [False] * 9 + [True]

    def test_mixed_performance_keeps_base_weight(self) -> None:
        integrator = make_integrator()
        integrate_many(integrator, 7)
        integrate_many(integrator, 3, FeedbackType.DISAGREE, score=40)

        metrics = integrator.performance_metrics()
        assert metrics.accuracy == 1.0
        assert metrics.user_satisfaction == pytest.approx(0.7)
        assert integrator.current_weight == 0.05

    def test_tuned_weight_scales_next_adjustment(self) -> None:
        integrator = make_integrator()
        before = integrator.adaptive_weight(0.8, 0.5)
        integrate_many(integrator, 10)
        assert integrator.adaptive_weight(0.8, 0.5) == pytest.approx(before * 1.5)

    def test_window_is_seven_days(self) -> None:
        clock = FrozenClock(NOW)
        integrator = ScoreIntegrator(config=Settings(exploration_rate=0.0), clock=clock)
        integrate_many(integrator, 10)

        clock.advance(days=8)
        assert integrator.performance_metrics() is None

    def test_weekly_update_without_fresh_metrics(self) -> None:
        clock = FrozenClock(NOW)
        integrator = ScoreIntegrator(config=Settings(exploration_rate=0.0), clock=clock)
        assert not any(r.algorithm_update for r in integrate_many(integrator, 10))

        clock.advance(days=8)
        first, second = integrate_many(integrator, 2)
        assert first.algorithm_update is True
        assert second.algorithm_update is False
