"""Tests for SpamClassifier.

Tests cover:
- Benign feedback passes with low risk
- Burst of identical promotional text ends up high risk and spam
- Fail-safe verdict when analysis fails
- max vs blend combination policies
"""

from datetime import datetime, timezone

import pytest

from credibility_feedback.clock import FrozenClock
from credibility_feedback.config.settings import Settings
from credibility_feedback.data_management.schemas import (
    FeedbackSubmission,
    FeedbackType,
    RiskLevel,
)
from credibility_feedback.screening.spam_classifier import SpamClassifier

START = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)
PROMO_TEXT = "FREE MONEY CLICK HERE https://x https://y https://z"
BENIGN_TEXT = "The article cites the original study correctly and the figures match."


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture
def classifier(clock: FrozenClock) -> SpamClassifier:
    return SpamClassifier(clock=clock, config=Settings())


def make_submission(text: str | None, submitter_id: str = "user-1") -> FeedbackSubmission:
    return FeedbackSubmission(
        feedback_type=FeedbackType.DISAGREE,
        url="https://example.com/article",
        submitter_id=submitter_id,
        free_text=text,
        stated_confidence=0.6,
        submitted_at=START,
    )


class TestClassify:
    @pytest.mark.asyncio
    async def test_benign_feedback(self, classifier: SpamClassifier) -> None:
        verdict = await classifier.classify(make_submission(BENIGN_TEXT))

        assert verdict.is_spam is False
        assert verdict.risk_level == RiskLevel.LOW
        assert verdict.reasons == []
        assert verdict.spam_score == pytest.approx(0.297, abs=0.01)

    @pytest.mark.asyncio
    async def test_repeated_promotional_burst(self, classifier: SpamClassifier) -> None:
        for _ in range(5):
            await classifier.classify(make_submission(PROMO_TEXT))

        verdict = await classifier.classify(make_submission(PROMO_TEXT))

        assert verdict.is_spam is True
        assert verdict.risk_level == RiskLevel.HIGH
        assert verdict.confidence > 0.8
        assert "Rate limit exceeded - too many submissions" in verdict.reasons
        assert "Content too similar to previous submissions" in verdict.reasons
        assert "Suspicious patterns detected: url_spam" in verdict.reasons
        assert {"naive_bayes", "rate_limiting", "similarity_analysis"} <= set(verdict.methods_used)

    @pytest.mark.asyncio
    async def test_empty_text_never_looks_copied(self, classifier: SpamClassifier) -> None:
        await classifier.classify(make_submission(None))
        verdict = await classifier.classify(make_submission(None))
        assert "Content too similar to previous submissions" not in verdict.reasons

    @pytest.mark.asyncio
    async def test_low_complexity_reason(self, classifier: SpamClassifier) -> None:
        verdict = await classifier.classify(make_submission("aaa aaa"))
        assert "Low content complexity suggests automated generation" in verdict.reasons

    @pytest.mark.asyncio
    async def test_reputation_recorded_on_verdict(self, classifier: SpamClassifier) -> None:
        verdict = await classifier.classify(make_submission(BENIGN_TEXT), reputation=0.82)
        assert verdict.reputation_score == pytest.approx(0.82)

    @pytest.mark.asyncio
    async def test_rate_window_recorded_per_classification(
        self, classifier: SpamClassifier
    ) -> None:
        await classifier.classify(make_submission(BENIGN_TEXT))
        await classifier.classify(make_submission(BENIGN_TEXT))
        assert classifier.rate_limiter.check("user-1").last_minute == 2


class TestFailSafe:
    @pytest.mark.asyncio
    async def test_internal_error_yields_fail_safe(self, classifier: SpamClassifier) -> None:
        async def boom(submission, reputation):
            raise RuntimeError("model exploded")

        classifier._classify = boom
        verdict = await classifier.classify(make_submission(BENIGN_TEXT), reputation=0.7)

        assert verdict.is_spam is False
        assert verdict.confidence == 0.3
        assert verdict.methods_used == ["failsafe"]
        assert verdict.reputation_score == 0.7

    @pytest.mark.asyncio
    async def test_non_finite_score_yields_fail_safe(
        self, classifier: SpamClassifier, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            "credibility_feedback.screening.spam_classifier.heuristic_score",
            lambda text: float("nan"),
        )
        verdict = await classifier.classify(make_submission(BENIGN_TEXT))

        assert verdict.reasons == ["Analysis failed - conservative fallback"]
        assert classifier.rate_limiter.tracked_submitters == 0


class TestCombinationPolicy:
    @pytest.mark.asyncio
    async def test_max_policy_flags_single_strong_factor(self, clock: FrozenClock) -> None:
        classifier = SpamClassifier(clock=clock, config=Settings(spam_combination="max"))
        await classifier.classify(make_submission(BENIGN_TEXT))
        verdict = await classifier.classify(make_submission(BENIGN_TEXT))

        assert verdict.is_spam is True
        assert verdict.risk_level == RiskLevel.HIGH

    @pytest.mark.asyncio
    async def test_blend_policy_needs_corroboration(self, clock: FrozenClock) -> None:
        classifier = SpamClassifier(clock=clock, config=Settings(spam_combination="blend"))
        await classifier.classify(make_submission(BENIGN_TEXT))
        verdict = await classifier.classify(make_submission(BENIGN_TEXT))

        assert verdict.is_spam is False
        assert "Content too similar to previous submissions" in verdict.reasons


class TestForget:
    @pytest.mark.asyncio
    async def test_forget_clears_state(self, classifier: SpamClassifier) -> None:
        await classifier.classify(make_submission(BENIGN_TEXT))
        classifier.forget("user-1")

        assert classifier.rate_limiter.tracked_submitters == 0
        assert classifier.history.texts_for("user-1") == []
