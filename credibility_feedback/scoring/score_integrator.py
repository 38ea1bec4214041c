"""Bounded integration of one feedback submission into a credibility score.

Pipeline per submission:
1. Reward signal in [-1, 1] from the feedback type, the score's own
   confidence, the stated confidence, reputation and score extremity.
2. Weight in [0, 0.15] from feedback quality and signal strength, with an
   occasional exploration boost.
3. Delta = reward * 100, pulled toward the community agreement rate when
   consensus is strong.
4. adjusted = clamp(floor(score + delta * weight + 0.5), 0, 100)

Nothing is adjusted for spam or before a URL has enough valid feedback.

Every integrated submission is kept in a bounded per-URL reward history.
Once a week holds at least ten integrations, performance metrics over that
week retune the base weight and may flag a scoring model update.
"""

import math
import random
from collections import OrderedDict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Deque, Optional

from loguru import logger

from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.config.settings import Settings, settings as default_settings
from credibility_feedback.data_management.schemas.consensus_schema import (
    ConsensusSnapshot,
    CredibilityScore,
    IntegrationResult,
    PerformanceMetrics,
)
from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackSubmission,
    FeedbackType,
    SpamVerdict,
)

EXPLORATION_BOOST = 1.5
CONSENSUS_PULL = 0.3
RECENCY_DAYS = 30
WEIGHT_CAP = 0.15

# Adjustment confidence shares: quality, consensus strength, reputation
CONFIDENCE_SHARES = (0.4, 0.4, 0.2)

REWARD_HISTORY_SIZE = 1000
MAX_TRACKED_URLS = 10_000
PERFORMANCE_WINDOW = timedelta(days=7)
MIN_PERFORMANCE_SAMPLES = 10
PERFORMANCE_HISTORY_SIZE = 30
MODEL_UPDATE_INTERVAL = timedelta(days=7)
UPDATE_TRIGGER_ACCURACY = 0.65
MIN_USER_SATISFACTION = 0.7
MIN_ADAPTED_WEIGHT = 0.01
MAX_ADAPTED_WEIGHT = 0.1


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


@dataclass(frozen=True)
class RewardSample:
    """One integrated submission, as seen by the performance metrics."""

    url: str
    expected_score: float
    actual_score: int
    feedback_type: FeedbackType
    stated_confidence: float
    reputation: float
    recorded_at: datetime


class ScoreIntegrator:
    """
    Turns a classified submission plus consensus into an IntegrationResult.

    Usage:
        integrator = ScoreIntegrator(rng=random.Random(7))
        result = integrator.integrate(credibility, submission, verdict, 0.8, snapshot)

    Attributes:
        base_weight: Nominal influence of one submission
        current_weight: Base weight after performance tuning
        max_weight: Hard cap on influence (never above 0.15)
        exploration_rate: Probability of the exploration boost
        min_feedback: Valid records required before any adjustment
        materiality: Score delta (points) worth persisting
    """

    def __init__(
        self,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
        reward_history_size: int = REWARD_HISTORY_SIZE,
        max_tracked_urls: int = MAX_TRACKED_URLS,
    ):
        """
        Initialize the integrator.

        Args:
            config: Settings (defaults to the module-level settings)
            rng: Random source for exploration (seed it for reproducible runs)
            clock: Time source for recency and performance windows
            reward_history_size: Reward samples kept per URL
            max_tracked_urls: URLs with a reward history before the least
                recently integrated one is dropped
        """
        config = config or default_settings
        self.base_weight = config.base_feedback_weight
        self.current_weight = self.base_weight
        self.max_weight = min(WEIGHT_CAP, config.max_feedback_weight)
        self.exploration_rate = config.exploration_rate
        self.min_feedback = config.min_feedback_for_impact
        self.materiality = config.materiality_threshold
        self.rng = rng or random.Random()
        self.clock = clock or SystemClock()
        self.reward_history_size = reward_history_size
        self.max_tracked_urls = max_tracked_urls
        self.logger = logger.bind(component="ScoreIntegrator")

        self._rewards: "OrderedDict[str, Deque[RewardSample]]" = OrderedDict()
        # Samples in arrival order, trimmed to the performance window
        self._recent: Deque[RewardSample] = deque()
        self._performance: Deque[PerformanceMetrics] = deque(maxlen=PERFORMANCE_HISTORY_SIZE)
        self._last_model_update = self.clock.now()

    def integrate(
        self,
        credibility: CredibilityScore,
        submission: FeedbackSubmission,
        verdict: SpamVerdict,
        reputation: float,
        consensus: ConsensusSnapshot,
    ) -> IntegrationResult:
        """
        Compute the bounded score adjustment for one submission.

        Args:
            credibility: Current score and its confidence
            submission: The submission being integrated
            verdict: Its spam verdict
            reputation: Submitter reputation in [0, 1]
            consensus: Snapshot for the submission's URL, including the submission

        Returns:
            IntegrationResult; unchanged score and zero weight when skipped
        """
        original = credibility.score

        if verdict.is_spam:
            return self._unchanged(original, "Spam feedback is not integrated")
        if consensus.total_counted < self.min_feedback:
            return self._unchanged(
                original,
                f"Below minimum feedback volume ({consensus.total_counted}/{self.min_feedback})",
            )

        reputation = clamp(reputation, 0.0, 1.0)
        reward = self.reward_signal(credibility, submission, reputation)
        quality = self.feedback_quality(submission, reputation)
        weight = self.adaptive_weight(quality, reward)

        delta = reward * 100
        consensus_applied = consensus.has_strong_consensus
        if consensus_applied:
            pull = CONSENSUS_PULL * (consensus.agreement_rate * 100 - original)
            delta = (delta + pull) / 2

        adjusted = int(clamp(round_half_up(original + delta * weight), 0, 100))
        should_persist = abs(adjusted - original) >= self.materiality

        self._record_reward(submission, original, adjusted, reputation)
        algorithm_update = self._algorithm_update_due()

        result = IntegrationResult(
            original_score=original,
            adjusted_score=adjusted,
            weight_applied=weight,
            reward_signal=reward,
            feedback_quality=quality,
            consensus_applied=consensus_applied,
            should_persist=should_persist,
            confidence_level=self.adjustment_confidence(
                quality, consensus.consensus_strength, reputation
            ),
            algorithm_update=algorithm_update,
            reasoning=self._reasoning(reward, weight, consensus),
        )

        self.logger.info(
            f"Integrated feedback: {original:.0f} -> {adjusted} "
            f"(reward={reward:.2f}, weight={weight:.3f})",
            consensus_applied=consensus_applied,
            algorithm_update=algorithm_update,
        )
        return result

    def reward_signal(
        self,
        credibility: CredibilityScore,
        submission: FeedbackSubmission,
        reputation: float,
    ) -> float:
        if submission.feedback_type == FeedbackType.AGREE:
            reward = 0.5 + credibility.confidence * 0.3
        elif submission.feedback_type == FeedbackType.DISAGREE:
            reward = -0.5 - credibility.confidence * 0.3
        else:
            reward = -0.8

        reward += (submission.stated_confidence - 0.5) * 0.4
        reward *= 0.5 + reputation * 0.5

        # Extreme scores need more evidence to move
        reward *= 1 - 0.3 * abs(credibility.score - 50) / 50

        return clamp(reward, -1.0, 1.0)

    def feedback_quality(self, submission: FeedbackSubmission, reputation: float) -> float:
        quality = 0.5 + reputation * 0.3

        if submission.free_text and len(submission.free_text) > 20:
            quality += 0.2

        quality += (submission.stated_confidence - 0.5) * 0.3

        if submission.feedback_type == FeedbackType.REPORT_ISSUE and submission.issue_category:
            quality += 0.15

        quality += self._recency(submission.submitted_at) * 0.1
        return clamp(quality, 0.0, 1.0)

    def adaptive_weight(self, quality: float, reward: float) -> float:
        weight = self.current_weight * quality
        weight *= 1 + abs(reward) * 0.5

        if self.rng.random() < self.exploration_rate:
            weight *= EXPLORATION_BOOST

        return clamp(weight, 0.0, self.max_weight)

    def adjustment_confidence(
        self,
        quality: float,
        consensus_strength: float,
        reputation: float,
    ) -> float:
        quality_share, consensus_share, reputation_share = CONFIDENCE_SHARES
        confidence = (
            quality * quality_share
            + consensus_strength * consensus_share
            + reputation * reputation_share
        )
        return clamp(confidence, 0.0, 1.0)

    # Reward history and performance

    def reward_history(self, url: str) -> list[RewardSample]:
        """Reward samples for a URL, oldest first."""
        return list(self._rewards.get(url, ()))

    def performance_metrics(self) -> Optional[PerformanceMetrics]:
        """
        Metrics over the integrations of the last seven days.

        Returns:
            PerformanceMetrics, or None with fewer than ten integrations in the window
        """
        now = self.clock.now()
        self._evict_recent(now)
        samples = list(self._recent)
        if len(samples) < MIN_PERFORMANCE_SAMPLES:
            return None

        count = len(samples)
        agreed = [s.feedback_type == FeedbackType.AGREE for s in samples]
        # A score above 50 predicts agreement
        matches = sum(1 for s, a in zip(samples, agreed) if (s.expected_score > 50) == a)
        alignment = sum(1 - abs(int(a) - s.expected_score / 100) for s, a in zip(samples, agreed))

        return PerformanceMetrics(
            sample_count=count,
            accuracy=matches / count,
            user_satisfaction=sum(agreed) / count,
            consensus_alignment=clamp(alignment / count, 0.0, 1.0),
            feedback_weight=self.current_weight,
            computed_at=now,
        )

    @property
    def latest_performance(self) -> Optional[PerformanceMetrics]:
        return self._performance[-1] if self._performance else None

    def _record_reward(
        self,
        submission: FeedbackSubmission,
        original: float,
        adjusted: int,
        reputation: float,
    ) -> None:
        sample = RewardSample(
            url=submission.url,
            expected_score=original,
            actual_score=adjusted,
            feedback_type=submission.feedback_type,
            stated_confidence=submission.stated_confidence,
            reputation=reputation,
            recorded_at=self.clock.now(),
        )

        history = self._rewards.pop(submission.url, None)
        if history is None:
            history = deque(maxlen=self.reward_history_size)
        history.append(sample)
        self._rewards[submission.url] = history
        while len(self._rewards) > self.max_tracked_urls:
            self._rewards.popitem(last=False)

        self._recent.append(sample)
        self._refresh_performance()

    def _evict_recent(self, now: datetime) -> None:
        while self._recent and now - self._recent[0].recorded_at >= PERFORMANCE_WINDOW:
            self._recent.popleft()

    def _refresh_performance(self) -> None:
        metrics = self.performance_metrics()
        if metrics is None:
            return

        previous = self.current_weight
        self.current_weight = self._tuned_weight(metrics)
        metrics = metrics.model_copy(update={"feedback_weight": self.current_weight})
        self._performance.append(metrics)

        if self.current_weight != previous:
            self.logger.info(
                f"Feedback weight adjusted: {previous:.3f} -> {self.current_weight:.3f} "
                f"(accuracy={metrics.accuracy:.2f}, satisfaction={metrics.user_satisfaction:.2f})"
            )

    def _tuned_weight(self, metrics: PerformanceMetrics) -> float:
        if metrics.accuracy > 0.85 and metrics.user_satisfaction > 0.8:
            return min(MAX_ADAPTED_WEIGHT, self.base_weight * 1.5)
        if metrics.accuracy < UPDATE_TRIGGER_ACCURACY or metrics.user_satisfaction < 0.6:
            return max(MIN_ADAPTED_WEIGHT, self.base_weight * 0.7)
        return self.base_weight

    def _algorithm_update_due(self) -> bool:
        latest = self.latest_performance
        if latest is None:
            return False

        now = self.clock.now()
        due = (
            latest.accuracy < UPDATE_TRIGGER_ACCURACY
            or latest.user_satisfaction < MIN_USER_SATISFACTION
            or now - self._last_model_update > MODEL_UPDATE_INTERVAL
        )
        if due:
            self.logger.info(
                f"Algorithm update triggered (accuracy={latest.accuracy:.2f}, "
                f"satisfaction={latest.user_satisfaction:.2f})"
            )
            self._last_model_update = now
        return due

    def _recency(self, submitted_at: datetime) -> float:
        age_days = (self.clock.now() - submitted_at).total_seconds() / 86400
        return clamp(1 - age_days / RECENCY_DAYS, 0.0, 1.0)

    def _unchanged(self, original: float, reasoning: str) -> IntegrationResult:
        return IntegrationResult(
            original_score=original,
            adjusted_score=int(clamp(round_half_up(original), 0, 100)),
            weight_applied=0.0,
            reasoning=reasoning,
        )

    def _reasoning(self, reward: float, weight: float, consensus: ConsensusSnapshot) -> str:
        direction = "supports" if reward > 0 else "contradicts"
        parts = [f"Feedback {direction} the score (signal {reward:+.2f}, weight {weight:.1%})"]
        if consensus.has_strong_consensus:
            parts.append(f"community agreement {consensus.agreement_rate:.0%}")
        return "; ".join(parts)


__all__ = ["ScoreIntegrator", "RewardSample", "clamp", "round_half_up"]
