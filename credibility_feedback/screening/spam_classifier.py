"""Hybrid spam and abuse scoring for feedback submissions.

Two content scorers are blended into a combined score:
  combined = 0.4 * heuristic + 0.6 * logistic

Four discrete risk factors sit next to it:
- rate limit violation (0.9 when any window ceiling is reached)
- similarity to the submitter's recent texts (Jaccard, 0-1)
- low reputation (0.6 below 0.3)
- pattern density (known spam patterns / 3)

The spam decision merges the combined score and the risk factors with a
configurable policy. Under the default ``max`` policy a single strong
signal is enough; ``blend`` averages the combined score with the strongest
factor, so one noisy factor cannot flag a submission alone.

Analysis never blocks a submission: any failure yields the conservative
fail-safe verdict.
"""

import asyncio
import math
from dataclasses import dataclass
from statistics import pvariance
from typing import Dict, Optional

from loguru import logger

from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.config.logging import mask_submitter
from credibility_feedback.config.settings import Settings, settings as default_settings
from credibility_feedback.config.spam_patterns import (
    EVIDENCE_THRESHOLD,
    HEURISTIC_SHARE,
    LOGISTIC_SHARE,
    LOW_REPUTATION_RISK,
    LOW_REPUTATION_THRESHOLD,
    METHOD_THRESHOLDS,
    RATE_VIOLATION_RISK,
)
from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackSubmission,
    RiskLevel,
    SpamVerdict,
)
from credibility_feedback.errors import ClassificationFailure
from credibility_feedback.screening.content_features import (
    PatternAnalysis,
    analyze_patterns,
    heuristic_score,
    logistic_score,
    shannon_entropy,
)
from credibility_feedback.screening.rate_limiter import RateCheck, SlidingWindowRateLimiter
from credibility_feedback.screening.submission_history import SubmissionHistory


@dataclass(frozen=True)
class RiskFactors:
    """Discrete risk signals, each in [0, 1]."""

    rate_limit_violation: float
    content_similarity: float
    low_reputation: float
    pattern_matches: float

    def values(self) -> Dict[str, float]:
        return {
            "rate_limit_violation": self.rate_limit_violation,
            "content_similarity": self.content_similarity,
            "low_reputation": self.low_reputation,
            "pattern_matches": self.pattern_matches,
        }

    @property
    def strongest(self) -> float:
        return max(self.values().values())


class SpamClassifier:
    """
    Scores a submission for spam and abuse.

    Owns the per-submitter rate windows and text history; both are bounded
    and evicted explicitly.

    Usage:
        classifier = SpamClassifier()
        verdict = await classifier.classify(submission, reputation=0.5)

    Attributes:
        rate_limiter: Sliding-window limiter over past submissions
        history: Recent texts per submitter for similarity checks
    """

    def __init__(
        self,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        history: Optional[SubmissionHistory] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize the classifier.

        Args:
            rate_limiter: Rate windows (defaults to one built from config)
            history: Text history (defaults to last 10 texts per submitter)
            clock: Time source shared with the rate limiter
            config: Settings (defaults to the module-level settings)
        """
        self.config = config or default_settings
        self.clock = clock or SystemClock()
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            per_minute=self.config.rate_limit_per_minute,
            per_hour=self.config.rate_limit_per_hour,
            per_day=self.config.rate_limit_per_day,
            clock=self.clock,
        )
        self.history = history or SubmissionHistory()
        self.logger = logger.bind(component="SpamClassifier")

    async def classify(
        self,
        submission: FeedbackSubmission,
        reputation: float = 0.5,
    ) -> SpamVerdict:
        """
        Classify a submission. Never raises.

        Args:
            submission: Validated submission
            reputation: Current submitter reputation in [0, 1]

        Returns:
            SpamVerdict; the fail-safe verdict when analysis fails
        """
        log = self.logger.bind(submitter=mask_submitter(submission.submitter_id))
        try:
            verdict = await self._classify(submission, reputation)
        except Exception as e:
            log.error(f"Spam analysis failed, using fail-safe verdict: {e}")
            return SpamVerdict.fail_safe(reputation)

        log.info(
            f"Spam analysis completed: spam={verdict.is_spam} "
            f"confidence={verdict.confidence:.2f} risk={verdict.risk_level.value}"
        )
        return verdict

    async def _classify(self, submission: FeedbackSubmission, reputation: float) -> SpamVerdict:
        submitter_id = submission.submitter_id
        text = submission.text
        reputation = min(1.0, max(0.0, reputation))

        rate, patterns, similarity = await asyncio.gather(
            self._check_rate(submitter_id),
            self._analyze_patterns(text),
            self._check_similarity(submitter_id, text),
        )

        heuristic = heuristic_score(text)
        age_seconds = (self.clock.now() - submission.submitted_at).total_seconds()
        logistic = logistic_score(text, reputation, patterns, age_seconds)
        combined = HEURISTIC_SHARE * heuristic + LOGISTIC_SHARE * logistic

        if not all(math.isfinite(v) for v in (heuristic, logistic, combined, similarity)):
            raise ClassificationFailure("non-finite spam score")

        factors = RiskFactors(
            rate_limit_violation=0.0 if rate.allowed else RATE_VIOLATION_RISK,
            content_similarity=similarity,
            low_reputation=LOW_REPUTATION_RISK if reputation < LOW_REPUTATION_THRESHOLD else 0.0,
            pattern_matches=patterns.density_risk,
        )

        verdict = SpamVerdict(
            is_spam=self._total_risk(combined, factors) > self.config.spam_threshold,
            confidence=self._confidence(combined, factors),
            risk_level=self._risk_level(combined, factors),
            reasons=self._reasons(text, rate, patterns, similarity),
            methods_used=self._methods(heuristic, logistic, factors),
            spam_score=min(1.0, max(0.0, combined)),
            reputation_score=reputation,
        )

        self._record_activity(submitter_id, text)
        return verdict

    async def _check_rate(self, submitter_id: str) -> RateCheck:
        return self.rate_limiter.check(submitter_id)

    async def _analyze_patterns(self, text: str) -> PatternAnalysis:
        return analyze_patterns(text)

    async def _check_similarity(self, submitter_id: str, text: str) -> float:
        return self.history.max_similarity(submitter_id, text)

    def _record_activity(self, submitter_id: str, text: str) -> None:
        self.rate_limiter.record(submitter_id)
        self.history.remember(submitter_id, text)

    def _total_risk(self, combined: float, factors: RiskFactors) -> float:
        if self.config.spam_combination == "blend":
            return (combined + factors.strongest) / 2
        return max(combined, factors.strongest)

    def _confidence(self, combined: float, factors: RiskFactors) -> float:
        # Agreement: low variance across combined, similarity and patterns
        variance = pvariance([combined, factors.content_similarity, factors.pattern_matches])
        agreement = 1.0 - min(1.0, variance * 2)

        evidence_count = sum(1 for v in factors.values().values() if v > EVIDENCE_THRESHOLD)
        evidence = min(1.0, evidence_count / 3)

        return min(1.0, max(0.0, agreement * evidence))

    def _risk_level(self, combined: float, factors: RiskFactors) -> RiskLevel:
        max_risk = max(combined, factors.strongest)
        if max_risk > 0.8:
            return RiskLevel.HIGH
        if max_risk > 0.5:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW

    def _reasons(
        self,
        text: str,
        rate: RateCheck,
        patterns: PatternAnalysis,
        similarity: float,
    ) -> list[str]:
        reasons = []
        if not rate.allowed:
            reasons.append("Rate limit exceeded - too many submissions")
        if similarity > METHOD_THRESHOLDS["similarity_analysis"]:
            reasons.append("Content too similar to previous submissions")
        if patterns.patterns:
            reasons.append(f"Suspicious patterns detected: {', '.join(patterns.patterns)}")
        if text and shannon_entropy(text) < 2:
            reasons.append("Low content complexity suggests automated generation")
        return reasons

    def _methods(self, heuristic: float, logistic: float, factors: RiskFactors) -> list[str]:
        methods = []
        if heuristic > METHOD_THRESHOLDS["naive_bayes"]:
            methods.append("naive_bayes")
        if logistic > METHOD_THRESHOLDS["logistic_regression"]:
            methods.append("logistic_regression")
        if factors.rate_limit_violation > 0:
            methods.append("rate_limiting")
        if factors.content_similarity > METHOD_THRESHOLDS["similarity_analysis"]:
            methods.append("similarity_analysis")
        if factors.pattern_matches > METHOD_THRESHOLDS["pattern_matching"]:
            methods.append("pattern_matching")
        return methods

    def forget(self, submitter_id: str) -> None:
        """Drop rate windows and text history for a submitter."""
        self.rate_limiter.forget(submitter_id)
        self.history.forget(submitter_id)

    def prune(self) -> int:
        """Evict idle rate windows. Returns the number of submitters dropped."""
        return self.rate_limiter.prune()


__all__ = ["SpamClassifier", "RiskFactors"]
