"""Community consensus over valid feedback for a URL.

Snapshots are derived on every call from the stored records and never
persisted, so the same record set read at the same clock time always
yields the same snapshot.

  agreement_rate     = agree / (agree + disagree), 0.5 with neither
  consensus_strength = max(rate, 1 - rate) * mean_confidence * min(1, n / 20)

Strength is 0 when no agree/disagree record exists.
"""

from datetime import timedelta
from typing import Optional, Sequence

from loguru import logger

from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.config.settings import Settings, settings as default_settings
from credibility_feedback.data_management.feedback_store import FeedbackStore
from credibility_feedback.data_management.schemas.consensus_schema import (
    ConfidenceLevel,
    ConsensusSnapshot,
    Trend,
)
from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackType,
    StoredFeedbackRecord,
)
from credibility_feedback.reputation.reputation_tracker import ReputationTracker

VOLUME_SATURATION = 20
TREND_WINDOW = timedelta(days=7)
TREND_DELTA = 0.1
STRONG_CONSENSUS_MIN_VOTES = 3
STRONG_CONSENSUS_LOPSIDEDNESS = 0.7


def agreement_rate(agree: int, disagree: int) -> float:
    total = agree + disagree
    return agree / total if total else 0.5


class ConsensusEngine:
    """
    Computes ConsensusSnapshot views from FeedbackStore.

    Usage:
        engine = ConsensusEngine(store, tracker)
        snapshot = await engine.snapshot("https://example.com/article")

    Attributes:
        window: Most recent records considered per URL
    """

    def __init__(
        self,
        store: FeedbackStore,
        tracker: Optional[ReputationTracker] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Feedback records source
            tracker: Used for community trust; trust stays neutral without it
            clock: Time source for the trend window
            config: Settings (defaults to the module-level settings)
        """
        self.store = store
        self.tracker = tracker
        self.clock = clock or SystemClock()
        self.window = (config or default_settings).consensus_window
        self.logger = logger.bind(component="ConsensusEngine")

    async def snapshot(self, url: str) -> ConsensusSnapshot:
        """
        Consensus among the most recent non-spam records for a URL.

        Args:
            url: Page URL

        Returns:
            ConsensusSnapshot; an empty snapshot when no valid record exists
        """
        recent = await self.store.list_by_url(url, limit=self.window)
        valid = [r for r in recent if not r.is_spam]
        if not valid:
            return ConsensusSnapshot.empty(url)

        community_trust = await self._community_trust(valid)
        snapshot = self.compute(url, valid, community_trust)

        self.logger.debug(
            f"Consensus refreshed: rate={snapshot.agreement_rate:.2f} "
            f"strength={snapshot.consensus_strength:.2f} level={snapshot.confidence_level.value}",
            url=url,
            counted=snapshot.total_counted,
        )
        return snapshot

    def compute(
        self,
        url: str,
        records: Sequence[StoredFeedbackRecord],
        community_trust: float = 0.5,
    ) -> ConsensusSnapshot:
        """
        Pure snapshot computation over a fixed record set.

        Args:
            url: Page URL
            records: Non-spam records for the URL
            community_trust: Mean submitter reputation of the records

        Returns:
            ConsensusSnapshot
        """
        if not records:
            return ConsensusSnapshot.empty(url)

        agree = sum(1 for r in records if r.submission.feedback_type == FeedbackType.AGREE)
        disagree = sum(1 for r in records if r.submission.feedback_type == FeedbackType.DISAGREE)
        issues = sum(1 for r in records if r.submission.feedback_type == FeedbackType.REPORT_ISSUE)
        total = len(records)

        rate = agreement_rate(agree, disagree)
        mean_confidence = sum(r.submission.stated_confidence for r in records) / total

        if agree + disagree:
            lopsidedness = max(rate, 1 - rate)
            strength = lopsidedness * mean_confidence * min(1.0, total / VOLUME_SATURATION)
        else:
            lopsidedness = 0.0
            strength = 0.0

        return ConsensusSnapshot(
            url=url,
            total_counted=total,
            agree_count=agree,
            disagree_count=disagree,
            issue_count=issues,
            agreement_rate=rate,
            consensus_strength=min(1.0, strength),
            confidence_level=self._confidence_level(total, strength),
            trend=self._trend(records, rate),
            mean_confidence=mean_confidence,
            community_trust=community_trust,
            has_strong_consensus=(
                agree + disagree >= STRONG_CONSENSUS_MIN_VOTES
                and lopsidedness > STRONG_CONSENSUS_LOPSIDEDNESS
            ),
            last_updated_at=max(r.created_at for r in records),
        )

    def _confidence_level(self, total: int, strength: float) -> ConfidenceLevel:
        if total >= 20 and strength > 0.8:
            return ConfidenceLevel.HIGH
        if total >= 5 and strength > 0.6:
            return ConfidenceLevel.MEDIUM
        return ConfidenceLevel.LOW

    def _trend(self, records: Sequence[StoredFeedbackRecord], overall_rate: float) -> Trend:
        cutoff = self.clock.now() - TREND_WINDOW
        recent = [r for r in records if r.created_at >= cutoff]
        if not recent:
            return Trend.STABLE

        recent_agree = sum(1 for r in recent if r.submission.feedback_type == FeedbackType.AGREE)
        recent_disagree = sum(1 for r in recent if r.submission.feedback_type == FeedbackType.DISAGREE)
        if recent_agree + recent_disagree == 0:
            return Trend.STABLE

        delta = agreement_rate(recent_agree, recent_disagree) - overall_rate
        if delta > TREND_DELTA:
            return Trend.POSITIVE
        if delta < -TREND_DELTA:
            return Trend.NEGATIVE
        return Trend.STABLE

    async def _community_trust(self, records: Sequence[StoredFeedbackRecord]) -> float:
        if self.tracker is None:
            return 0.5
        submitters = sorted({r.submission.submitter_id for r in records if not r.anonymized})
        if not submitters:
            return 0.5
        scores = [await self.tracker.get(s) for s in submitters]
        return sum(scores) / len(scores)


__all__ = ["ConsensusEngine", "agreement_rate"]
