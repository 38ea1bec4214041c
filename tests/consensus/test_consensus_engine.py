"""Tests for ConsensusEngine.

Tests cover:
- Agreement rate, strength and strong-consensus flag
- Confidence levels and trend detection
- Spam exclusion, determinism and community trust
"""

from datetime import datetime, timezone

import pytest

from credibility_feedback.clock import FrozenClock
from credibility_feedback.config.settings import Settings
from credibility_feedback.consensus.consensus_engine import ConsensusEngine, agreement_rate
from credibility_feedback.data_management.feedback_store import FeedbackStore
from credibility_feedback.data_management.kv_store import TieredStorage
from credibility_feedback.data_management.schemas import (
    ConfidenceLevel,
    FeedbackSubmission,
    FeedbackType,
    RiskLevel,
    SpamVerdict,
    Trend,
)
from credibility_feedback.reputation.reputation_tracker import ReputationTracker

START = datetime(2025, 5, 1, tzinfo=timezone.utc)
URL = "https://example.com/story"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture
def storage() -> TieredStorage:
    return TieredStorage.in_memory()


@pytest.fixture
def store(storage: TieredStorage, clock: FrozenClock) -> FeedbackStore:
    return FeedbackStore(storage, clock=clock, config=Settings())


@pytest.fixture
def engine(store: FeedbackStore, clock: FrozenClock) -> ConsensusEngine:
    return ConsensusEngine(store, clock=clock, config=Settings())


async def add(
    store: FeedbackStore,
    feedback_type: FeedbackType,
    count: int = 1,
    confidence: float = 0.8,
    is_spam: bool = False,
    submitter_id: str = "user-1",
) -> None:
    for _ in range(count):
        submission = FeedbackSubmission(
            feedback_type=feedback_type,
            url=URL,
            submitter_id=submitter_id,
            stated_confidence=confidence,
            submitted_at=START,
        )
        verdict = SpamVerdict(
            is_spam=is_spam,
            confidence=0.5,
            risk_level=RiskLevel.HIGH if is_spam else RiskLevel.LOW,
        )
        await store.put(submission, verdict)


class TestAgreementRate:
    def test_no_votes_is_neutral(self) -> None:
        assert agreement_rate(0, 0) == 0.5

    def test_ratio(self) -> None:
        assert agreement_rate(3, 1) == 0.75


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_empty_url(self, engine: ConsensusEngine) -> None:
        snapshot = await engine.snapshot(URL)
        assert snapshot.total_counted == 0
        assert snapshot.agreement_rate == 0.5
        assert snapshot.has_strong_consensus is False

    @pytest.mark.asyncio
    async def test_unanimous_agreement(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.AGREE, count=3, confidence=0.8)

        snapshot = await engine.snapshot(URL)
        assert snapshot.agree_count == 3
        assert snapshot.agreement_rate == 1.0
        # lopsidedness 1.0 * confidence 0.8 * volume 3/20
        assert snapshot.consensus_strength == pytest.approx(0.12)
        assert snapshot.has_strong_consensus is True
        assert snapshot.confidence_level == ConfidenceLevel.LOW

    @pytest.mark.asyncio
    async def test_split_vote_not_strong(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.AGREE, count=2)
        await add(store, FeedbackType.DISAGREE, count=1)

        snapshot = await engine.snapshot(URL)
        assert snapshot.agreement_rate == pytest.approx(2 / 3)
        assert snapshot.has_strong_consensus is False

    @pytest.mark.asyncio
    async def test_issue_reports_only(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.REPORT_ISSUE, count=4)

        snapshot = await engine.snapshot(URL)
        assert snapshot.total_counted == 4
        assert snapshot.issue_count == 4
        assert snapshot.agreement_rate == 0.5
        assert snapshot.consensus_strength == 0.0
        assert snapshot.has_strong_consensus is False

    @pytest.mark.asyncio
    async def test_spam_excluded(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.AGREE, count=2)
        await add(store, FeedbackType.DISAGREE, count=10, is_spam=True)

        snapshot = await engine.snapshot(URL)
        assert snapshot.total_counted == 2
        assert snapshot.disagree_count == 0

    @pytest.mark.asyncio
    async def test_deterministic(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.AGREE, count=3)
        await add(store, FeedbackType.DISAGREE, count=2, confidence=0.4)
        assert await engine.snapshot(URL) == await engine.snapshot(URL)

    @pytest.mark.asyncio
    async def test_window_limits_records(self, store: FeedbackStore, clock: FrozenClock) -> None:
        engine = ConsensusEngine(store, clock=clock, config=Settings(consensus_window=2))
        await add(store, FeedbackType.AGREE, count=3)
        assert (await engine.snapshot(URL)).total_counted == 2


class TestConfidenceLevel:
    @pytest.mark.asyncio
    async def test_high(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.AGREE, count=20, confidence=0.9)
        snapshot = await engine.snapshot(URL)
        assert snapshot.consensus_strength == pytest.approx(0.9)
        assert snapshot.confidence_level == ConfidenceLevel.HIGH

    @pytest.mark.asyncio
    async def test_medium(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.DISAGREE, count=15, confidence=0.9)
        snapshot = await engine.snapshot(URL)
        assert snapshot.consensus_strength == pytest.approx(0.675)
        assert snapshot.confidence_level == ConfidenceLevel.MEDIUM


class TestTrend:
    @pytest.mark.asyncio
    async def test_positive_shift(
        self, engine: ConsensusEngine, store: FeedbackStore, clock: FrozenClock
    ) -> None:
        await add(store, FeedbackType.DISAGREE, count=4)
        clock.advance(days=30)
        await add(store, FeedbackType.AGREE, count=2)

        assert (await engine.snapshot(URL)).trend == Trend.POSITIVE

    @pytest.mark.asyncio
    async def test_negative_shift(
        self, engine: ConsensusEngine, store: FeedbackStore, clock: FrozenClock
    ) -> None:
        await add(store, FeedbackType.AGREE, count=4)
        clock.advance(days=30)
        await add(store, FeedbackType.DISAGREE, count=2)

        assert (await engine.snapshot(URL)).trend == Trend.NEGATIVE

    @pytest.mark.asyncio
    async def test_no_recent_votes_is_stable(
        self, engine: ConsensusEngine, store: FeedbackStore, clock: FrozenClock
    ) -> None:
        await add(store, FeedbackType.AGREE, count=4)
        clock.advance(days=30)
        await add(store, FeedbackType.REPORT_ISSUE, count=1)

        assert (await engine.snapshot(URL)).trend == Trend.STABLE


class TestCommunityTrust:
    @pytest.mark.asyncio
    async def test_neutral_without_tracker(self, engine: ConsensusEngine, store: FeedbackStore) -> None:
        await add(store, FeedbackType.AGREE)
        assert (await engine.snapshot(URL)).community_trust == 0.5

    @pytest.mark.asyncio
    async def test_mean_of_submitter_reputation(
        self, storage: TieredStorage, store: FeedbackStore, clock: FrozenClock
    ) -> None:
        tracker = ReputationTracker(storage, clock=clock)
        await tracker.record(
            "known", SpamVerdict(is_spam=False, confidence=0.2, risk_level=RiskLevel.LOW)
        )
        engine = ConsensusEngine(store, tracker=tracker, clock=clock, config=Settings())

        await add(store, FeedbackType.AGREE, submitter_id="known")
        await add(store, FeedbackType.AGREE, submitter_id="stranger")

        # (0.58 + 0.5) / 2
        assert (await engine.snapshot(URL)).community_trust == pytest.approx(0.54)
