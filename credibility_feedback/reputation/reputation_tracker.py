"""Submitter reputation from feedback history.

Reputation blends four signals, clamped to [0, 1]:
  (1 - spam_ratio) * 0.4 + accuracy * 0.3 + time_weight * 0.2 + verification * 0.1

time_weight grows linearly to 1.0 over the first 30 days since the submitter
was first seen. Unseen submitters get a neutral 0.5. Records live in the
syncable storage tier under ``reputation:{submitter_id}``.
"""

import asyncio
from datetime import datetime
from typing import Optional

import structlog

from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.config.logging import mask_submitter
from credibility_feedback.data_management.kv_store import TieredStorage
from credibility_feedback.data_management.schemas.feedback_schema import SpamVerdict
from credibility_feedback.data_management.schemas.reputation_schema import (
    VERIFICATION_WEIGHTS,
    ReputationRecord,
    VerificationLevelChanged,
)

KEY_PREFIX = "reputation:"
NEUTRAL_REPUTATION = 0.5
MATURITY_DAYS = 30


def reputation_score(record: ReputationRecord, now: datetime) -> float:
    """Reputation of a record at a point in time."""
    age_days = max(0.0, (now - record.first_seen_at).total_seconds() / 86400)
    time_weight = min(1.0, age_days / MATURITY_DAYS)
    verification_weight = VERIFICATION_WEIGHTS[record.verification_level]

    score = (
        (1 - record.spam_ratio) * 0.4
        + record.accuracy_score * 0.3
        + time_weight * 0.2
        + verification_weight * 0.1
    )
    return max(0.0, min(1.0, score))


class ReputationTracker:
    """Append-only submitter history and the reputation derived from it.

    Usage:
        tracker = ReputationTracker(TieredStorage.in_memory())
        score = await tracker.get("user-123")
        await tracker.record("user-123", verdict)
    """

    def __init__(self, storage: TieredStorage, clock: Optional[Clock] = None) -> None:
        """Initialize ReputationTracker.

        Args:
            storage: Storage tiers; records live in the sync tier
            clock: Time source (defaults to SystemClock)
        """
        self._kv = storage.sync
        self._clock = clock or SystemClock()
        self._lock = asyncio.Lock()
        self._logger = structlog.get_logger().bind(component="ReputationTracker")

    @staticmethod
    def key_for(submitter_id: str) -> str:
        return KEY_PREFIX + submitter_id

    async def get(self, submitter_id: str) -> float:
        """Current reputation in [0, 1]; 0.5 for unseen submitters."""
        record = await self.get_record(submitter_id)
        if record is None:
            return NEUTRAL_REPUTATION
        return reputation_score(record, self._clock.now())

    async def get_record(self, submitter_id: str) -> Optional[ReputationRecord]:
        raw = await self._kv.get(self.key_for(submitter_id))
        return ReputationRecord.model_validate(raw) if raw is not None else None

    async def record(self, submitter_id: str, verdict: SpamVerdict) -> ReputationRecord:
        """Count one classified submission.

        Args:
            submitter_id: Submitter the verdict belongs to
            verdict: Verdict of the submission

        Returns:
            The updated ReputationRecord
        """
        async with self._lock:
            now = self._clock.now()
            record = await self.get_record(submitter_id)
            if record is None:
                record = ReputationRecord(
                    submitter_id=submitter_id,
                    first_seen_at=now,
                    last_seen_at=now,
                )

            record.total_submissions += 1
            if verdict.is_spam:
                record.spam_submissions += 1
            record.last_seen_at = now

            await self._kv.set(self.key_for(submitter_id), record.model_dump(mode="json"))

        self._logger.debug(
            "reputation_recorded",
            submitter=mask_submitter(submitter_id),
            total=record.total_submissions,
            spam=record.spam_submissions,
        )
        return record

    async def set_verification_level(self, message: VerificationLevelChanged) -> ReputationRecord:
        """Apply a verification-level change from the identity/billing side.

        Creates the record when the submitter has not submitted yet, so the
        level is in place before their first submission.
        """
        async with self._lock:
            record = await self.get_record(message.submitter_id)
            if record is None:
                now = self._clock.now()
                record = ReputationRecord(
                    submitter_id=message.submitter_id,
                    first_seen_at=now,
                    last_seen_at=now,
                )
            record.verification_level = message.level
            await self._kv.set(self.key_for(message.submitter_id), record.model_dump(mode="json"))

        self._logger.info(
            "verification_level_changed",
            submitter=mask_submitter(message.submitter_id),
            level=message.level.value,
        )
        return record

    async def forget(self, submitter_id: str) -> bool:
        """Erase a submitter's history. Returns True if a record existed."""
        async with self._lock:
            removed = await self._kv.remove(self.key_for(submitter_id))
        if removed:
            self._logger.info("reputation_forgotten", submitter=mask_submitter(submitter_id))
        return removed


__all__ = ["ReputationTracker", "reputation_score", "NEUTRAL_REPUTATION"]
