"""Submitter reputation tracking."""

from credibility_feedback.reputation.reputation_tracker import (
    NEUTRAL_REPUTATION,
    ReputationTracker,
    reputation_score,
)

__all__ = ["ReputationTracker", "reputation_score", "NEUTRAL_REPUTATION"]
