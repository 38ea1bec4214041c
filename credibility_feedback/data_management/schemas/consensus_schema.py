"""Consensus, score integration and submission result schemas.

ConsensusSnapshot is always a derived view computed at read time; it is
never stored as ground truth.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from credibility_feedback.data_management.schemas.feedback_schema import SpamVerdict


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Trend(str, Enum):
    """Direction of the last week's agreement rate against the all-time rate."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    STABLE = "stable"


class CredibilityScore(BaseModel):
    """Existing score for a page, produced outside this package."""

    score: float = Field(..., ge=0.0, le=100.0)
    confidence: float = Field(0.5, ge=0.0, le=1.0)


class ConsensusSnapshot(BaseModel):
    """Aggregate agreement among valid (non-spam) feedback for one URL.

    Attributes:
        url: Page the snapshot describes
        total_counted: Non-spam records considered
        agree_count: Agree records
        disagree_count: Disagree records
        issue_count: Issue reports
        agreement_rate: agree / (agree + disagree), 0.5 when neither exists
        consensus_strength: Lopsidedness x mean confidence x volume factor
        confidence_level: low / medium / high
        trend: positive / negative / stable
        mean_confidence: Mean stated confidence of counted records
        community_trust: Mean submitter reputation of counted records
        has_strong_consensus: Enough agree/disagree volume and strength to pull scores
        last_updated_at: Newest counted record
    """

    url: str
    total_counted: int = Field(0, ge=0)
    agree_count: int = Field(0, ge=0)
    disagree_count: int = Field(0, ge=0)
    issue_count: int = Field(0, ge=0)
    agreement_rate: float = Field(0.5, ge=0.0, le=1.0)
    consensus_strength: float = Field(0.0, ge=0.0, le=1.0)
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    trend: Trend = Trend.STABLE
    mean_confidence: float = Field(0.0, ge=0.0, le=1.0)
    community_trust: float = Field(0.5, ge=0.0, le=1.0)
    has_strong_consensus: bool = False
    last_updated_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @classmethod
    def empty(cls, url: str) -> "ConsensusSnapshot":
        return cls(url=url)


class IntegrationResult(BaseModel):
    """Bounded score adjustment produced for one submission.

    Attributes:
        original_score: Score before feedback
        adjusted_score: Score after feedback, integer in [0, 100]
        weight_applied: Influence granted to this submission, [0, 0.15]
        reward_signal: How strongly the submission confirms (+) or contradicts (-) the score
        feedback_quality: Quality estimate used to scale the weight
        consensus_applied: Whether the community consensus pulled the delta
        should_persist: Delta is material enough to write back
        confidence_level: Trust in the adjustment, from quality, consensus strength and reputation
        algorithm_update: Recent performance calls for a scoring model update
        reasoning: Short human-readable explanation
    """

    original_score: float = Field(..., ge=0.0, le=100.0)
    adjusted_score: int = Field(..., ge=0, le=100)
    weight_applied: float = Field(0.0, ge=0.0, le=0.15)
    reward_signal: float = Field(0.0, ge=-1.0, le=1.0)
    feedback_quality: float = Field(0.0, ge=0.0, le=1.0)
    consensus_applied: bool = False
    should_persist: bool = False
    confidence_level: float = Field(0.0, ge=0.0, le=1.0)
    algorithm_update: bool = False
    reasoning: str = ""

    model_config = {"frozen": True}


class PerformanceMetrics(BaseModel):
    """How well recent integrations matched what submitters said.

    Computed over the integrations of the last seven days.

    Attributes:
        sample_count: Integrations considered
        accuracy: Share where the score side (above 50 or not) matched the feedback
        user_satisfaction: Share of agree feedback
        consensus_alignment: Mean of 1 - |agreed - score / 100|
        feedback_weight: Base weight in force after these metrics were applied
        computed_at: When the metrics were computed
    """

    sample_count: int = Field(0, ge=0)
    accuracy: float = Field(0.0, ge=0.0, le=1.0)
    user_satisfaction: float = Field(0.0, ge=0.0, le=1.0)
    consensus_alignment: float = Field(0.0, ge=0.0, le=1.0)
    feedback_weight: float = Field(0.0, ge=0.0, le=0.15)
    computed_at: datetime

    model_config = {"frozen": True}


class SubmissionState(str, Enum):
    """Per-submission lifecycle. REJECTED and INTEGRATED are terminal."""

    RECEIVED = "received"
    CLASSIFIED = "classified"
    REJECTED = "rejected"
    STORED = "stored"
    CLUSTERED = "clustered"
    CONSENSUS_REFRESHED = "consensus_refreshed"
    INTEGRATED = "integrated"


class FeedbackSubmissionResult(BaseModel):
    """What the caller (e.g. a UI layer) receives for one submission."""

    success: bool
    feedback_id: Optional[str] = None
    was_filtered: bool = False
    message: str = ""
    final_state: SubmissionState = SubmissionState.RECEIVED
    spam_verdict: Optional[SpamVerdict] = None
    integration_result: Optional[IntegrationResult] = None
    error_code: Optional[str] = None
    errors: list[str] = Field(default_factory=list)
