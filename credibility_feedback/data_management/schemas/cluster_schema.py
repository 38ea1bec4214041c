"""Cluster signature and cluster record schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackType,
    RiskLevel,
)


class ClusterSignature(BaseModel):
    """Coarse bucketed description of a stored feedback record.

    Records sharing the exact signature are candidates for the same cluster.
    """

    feedback_type: FeedbackType
    domain: str
    length_bucket: str
    confidence_bucket: str
    risk_level: RiskLevel

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        """Stable lookup key."""
        return "|".join(
            (
                self.feedback_type.value,
                self.domain,
                self.length_bucket,
                self.confidence_bucket,
                self.risk_level.value,
            )
        )


class FeedbackCluster(BaseModel):
    """Online group of similar feedback records.

    Attributes:
        id: Cluster identifier
        signature: Shared signature of all members
        member_count: Records assigned so far
        mean_spam_score: Running mean of member spam scores
        confidence: Grows as members join, capped at 1.0
        created_at: Creation time
        last_updated_at: Last time a member joined
    """

    id: str
    signature: ClusterSignature
    member_count: int = Field(1, ge=1)
    mean_spam_score: float = Field(0.0, ge=0.0, le=1.0)
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    created_at: datetime
    last_updated_at: datetime
