"""Typed audit events consumed by the external observability collaborator.

Each event type is its own model tagged by ``event``; ``AuditEvent`` is the
discriminated union, so a serialized event always round-trips to the right
class.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackType,
    RiskLevel,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SpamRejectedEvent(BaseModel):
    """A submission was rejected as high-confidence spam; nothing was stored."""

    event: Literal["spam_rejected"] = "spam_rejected"
    url: str
    feedback_type: FeedbackType
    confidence: float = Field(..., ge=0.0, le=1.0)
    risk_level: RiskLevel
    reasons: list[str] = Field(default_factory=list)
    occurred_at: datetime = Field(default_factory=_utcnow)


class IntegrationAppliedEvent(BaseModel):
    """A material score adjustment was produced and handed to the score sink."""

    event: Literal["integration_applied"] = "integration_applied"
    url: str
    feedback_id: str
    original_score: float
    adjusted_score: int
    weight_applied: float
    reward_signal: float
    occurred_at: datetime = Field(default_factory=_utcnow)


class CleanupPerformedEvent(BaseModel):
    """Retention cleanup ran."""

    event: Literal["cleanup_performed"] = "cleanup_performed"
    records_removed: int
    clusters_removed: int
    occurred_at: datetime = Field(default_factory=_utcnow)


class QuotaExceededEvent(BaseModel):
    """Store was still over quota after cleanup; the write proceeded anyway."""

    event: Literal["quota_exceeded"] = "quota_exceeded"
    quota_used: float
    occurred_at: datetime = Field(default_factory=_utcnow)


AuditEvent = Annotated[
    Union[SpamRejectedEvent, IntegrationAppliedEvent, CleanupPerformedEvent, QuotaExceededEvent],
    Field(discriminator="event"),
]

audit_event_adapter: TypeAdapter = TypeAdapter(AuditEvent)
