"""Submitter reputation schema and the typed verification-level message."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class VerificationLevel(str, Enum):
    """How strongly the submitter's identity is established."""

    NONE = "none"
    BASIC = "basic"
    VERIFIED = "verified"


# Contribution of each level to the reputation blend
VERIFICATION_WEIGHTS: dict[VerificationLevel, float] = {
    VerificationLevel.NONE: 0.3,
    VerificationLevel.BASIC: 0.7,
    VerificationLevel.VERIFIED: 1.0,
}


class ReputationRecord(BaseModel):
    """Append-only history counters for one submitter.

    Attributes:
        submitter_id: Opaque submitter identifier
        total_submissions: Every classified submission
        spam_submissions: Submissions whose verdict was spam
        accuracy_score: How often the submitter's feedback held up (0.0-1.0)
        first_seen_at: First classified submission
        last_seen_at: Most recent classified submission
        verification_level: Identity strength
    """

    submitter_id: str
    total_submissions: int = Field(0, ge=0)
    spam_submissions: int = Field(0, ge=0)
    accuracy_score: float = Field(0.5, ge=0.0, le=1.0)
    first_seen_at: datetime
    last_seen_at: datetime
    verification_level: VerificationLevel = VerificationLevel.NONE

    @property
    def spam_ratio(self) -> float:
        return self.spam_submissions / max(1, self.total_submissions)


class VerificationLevelChanged(BaseModel):
    """Message from the account/billing side when a submitter's level changes."""

    submitter_id: str = Field(..., min_length=1)
    level: VerificationLevel
    changed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}
