"""Feedback submission, spam verdict and stored record schemas.

Submissions are immutable once created: the pipeline never edits what the
user sent. Stored records carry the submission with its free text removed;
the text only lives as ciphertext in ``encrypted_text``.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator

from credibility_feedback.errors import InvalidSubmission


class FeedbackType(str, Enum):
    """What the user is telling us about the current score."""

    AGREE = "agree"
    DISAGREE = "disagree"
    REPORT_ISSUE = "report_issue"


class RiskLevel(str, Enum):
    """Bucketed maximum risk of a submission."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_domain(url: str) -> str:
    """Lowercase host of a URL without a leading ``www.``."""
    domain = urlparse(url).netloc.lower()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


class FeedbackSubmission(BaseModel):
    """A single piece of user feedback about a page's credibility score.

    Attributes:
        feedback_type: agree / disagree / report_issue
        url: Page the feedback is about (http or https)
        submitter_id: Opaque submitter identifier (session or account)
        free_text: Optional user comment
        stated_confidence: How sure the user says they are (0.0-1.0)
        submitted_at: When the user submitted (UTC)
        issue_category: Optional category for issue reports
    """

    feedback_type: FeedbackType
    url: str = Field(..., min_length=1)
    submitter_id: str = Field(..., min_length=1)
    free_text: Optional[str] = None
    stated_confidence: float = Field(0.5, ge=0.0, le=1.0)
    submitted_at: datetime = Field(default_factory=_utcnow)
    issue_category: Optional[str] = None

    model_config = {"frozen": True}

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"malformed URL: {value!r}")
        return value

    @field_validator("submitted_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def domain(self) -> str:
        return extract_domain(self.url)

    @property
    def text(self) -> str:
        """Free text or empty string, for analyzers that need a str."""
        return self.free_text or ""


class SpamVerdict(BaseModel):
    """Outcome of spam analysis for one submission. Never mutated.

    Attributes:
        is_spam: Final spam decision
        confidence: Agreement across methods x evidence strength (0.0-1.0)
        risk_level: Bucketed maximum risk value
        reasons: Human-readable explanations
        methods_used: Detection methods that fired
        spam_score: Combined content score (0.4 * heuristic + 0.6 * logistic)
        reputation_score: Submitter reputation at classification time
    """

    is_spam: bool
    confidence: float = Field(..., ge=0.0, le=1.0)
    risk_level: RiskLevel
    reasons: list[str] = Field(default_factory=list)
    methods_used: list[str] = Field(default_factory=list)
    spam_score: float = Field(0.0, ge=0.0, le=1.0)
    reputation_score: float = Field(0.5, ge=0.0, le=1.0)

    model_config = {"frozen": True}

    @classmethod
    def fail_safe(cls, reputation_score: float = 0.5) -> "SpamVerdict":
        """Conservative verdict used when analysis itself fails."""
        return cls(
            is_spam=False,
            confidence=0.3,
            risk_level=RiskLevel.LOW,
            reasons=["Analysis failed - conservative fallback"],
            methods_used=["failsafe"],
            spam_score=0.0,
            reputation_score=min(1.0, max(0.0, reputation_score)),
        )


class StoredFeedbackRecord(BaseModel):
    """Persisted feedback entry.

    ``submission.free_text`` is always None at rest; ``encrypted_text`` holds
    the Fernet token when a key was available. ``anonymized`` only ever
    flips from False to True.
    """

    id: str
    submission: FeedbackSubmission
    encrypted_text: Optional[str] = None
    verdict: SpamVerdict
    created_at: datetime
    last_accessed_at: datetime
    retention_expires_at: datetime
    anonymized: bool = False
    cluster_id: Optional[str] = None

    @property
    def url(self) -> str:
        return self.submission.url

    @property
    def is_spam(self) -> bool:
        return self.verdict.is_spam


def build_submission(payload: Mapping[str, Any]) -> FeedbackSubmission:
    """Validate raw caller input into a FeedbackSubmission.

    Args:
        payload: Field mapping (feedback_type, url, submitter_id, ...)

    Returns:
        Validated FeedbackSubmission

    Raises:
        InvalidSubmission: With one message per failing field
    """
    try:
        return FeedbackSubmission.model_validate(dict(payload))
    except ValidationError as exc:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'submission'}: {err['msg']}"
            for err in exc.errors()
        ]
        raise InvalidSubmission("Invalid feedback submission", errors) from exc
