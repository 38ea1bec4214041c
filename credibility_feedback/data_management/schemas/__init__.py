"""Schema package for feedback intake, reputation, clustering and consensus.

All records are Pydantic models:
- Submissions and verdicts are immutable (frozen)
- Stored records, reputation records and clusters are updated by their owners
- Consensus snapshots are derived views, never persisted
- Audit events are a discriminated union tagged by ``event``

Usage:
    from credibility_feedback.data_management.schemas import FeedbackSubmission, FeedbackType
    submission = FeedbackSubmission(
        feedback_type=FeedbackType.AGREE,
        url="https://example.com/article",
        submitter_id="user-123",
        stated_confidence=0.8,
    )
"""

from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackType,
    RiskLevel,
    FeedbackSubmission,
    SpamVerdict,
    StoredFeedbackRecord,
    build_submission,
    extract_domain,
)

from credibility_feedback.data_management.schemas.reputation_schema import (
    VerificationLevel,
    VERIFICATION_WEIGHTS,
    ReputationRecord,
    VerificationLevelChanged,
)

from credibility_feedback.data_management.schemas.cluster_schema import (
    ClusterSignature,
    FeedbackCluster,
)

from credibility_feedback.data_management.schemas.consensus_schema import (
    ConfidenceLevel,
    Trend,
    CredibilityScore,
    ConsensusSnapshot,
    IntegrationResult,
    PerformanceMetrics,
    SubmissionState,
    FeedbackSubmissionResult,
)

from credibility_feedback.data_management.schemas.storage_schema import (
    StorageMetrics,
    CleanupReport,
    FeedbackStats,
)

from credibility_feedback.data_management.schemas.audit_schema import (
    AuditEvent,
    SpamRejectedEvent,
    IntegrationAppliedEvent,
    CleanupPerformedEvent,
    QuotaExceededEvent,
    audit_event_adapter,
)

__all__ = [
    # Feedback
    "FeedbackType",
    "RiskLevel",
    "FeedbackSubmission",
    "SpamVerdict",
    "StoredFeedbackRecord",
    "build_submission",
    "extract_domain",
    # Reputation
    "VerificationLevel",
    "VERIFICATION_WEIGHTS",
    "ReputationRecord",
    "VerificationLevelChanged",
    # Clusters
    "ClusterSignature",
    "FeedbackCluster",
    # Consensus / integration
    "ConfidenceLevel",
    "Trend",
    "CredibilityScore",
    "ConsensusSnapshot",
    "IntegrationResult",
    "PerformanceMetrics",
    "SubmissionState",
    "FeedbackSubmissionResult",
    # Storage
    "StorageMetrics",
    "CleanupReport",
    "FeedbackStats",
    # Audit
    "AuditEvent",
    "SpamRejectedEvent",
    "IntegrationAppliedEvent",
    "CleanupPerformedEvent",
    "QuotaExceededEvent",
    "audit_event_adapter",
]
