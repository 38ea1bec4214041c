"""Tests for feedback, reputation, consensus and audit schemas.

Tests cover:
- Submission validation (URL, confidence bounds, UTC normalization)
- build_submission error reporting
- Fail-safe verdict
- Integration result bounds
- Audit event discrimination
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from credibility_feedback.data_management.schemas import (
    CleanupPerformedEvent,
    ClusterSignature,
    ConsensusSnapshot,
    FeedbackSubmission,
    FeedbackType,
    IntegrationResult,
    ReputationRecord,
    RiskLevel,
    SpamRejectedEvent,
    SpamVerdict,
    audit_event_adapter,
    build_submission,
    extract_domain,
)
from credibility_feedback.errors import InvalidSubmission


class TestFeedbackSubmission:
    def test_minimal_submission_defaults(self) -> None:
        submission = FeedbackSubmission(
            feedback_type=FeedbackType.AGREE,
            url="https://example.com/article",
            submitter_id="user-1",
        )
        assert submission.stated_confidence == 0.5
        assert submission.free_text is None
        assert submission.text == ""
        assert submission.submitted_at.tzinfo is not None

    def test_domain_strips_www(self) -> None:
        submission = FeedbackSubmission(
            feedback_type=FeedbackType.DISAGREE,
            url="https://WWW.Example.com/a?b=1",
            submitter_id="user-1",
        )
        assert submission.domain == "example.com"
        assert extract_domain("http://news.example.org/x") == "news.example.org"

    def test_naive_timestamp_becomes_utc(self) -> None:
        submission = FeedbackSubmission(
            feedback_type=FeedbackType.AGREE,
            url="https://example.com",
            submitter_id="user-1",
            submitted_at=datetime(2025, 3, 1, 12, 0),
        )
        assert submission.submitted_at == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_offset_timestamp_converted_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        submission = FeedbackSubmission(
            feedback_type=FeedbackType.AGREE,
            url="https://example.com",
            submitter_id="user-1",
            submitted_at=datetime(2025, 3, 1, 12, 0, tzinfo=plus_two),
        )
        assert submission.submitted_at.utcoffset() == timedelta(0)
        assert submission.submitted_at.hour == 10

    @pytest.mark.parametrize("url", ["ftp://example.com/x", "example.com/page", "https://"])
    def test_rejects_malformed_url(self, url: str) -> None:
        with pytest.raises(ValidationError):
            FeedbackSubmission(feedback_type=FeedbackType.AGREE, url=url, submitter_id="u")

    def test_rejects_confidence_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            FeedbackSubmission(
                feedback_type=FeedbackType.AGREE,
                url="https://example.com",
                submitter_id="u",
                stated_confidence=1.2,
            )

    def test_submission_is_frozen(self) -> None:
        submission = FeedbackSubmission(
            feedback_type=FeedbackType.AGREE,
            url="https://example.com",
            submitter_id="u",
        )
        with pytest.raises(ValidationError):
            submission.url = "https://other.com"


class TestBuildSubmission:
    def test_valid_payload(self) -> None:
        submission = build_submission(
            {"feedback_type": "report_issue", "url": "https://example.com", "submitter_id": "u",
             "issue_category": "outdated"}
        )
        assert submission.feedback_type == FeedbackType.REPORT_ISSUE
        assert submission.issue_category == "outdated"

    def test_invalid_payload_lists_every_field(self) -> None:
        with pytest.raises(InvalidSubmission) as exc_info:
            build_submission({"feedback_type": "maybe", "url": "not a url", "submitter_id": ""})

        errors = exc_info.value.errors
        assert any(e.startswith("feedback_type") for e in errors)
        assert any(e.startswith("url") for e in errors)
        assert any(e.startswith("submitter_id") for e in errors)


class TestSpamVerdict:
    def test_fail_safe_is_conservative(self) -> None:
        verdict = SpamVerdict.fail_safe()
        assert verdict.is_spam is False
        assert verdict.confidence == 0.3
        assert verdict.risk_level == RiskLevel.LOW
        assert verdict.reasons == ["Analysis failed - conservative fallback"]
        assert verdict.methods_used == ["failsafe"]

    def test_fail_safe_clamps_reputation(self) -> None:
        assert SpamVerdict.fail_safe(reputation_score=1.7).reputation_score == 1.0


class TestDerivedModels:
    def test_spam_ratio_with_no_submissions(self) -> None:
        now = datetime.now(timezone.utc)
        record = ReputationRecord(submitter_id="u", first_seen_at=now, last_seen_at=now)
        assert record.spam_ratio == 0.0

    def test_cluster_signature_key_is_stable(self) -> None:
        signature = ClusterSignature(
            feedback_type=FeedbackType.AGREE,
            domain="example.com",
            length_bucket="short",
            confidence_bucket="high",
            risk_level=RiskLevel.LOW,
        )
        assert signature.key == "agree|example.com|short|high|low"

    def test_empty_snapshot(self) -> None:
        snapshot = ConsensusSnapshot.empty("https://example.com")
        assert snapshot.total_counted == 0
        assert snapshot.agreement_rate == 0.5
        assert snapshot.consensus_strength == 0.0
        assert snapshot.has_strong_consensus is False

    def test_integration_result_bounds_enforced(self) -> None:
        with pytest.raises(ValidationError):
            IntegrationResult(original_score=50, adjusted_score=101)
        with pytest.raises(ValidationError):
            IntegrationResult(original_score=50, adjusted_score=50, weight_applied=0.2)


class TestAuditEvents:
    def test_round_trip_picks_event_class(self) -> None:
        event = SpamRejectedEvent(
            url="https://example.com",
            feedback_type=FeedbackType.AGREE,
            confidence=0.9,
            risk_level=RiskLevel.HIGH,
            reasons=["Rate limit exceeded - too many submissions"],
        )
        parsed = audit_event_adapter.validate_python(event.model_dump(mode="json"))
        assert isinstance(parsed, SpamRejectedEvent)
        assert parsed.risk_level == RiskLevel.HIGH

    def test_cleanup_event_tag(self) -> None:
        parsed = audit_event_adapter.validate_python(
            {"event": "cleanup_performed", "records_removed": 2, "clusters_removed": 1}
        )
        assert isinstance(parsed, CleanupPerformedEvent)

    def test_unknown_tag_rejected(self) -> None:
        with pytest.raises(ValidationError):
            audit_event_adapter.validate_python({"event": "something_else"})
