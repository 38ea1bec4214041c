"""Tests for the AuditLog event channel."""

from credibility_feedback.audit import AuditLog
from credibility_feedback.data_management.schemas import CleanupPerformedEvent, QuotaExceededEvent


class RecordingLogger:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict]] = []

    def info(self, event: str, **kw) -> None:
        self.calls.append(("info", event, kw))

    def warning(self, event: str, **kw) -> None:
        self.calls.append(("warning", event, kw))


class TestAuditLog:
    def test_subscribers_receive_events_in_order(self) -> None:
        audit = AuditLog()
        received: list = []
        audit.subscribe(lambda e: received.append(("first", e.event)))
        audit.subscribe(lambda e: received.append(("second", e.event)))

        audit.emit(CleanupPerformedEvent(records_removed=1, clusters_removed=0))
        assert received == [("first", "cleanup_performed"), ("second", "cleanup_performed")]

    def test_unsubscribe(self) -> None:
        audit = AuditLog()
        received: list = []
        unsubscribe = audit.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        audit.emit(QuotaExceededEvent(quota_used=1.2))
        assert received == []

    def test_failing_subscriber_does_not_block_others(self) -> None:
        logger = RecordingLogger()
        audit = AuditLog(logger=logger)
        received: list = []

        def broken(event) -> None:
            raise RuntimeError("collector offline")

        audit.subscribe(broken)
        audit.subscribe(received.append)
        audit.emit(QuotaExceededEvent(quota_used=1.2))

        assert len(received) == 1
        assert ("warning", "audit_subscriber_failed") in [(c[0], c[1]) for c in logger.calls]

    def test_event_logged_under_its_tag(self) -> None:
        logger = RecordingLogger()
        AuditLog(logger=logger).emit(CleanupPerformedEvent(records_removed=3, clusters_removed=2))

        level, name, fields = logger.calls[0]
        assert (level, name) == ("info", "cleanup_performed")
        assert fields["records_removed"] == 3
        assert "event" not in fields
