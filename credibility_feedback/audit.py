"""Audit event channel.

Every event is written as a structlog record named after its ``event`` tag
and then handed to each registered subscriber in registration order.

Usage:
    audit = AuditLog()
    audit.subscribe(received.append)
    audit.emit(CleanupPerformedEvent(records_removed=3, clusters_removed=0))
"""

from typing import TYPE_CHECKING, Callable, Optional

import structlog

from credibility_feedback.utils.logging import get_structured_logger

if TYPE_CHECKING:
    from credibility_feedback.data_management.schemas.audit_schema import AuditEvent

AuditSubscriber = Callable[["AuditEvent"], None]


class AuditLog:
    """Fan-out of typed audit events to structlog and subscribers."""

    def __init__(self, logger: Optional[structlog.BoundLogger] = None) -> None:
        self._subscribers: list[AuditSubscriber] = []
        self._logger = logger or get_structured_logger("audit", component="AuditLog")

    def subscribe(self, subscriber: AuditSubscriber) -> Callable[[], None]:
        """Register a subscriber.

        Args:
            subscriber: Callable receiving each emitted event

        Returns:
            Function that removes the subscriber again
        """
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def emit(self, event: "AuditEvent") -> None:
        payload = event.model_dump(mode="json", exclude={"event"})
        self._logger.info(event.event, **payload)

        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception as e:
                # Subscriber failures never reach the emitter
                self._logger.warning(
                    "audit_subscriber_failed",
                    audit_event=event.event,
                    error=str(e),
                )


__all__ = ["AuditLog", "AuditSubscriber"]
