"""Submission pipeline: classify -> store -> cluster -> consensus -> integrate.

Per-submission states:
  received -> classified -> rejected
                         -> stored -> clustered -> consensus_refreshed -> integrated

Rejection (spam with confidence above the rejection threshold) stores
nothing. Invalid input and storage failures come back as failed results,
never as exceptions.

Usage:
    from credibility_feedback.pipeline import FeedbackPipeline

    pipeline = FeedbackPipeline.create()
    result = await pipeline.submit_feedback(
        {"feedback_type": "agree", "url": "https://example.com/a", "submitter_id": "u1"},
        CredibilityScore(score=72, confidence=0.8),
    )
"""

import random
from typing import Any, Mapping, Optional, Union

import structlog

from credibility_feedback.audit import AuditLog
from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.config.logging import mask_submitter
from credibility_feedback.config.settings import Settings, settings as default_settings
from credibility_feedback.consensus.cluster_assigner import ClusterAssigner
from credibility_feedback.consensus.consensus_engine import ConsensusEngine
from credibility_feedback.data_management.cipher import FeedbackCipher
from credibility_feedback.data_management.feedback_store import FeedbackStore
from credibility_feedback.data_management.kv_store import TieredStorage
from credibility_feedback.data_management.schemas.audit_schema import (
    IntegrationAppliedEvent,
    SpamRejectedEvent,
)
from credibility_feedback.data_management.schemas.consensus_schema import (
    ConsensusSnapshot,
    CredibilityScore,
    FeedbackSubmissionResult,
    IntegrationResult,
    SubmissionState,
)
from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackSubmission,
    build_submission,
)
from credibility_feedback.data_management.schemas.reputation_schema import (
    ReputationRecord,
    VerificationLevelChanged,
)
from credibility_feedback.data_management.schemas.storage_schema import CleanupReport
from credibility_feedback.errors import InvalidSubmission, StorageUnavailable
from credibility_feedback.pipeline.score_sink import ScoreSink
from credibility_feedback.reputation.reputation_tracker import ReputationTracker
from credibility_feedback.scoring.score_integrator import ScoreIntegrator
from credibility_feedback.screening.spam_classifier import SpamClassifier
from credibility_feedback.utils.logging import bind_submission_context, get_correlation_id


class FeedbackPipeline:
    """Orchestrates one feedback submission through every component.

    All collaborators are passed in explicitly; ``create`` wires a default
    set over shared storage tiers.
    """

    def __init__(
        self,
        classifier: SpamClassifier,
        tracker: ReputationTracker,
        store: FeedbackStore,
        assigner: ClusterAssigner,
        consensus_engine: ConsensusEngine,
        integrator: ScoreIntegrator,
        audit: Optional[AuditLog] = None,
        score_sink: Optional[ScoreSink] = None,
        config: Optional[Settings] = None,
    ) -> None:
        """Initialize FeedbackPipeline.

        Args:
            classifier: Spam classifier
            tracker: Reputation tracker
            store: Feedback store
            assigner: Cluster assigner over the same store
            consensus_engine: Consensus engine over the same store
            integrator: Score integrator
            audit: Audit channel (shared with the store when built by create)
            score_sink: Optional write-back target for material adjustments
            config: Settings (defaults to the module-level settings)
        """
        self.classifier = classifier
        self.tracker = tracker
        self.store = store
        self.assigner = assigner
        self.consensus_engine = consensus_engine
        self.integrator = integrator
        self.audit = audit or AuditLog()
        self.score_sink = score_sink
        self.config = config or default_settings
        self._logger = structlog.get_logger().bind(component="FeedbackPipeline")

    @classmethod
    def create(
        cls,
        storage: Optional[TieredStorage] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        score_sink: Optional[ScoreSink] = None,
        audit: Optional[AuditLog] = None,
    ) -> "FeedbackPipeline":
        """Wire a pipeline with default components over shared storage.

        Args:
            storage: Storage tiers (defaults to in-memory)
            clock: Time source shared by every component
            config: Settings shared by every component
            rng: Random source for score exploration
            score_sink: Optional write-back target
            audit: Audit channel shared by the store and the pipeline

        Returns:
            Ready-to-use FeedbackPipeline
        """
        storage = storage or TieredStorage.in_memory()
        clock = clock or SystemClock()
        config = config or default_settings
        audit = audit or AuditLog()

        tracker = ReputationTracker(storage, clock=clock)
        store = FeedbackStore(
            storage,
            cipher=FeedbackCipher(storage.local),
            audit=audit,
            clock=clock,
            config=config,
        )
        return cls(
            classifier=SpamClassifier(clock=clock, config=config),
            tracker=tracker,
            store=store,
            assigner=ClusterAssigner(store, clock=clock),
            consensus_engine=ConsensusEngine(store, tracker, clock=clock, config=config),
            integrator=ScoreIntegrator(config=config, rng=rng, clock=clock),
            audit=audit,
            score_sink=score_sink,
            config=config,
        )

    async def submit_feedback(
        self,
        submission: Union[FeedbackSubmission, Mapping[str, Any]],
        credibility: CredibilityScore,
    ) -> FeedbackSubmissionResult:
        """Run one submission through the pipeline.

        Args:
            submission: Validated submission or raw field mapping
            credibility: Current score of the page the feedback is about

        Returns:
            FeedbackSubmissionResult describing the outcome and final state
        """
        log = bind_submission_context(self._logger, get_correlation_id())
        state = SubmissionState.RECEIVED

        if not isinstance(submission, FeedbackSubmission):
            try:
                submission = build_submission(submission)
            except InvalidSubmission as e:
                log.warning("submission_invalid", errors=e.errors)
                return FeedbackSubmissionResult(
                    success=False,
                    message=str(e),
                    final_state=state,
                    error_code="invalid_submission",
                    errors=e.errors,
                )

        log = log.bind(url=submission.url, submitter=mask_submitter(submission.submitter_id))
        verdict = None

        try:
            reputation = await self.tracker.get(submission.submitter_id)
            verdict = await self.classifier.classify(submission, reputation)
            state = SubmissionState.CLASSIFIED
            await self.tracker.record(submission.submitter_id, verdict)

            if verdict.is_spam and verdict.confidence > self.config.rejection_confidence:
                self.audit.emit(
                    SpamRejectedEvent(
                        url=submission.url,
                        feedback_type=submission.feedback_type,
                        confidence=verdict.confidence,
                        risk_level=verdict.risk_level,
                        reasons=verdict.reasons,
                    )
                )
                log.info("submission_rejected", confidence=round(verdict.confidence, 3))
                return FeedbackSubmissionResult(
                    success=False,
                    was_filtered=True,
                    message="Feedback rejected as spam",
                    final_state=SubmissionState.REJECTED,
                    spam_verdict=verdict,
                )

            feedback_id = await self.store.put(submission, verdict)
            state = SubmissionState.STORED

            state = await self._assign_cluster(feedback_id, submission, state, log)

            snapshot = await self.consensus_engine.snapshot(submission.url)
            state = SubmissionState.CONSENSUS_REFRESHED

            result = self.integrator.integrate(credibility, submission, verdict, reputation, snapshot)
            state = SubmissionState.INTEGRATED

            if result.should_persist:
                await self._apply(submission.url, feedback_id, result, log)

        except StorageUnavailable as e:
            log.error("storage_unavailable", state=state.value, error=str(e))
            return FeedbackSubmissionResult(
                success=False,
                message="Feedback could not be stored",
                final_state=state,
                spam_verdict=verdict,
                error_code="storage_unavailable",
            )

        log.info(
            "submission_integrated",
            feedback_id=feedback_id,
            was_filtered=verdict.is_spam,
            adjusted_score=result.adjusted_score,
        )
        return FeedbackSubmissionResult(
            success=True,
            feedback_id=feedback_id,
            was_filtered=verdict.is_spam,
            message="Feedback held for review" if verdict.is_spam else "Feedback recorded",
            final_state=state,
            spam_verdict=verdict,
            integration_result=result,
        )

    async def _assign_cluster(
        self,
        feedback_id: str,
        submission: FeedbackSubmission,
        state: SubmissionState,
        log: structlog.BoundLogger,
    ) -> SubmissionState:
        """Cluster the stored record. Clustering faults do not fail the submission."""
        try:
            record = await self.store.get(feedback_id)
            if record is None:
                return state
            await self.assigner.assign(record, text_length=len(submission.text))
            return SubmissionState.CLUSTERED
        except StorageUnavailable as e:
            log.warning("clustering_skipped", feedback_id=feedback_id, error=str(e))
            return state

    async def _apply(
        self,
        url: str,
        feedback_id: str,
        result: IntegrationResult,
        log: structlog.BoundLogger,
    ) -> None:
        if self.score_sink is not None:
            try:
                await self.score_sink.write(url, feedback_id, result)
            except StorageUnavailable as e:
                log.warning("score_writeback_failed", feedback_id=feedback_id, error=str(e))
                return

        self.audit.emit(
            IntegrationAppliedEvent(
                url=url,
                feedback_id=feedback_id,
                original_score=result.original_score,
                adjusted_score=result.adjusted_score,
                weight_applied=result.weight_applied,
                reward_signal=result.reward_signal,
            )
        )

    async def consensus(self, url: str) -> ConsensusSnapshot:
        """Current consensus snapshot for a URL."""
        return await self.consensus_engine.snapshot(url)

    async def handle_verification_change(self, message: VerificationLevelChanged) -> ReputationRecord:
        """Entry point for verification-level messages from the identity/billing side."""
        return await self.tracker.set_verification_level(message)

    async def cleanup(self) -> CleanupReport:
        """Run retention cleanup on the store and evict idle rate windows.

        Returns:
            CleanupReport from the store

        Raises:
            StorageUnavailable: Backing store cannot be read or written
        """
        report = await self.store.cleanup()
        pruned = self.classifier.prune()
        self._logger.info(
            "pipeline_cleanup",
            records_removed=report.records_removed,
            clusters_removed=report.clusters_removed,
            rate_windows_pruned=pruned,
        )
        return report

    async def erase_submitter(self, submitter_id: str) -> int:
        """Forget a submitter everywhere and anonymize their stored feedback.

        Returns:
            Number of stored records anonymized
        """
        self.classifier.forget(submitter_id)
        await self.tracker.forget(submitter_id)
        return await self.store.anonymize_submitter(submitter_id)


__all__ = ["FeedbackPipeline"]
