"""Online clustering of stored feedback to surface coordinated abuse.

Every record gets a coarse signature (type, domain, text length bucket,
stated confidence bucket, risk level). Candidate clusters are those with
the exact same signature; the first candidate, in creation order, whose
similarity to the record exceeds 0.7 absorbs it. Otherwise the record
starts a new singleton cluster.

Similarity:
  0.3 * same type + 0.3 * same domain + 0.2 * same risk
  + 0.2 * (1 - |record spam score - cluster mean spam score|)
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger

from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.data_management.feedback_store import FeedbackStore
from credibility_feedback.data_management.schemas.cluster_schema import (
    ClusterSignature,
    FeedbackCluster,
)
from credibility_feedback.data_management.schemas.feedback_schema import (
    RiskLevel,
    StoredFeedbackRecord,
)

JOIN_THRESHOLD = 0.7
CONFIDENCE_STEP = 0.1
INITIAL_CONFIDENCE = 0.5

# (upper bound exclusive, bucket name); the last bucket has no bound
LENGTH_BUCKETS = [(10, "very_short"), (50, "short"), (200, "medium"), (500, "long")]
CONFIDENCE_BUCKETS = [(0.3, "low"), (0.7, "medium")]


def length_bucket(length: int) -> str:
    for bound, name in LENGTH_BUCKETS:
        if length < bound:
            return name
    return "very_long"


def confidence_bucket(confidence: float) -> str:
    for bound, name in CONFIDENCE_BUCKETS:
        if confidence < bound:
            return name
    return "high"


def signature_for(record: StoredFeedbackRecord, text_length: int = 0) -> ClusterSignature:
    """Build the cluster signature of a stored record.

    Args:
        record: Stored record (free text already removed)
        text_length: Length of the original free text
    """
    submission = record.submission
    return ClusterSignature(
        feedback_type=submission.feedback_type,
        domain=submission.domain,
        length_bucket=length_bucket(text_length),
        confidence_bucket=confidence_bucket(submission.stated_confidence),
        risk_level=record.verdict.risk_level,
    )


def cluster_similarity(record: StoredFeedbackRecord, cluster: FeedbackCluster) -> float:
    signature = cluster.signature
    submission = record.submission
    score = 0.0
    if submission.feedback_type == signature.feedback_type:
        score += 0.3
    if submission.domain == signature.domain:
        score += 0.3
    if record.verdict.risk_level == signature.risk_level:
        score += 0.2
    score += 0.2 * (1 - abs(record.verdict.spam_score - cluster.mean_spam_score))
    return score


@dataclass
class SuspiciousCluster:
    """A cluster flagged as possible coordinated abuse."""

    cluster: FeedbackCluster
    reason: str


class ClusterAssigner:
    """
    Assigns stored records to clusters and reports suspicious ones.

    Usage:
        assigner = ClusterAssigner(store)
        cluster_id = await assigner.assign(record, text_length=len(text))
    """

    def __init__(self, store: FeedbackStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or SystemClock()
        self.logger = logger.bind(component="ClusterAssigner")

    async def assign(self, record: StoredFeedbackRecord, text_length: int = 0) -> str:
        """
        Place a record in a cluster and link the record to it.

        Args:
            record: Freshly stored record
            text_length: Length of the submission's free text before encryption

        Returns:
            Id of the joined or created cluster
        """
        signature = signature_for(record, text_length)
        now = self.clock.now()

        for candidate in await self.store.clusters_for_signature(signature.key):
            if cluster_similarity(record, candidate) > JOIN_THRESHOLD:
                joined = self._join(candidate, record, now)
                await self.store.save_cluster(joined)
                await self.store.set_cluster(record.id, joined.id)
                self.logger.debug(
                    f"Record joined cluster {joined.id} ({joined.member_count} members)",
                    signature=signature.key,
                )
                return joined.id

        cluster = FeedbackCluster(
            id=uuid.uuid4().hex,
            signature=signature,
            member_count=1,
            mean_spam_score=record.verdict.spam_score,
            confidence=INITIAL_CONFIDENCE,
            created_at=now,
            last_updated_at=now,
        )
        await self.store.save_cluster(cluster)
        await self.store.set_cluster(record.id, cluster.id)
        self.logger.debug(f"Created cluster {cluster.id}", signature=signature.key)
        return cluster.id

    def _join(self, cluster: FeedbackCluster, record: StoredFeedbackRecord, now: datetime) -> FeedbackCluster:
        members = cluster.member_count + 1
        mean = cluster.mean_spam_score + (record.verdict.spam_score - cluster.mean_spam_score) / members
        return cluster.model_copy(
            update={
                "member_count": members,
                "mean_spam_score": min(1.0, max(0.0, mean)),
                "confidence": min(1.0, cluster.confidence + CONFIDENCE_STEP),
                "last_updated_at": now,
            }
        )

    async def suspicious_clusters(
        self,
        min_members: int = 5,
        min_spam_score: float = 0.5,
    ) -> list[SuspiciousCluster]:
        """
        Clusters that look like coordinated or repetitive abuse.

        A cluster is flagged when it has at least ``min_members`` members and
        either its mean spam score reaches ``min_spam_score`` or its records
        carry high risk.

        Args:
            min_members: Minimum cluster size
            min_spam_score: Minimum mean spam score

        Returns:
            Flagged clusters, largest first
        """
        flagged = []
        for cluster in await self.store.list_clusters():
            if cluster.member_count < min_members:
                continue
            if cluster.mean_spam_score >= min_spam_score:
                flagged.append(SuspiciousCluster(cluster, "high mean spam score"))
            elif cluster.signature.risk_level == RiskLevel.HIGH:
                flagged.append(SuspiciousCluster(cluster, "high-risk submissions"))

        flagged.sort(key=lambda s: s.cluster.member_count, reverse=True)
        if flagged:
            self.logger.warning(f"{len(flagged)} suspicious clusters found")
        return flagged


__all__ = [
    "ClusterAssigner",
    "SuspiciousCluster",
    "signature_for",
    "cluster_similarity",
    "length_bucket",
    "confidence_bucket",
]
