"""Encrypted, retention-governed storage for feedback records and clusters.

Features:
- Free text encrypted with FeedbackCipher before it touches storage
- Retention window per record (spam records expire sooner)
- Quota discipline: cleanup when usage crosses the threshold, audited when
  cleanup is not enough
- Cluster persistence for ClusterAssigner
- Submitter anonymization

Records and clusters live in the local-only tier under ``feedback:{id}`` and
``cluster:{id}``.

Usage:
    from credibility_feedback.data_management.feedback_store import FeedbackStore

    store = FeedbackStore(TieredStorage.in_memory())
    record_id = await store.put(submission, verdict)
    record = await store.get(record_id, include_text=True)
"""

import asyncio
import json
import uuid
from datetime import timedelta
from typing import Any, Optional

import structlog

from credibility_feedback.audit import AuditLog
from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.config.logging import mask_submitter
from credibility_feedback.config.settings import Settings, settings as default_settings
from credibility_feedback.data_management.cipher import FeedbackCipher
from credibility_feedback.data_management.kv_store import TieredStorage
from credibility_feedback.data_management.schemas.audit_schema import (
    CleanupPerformedEvent,
    QuotaExceededEvent,
)
from credibility_feedback.data_management.schemas.cluster_schema import FeedbackCluster
from credibility_feedback.data_management.schemas.feedback_schema import (
    FeedbackSubmission,
    FeedbackType,
    SpamVerdict,
    StoredFeedbackRecord,
)
from credibility_feedback.data_management.schemas.storage_schema import (
    CleanupReport,
    FeedbackStats,
    StorageMetrics,
)
from credibility_feedback.errors import EncryptionUnavailable, QuotaExceeded

RECORD_PREFIX = "feedback:"
CLUSTER_PREFIX = "cluster:"
STATS_WINDOW = 1000


class FeedbackStore:
    """Storage for feedback records with encryption, retention and quota.

    Data layout (local tier):
    {
        "feedback:{id}": StoredFeedbackRecord (JSON),
        "cluster:{id}": FeedbackCluster (JSON),
        "encryption:key": Fernet key,
    }
    """

    def __init__(
        self,
        storage: TieredStorage,
        cipher: Optional[FeedbackCipher] = None,
        audit: Optional[AuditLog] = None,
        clock: Optional[Clock] = None,
        config: Optional[Settings] = None,
    ) -> None:
        """Initialize FeedbackStore.

        Args:
            storage: Storage tiers; only the local tier is used
            cipher: Free-text cipher (defaults to one keyed in the local tier)
            audit: Audit channel for cleanup and quota events
            clock: Time source (defaults to SystemClock)
            config: Settings (defaults to the module-level settings)
        """
        self._kv = storage.local
        self._cipher = cipher or FeedbackCipher(storage.local)
        self._audit = audit or AuditLog()
        self._clock = clock or SystemClock()
        self._config = config or default_settings
        self._lock = asyncio.Lock()
        self._logger = structlog.get_logger().bind(component="FeedbackStore")

    # Records

    async def put(self, submission: FeedbackSubmission, verdict: SpamVerdict) -> str:
        """Persist a classified submission.

        Free text is encrypted; when no key is available the text is dropped
        and the record is stored without it. The record is written with a
        single key write, so a storage failure leaves nothing behind.

        Args:
            submission: Validated submission
            verdict: Spam verdict for the submission

        Returns:
            The new record id

        Raises:
            StorageUnavailable: Backing store cannot be read or written
        """
        async with self._lock:
            await self._enforce_quota()

            encrypted_text = None
            if submission.free_text:
                try:
                    encrypted_text = await self._cipher.encrypt(submission.free_text)
                except EncryptionUnavailable as e:
                    self._logger.warning(
                        "free_text_dropped",
                        reason=str(e),
                        submitter=mask_submitter(submission.submitter_id),
                    )

            now = self._clock.now()
            retention_days = (
                self._config.spam_retention_days
                if verdict.is_spam
                else self._config.feedback_retention_days
            )
            record = StoredFeedbackRecord(
                id=uuid.uuid4().hex,
                submission=submission.model_copy(update={"free_text": None}),
                encrypted_text=encrypted_text,
                verdict=verdict,
                created_at=now,
                last_accessed_at=now,
                retention_expires_at=now + timedelta(days=retention_days),
            )
            await self._write_record(record)

            self._logger.debug(
                "record_stored",
                record_id=record.id,
                url=submission.url,
                is_spam=verdict.is_spam,
                encrypted=encrypted_text is not None,
            )
            return record.id

    async def get(
        self,
        record_id: str,
        include_text: bool = False,
    ) -> Optional[StoredFeedbackRecord]:
        """Fetch a record and touch its last-access time.

        Args:
            record_id: Record identifier
            include_text: Decrypt free text back into ``submission.free_text``

        Returns:
            StoredFeedbackRecord if found, None otherwise
        """
        async with self._lock:
            record = await self._read_record(record_id)
            if record is None:
                return None

            record.last_accessed_at = self._clock.now()
            await self._write_record(record)

        if include_text and record.encrypted_text:
            try:
                text = await self._cipher.decrypt(record.encrypted_text)
                record = record.model_copy(
                    update={"submission": record.submission.model_copy(update={"free_text": text})}
                )
            except EncryptionUnavailable as e:
                self._logger.warning("decrypt_failed", record_id=record_id, reason=str(e))
        return record

    async def list_by_url(
        self,
        url: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[StoredFeedbackRecord]:
        """Records for a URL, newest first.

        Args:
            url: Page URL (exact match)
            limit: Maximum records returned
            offset: Records to skip from the newest end

        Returns:
            List of StoredFeedbackRecord without decrypted text
        """
        records = [r for r in await self.all_records() if r.url == url]
        records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return records[offset:offset + limit]

    async def all_records(self) -> list[StoredFeedbackRecord]:
        """Every stored record, in no particular order."""
        return [
            StoredFeedbackRecord.model_validate(raw)
            for raw in await self._kv.values(RECORD_PREFIX)
        ]

    async def set_cluster(self, record_id: str, cluster_id: str) -> bool:
        """Attach a record to a cluster.

        Returns:
            True if the record exists and was updated
        """
        async with self._lock:
            record = await self._read_record(record_id)
            if record is None:
                return False
            record.cluster_id = cluster_id
            await self._write_record(record)
            return True

    async def anonymize_submitter(self, submitter_id: str) -> int:
        """Strip identifying data from every record of a submitter.

        Drops ciphertext, replaces the submitter id and marks the record
        anonymized. Already anonymized records are left alone.

        Args:
            submitter_id: Submitter to anonymize

        Returns:
            Number of records anonymized
        """
        count = 0
        async with self._lock:
            for record in await self.all_records():
                if record.anonymized or record.submission.submitter_id != submitter_id:
                    continue
                record.encrypted_text = None
                record.anonymized = True
                record.submission = record.submission.model_copy(
                    update={"submitter_id": "anonymous", "free_text": None}
                )
                await self._write_record(record)
                count += 1

        self._logger.info(
            "submitter_anonymized",
            submitter=mask_submitter(submitter_id),
            records=count,
        )
        return count

    # Clusters

    async def save_cluster(self, cluster: FeedbackCluster) -> None:
        await self._kv.set(CLUSTER_PREFIX + cluster.id, cluster.model_dump(mode="json"))

    async def get_cluster(self, cluster_id: str) -> Optional[FeedbackCluster]:
        raw = await self._kv.get(CLUSTER_PREFIX + cluster_id)
        return FeedbackCluster.model_validate(raw) if raw is not None else None

    async def list_clusters(self) -> list[FeedbackCluster]:
        """All clusters in creation order."""
        clusters = [
            FeedbackCluster.model_validate(raw)
            for raw in await self._kv.values(CLUSTER_PREFIX)
        ]
        clusters.sort(key=lambda c: (c.created_at, c.id))
        return clusters

    async def clusters_for_signature(self, signature_key: str) -> list[FeedbackCluster]:
        """Clusters whose signature key matches exactly, in creation order."""
        return [c for c in await self.list_clusters() if c.signature.key == signature_key]

    # Retention and quota

    async def cleanup(self) -> CleanupReport:
        """Delete expired records and stale clusters.

        A record is removed when ``retention_expires_at < now``; a cluster
        when its last update is older than the cluster retention window.

        Returns:
            CleanupReport with removal counts
        """
        async with self._lock:
            return await self._cleanup()

    async def metrics(self) -> StorageMetrics:
        """Current usage of the store."""
        records = await self.all_records()
        cluster_count = len(await self._kv.keys(CLUSTER_PREFIX))
        storage_bytes = await self._estimate_bytes()
        now = self._clock.now()

        created = [r.created_at for r in records]
        valid = sum(1 for r in records if r.retention_expires_at >= now)

        return StorageMetrics(
            total_records=len(records),
            spam_records=sum(1 for r in records if r.is_spam),
            cluster_count=cluster_count,
            storage_bytes=storage_bytes,
            quota_used=self._quota(storage_bytes, len(records)),
            oldest_record_at=min(created) if created else None,
            newest_record_at=max(created) if created else None,
            retention_compliance_rate=valid / len(records) if records else 1.0,
        )

    async def stats(self, url: str) -> FeedbackStats:
        """Counts over the newest records of a URL, spam included.

        Args:
            url: Page URL (exact match)

        Returns:
            FeedbackStats over at most STATS_WINDOW records
        """
        records = await self.list_by_url(url, limit=STATS_WINDOW)
        total = len(records)
        types = [r.submission.feedback_type for r in records]
        agree = types.count(FeedbackType.AGREE)

        return FeedbackStats(
            url=url,
            total=total,
            agree=agree,
            disagree=types.count(FeedbackType.DISAGREE),
            issues=types.count(FeedbackType.REPORT_ISSUE),
            spam=sum(1 for r in records if r.is_spam),
            agreement_rate=agree / total if total else 0.0,
            mean_confidence=(
                sum(r.submission.stated_confidence for r in records) / total if total else 0.0
            ),
            last_updated_at=records[0].created_at if records else None,
        )

    async def _cleanup(self) -> CleanupReport:
        now = self._clock.now()
        records_removed = 0
        for raw in await self._kv.values(RECORD_PREFIX):
            record = StoredFeedbackRecord.model_validate(raw)
            if record.retention_expires_at < now:
                await self._kv.remove(RECORD_PREFIX + record.id)
                records_removed += 1

        cluster_cutoff = now - timedelta(days=self._config.cluster_retention_days)
        clusters_removed = 0
        for raw in await self._kv.values(CLUSTER_PREFIX):
            cluster = FeedbackCluster.model_validate(raw)
            if cluster.last_updated_at < cluster_cutoff:
                await self._kv.remove(CLUSTER_PREFIX + cluster.id)
                clusters_removed += 1

        report = CleanupReport(
            records_removed=records_removed,
            clusters_removed=clusters_removed,
            performed_at=now,
        )
        self._audit.emit(
            CleanupPerformedEvent(
                records_removed=records_removed,
                clusters_removed=clusters_removed,
                occurred_at=now,
            )
        )
        return report

    async def _check_quota(self) -> None:
        """Raise QuotaExceeded when usage is above the cleanup threshold."""
        record_count = len(await self._kv.keys(RECORD_PREFIX))
        quota_used = self._quota(await self._estimate_bytes(), record_count)
        if quota_used > self._config.cleanup_threshold:
            raise QuotaExceeded(quota_used)

    async def _enforce_quota(self) -> None:
        try:
            await self._check_quota()
            return
        except QuotaExceeded as e:
            self._logger.info("quota_cleanup_triggered", quota_used=round(e.quota_used, 3))
            await self._cleanup()

        try:
            await self._check_quota()
        except QuotaExceeded as e:
            self._logger.warning("quota_still_exceeded", quota_used=round(e.quota_used, 3))
            self._audit.emit(QuotaExceededEvent(quota_used=e.quota_used, occurred_at=self._clock.now()))

    async def _estimate_bytes(self) -> int:
        total = 0
        for prefix in (RECORD_PREFIX, CLUSTER_PREFIX):
            for key in await self._kv.keys(prefix):
                value = await self._kv.get(key)
                if value is not None:
                    total += len(key) + len(json.dumps(value, default=str))
        return total

    def _quota(self, storage_bytes: int, record_count: int) -> float:
        return max(
            storage_bytes / self._config.max_storage_bytes,
            record_count / self._config.max_records,
        )

    async def _read_record(self, record_id: str) -> Optional[StoredFeedbackRecord]:
        raw = await self._kv.get(RECORD_PREFIX + record_id)
        return StoredFeedbackRecord.model_validate(raw) if raw is not None else None

    async def _write_record(self, record: StoredFeedbackRecord) -> None:
        await self._kv.set(RECORD_PREFIX + record.id, record.model_dump(mode="json"))

    def describe(self) -> dict[str, Any]:
        """Static configuration summary for operator tooling."""
        return {
            "feedback_retention_days": self._config.feedback_retention_days,
            "spam_retention_days": self._config.spam_retention_days,
            "cluster_retention_days": self._config.cluster_retention_days,
            "max_storage_bytes": self._config.max_storage_bytes,
            "max_records": self._config.max_records,
            "cleanup_threshold": self._config.cleanup_threshold,
        }


__all__ = ["FeedbackStore", "RECORD_PREFIX", "CLUSTER_PREFIX"]
