"""Storage monitoring schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class StorageMetrics(BaseModel):
    """Point-in-time usage of the feedback store.

    ``quota_used`` is the larger of the byte ratio and the record-count
    ratio against their ceilings.
    """

    total_records: int = 0
    spam_records: int = 0
    cluster_count: int = 0
    storage_bytes: int = 0
    quota_used: float = Field(0.0, ge=0.0)
    oldest_record_at: Optional[datetime] = None
    newest_record_at: Optional[datetime] = None
    retention_compliance_rate: float = Field(1.0, ge=0.0, le=1.0)


class CleanupReport(BaseModel):
    """Result of one retention cleanup pass."""

    records_removed: int = 0
    clusters_removed: int = 0
    performed_at: datetime


class FeedbackStats(BaseModel):
    """Counts over the stored records of one URL, spam included.

    ``agreement_rate`` is agree over all records; ``mean_confidence`` is the
    mean stated confidence. Both are 0 for a URL with no records.
    """

    url: str
    total: int = 0
    agree: int = 0
    disagree: int = 0
    issues: int = 0
    spam: int = 0
    agreement_rate: float = Field(0.0, ge=0.0, le=1.0)
    mean_confidence: float = Field(0.0, ge=0.0, le=1.0)
    last_updated_at: Optional[datetime] = None
