"""Data management package for the feedback pipeline.

Provides storage adapters and schemas for:
- Feedback records (StoredFeedbackRecord) - encrypted, retention-governed
- Clusters (FeedbackCluster) - online groups of similar feedback
- Reputation records - kept by the reputation tracker in the sync tier

Storage adapters:
- KeyValueStore backends and TieredStorage (sync + local tiers)
- FeedbackCipher: Fernet encryption of free text
- FeedbackStore: records, clusters, retention, quota, anonymization
"""

from credibility_feedback.data_management.kv_store import (
    KeyValueStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    TieredStorage,
)
from credibility_feedback.data_management.cipher import FeedbackCipher
from credibility_feedback.data_management.feedback_store import FeedbackStore

__all__ = [
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "TieredStorage",
    "FeedbackCipher",
    "FeedbackStore",
]
