"""Feedback clustering and community consensus.

Components:
- ClusterAssigner: online signature-based clustering of stored records
- ConsensusEngine: derived agreement snapshots per URL
"""

from credibility_feedback.consensus.cluster_assigner import (
    ClusterAssigner,
    SuspiciousCluster,
    signature_for,
)
from credibility_feedback.consensus.consensus_engine import ConsensusEngine, agreement_rate

__all__ = [
    "ClusterAssigner",
    "SuspiciousCluster",
    "signature_for",
    "ConsensusEngine",
    "agreement_rate",
]
