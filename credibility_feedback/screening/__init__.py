"""Spam and abuse screening for incoming feedback.

Components:
- SlidingWindowRateLimiter: per-submitter minute/hour/day windows
- SubmissionHistory: last texts per submitter for copy-paste detection
- content_features: heuristic and logistic content scorers
- SpamClassifier: combines the above into a SpamVerdict
"""

from credibility_feedback.screening.rate_limiter import RateCheck, SlidingWindowRateLimiter
from credibility_feedback.screening.submission_history import (
    SubmissionHistory,
    jaccard_similarity,
)
from credibility_feedback.screening.spam_classifier import RiskFactors, SpamClassifier

__all__ = [
    "RateCheck",
    "SlidingWindowRateLimiter",
    "SubmissionHistory",
    "jaccard_similarity",
    "RiskFactors",
    "SpamClassifier",
]
