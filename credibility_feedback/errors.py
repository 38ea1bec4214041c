"""Error taxonomy for the feedback pipeline.

Policy: anything that would block a user from submitting feedback is
downgraded to a conservative default; anything that would corrupt stored
data or leak plaintext fails that single record.

| Error                 | Raised by                 | Handled by                         |
|-----------------------|---------------------------|------------------------------------|
| ClassificationFailure | SpamClassifier internals  | SpamClassifier (fail-safe verdict) |
| StorageUnavailable    | KeyValueStore backends    | FeedbackPipeline (failed result)   |
| EncryptionUnavailable | FeedbackCipher            | FeedbackStore (text dropped)       |
| QuotaExceeded         | FeedbackStore quota check | FeedbackStore (cleanup + audit)    |
| InvalidSubmission     | build_submission          | FeedbackPipeline (failed result)   |
"""


class FeedbackError(Exception):
    """Base class for all feedback pipeline errors."""


class ClassificationFailure(FeedbackError):
    """Spam analysis produced an unusable result."""


class StorageUnavailable(FeedbackError):
    """The backing key-value store cannot be opened, read or written."""


class EncryptionUnavailable(FeedbackError):
    """No encryption key is available for free text."""


class QuotaExceeded(FeedbackError):
    """Store usage is above the cleanup threshold of its ceiling."""

    def __init__(self, quota_used: float):
        super().__init__(f"storage quota at {quota_used:.0%}")
        self.quota_used = quota_used


class InvalidSubmission(FeedbackError):
    """Submission failed validation before classification.

    Attributes:
        errors: Field-level validation messages
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message)
        self.errors = errors or []


__all__ = [
    "FeedbackError",
    "ClassificationFailure",
    "StorageUnavailable",
    "EncryptionUnavailable",
    "QuotaExceeded",
    "InvalidSubmission",
]
