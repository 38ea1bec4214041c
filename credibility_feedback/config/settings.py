"""Application settings using Pydantic BaseSettings for environment variable management."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Feedback pipeline settings loaded from environment variables.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        data_dir: Directory holding the file-backed key-value stores
        rate_limit_per_minute: Submissions allowed per submitter per minute
        rate_limit_per_hour: Submissions allowed per submitter per hour
        rate_limit_per_day: Submissions allowed per submitter per day
        spam_threshold: Risk value above which a submission is spam
        spam_combination: How the combined score and risk factors are merged
        rejection_confidence: Spam confidence above which a submission is rejected
        feedback_retention_days: Lifetime of non-spam records
        spam_retention_days: Lifetime of spam records
        cluster_retention_days: Lifetime of clusters after their last update
        max_storage_bytes: Storage ceiling used for quota discipline
        max_records: Record-count ceiling used for quota discipline
        cleanup_threshold: Fraction of the ceiling that triggers cleanup
        consensus_window: Most recent records considered for consensus
        min_feedback_for_impact: Valid records required before adjusting a score
        base_feedback_weight: Nominal influence of one submission
        max_feedback_weight: Hard cap on a submission's influence
        exploration_rate: Probability of the exploration weight boost
        materiality_threshold: Score delta (points) worth persisting
    """

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    data_dir: str = Field(
        default=".credibility_feedback",
        description="Directory for file-backed storage tiers"
    )

    rate_limit_per_minute: int = Field(default=5, ge=1)
    rate_limit_per_hour: int = Field(default=50, ge=1)
    rate_limit_per_day: int = Field(default=200, ge=1)

    spam_threshold: float = Field(default=0.68, ge=0.0, le=1.0)
    spam_combination: Literal["max", "blend"] = Field(
        default="max",
        description="max: unweighted max of all signals; blend: mean of combined score and max risk factor"
    )
    rejection_confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    feedback_retention_days: int = Field(default=365, ge=1)
    spam_retention_days: int = Field(default=90, ge=1)
    cluster_retention_days: int = Field(default=180, ge=1)

    max_storage_bytes: int = Field(default=50 * 1024 * 1024, ge=1)
    max_records: int = Field(default=10_000, ge=1)
    cleanup_threshold: float = Field(default=0.9, gt=0.0, le=1.0)

    consensus_window: int = Field(default=500, ge=1)
    min_feedback_for_impact: int = Field(default=3, ge=0)
    base_feedback_weight: float = Field(default=0.05, ge=0.0, le=0.15)
    max_feedback_weight: float = Field(default=0.15, ge=0.0, le=0.15)
    exploration_rate: float = Field(default=0.1, ge=0.0, le=1.0)
    materiality_threshold: int = Field(default=2, ge=0)

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "FEEDBACK_",
        "case_sensitive": False,
        "extra": "ignore",
    }


# Singleton instance - import this throughout the application
settings = Settings()
