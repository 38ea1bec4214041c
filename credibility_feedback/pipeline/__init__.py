"""Pipeline orchestration for feedback submissions.

Provides:
- FeedbackPipeline: classify -> store -> cluster -> consensus -> integrate
- ScoreSink / KeyValueScoreSink: write-back of material score adjustments
"""

from credibility_feedback.pipeline.feedback_pipeline import FeedbackPipeline
from credibility_feedback.pipeline.score_sink import KeyValueScoreSink, ScoreSink

__all__ = ["FeedbackPipeline", "ScoreSink", "KeyValueScoreSink"]
