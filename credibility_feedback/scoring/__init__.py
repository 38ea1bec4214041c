"""Score integration: bounded adjustment of credibility scores from feedback."""

from credibility_feedback.scoring.score_integrator import ScoreIntegrator

__all__ = ["ScoreIntegrator"]
