"""Lexical features and the two content scorers used by SpamClassifier.

Scorer A (heuristic, Naive-Bayes-style) adds fixed rule weights to a base
rate. Scorer B (logistic) runs a five-feature vector through a sigmoid.
Both return values in [0, 1].
"""

import math
from collections import Counter
from dataclasses import dataclass, field

from credibility_feedback.config.spam_patterns import (
    CAPS_RUN_PATTERN,
    HEURISTIC_BASE_RATE,
    HEURISTIC_WEIGHTS,
    LOGISTIC_BIAS,
    LOGISTIC_WEIGHTS,
    NUMBER_SPAM_PATTERN,
    PUNCTUATION_PATTERN,
    REPETITIVE_PATTERN,
    SPAM_TRIGGER_PHRASES,
    URL_PATTERN,
)


@dataclass
class PatternAnalysis:
    """Known spam patterns found in a text.

    Attributes:
        patterns: Pattern names (repetitive_content, excessive_caps,
            suspicious_numbers, url_spam)
        repetitive_score: min(1, repetitive matches / 3)
    """

    patterns: list[str] = field(default_factory=list)
    repetitive_score: float = 0.0

    @property
    def density_risk(self) -> float:
        return min(1.0, len(self.patterns) / 3)


def count_trigger_phrases(text: str) -> int:
    lowered = text.lower()
    return sum(1 for phrase in SPAM_TRIGGER_PHRASES if phrase in lowered)


def heuristic_score(text: str) -> float:
    """Scorer A: additive lexical rules on top of a base rate.

    Args:
        text: Free text (may be empty)

    Returns:
        Spam probability clamped to [0, 1]
    """
    score = HEURISTIC_BASE_RATE

    word_count = len(text.split())
    if word_count < 5:
        score += HEURISTIC_WEIGHTS["short_text"]
    elif word_count > 200:
        score += HEURISTIC_WEIGHTS["long_text"]

    # Empty text only scores the word-count rule
    if not text:
        return min(1.0, score)

    caps_ratio = sum(1 for c in text if "A" <= c <= "Z") / len(text)
    if caps_ratio > 0.3:
        score += HEURISTIC_WEIGHTS["heavy_caps"]
    elif caps_ratio > 0.1:
        score += HEURISTIC_WEIGHTS["light_caps"]

    score += count_trigger_phrases(text) * HEURISTIC_WEIGHTS["trigger_phrase"]
    score += len(URL_PATTERN.findall(text)) * HEURISTIC_WEIGHTS["url"]

    punctuation_ratio = len(PUNCTUATION_PATTERN.findall(text)) / len(text)
    if punctuation_ratio > 0.2:
        score += HEURISTIC_WEIGHTS["heavy_punctuation"]

    return max(0.0, min(1.0, score))


def analyze_patterns(text: str) -> PatternAnalysis:
    """Detect repetitive runs, caps runs, digit runs and URL spam."""
    analysis = PatternAnalysis()

    repetitive = [m.group(0) for m in REPETITIVE_PATTERN.finditer(text)]
    if repetitive:
        analysis.patterns.append("repetitive_content")
        analysis.repetitive_score = min(1.0, len(repetitive) / 3)

    if len(CAPS_RUN_PATTERN.findall(text)) > 2:
        analysis.patterns.append("excessive_caps")

    if NUMBER_SPAM_PATTERN.search(text):
        analysis.patterns.append("suspicious_numbers")

    if len(URL_PATTERN.findall(text)) > 1:
        analysis.patterns.append("url_spam")

    return analysis


def sigmoid(value: float) -> float:
    return 1.0 / (1.0 + math.exp(-value))


def logistic_score(
    text: str,
    reputation: float,
    patterns: PatternAnalysis,
    age_seconds: float,
) -> float:
    """Scorer B: logistic model over length, reputation, patterns, repetition and age.

    Args:
        text: Free text (may be empty)
        reputation: Submitter reputation in [0, 1]
        patterns: Output of analyze_patterns for the same text
        age_seconds: Seconds since the submission was made

    Returns:
        Sigmoid output in (0, 1)
    """
    features = [
        min(1.0, len(text) / 1000),
        1.0 - reputation,
        min(1.0, len(patterns.patterns) / 5),
        min(1.0, patterns.repetitive_score),
        min(1.0, max(0.0, age_seconds) / 86400),
    ]
    linear = LOGISTIC_BIAS + sum(f * w for f, w in zip(features, LOGISTIC_WEIGHTS))
    return sigmoid(linear)


def shannon_entropy(text: str) -> float:
    """Character-level Shannon entropy in bits."""
    if not text:
        return 0.0
    total = len(text)
    return -sum((n / total) * math.log2(n / total) for n in Counter(text).values())


__all__ = [
    "PatternAnalysis",
    "heuristic_score",
    "analyze_patterns",
    "logistic_score",
    "count_trigger_phrases",
    "shannon_entropy",
    "sigmoid",
]
