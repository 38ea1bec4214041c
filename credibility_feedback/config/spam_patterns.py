"""Spam lexicon, regexes and model weights for feedback screening.

Two content scorers share these constants:
- Heuristic (Naive-Bayes-style) scorer: additive rule weights over lexical features
- Logistic scorer: fixed weight vector + bias through a sigmoid

Method thresholds decide which detectors are reported in a verdict's
``methods_used``; they do not decide spam status on their own.
"""

import re
from typing import Dict, List, Pattern

# Phrases that show up in promotional / scam feedback (matched case-insensitively)
SPAM_TRIGGER_PHRASES: List[str] = [
    "click here",
    "free money",
    "guaranteed",
    "amazing deal",
    "urgent",
    "limited time",
    "act now",
    "special offer",
    "exclusive",
    "secret",
]

# A single character repeated 5+ times, or a 2+ char chunk repeated 4+ times
REPETITIVE_PATTERN: Pattern[str] = re.compile(r"(.)\1{4,}|(.{2,})\2{3,}", re.IGNORECASE)
URL_PATTERN: Pattern[str] = re.compile(r"https?://[^\s]+", re.IGNORECASE)
CAPS_RUN_PATTERN: Pattern[str] = re.compile(r"[A-Z]{5,}")
NUMBER_SPAM_PATTERN: Pattern[str] = re.compile(r"\d{10,}")
PUNCTUATION_PATTERN: Pattern[str] = re.compile(r"[!?.,;:]")

# Heuristic scorer rule weights
HEURISTIC_BASE_RATE = 0.1
HEURISTIC_WEIGHTS: Dict[str, float] = {
    "short_text": 0.3,          # fewer than 5 words
    "long_text": 0.2,           # more than 200 words
    "heavy_caps": 0.4,          # capitals ratio > 0.3
    "light_caps": 0.1,          # capitals ratio > 0.1
    "trigger_phrase": 0.15,     # per phrase
    "url": 0.25,                # per URL
    "heavy_punctuation": 0.2,   # punctuation ratio > 0.2
}

# Logistic scorer: [length, inverse reputation, pattern count, repetition, age]
LOGISTIC_WEIGHTS: List[float] = [0.2, 0.4, 0.3, 0.25, 0.1]
LOGISTIC_BIAS = -0.5

# Combined score = A * 0.4 + B * 0.6
HEURISTIC_SHARE = 0.4
LOGISTIC_SHARE = 0.6

METHOD_THRESHOLDS: Dict[str, float] = {
    "naive_bayes": 0.7,
    "logistic_regression": 0.65,
    "similarity_analysis": 0.85,
    "pattern_matching": 0.5,
}

# Risk factor contributions
RATE_VIOLATION_RISK = 0.9
LOW_REPUTATION_RISK = 0.6
LOW_REPUTATION_THRESHOLD = 0.3
EVIDENCE_THRESHOLD = 0.3

# Per-submitter text history used for copy-paste detection
HISTORY_SIZE = 10
