"""Bounded per-submitter text history for copy-paste detection."""

from collections import OrderedDict, deque
from typing import Deque

from credibility_feedback.config.spam_patterns import HISTORY_SIZE


def jaccard_similarity(first: str, second: str) -> float:
    """Jaccard similarity of the lowercase word sets of two texts."""
    words_a = set(first.lower().split())
    words_b = set(second.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


class SubmissionHistory:
    """
    Last N texts per submitter, with a cap on tracked submitters.

    Each submitter's texts sit in a ring buffer of ``size`` entries. When
    more than ``max_submitters`` are tracked, the least recently active one
    is evicted. Empty texts are neither stored nor compared.
    """

    def __init__(self, size: int = HISTORY_SIZE, max_submitters: int = 10_000):
        self.size = size
        self.max_submitters = max_submitters
        self._texts: "OrderedDict[str, Deque[str]]" = OrderedDict()

    def max_similarity(self, submitter_id: str, text: str) -> float:
        """Highest similarity between text and any remembered text of the submitter."""
        if not text.strip():
            return 0.0
        history = self._texts.get(submitter_id)
        if not history:
            return 0.0
        return max(jaccard_similarity(text, previous) for previous in history)

    def remember(self, submitter_id: str, text: str) -> None:
        if not text.strip():
            return
        history = self._texts.get(submitter_id)
        if history is None:
            history = deque(maxlen=self.size)
            self._texts[submitter_id] = history
        history.append(text)
        self._texts.move_to_end(submitter_id)

        while len(self._texts) > self.max_submitters:
            self._texts.popitem(last=False)

    def forget(self, submitter_id: str) -> None:
        self._texts.pop(submitter_id, None)

    def __len__(self) -> int:
        return len(self._texts)

    def texts_for(self, submitter_id: str) -> list[str]:
        return list(self._texts.get(submitter_id, ()))


__all__ = ["SubmissionHistory", "jaccard_similarity"]
