"""Write-back target for material score adjustments."""

from typing import Any, Optional, Protocol

from credibility_feedback.clock import Clock, SystemClock
from credibility_feedback.data_management.kv_store import KeyValueStore
from credibility_feedback.data_management.schemas.consensus_schema import IntegrationResult


class ScoreSink(Protocol):
    """Receives adjusted scores that are worth persisting."""

    async def write(self, url: str, feedback_id: str, result: IntegrationResult) -> None:
        ...


class KeyValueScoreSink:
    """Keeps the latest adjusted score per URL under ``score:{url}``."""

    prefix = "score:"

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None):
        self._store = store
        self._clock = clock or SystemClock()

    async def write(self, url: str, feedback_id: str, result: IntegrationResult) -> None:
        await self._store.set(
            self.prefix + url,
            {
                "score": result.adjusted_score,
                "previous_score": result.original_score,
                "feedback_id": feedback_id,
                "updated_at": self._clock.now().isoformat(),
            },
        )

    async def read(self, url: str) -> Optional[dict[str, Any]]:
        return await self._store.get(self.prefix + url)


__all__ = ["ScoreSink", "KeyValueScoreSink"]
