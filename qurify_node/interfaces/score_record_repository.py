from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from qurify_node.entities.score import ScoreRecord


class ScoreRecordRepository(ABC):
    @abstractmethod
    def list_score_records(
        self,
        since: datetime | None = None,
        category_id: str | None = None,
    ) -> list[ScoreRecord]:
        """Records with recorded_at >= since, ordered by (recorded_at, id)."""
        raise NotImplementedError

    @abstractmethod
    def append_score_record(self, record: ScoreRecord) -> bool:
        raise NotImplementedError
