from __future__ import annotations

from abc import ABC, abstractmethod

from qurify_node.entities.profile import GameProgress


class GameProgressRepository(ABC):
    @abstractmethod
    def get(self, subject_id: str, game_id: str) -> GameProgress | None:
        raise NotImplementedError

    @abstractmethod
    def find(self, *, subject_id: str) -> list[GameProgress]:
        raise NotImplementedError

    @abstractmethod
    def save(self, progress: GameProgress) -> None:
        raise NotImplementedError
