from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable


class ProfileRepository(ABC):
    @abstractmethod
    def resolve_display_labels(self, subject_ids: Iterable[str]) -> dict[str, str | None]:
        """Display name per subject id; None where no profile or no name exists."""
        raise NotImplementedError
