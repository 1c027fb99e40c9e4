from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlmodel import Session, select

from qurify_node.entities.profile import GameProgress
from qurify_node.entities.score import ALL_CATEGORIES, ScoreRecord
from qurify_node.db.tables import GameProgressRow, ProfileRow, ScoreRecordRow
from qurify_node.interfaces.game_progress_repository import GameProgressRepository
from qurify_node.interfaces.profile_repository import ProfileRepository
from qurify_node.interfaces.score_record_repository import ScoreRecordRepository


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything we write is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class DBScoreRecordRepository(ScoreRecordRepository):
    def __init__(self, session: Session):
        self._session = session

    def rollback(self) -> None:
        self._session.rollback()

    def list_score_records(
        self, since: datetime | None = None, category_id: str | None = None,
    ) -> list[ScoreRecord]:
        stmt = select(ScoreRecordRow)
        if since is not None:
            stmt = stmt.where(ScoreRecordRow.recorded_at >= since)
        if category_id is not None and category_id != ALL_CATEGORIES:
            stmt = stmt.where(ScoreRecordRow.category_id == category_id)
        stmt = stmt.order_by(ScoreRecordRow.recorded_at.asc(), ScoreRecordRow.id.asc())
        rows = self._session.exec(stmt).all()
        return [self._row_to_domain(row) for row in rows]

    def append_score_record(self, record: ScoreRecord) -> bool:
        self._session.add(ScoreRecordRow(
            id=record.id,
            subject_id=record.subject_id,
            category_id=record.category_id,
            category_label=record.category_label,
            points=record.points,
            recorded_at=record.recorded_at,
        ))
        self._session.commit()
        return True

    @staticmethod
    def _row_to_domain(row: ScoreRecordRow) -> ScoreRecord:
        return ScoreRecord(
            id=row.id,
            subject_id=row.subject_id,
            category_id=row.category_id,
            category_label=row.category_label,
            points=row.points,
            recorded_at=_as_utc(row.recorded_at),
        )


class DBProfileRepository(ProfileRepository):
    def __init__(self, session: Session):
        self._session = session

    def rollback(self) -> None:
        self._session.rollback()

    def resolve_display_labels(self, subject_ids: Iterable[str]) -> dict[str, str | None]:
        ids = list(dict.fromkeys(subject_ids))
        if not ids:
            return {}
        rows = self._session.exec(
            select(ProfileRow).where(ProfileRow.subject_id.in_(ids))
        ).all()
        labels: dict[str, str | None] = {subject_id: None for subject_id in ids}
        for row in rows:
            labels[row.subject_id] = row.display_name
        return labels


_PROGRESS_ID_NAMESPACE = uuid.UUID("5b0f4c1e-3f5a-4d8e-9a51-7c2d0e6b1a94")


def progress_row_id(subject_id: str, game_id: str) -> str:
    # uuid5 over a length-prefixed pair: ("user_a", "quiz") and ("user", "a_quiz") never collide.
    name = f"{len(subject_id)}:{subject_id}:{game_id}"
    return f"GPR_{uuid.uuid5(_PROGRESS_ID_NAMESPACE, name).hex}"


class DBGameProgressRepository(GameProgressRepository):
    def __init__(self, session: Session):
        self._session = session

    def rollback(self) -> None:
        self._session.rollback()

    def get(self, subject_id: str, game_id: str) -> GameProgress | None:
        row = self._find_row(subject_id, game_id)
        return self._row_to_domain(row) if row else None

    def find(self, *, subject_id: str) -> list[GameProgress]:
        rows = self._session.exec(
            select(GameProgressRow)
            .where(GameProgressRow.subject_id == subject_id)
            .order_by(GameProgressRow.game_id.asc())
        ).all()
        return [self._row_to_domain(row) for row in rows]

    def save(self, progress: GameProgress) -> None:
        existing = self._find_row(progress.subject_id, progress.game_id)
        if existing is None:
            self._session.add(self._domain_to_row(progress))
        else:
            existing.game_name = progress.game_name
            existing.best_score = progress.best_score
            existing.attempts = progress.attempts
            existing.completed = progress.completed
            existing.last_played_at = progress.last_played_at
            existing.updated_at = progress.updated_at
        self._session.commit()

    def _find_row(self, subject_id: str, game_id: str) -> GameProgressRow | None:
        return self._session.exec(
            select(GameProgressRow)
            .where(GameProgressRow.subject_id == subject_id)
            .where(GameProgressRow.game_id == game_id)
        ).first()

    @staticmethod
    def _domain_to_row(progress: GameProgress) -> GameProgressRow:
        return GameProgressRow(
            id=progress_row_id(progress.subject_id, progress.game_id),
            subject_id=progress.subject_id,
            game_id=progress.game_id,
            game_name=progress.game_name,
            best_score=progress.best_score,
            attempts=progress.attempts,
            completed=progress.completed,
            last_played_at=progress.last_played_at,
            created_at=progress.created_at,
            updated_at=progress.updated_at,
        )

    @staticmethod
    def _row_to_domain(row: GameProgressRow) -> GameProgress:
        return GameProgress(
            subject_id=row.subject_id,
            game_id=row.game_id,
            game_name=row.game_name,
            best_score=row.best_score,
            attempts=row.attempts,
            completed=bool(row.completed),
            last_played_at=_as_utc(row.last_played_at),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )
