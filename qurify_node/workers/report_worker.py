from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any, Callable, Generator

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Query, status
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session

from qurify_node.config.runtime import RuntimeSettings
from qurify_node.db import (
    DBGameProgressRepository,
    DBProfileRepository,
    DBScoreRecordRepository,
    create_session,
)
from qurify_node.entities.score import ALL_CATEGORIES, LeaderboardEntry, LeaderboardWindow, RequestContext
from qurify_node.games import GAMES
from qurify_node.middleware.auth import configure_auth
from qurify_node.schemas import (
    GameEnvelope,
    GameProgressEnvelope,
    LeaderboardPageEnvelope,
    ScoreSubmissionEnvelope,
    SubmissionResultEnvelope,
)
from qurify_node.services.game_results import GameResultService
from qurify_node.services.leaderboard import FetchFailure, ScoreAggregator, build_page

logger = logging.getLogger(__name__)

app = FastAPI(title="Qurify Leaderboard API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SETTINGS = RuntimeSettings.from_env()

configure_auth(app)


def get_db_session() -> Generator[Session, Any, None]:
    with create_session() as session:
        yield session


def get_score_aggregator(
    session_db: Annotated[Session, Depends(get_db_session)]
) -> ScoreAggregator:
    return ScoreAggregator(
        score_repository=DBScoreRecordRepository(session_db),
        profile_repository=DBProfileRepository(session_db),
    )


LeaderboardReader = Callable[[LeaderboardWindow, str], list[LeaderboardEntry]]


def read_leaderboard(window: LeaderboardWindow, category: str) -> list[LeaderboardEntry]:
    # Runs in a worker thread that may outlive a timed-out request, so it owns its session.
    with create_session() as session:
        aggregator = ScoreAggregator(
            score_repository=DBScoreRecordRepository(session),
            profile_repository=DBProfileRepository(session),
        )
        return aggregator.compute_leaderboard(window, category)


def get_leaderboard_reader() -> LeaderboardReader:
    return read_leaderboard


def get_progress_repository(
    session_db: Annotated[Session, Depends(get_db_session)]
) -> DBGameProgressRepository:
    return DBGameProgressRepository(session_db)


def get_game_result_service(
    aggregator: Annotated[ScoreAggregator, Depends(get_score_aggregator)],
    progress_repo: Annotated[DBGameProgressRepository, Depends(get_progress_repository)],
) -> GameResultService:
    return GameResultService(
        aggregator=aggregator,
        progress_repository=progress_repo,
        completion_threshold=SETTINGS.game_completion_threshold,
    )


def get_request_context(
    x_viewer_id: Annotated[str | None, Header()] = None,
) -> RequestContext:
    return RequestContext(viewer_id=(x_viewer_id or "").strip() or None)


@app.get("/healthz")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/games")
def get_games() -> list[GameEnvelope]:
    return [
        GameEnvelope(id=game.id, name=game.name, icon=game.icon, max_score=game.max_score)
        for game in GAMES
    ]


@app.get("/leaderboard")
async def get_leaderboard(
    reader: Annotated[LeaderboardReader, Depends(get_leaderboard_reader)],
    context: Annotated[RequestContext, Depends(get_request_context)],
    window: Annotated[LeaderboardWindow, Query()] = LeaderboardWindow.WEEKLY,
    category: Annotated[str, Query(min_length=1)] = ALL_CATEGORIES,
    limit: Annotated[int | None, Query(ge=1, le=500)] = None,
) -> LeaderboardPageEnvelope:
    try:
        entries = await asyncio.wait_for(
            asyncio.to_thread(reader, window, category),
            timeout=SETTINGS.leaderboard_fetch_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.warning("leaderboard request timed out window=%s category=%s", window, category)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Leaderboard unavailable")
    except FetchFailure as exc:
        logger.warning("leaderboard request failed window=%s category=%s: %s", window, category, exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Leaderboard unavailable")

    page = build_page(
        entries, context,
        window=window,
        category_filter=category,
        limit=limit or SETTINGS.leaderboard_page_size,
    )
    return LeaderboardPageEnvelope.from_page(page)


@app.post("/scores")
def submit_score(
    body: ScoreSubmissionEnvelope,
    service: Annotated[GameResultService, Depends(get_game_result_service)],
) -> SubmissionResultEnvelope:
    result = service.record_result(
        RequestContext(viewer_id=body.subject_id),
        game_id=body.game_id,
        score=body.score,
        game_name=body.game_name,
    )
    return SubmissionResultEnvelope(
        submitted=result.submitted,
        warning=result.warning,
        progress=GameProgressEnvelope.from_progress(result.progress) if result.progress else None,
    )


@app.get("/progress/{subject_id}")
def get_progress(
    subject_id: str,
    progress_repo: Annotated[DBGameProgressRepository, Depends(get_progress_repository)],
) -> list[GameProgressEnvelope]:
    return [GameProgressEnvelope.from_progress(p) for p in progress_repo.find(subject_id=subject_id)]


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        force=True,
    )
    uvicorn.run(app, host=SETTINGS.report_host, port=SETTINGS.report_port)


if __name__ == "__main__":
    main()
