from __future__ import annotations

from dataclasses import dataclass
import os

from qurify_node.entities.score import LeaderboardWindow


def _parse_windows(raw: str) -> tuple[LeaderboardWindow, ...]:
    windows = tuple(LeaderboardWindow(w.strip().lower()) for w in raw.split(",") if w.strip())
    return windows or tuple(LeaderboardWindow)


@dataclass(frozen=True)
class RuntimeSettings:
    leaderboard_page_size: int
    leaderboard_fetch_timeout_seconds: float
    leaderboard_refresh_seconds: int
    leaderboard_windows: tuple[LeaderboardWindow, ...]
    score_inserted_channel: str
    leaderboard_refreshed_channel: str
    game_completion_threshold: int
    report_host: str
    report_port: int

    @classmethod
    def from_env(cls) -> "RuntimeSettings":
        return cls(
            leaderboard_page_size=int(os.getenv("LEADERBOARD_PAGE_SIZE", "20")),
            leaderboard_fetch_timeout_seconds=float(os.getenv("LEADERBOARD_FETCH_TIMEOUT_SECONDS", "10")),
            leaderboard_refresh_seconds=int(os.getenv("LEADERBOARD_REFRESH_SECONDS", "300")),
            leaderboard_windows=_parse_windows(os.getenv("LEADERBOARD_WINDOWS", "weekly,monthly,alltime")),
            score_inserted_channel=os.getenv("SCORE_INSERTED_CHANNEL", "score_inserted"),
            leaderboard_refreshed_channel=os.getenv("LEADERBOARD_REFRESHED_CHANNEL", "leaderboard_refreshed"),
            game_completion_threshold=int(os.getenv("GAME_COMPLETION_THRESHOLD", "80")),
            report_host=os.getenv("REPORT_HOST", "0.0.0.0"),
            report_port=int(os.getenv("REPORT_PORT", "8000")),
        )
