"""Catalog of the media-literacy training games that award leaderboard points."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GameDefinition:
    id: str
    name: str
    icon: str
    max_score: int = 100


GAMES: tuple[GameDefinition, ...] = (
    GameDefinition(id="fake-news", name="Spot the Fake News", icon="📰"),
    GameDefinition(id="bias-detector", name="Source Bias Detector", icon="⚖️"),
    GameDefinition(id="emotional-language", name="Emotional Language", icon="💬"),
    GameDefinition(id="source-verification", name="Source Verification", icon="🔎"),
    GameDefinition(id="lateral-reading", name="Lateral Reading", icon="🧭"),
)

_GAMES_BY_ID = {game.id: game for game in GAMES}


def game_name(game_id: str) -> str:
    """Display name for a game id; unknown ids are title-cased."""
    game = _GAMES_BY_ID.get(game_id)
    if game is not None:
        return game.name
    return game_id.replace("-", " ").replace("_", " ").title()
