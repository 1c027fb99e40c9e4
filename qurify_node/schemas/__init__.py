from qurify_node.schemas.payload_contracts import (
    GameEnvelope,
    GameProgressEnvelope,
    LeaderboardEntryEnvelope,
    LeaderboardPageEnvelope,
    ScoreSubmissionEnvelope,
    SubmissionResultEnvelope,
)

__all__ = [
    "GameEnvelope",
    "GameProgressEnvelope",
    "LeaderboardEntryEnvelope",
    "LeaderboardPageEnvelope",
    "ScoreSubmissionEnvelope",
    "SubmissionResultEnvelope",
]
